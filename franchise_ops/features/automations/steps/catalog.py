"""
Step catalog for lead automations.

Every step type maps its configuration to a StepResult: a structured
description of what happened, plus an optional lead mutation and an
optional flow directive. Executors never perform I/O; the processor
persists logs and applies mutations.

Message delivery is simulated. Send steps render their merge-tagged
text and describe the send; actual delivery belongs to an external
messaging collaborator.
"""

import re
from collections.abc import Callable, Iterator
from typing import Any

from franchise_ops.features.automations.domain import (
    Automation,
    AutomationStep,
    FlowDirective,
    LeadMutation,
    LeadRecord,
    StepResult,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

StepExecutor = Callable[[AutomationStep, LeadRecord | None, Automation], StepResult]

PREVIEW_CHARS = 50

# Step config field -> leads column. Nothing outside this mapping is ever written.
MUTABLE_LEAD_FIELDS: dict[str, str] = {
    "score": "score",
    "source": "source",
    "email": "email",
    "phone": "phone",
}

CONDITION_FIELDS = ("first_name", "last_name", "email", "phone", "source", "score", "stage_id")

ACTIVITY_TYPES: dict[str, str] = {
    "send_sms": "sms_sent",
    "send_email": "email_sent",
    "change_stage": "stage_change",
    "update_lead": "lead_updated",
}

_MERGE_TAG = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class StepConfigurationError(Exception):
    """Raised when a step's configuration cannot be executed."""

    def __init__(self, message: str, step_id: str | None = None):
        super().__init__(message)
        self.step_id = step_id


def activity_type(step_type: str) -> str:
    return ACTIVITY_TYPES.get(step_type, "automation_step")


def merge_values(lead: LeadRecord | None, automation: Automation) -> dict[str, str]:
    return {
        "first_name": (lead.first_name if lead else None) or "",
        "last_name": (lead.last_name if lead else None) or "",
        "full_name": lead.full_name if lead else "",
        "email": (lead.email if lead else None) or "",
        "phone": (lead.phone if lead else None) or "",
        "location_name": automation.location_name or "",
        "location_phone": automation.location_phone or "",
    }


def render(text: str | None, values: dict[str, str]) -> str:
    """Substitute known merge tags; unknown tags are left as written."""
    if not text:
        return ""
    return _MERGE_TAG.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def _preview(text: str) -> str:
    return f"{text[:PREVIEW_CHARS]}..."


# =================================================================
# CONDITIONS
# =================================================================


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _is_empty(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def _equals(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return actual is None and expected is None
    actual_num, expected_num = _as_number(actual), _as_number(expected)
    if actual_num is not None and expected_num is not None:
        return actual_num == expected_num
    return str(actual).strip().lower() == str(expected).strip().lower()


def _compare(actual: Any, expected: Any, op: Callable[[float, float], bool]) -> bool:
    expected_num = _as_number(expected)
    if expected_num is None:
        raise StepConfigurationError(f"Numeric comparison needs a numeric value, got {expected!r}")
    actual_num = _as_number(actual)
    return actual_num is not None and op(actual_num, expected_num)


CONDITION_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "not_equals": lambda actual, expected: not _equals(actual, expected),
    "contains": lambda actual, expected: (
        not _is_empty(actual) and str(expected or "").lower() in str(actual).lower()
    ),
    "is_empty": lambda actual, _: _is_empty(actual),
    "is_not_empty": lambda actual, _: not _is_empty(actual),
    "greater_than": lambda actual, expected: _compare(actual, expected, lambda a, b: a > b),
    "less_than": lambda actual, expected: _compare(actual, expected, lambda a, b: a < b),
}


def evaluate_condition(config: dict[str, Any], lead: LeadRecord | None) -> bool:
    field = config.get("field")
    if field not in CONDITION_FIELDS:
        raise StepConfigurationError(f"Condition field {field!r} is not readable")

    operator = config.get("operator", "equals")
    check = CONDITION_OPERATORS.get(operator)
    if check is None:
        raise StepConfigurationError(f"Unknown condition operator {operator!r}")

    actual = getattr(lead, field) if lead else None
    return check(actual, config.get("value"))


def resolve_false_branch(on_false: Any, position: int) -> FlowDirective:
    """
    Where a false condition sends the enrollment.

    "end" (default) completes it, "skip" jumps over the next step and
    {"goto": n} jumps forward to position n.
    """
    if on_false in (None, "end"):
        return FlowDirective(next_position=None, reason="condition_false_end")
    if on_false == "skip":
        return FlowDirective(next_position=position + 2, reason="condition_false_skip")
    if isinstance(on_false, dict) and "goto" in on_false:
        target = on_false["goto"]
        if not isinstance(target, int) or isinstance(target, bool) or target <= position:
            raise StepConfigurationError(
                f"Condition goto target must be a later step position, got {target!r}"
            )
        return FlowDirective(next_position=target, reason="condition_false_goto")
    raise StepConfigurationError(f"Unknown on_false branch {on_false!r}")


# =================================================================
# CATALOG
# =================================================================


class StepCatalog:
    def __init__(self) -> None:
        self._executors: dict[str, StepExecutor] = {}

    def step(self, step_type: str) -> Callable[[StepExecutor], StepExecutor]:
        def decorator(fn: StepExecutor) -> StepExecutor:
            if step_type in self._executors:
                raise ValueError(f"Step type {step_type} is already registered")
            self._executors[step_type] = fn
            return fn

        return decorator

    def execute(
        self, step: AutomationStep, lead: LeadRecord | None, automation: Automation
    ) -> StepResult:
        executor = self._executors.get(step.step_type)
        if executor is None:
            logger.warning("No executor for step type", step_id=step.id, step_type=step.step_type)
            return StepResult(type=step.step_type, description=f"Executed {step.step_type}")
        return executor(step, lead, automation)

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._executors

    def __iter__(self) -> Iterator[str]:
        return iter(self._executors)


default_steps = StepCatalog()


@default_steps.step("send_sms")
def send_sms(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    message = render(step.step_config.get("message"), merge_values(lead, automation))
    to = lead.phone if lead else None
    return StepResult(
        type="sms",
        description=f'Would send SMS to {to}: "{_preview(message)}"',
        details={"to": to, "message": message},
    )


@default_steps.step("send_email")
def send_email(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    values = merge_values(lead, automation)
    subject = render(step.step_config.get("subject"), values)
    to = lead.email if lead else None
    return StepResult(
        type="email",
        description=f'Would send email to {to}: "{subject}"',
        details={"to": to, "subject": subject, "body": render(step.step_config.get("body"), values)},
    )


@default_steps.step("wait_delay")
def wait_delay(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    config = step.step_config
    return StepResult(
        type="wait",
        description=f"Waited {config.get('delay_amount')} {config.get('delay_unit')}",
    )


@default_steps.step("change_stage")
def change_stage(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    config = step.step_config
    stage_id = config.get("stage_id")
    return StepResult(
        type="stage_change",
        description=f"Changed stage to {config.get('stage_name') or stage_id}",
        details={"stage_id": stage_id},
        mutation=LeadMutation(column="stage_id", value=stage_id) if stage_id else None,
    )


@default_steps.step("update_lead")
def update_lead(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    field = step.step_config.get("field")
    value = step.step_config.get("value")
    column = MUTABLE_LEAD_FIELDS.get(field) if isinstance(field, str) else None

    if column is None:
        logger.warning("Lead field not editable by automations", step_id=step.id, field=field)
        return StepResult(
            type="update",
            description=f'Skipped update of non-editable field "{field}"',
            details={"field": field, "applied": False},
        )

    return StepResult(
        type="update",
        description=f'Updated {field} to "{value}"',
        details={"field": field, "value": value, "applied": True},
        mutation=LeadMutation(column=column, value=value),
    )


@default_steps.step("notify_user")
def notify_user(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    config = step.step_config
    message = render(config.get("message"), merge_values(lead, automation))
    return StepResult(
        type="notification",
        description=f'Would notify via {config.get("channel")}: "{_preview(message)}"',
        details={"channel": config.get("channel"), "message": message},
    )


@default_steps.step("webhook")
def webhook(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    method = step.step_config.get("method") or "POST"
    url = step.step_config.get("url")
    return StepResult(
        type="webhook",
        description=f"Would {method} to {url}",
        details={"method": method, "url": url},
    )


@default_steps.step("condition")
def condition(step: AutomationStep, lead: LeadRecord | None, automation: Automation) -> StepResult:
    config = step.step_config
    passed = evaluate_condition(config, lead)
    if passed:
        flow = FlowDirective(next_position=step.position + 1, reason="condition_true")
    else:
        flow = resolve_false_branch(config.get("on_false"), step.position)

    return StepResult(
        type="condition",
        description=(
            f"Condition {config.get('field')} {config.get('operator', 'equals')} "
            f"{config.get('value')!r} was {'true' if passed else 'false'}"
        ),
        details={"passed": passed, "next_position": flow.next_position},
        flow=flow,
    )
