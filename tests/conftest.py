import copy
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta

import pytest

from franchise_ops.features.action_engine.domain import (
    ActionItem,
    ActionItemOutput,
    Finding,
    KpiSnapshot,
    Location,
)
from franchise_ops.features.automations.domain import (
    Automation,
    AutomationEnrollment,
    AutomationStep,
    LeadRecord,
)
from franchise_ops.features.automations.repository.automation_repository import (
    AutomationRepositoryError,
)

NOW = datetime(2026, 3, 10, 14, 0, tzinfo=UTC)
ORG_ID = "org-1"


# =================================================================
# ACTION ENGINE FAKES
# =================================================================


class FakeLocations:
    def __init__(self, locations: list[Location] | None = None):
        self.locations = list(locations or [])

    async def load_active_locations(self, organization_id: str) -> list[Location]:
        return [loc for loc in self.locations if loc.is_active]


class FakeSources:
    """In-memory context sources keyed by location id."""

    SOURCES = (
        "kpi_history",
        "uncontacted_leads",
        "recent_leads",
        "compliance_items",
        "ad_spend",
        "unreplied_reviews",
        "recent_drives",
        "active_students",
    )

    def __init__(self):
        self.data: dict[str, dict[str, list]] = {}
        self.failing: set[str] = set()
        self.benchmark = None
        self.benchmark_fails = False

    def set(self, location_id: str, source: str, rows: list) -> None:
        self.data.setdefault(location_id, {})[source] = list(rows)

    def _rows(self, source: str, location_id: str) -> list:
        if source in self.failing:
            raise RuntimeError(f"{source} unavailable")
        return list(self.data.get(location_id, {}).get(source, []))

    async def load_kpi_history(self, location_id, since):
        return self._rows("kpi_history", location_id)

    async def load_uncontacted_leads(self, location_id, since):
        return self._rows("uncontacted_leads", location_id)

    async def load_recent_leads(self, location_id, since):
        return self._rows("recent_leads", location_id)

    async def load_compliance_items(self, location_id):
        return self._rows("compliance_items", location_id)

    async def load_ad_spend(self, location_id, since):
        return self._rows("ad_spend", location_id)

    async def load_unreplied_reviews(self, location_id):
        return self._rows("unreplied_reviews", location_id)

    async def load_recent_drives(self, location_id, since):
        return self._rows("recent_drives", location_id)

    async def load_active_students(self, location_id):
        return self._rows("active_students", location_id)

    async def load_latest_benchmark(self, organization_id):
        if self.benchmark_fails:
            raise RuntimeError("benchmarks unavailable")
        return self.benchmark


class FakeActionItems:
    """
    In-memory action_items table. Enforces the one-active-per-rule index
    the same way the database does.
    """

    def __init__(self, now: datetime = NOW):
        self.rows: dict[str, ActionItem] = {}
        self.now = now

    def active(self, location_id: str | None = None, rule_id: str | None = None) -> list[ActionItem]:
        return [
            item
            for item in self.rows.values()
            if item.status in ("open", "in_progress")
            and (location_id is None or item.location_id == location_id)
            and (rule_id is None or item.rule_id == rule_id)
        ]

    def add(self, location_id: str, rule_id: str, status: str = "open", **fields) -> ActionItem:
        item = ActionItem(
            id=str(uuid.uuid4()),
            organization_id=ORG_ID,
            location_id=location_id,
            rule_id=rule_id,
            category=fields.get("category", "operations"),
            priority=fields.get("priority", "medium"),
            status=status,
            title=fields.get("title", f"{rule_id} title"),
            description="",
            recommended_action="",
            data_context={},
            generated_by="system_rule",
            expires_at=self.now + timedelta(days=7),
            created_at=fields.get("created_at", self.now - timedelta(days=1)),
            updated_at=fields.get("updated_at", self.now - timedelta(days=1)),
        )
        self.rows[item.id] = item
        return item

    async def load_active_items(self, location_id: str) -> list[ActionItem]:
        return sorted(self.active(location_id), key=lambda i: i.updated_at, reverse=True)

    async def resolve_open_items(self, location_id, item_ids) -> int:
        count = 0
        for item_id in item_ids:
            item = self.rows.get(item_id)
            if item and item.location_id == location_id and item.status == "open":
                self.rows[item_id] = replace(item, status="resolved", updated_at=self.now)
                count += 1
        return count

    def _apply_content(self, item: ActionItem, output: ActionItemOutput) -> ActionItem:
        updated = replace(
            item,
            priority=output.priority,
            title=output.title,
            description=output.description,
            recommended_action=output.recommended_action,
            data_context=dict(output.data_context),
            updated_at=self.now,
        )
        self.rows[item.id] = updated
        return updated

    async def update_content(self, item_id, output) -> bool:
        item = self.rows.get(item_id)
        if item is None or item.status not in ("open", "in_progress"):
            return False
        self._apply_content(item, output)
        return True

    async def update_content_by_rule(self, location_id, output) -> bool:
        matches = self.active(location_id, output.rule_id)
        for item in matches:
            self._apply_content(item, output)
        return bool(matches)

    async def insert_item(self, organization_id, location_id, output, expires_at):
        if self.active(location_id, output.rule_id):
            return None
        item = ActionItem(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            location_id=location_id,
            rule_id=output.rule_id,
            category=output.category,
            priority=output.priority,
            status="open",
            title=output.title,
            description=output.description,
            recommended_action=output.recommended_action,
            data_context=dict(output.data_context),
            generated_by=output.generated_by,
            expires_at=expires_at,
            created_at=self.now,
            updated_at=self.now,
        )
        self.rows[item.id] = item
        return item

    async def list_items(self, organization_id, statuses, location_id=None):
        return [
            item
            for item in self.rows.values()
            if item.status in statuses and (location_id is None or item.location_id == location_id)
        ]

    async def load_item(self, item_id):
        return self.rows.get(item_id)

    async def transition_status(self, item_id, from_status, to_status):
        item = self.rows.get(item_id)
        if item is None or item.status != from_status:
            return None
        updated = replace(item, status=to_status, updated_at=self.now)
        self.rows[item_id] = updated
        return updated


class FakeRunLock:
    def __init__(self):
        self.held: set[str] = set()
        self.acquired: list[str] = []

    @asynccontextmanager
    async def hold(self, name: str):
        if name in self.held:
            yield False
            return
        self.held.add(name)
        self.acquired.append(name)
        try:
            yield True
        finally:
            self.held.discard(name)


def kpi_rows(days: int, end: date, **metrics) -> list[KpiSnapshot]:
    """`days` consecutive KPI rows ending on `end`, all with the same metrics."""
    return [KpiSnapshot(date=end - timedelta(days=offset), **metrics) for offset in reversed(range(days))]


def output_for(rule_id: str, priority: str = "high", title: str | None = None) -> ActionItemOutput:
    return ActionItemOutput.from_finding(
        rule_id,
        Finding(
            category="operations",
            priority=priority,
            title=title or f"{rule_id} fired",
            description="desc",
            recommended_action="act",
            data={"rule": rule_id},
        ),
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def omaha():
    return Location(id="loc-omaha", name="Omaha", organization_id=ORG_ID)


@pytest.fixture
def lincoln():
    return Location(id="loc-lincoln", name="Lincoln", organization_id=ORG_ID)


@pytest.fixture
def sources():
    return FakeSources()


@pytest.fixture
def action_items():
    return FakeActionItems()


@pytest.fixture
def fake_lock():
    return FakeRunLock()


# =================================================================
# AUTOMATION FAKES
# =================================================================


class FakeAutomationRepository:
    def __init__(self):
        self.automations: dict[str, Automation] = {}
        self.steps: dict[tuple[str, int], AutomationStep] = {}
        self.enrollments: dict[str, AutomationEnrollment] = {}
        self.leads: dict[str, LeadRecord] = {}
        self.lead_updates: list[tuple[str, str, object]] = []
        self.fail_mutations = False

    def add_automation(self, automation_id="auto-1", is_active=True, steps=()) -> Automation:
        automation = Automation(
            id=automation_id,
            name="New lead nurture",
            location_id="loc-omaha",
            is_active=is_active,
            location_name="Omaha",
            location_phone="402-555-0100",
        )
        self.automations[automation_id] = automation
        for position, (step_type, config, delay) in enumerate(steps, start=1):
            self.steps[(automation_id, position)] = AutomationStep(
                id=f"{automation_id}-step-{position}",
                automation_id=automation_id,
                position=position,
                step_type=step_type,
                step_config=config,
                delay_seconds=delay,
            )
        return automation

    def add_lead(self, lead_id="lead-1", **fields) -> LeadRecord:
        lead = LeadRecord(id=lead_id, **fields)
        self.leads[lead_id] = lead
        return lead

    def enroll(self, automation: Automation, lead: LeadRecord, position: int, due: datetime, enrollment_id=None):
        enrollment = AutomationEnrollment(
            id=enrollment_id or f"enr-{len(self.enrollments) + 1}",
            automation_id=automation.id,
            lead_id=lead.id,
            current_step_order=position,
            status="active",
            next_execution_at=due,
            automation=automation,
            lead=lead,
            started_at=due,
        )
        self.enrollments[enrollment.id] = enrollment
        return enrollment

    async def load_due_enrollments(self, now, limit):
        due = [
            replace(e, automation=self.automations[e.automation_id])
            for e in self.enrollments.values()
            if e.status == "active" and e.next_execution_at <= now
        ]
        return sorted(due, key=lambda e: e.next_execution_at)[:limit]

    async def list_enrollments(self, automation_id):
        return [e for e in self.enrollments.values() if e.automation_id == automation_id]

    async def load_automation(self, automation_id):
        return self.automations.get(automation_id)

    async def load_lead(self, lead_id):
        return self.leads.get(lead_id)

    async def load_step(self, automation_id, position):
        return self.steps.get((automation_id, position))

    async def advance_enrollment(self, enrollment_id, from_position, next_position, next_execution_at, *, connection=None):
        enrollment = self.enrollments[enrollment_id]
        if enrollment.status != "active" or enrollment.current_step_order != from_position:
            raise AutomationRepositoryError(
                f"Enrollment {enrollment_id} is no longer active at step {from_position}",
                enrollment_id=enrollment_id,
            )
        self.enrollments[enrollment_id] = replace(
            enrollment, current_step_order=next_position, next_execution_at=next_execution_at
        )

    async def complete_enrollment(self, enrollment_id, completed_at, *, connection=None):
        enrollment = self.enrollments[enrollment_id]
        self.enrollments[enrollment_id] = replace(enrollment, status="completed", completed_at=completed_at)
        return True

    async def apply_lead_mutation(self, lead_id, mutation, *, connection=None):
        if self.fail_mutations:
            raise RuntimeError("leads table locked")
        self.lead_updates.append((lead_id, mutation.column, mutation.value))
        lead = self.leads.get(lead_id)
        if lead is not None:
            self.leads[lead_id] = replace(lead, **{mutation.column: mutation.value})

    async def find_active_enrollment(self, automation_id, lead_id):
        for e in self.enrollments.values():
            if e.automation_id == automation_id and e.lead_id == lead_id and e.status == "active":
                return {"id": e.id}
        return None

    async def create_enrollment(self, automation, lead_id, now):
        if await self.find_active_enrollment(automation.id, lead_id):
            return None
        enrollment = AutomationEnrollment(
            id=f"enr-{len(self.enrollments) + 1}",
            automation_id=automation.id,
            lead_id=lead_id,
            current_step_order=1,
            status="active",
            next_execution_at=now,
            automation=automation,
            started_at=now,
        )
        self.enrollments[enrollment.id] = enrollment
        return enrollment


class FakeActivityLogs:
    def __init__(self):
        self.automation_logs: list[dict] = []
        self.activities: list[dict] = []

    async def insert_automation_log(self, enrollment_id, step_id, status, result, *, connection=None):
        self.automation_logs.append(
            {"enrollment_id": enrollment_id, "step_id": step_id, "status": status, "result": result}
        )

    async def insert_activity(self, lead_id, activity_type, notes, metadata, *, connection=None):
        self.activities.append(
            {"lead_id": lead_id, "activity_type": activity_type, "notes": notes, "metadata": metadata}
        )


class FakeConnection:
    """Transactions over in-memory fakes: a block that raises restores their state."""

    def __init__(self, *stores):
        self.stores = stores

    @asynccontextmanager
    async def transaction(self):
        saved = [{k: copy.copy(v) for k, v in vars(store).items()} for store in self.stores]
        try:
            yield self
        except BaseException:
            for store, state in zip(self.stores, saved):
                vars(store).clear()
                vars(store).update(state)
            raise


@pytest.fixture
def automation_repo():
    return FakeAutomationRepository()


@pytest.fixture
def activity_logs():
    return FakeActivityLogs()


@pytest.fixture
def transaction(automation_repo, activity_logs):
    return FakeConnection(automation_repo, activity_logs).transaction


@pytest.fixture
def make_kpi_rows():
    return kpi_rows


@pytest.fixture
def make_output():
    return output_for


@pytest.fixture
def build_engine(sources, action_items, fake_lock):
    from franchise_ops.features.action_engine.services.engine import ActionEngine

    def _build(locations, catalog=None, clock_now=NOW):
        return ActionEngine(
            locations=FakeLocations(locations),
            sources=sources,
            items=action_items,
            catalog=catalog,
            lock=fake_lock,
            organization_id=ORG_ID,
            expiry_days=7,
            clock=lambda: clock_now,
        )

    return _build


@pytest.fixture
def build_processor(automation_repo, activity_logs, fake_lock, transaction):
    from franchise_ops.features.automations.services.processor import AutomationProcessor

    def _build(mock_mode=True, batch_size=50, clock_now=NOW):
        return AutomationProcessor(
            repository=automation_repo,
            logs=activity_logs,
            lock=fake_lock,
            transaction=transaction,
            batch_size=batch_size,
            mock_mode=mock_mode,
            clock=lambda: clock_now,
        )

    return _build
