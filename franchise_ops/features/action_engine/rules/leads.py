"""Lead follow-up rules."""

from franchise_ops.features.action_engine.domain import EvaluationContext, Finding

from .catalog import default_catalog
from .helpers import hours_since, name_list, plural, split_weeks, total

CONTACT_RATE_TARGET = 70.0


@default_catalog.rule("LEAD_001")
def uncontacted_leads(ctx: EvaluationContext) -> Finding | None:
    leads = ctx.uncontacted_leads
    if not leads:
        return None

    old_leads = [lead for lead in leads if hours_since(lead.created_at, ctx.evaluated_at) > 24]

    priority = "medium"
    if len(leads) >= 10:
        priority = "critical"
    elif len(leads) >= 5 or old_leads:
        priority = "high"

    if old_leads:
        urgency = f"{len(old_leads)} are over 24 hours old."
    else:
        urgency = "Contact them within 2 hours of inquiry for best conversion."

    return Finding(
        category="lead_followup",
        priority=priority,
        title=f"{plural(len(leads), 'uncontacted lead')}",
        description=(
            f"{plural(len(leads), 'lead')} {'have' if len(leads) > 1 else 'has'} "
            f"not been contacted yet. {urgency}"
        ),
        recommended_action=(
            "Open your lead queue and contact these leads immediately: "
            f"{name_list([lead.full_name for lead in leads])}."
        ),
        data={
            "count": len(leads),
            "over_24h": len(old_leads),
            "lead_names": [
                {"name": lead.full_name, "source": lead.source, "created": lead.created_at.isoformat()}
                for lead in leads[:10]
            ],
        },
    )


@default_catalog.rule("LEAD_002")
def low_contact_rate(ctx: EvaluationContext) -> Finding | None:
    kpi = ctx.today_kpi
    if kpi is None or kpi.contact_rate is None:
        return None

    contact_rate = float(kpi.contact_rate)
    if contact_rate >= CONTACT_RATE_TARGET:
        return None

    return Finding(
        category="lead_followup",
        priority="critical" if contact_rate < 50 else "high",
        title=f"Contact rate at {contact_rate:.1f}%",
        description=(
            f"Your 7-day contact rate is {contact_rate:.1f}%, below the "
            f"{CONTACT_RATE_TARGET:.0f}% target. Leads are going cold before your team reaches them."
        ),
        recommended_action=(
            "Review your lead response process. Set up auto-text replies for new inquiries. "
            "Ensure someone checks leads every 2 hours during business hours."
        ),
        data={"contact_rate": contact_rate, "target": CONTACT_RATE_TARGET},
    )


@default_catalog.rule("LEAD_003")
def enrollment_rate_drop(ctx: EvaluationContext) -> Finding | None:
    if len(ctx.kpi_history) < 14:
        return None

    this_week, prev_week = split_weeks(ctx.kpi_history)
    this_leads = total(this_week, "new_leads")
    prev_leads = total(prev_week, "new_leads")

    this_rate = total(this_week, "leads_enrolled") / this_leads * 100 if this_leads > 0 else 0.0
    prev_rate = total(prev_week, "leads_enrolled") / prev_leads * 100 if prev_leads > 0 else 0.0
    drop = prev_rate - this_rate

    if drop < 10:
        return None

    return Finding(
        category="lead_followup",
        priority="high" if drop >= 20 else "medium",
        title=f"Enrollment rate dropped {drop:.0f} points",
        description=(
            f"Enrollment rate fell from {prev_rate:.1f}% to {this_rate:.1f}% week-over-week. "
            "Fewer leads are converting to students."
        ),
        recommended_action=(
            "Check if lead quality changed (new ad campaign?), if pricing is competitive, "
            "and if your follow-up process has slipped."
        ),
        data={"this_week_rate": this_rate, "prev_week_rate": prev_rate, "drop_points": drop},
        generated_by="trend_alert",
    )
