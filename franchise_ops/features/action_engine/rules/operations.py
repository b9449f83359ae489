"""Operations and financial rules."""

from franchise_ops.features.action_engine.domain import EvaluationContext, Finding

from .catalog import default_catalog
from .helpers import name_list, pct_change, split_weeks, total

# Drive slots per instructor per week: 6 per day, 5 days
SLOTS_PER_INSTRUCTOR_WEEK = 6 * 5


@default_catalog.rule("OPS_001")
def instructor_utilization(ctx: EvaluationContext) -> Finding | None:
    kpi = ctx.today_kpi
    if kpi is None or not kpi.active_instructors or not ctx.recent_drives:
        return None

    completed = [drive for drive in ctx.recent_drives if drive.status == "completed"]
    max_capacity = kpi.active_instructors * SLOTS_PER_INSTRUCTOR_WEEK
    utilization = len(completed) / max_capacity * 100

    if utilization >= 60:
        return None

    return Finding(
        category="operations",
        priority="high" if utilization < 40 else "medium",
        title=f"Instructor utilization at {utilization:.0f}%",
        description=(
            f"Only {len(completed)} of {max_capacity} available drive slots were used last week "
            f"({utilization:.0f}%). You're paying for instructor time that isn't being booked."
        ),
        recommended_action=(
            "Push students with outstanding drives to book appointments. Consider "
            "consolidating instructor schedules to reduce idle days."
        ),
        data={
            "utilization": utilization,
            "completed_drives": len(completed),
            "max_capacity": max_capacity,
            "active_instructors": kpi.active_instructors,
        },
    )


@default_catalog.rule("OPS_002")
def drive_no_shows(ctx: EvaluationContext) -> Finding | None:
    attended_or_missed = [d for d in ctx.recent_drives if d.status in ("completed", "no_show")]
    if len(attended_or_missed) < 20:
        return None

    no_shows = [d for d in attended_or_missed if d.status == "no_show"]
    rate = len(no_shows) / len(attended_or_missed) * 100
    if rate < 10:
        return None

    return Finding(
        category="scheduling",
        priority="high" if rate >= 20 else "medium",
        title=f"{rate:.0f}% no-show rate on drives",
        description=(
            f"{len(no_shows)} of {len(attended_or_missed)} drive appointments were no-shows "
            "last week. Each no-show wastes an instructor hour and delays other students."
        ),
        recommended_action=(
            "Send appointment reminders 24h and 1h before each drive. Consider a no-show fee "
            "policy. Contact no-show students to reschedule."
        ),
        data={"no_show_rate": rate, "no_shows": len(no_shows), "total": len(attended_or_missed)},
    )


@default_catalog.rule("OPS_003")
def fleet_in_maintenance(ctx: EvaluationContext) -> Finding | None:
    kpi = ctx.today_kpi
    if kpi is None:
        return None

    active = kpi.active_vehicles or 0
    in_maintenance = kpi.vehicles_in_maintenance or 0
    fleet = active + in_maintenance
    if fleet == 0:
        return None

    maintenance_pct = in_maintenance / fleet * 100
    if maintenance_pct < 25:
        return None

    if active <= 1:
        impact = "You only have 1 vehicle available, which severely limits your capacity."
    else:
        impact = "This limits how many drives you can schedule."

    return Finding(
        category="operations",
        priority="critical" if active <= 1 else "high",
        title=f"{in_maintenance} of {fleet} vehicles in maintenance",
        description=f"{maintenance_pct:.0f}% of your fleet is unavailable. {impact}",
        recommended_action=(
            "Expedite vehicle repairs. Consider renting a temporary vehicle if maintenance "
            "will take more than 2 days."
        ),
        data={"active": active, "in_maintenance": in_maintenance, "pct": maintenance_pct},
    )


@default_catalog.rule("FIN_001")
def outstanding_revenue_growth(ctx: EvaluationContext) -> Finding | None:
    if len(ctx.kpi_history) < 14:
        return None

    this_week, prev_week = split_weeks(ctx.kpi_history)
    current = float(this_week[-1].revenue_outstanding or 0)
    previous = float(prev_week[-1].revenue_outstanding or 0)

    if previous == 0 or current <= 1000:
        return None

    growth = pct_change(current, previous)
    if growth < 15:
        return None

    return Finding(
        category="financial",
        priority="high" if current > 5000 else "medium",
        title=f"Outstanding revenue grew {growth:.0f}% to ${current:.0f}",
        description=(
            f"Unpaid balances increased from ${previous:.0f} to ${current:.0f} "
            "week-over-week. Cash flow risk is increasing."
        ),
        recommended_action=(
            "Send payment reminders to students with outstanding balances. Consider requiring "
            "payment before scheduling drives."
        ),
        data={"current": current, "previous": previous, "growth_pct": growth},
        generated_by="trend_alert",
    )


@default_catalog.rule("FIN_002")
def revenue_per_student_drop(ctx: EvaluationContext) -> Finding | None:
    if len(ctx.kpi_history) < 14:
        return None

    this_week, prev_week = split_weeks(ctx.kpi_history)
    this_students = max(this_week[-1].active_students or 1, 1)
    prev_students = max(prev_week[-1].active_students or 1, 1)
    current = total(this_week, "revenue_collected") / this_students
    previous = total(prev_week, "revenue_collected") / prev_students

    if previous == 0:
        return None

    drop = (previous - current) / previous * 100
    if drop < 15:
        return None

    return Finding(
        category="financial",
        priority="medium",
        title=f"Revenue per student dropped {drop:.0f}%",
        description=(
            f"Weekly revenue per student fell from ${previous:.0f} to ${current:.0f}. "
            "Students may be completing fewer paid activities."
        ),
        recommended_action=(
            "Check if students are pausing lessons, if new students are on lower-priced "
            "packages, or if payment collection has slowed."
        ),
        data={
            "current_rev_per_student": current,
            "prev_rev_per_student": previous,
            "drop_pct": drop,
        },
        generated_by="trend_alert",
    )


@default_catalog.rule("FIN_003")
def balances_without_lessons(ctx: EvaluationContext) -> Finding | None:
    owing = [
        student
        for student in ctx.active_students
        if student.balance_due > 0 and student.lessons_remaining <= 0
    ]
    if not owing:
        return None

    outstanding = sum(student.balance_due for student in owing)
    if len(owing) < 3 and outstanding < 1000:
        return None

    names = [f"{s.first_name or ''} {s.last_name or ''}".strip() for s in owing]
    return Finding(
        category="financial",
        priority="high" if outstanding >= 2500 else "medium",
        title=f"${outstanding:.0f} owed by {len(owing)} students with no lessons left",
        description=(
            f"{len(owing)} active students have used all their lessons but still carry a "
            f"balance totalling ${outstanding:.0f}."
        ),
        recommended_action=f"Collect outstanding balances from: {name_list(names)}.",
        data={
            "student_count": len(owing),
            "total_outstanding": outstanding,
            "students": [
                {"id": s.id, "balance_due": s.balance_due} for s in owing[:10]
            ],
        },
    )
