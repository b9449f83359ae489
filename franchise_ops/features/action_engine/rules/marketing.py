"""Marketing and call-handling rules."""

from collections import defaultdict

from franchise_ops.features.action_engine.domain import AdSpendDay, EvaluationContext, Finding

from .catalog import default_catalog
from .helpers import pct_change, total


def _average_cpa(rows: tuple[AdSpendDay, ...]) -> float:
    return sum(row.cpa or 0 for row in rows) / len(rows)


def _daily_totals(rows: tuple[AdSpendDay, ...]) -> list[tuple[float, int]]:
    """Collapse per-source rows into (spend, conversions) per date, oldest first."""
    by_date: dict = defaultdict(lambda: [0.0, 0])
    for row in rows:
        by_date[row.date][0] += row.spend
        by_date[row.date][1] += row.conversions
    return [tuple(by_date[day]) for day in sorted(by_date)]


@default_catalog.rule("MKT_001")
def cost_per_lead_spike(ctx: EvaluationContext) -> Finding | None:
    if not ctx.ad_spend_recent or not ctx.ad_spend_baseline:
        return None

    recent_cpl = _average_cpa(ctx.ad_spend_recent)
    baseline_cpl = _average_cpa(ctx.ad_spend_baseline)
    if baseline_cpl == 0:
        return None

    increase = pct_change(recent_cpl, baseline_cpl)
    if increase < 30:
        return None

    return Finding(
        category="marketing",
        priority="high" if increase >= 50 else "medium",
        title=f"CPL spiked {increase:.0f}% above baseline",
        description=(
            f"7-day average cost per lead (${recent_cpl:.2f}) is {increase:.0f}% above "
            f"your 30-day baseline (${baseline_cpl:.2f})."
        ),
        recommended_action=(
            "Check for keyword bid changes, audience drift, or landing page issues. "
            "Pause underperforming campaigns and reallocate budget."
        ),
        data={"recent_cpl": recent_cpl, "baseline_cpl": baseline_cpl, "increase_pct": increase},
        generated_by="trend_alert",
    )


@default_catalog.rule("MKT_002")
def spend_without_conversions(ctx: EvaluationContext) -> Finding | None:
    consecutive = 0
    longest = 0
    wasted = 0.0

    for spend, conversions in _daily_totals(ctx.ad_spend_recent):
        if spend > 0 and conversions == 0:
            consecutive += 1
            wasted += spend
            longest = max(longest, consecutive)
        else:
            consecutive = 0

    if longest < 3:
        return None

    return Finding(
        category="marketing",
        priority="critical" if wasted > 300 else "high",
        title=f"{longest} days of ad spend with zero conversions",
        description=(
            f"You've spent ${wasted:.2f} over {longest} consecutive days without a single "
            "conversion."
        ),
        recommended_action=(
            "Pause all campaigns. Review ad copy, landing pages, and conversion tracking "
            "setup before resuming."
        ),
        data={"consecutive_days": longest, "total_wasted": wasted},
    )


@default_catalog.rule("MKT_003")
def cost_per_lead_above_network(ctx: EvaluationContext) -> Finding | None:
    benchmarks = ctx.network_benchmarks
    kpi = ctx.today_kpi
    if benchmarks is None or kpi is None:
        return None

    my_cpl = float(kpi.cost_per_lead or 0)
    network_cpl = float(benchmarks.avg_cost_per_lead or 0)
    if my_cpl == 0 or network_cpl == 0:
        return None

    above_pct = pct_change(my_cpl, network_cpl)
    if above_pct < 25:
        return None

    return Finding(
        category="marketing",
        priority="high" if my_cpl >= network_cpl * 2 else "medium",
        title=f"CPL {above_pct:.0f}% above network average",
        description=(
            f"Your cost per lead (${my_cpl:.2f}) is {above_pct:.0f}% above the network "
            f"average (${network_cpl:.2f}). Other locations are acquiring leads cheaper."
        ),
        recommended_action=(
            "Compare your campaign setup with top-performing locations. Check targeting, "
            "ad copy, and bidding strategy."
        ),
        data={"my_cpl": my_cpl, "network_avg": network_cpl, "above_pct": above_pct},
        generated_by="benchmark_comparison",
    )


@default_catalog.rule("CALL_001")
def missed_calls(ctx: EvaluationContext) -> Finding | None:
    last_week = ctx.kpi_history[-7:]
    week_calls = total(last_week, "total_calls_inbound") + total(last_week, "total_calls_outbound")
    week_missed = total(last_week, "calls_missed")

    if week_calls < 10:
        return None

    missed_rate = week_missed / week_calls * 100
    if missed_rate < 25:
        return None

    return Finding(
        category="operations",
        priority="critical" if missed_rate >= 40 else "high",
        title=f"{missed_rate:.0f}% missed call rate",
        description=(
            f"{week_missed:.0f} of {week_calls:.0f} calls went unanswered in the last 7 days "
            f"({missed_rate:.1f}%). Each missed call is a potential lost enrollment."
        ),
        recommended_action=(
            "Set up a call overflow service or auto-text for missed calls. Review staffing "
            "during peak call hours."
        ),
        data={"missed_rate": missed_rate, "missed_count": week_missed, "total_calls": week_calls},
    )
