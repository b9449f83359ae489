"""Network benchmark comparisons."""

from franchise_ops.features.action_engine.domain import EvaluationContext, Finding

from .catalog import default_catalog


def _below(value: float | None, benchmark: float | None, factor: float) -> bool:
    if value is None or benchmark is None or benchmark <= 0:
        return False
    return value < benchmark * factor


def _above(value: float | None, benchmark: float | None, factor: float) -> bool:
    if value is None or benchmark is None or benchmark <= 0:
        return False
    return value > benchmark * factor


@default_catalog.rule("PERF_001")
def underperforming_location(ctx: EvaluationContext) -> Finding | None:
    b = ctx.network_benchmarks
    k = ctx.today_kpi
    if b is None or k is None:
        return None

    lagging = []
    if _below(k.contact_rate, b.avg_contact_rate, 0.75):
        lagging.append("Contact Rate")
    if _above(k.cost_per_lead, b.avg_cost_per_lead, 1.25):
        lagging.append("Cost Per Lead")
    if _above(k.missed_call_rate, b.avg_missed_call_rate, 1.25):
        lagging.append("Missed Call Rate")
    if _below(k.compliance_score, b.avg_compliance_score, 0.9):
        lagging.append("Compliance")
    if _below(k.gbp_overall_rating, b.avg_review_score, 0.9):
        lagging.append("GBP Rating")

    if len(lagging) < 2:
        return None

    return Finding(
        category="performance",
        priority="high" if len(lagging) >= 3 else "medium",
        title=f"Underperforming on {len(lagging)} metrics",
        description=(
            f"{ctx.location_name} is in the bottom quartile for: {', '.join(lagging)}. "
            "This location needs focused attention."
        ),
        recommended_action=(
            f"Schedule a review meeting for {ctx.location_name}. Prioritize the worst metric "
            "first and create an improvement plan."
        ),
        data={"bottom_metrics": lagging, "count": len(lagging)},
        generated_by="benchmark_comparison",
    )


@default_catalog.rule("WIN_001")
def top_performing_location(ctx: EvaluationContext) -> Finding | None:
    b = ctx.network_benchmarks
    k = ctx.today_kpi
    if b is None or k is None:
        return None

    leading = []
    if _above(k.contact_rate, b.avg_contact_rate, 1.15):
        leading.append("Contact Rate")
    if k.cost_per_lead and _below(k.cost_per_lead, b.avg_cost_per_lead, 0.75):
        leading.append("Cost Per Lead")
    if _above(k.compliance_score, b.avg_compliance_score, 1.05):
        leading.append("Compliance")
    if _above(k.gbp_overall_rating, b.avg_review_score, 1.05):
        leading.append("GBP Rating")
    if _below(k.missed_call_rate, b.avg_missed_call_rate, 0.5):
        leading.append("Call Answer Rate")

    if len(leading) < 2:
        return None

    return Finding(
        category="performance",
        priority="low",
        title=f"Top performer on {len(leading)} metrics!",
        description=(
            f"Great work! {ctx.location_name} is leading the network in: {', '.join(leading)}."
        ),
        recommended_action=(
            "Share your best practices with other locations. Document what's working so it "
            "can be replicated."
        ),
        data={"top_metrics": leading, "count": len(leading)},
        generated_by="benchmark_comparison",
    )
