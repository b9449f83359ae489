"""Compliance and reputation rules."""

from franchise_ops.features.action_engine.domain import EvaluationContext, Finding

from .catalog import default_catalog
from .helpers import name_list, plural

RATING_TARGET = 4.5


@default_catalog.rule("COMP_001")
def expired_compliance_items(ctx: EvaluationContext) -> Finding | None:
    expired = [item for item in ctx.compliance_items if item.status == "expired"]
    if not expired:
        return None

    return Finding(
        category="compliance",
        priority="critical",
        title=f"{plural(len(expired), 'expired compliance item')}",
        description=(
            "The following are past due: "
            + "; ".join(f"{item.entity_name} - {item.compliance_type}" for item in expired)
            + ". Operating with expired credentials puts your location at risk."
        ),
        recommended_action=(
            "Immediately address: "
            + ". ".join(f"Renew {item.compliance_type} for {item.entity_name}" for item in expired)
            + "."
        ),
        data={
            "items": [
                {
                    "entity": item.entity_name,
                    "type": item.compliance_type,
                    "expired_date": item.expiry_date.isoformat() if item.expiry_date else None,
                }
                for item in expired
            ]
        },
        generated_by="compliance_check",
    )


@default_catalog.rule("COMP_002")
def expiring_compliance_items(ctx: EvaluationContext) -> Finding | None:
    expiring = [
        item
        for item in ctx.compliance_items
        if item.status == "expiring_soon"
        and item.days_until_expiry is not None
        and item.days_until_expiry <= 14
    ]
    if not expiring:
        return None

    within_3 = [item for item in expiring if item.days_until_expiry <= 3]
    within_7 = [item for item in expiring if item.days_until_expiry <= 7]

    if within_3:
        priority = "critical"
    elif within_7:
        priority = "high"
    else:
        priority = "medium"

    lead_in = f"{len(within_7)} expire within 7 days! " if within_7 else ""
    return Finding(
        category="compliance",
        priority=priority,
        title=f"{plural(len(expiring), 'item')} expiring within 14 days",
        description=lead_in
        + "Items: "
        + ", ".join(
            f"{item.entity_name} {item.compliance_type} ({item.days_until_expiry}d)"
            for item in expiring
        )
        + ".",
        recommended_action=(
            "Start renewal process now. Instructor certifications can take 2-3 weeks to process."
        ),
        data={
            "items": [
                {
                    "entity": item.entity_name,
                    "type": item.compliance_type,
                    "days_left": item.days_until_expiry,
                }
                for item in expiring
            ],
            "within_7_days": len(within_7),
            "within_3_days": len(within_3),
        },
        generated_by="compliance_check",
    )


@default_catalog.rule("COMP_003")
def compliance_score_below_network(ctx: EvaluationContext) -> Finding | None:
    kpi = ctx.today_kpi
    if kpi is None or kpi.compliance_score is None:
        return None

    score = float(kpi.compliance_score)
    benchmarks = ctx.network_benchmarks
    network_avg = float(
        benchmarks.avg_compliance_score
        if benchmarks and benchmarks.avg_compliance_score is not None
        else 100
    )

    if score >= network_avg or score >= 90:
        return None

    return Finding(
        category="compliance",
        priority="high" if score < 75 else "medium",
        title=f"Compliance score {score:.1f}% - below network average",
        description=(
            f"Your compliance score ({score:.1f}%) is below the network average "
            f"({network_avg:.1f}%). This indicates overdue renewals or missing documentation."
        ),
        recommended_action=(
            "Review all compliance items and address any expired or expiring items."
        ),
        data={"score": score, "network_avg": network_avg},
        generated_by="benchmark_comparison",
    )


@default_catalog.rule("REP_001")
def unreplied_reviews(ctx: EvaluationContext) -> Finding | None:
    reviews = ctx.unreplied_reviews
    if not reviews:
        return None

    negative = [review for review in reviews if review.star_rating <= 2]
    stale = [
        review
        for review in reviews
        if (ctx.evaluated_at - review.review_date).total_seconds() > 3 * 86400
    ]

    priority = "low"
    if len(negative) >= 2:
        priority = "high"
    elif len(negative) == 1 or len(stale) > 3:
        priority = "medium"

    lead_in = (
        f"{len(negative)} are negative reviews that need immediate attention. " if negative else ""
    )
    return Finding(
        category="reputation",
        priority=priority,
        title=f"{plural(len(reviews), 'unreplied Google review')}",
        description=lead_in
        + "Responding to reviews improves your Google ranking and shows potential customers you care.",
        recommended_action=(
            "Reply to these reviews today: "
            + name_list([f"{r.reviewer_name or 'Anonymous'} ({r.star_rating}*)" for r in reviews])
            + "."
        ),
        data={
            "total_unreplied": len(reviews),
            "negative_count": len(negative),
            "reviews": [
                {
                    "reviewer": review.reviewer_name,
                    "rating": review.star_rating,
                    "date": review.review_date.isoformat(),
                }
                for review in reviews[:10]
            ],
        },
    )


@default_catalog.rule("REP_002")
def low_google_rating(ctx: EvaluationContext) -> Finding | None:
    kpi = ctx.today_kpi
    if kpi is None or kpi.gbp_overall_rating is None:
        return None

    rating = float(kpi.gbp_overall_rating)
    if rating >= RATING_TARGET:
        return None

    return Finding(
        category="reputation",
        priority="high" if rating < 4.0 else "medium",
        title=f"Google rating at {rating:.1f}*",
        description=(
            f"Your Google Business Profile rating is {rating:.1f}*, below the "
            f"{RATING_TARGET}* target. This affects your search ranking and first impressions."
        ),
        recommended_action=(
            "Ask happy students to leave reviews. Follow up after successful road tests. "
            "Address negative review themes in your operations."
        ),
        data={"rating": rating, "target": RATING_TARGET},
    )
