"""Small numeric helpers shared by rule predicates."""

from collections.abc import Iterable
from datetime import datetime

from franchise_ops.features.action_engine.domain import KpiSnapshot


def total(rows: Iterable[KpiSnapshot], attr: str) -> float:
    """Sum a KPI column, counting missing values as zero."""
    return sum(getattr(row, attr) or 0 for row in rows)


def split_weeks(
    history: tuple[KpiSnapshot, ...],
) -> tuple[tuple[KpiSnapshot, ...], tuple[KpiSnapshot, ...]]:
    """Return (last 7 rows, the 7 rows before them)."""
    return history[-7:], history[-14:-7]


def pct_change(current: float, baseline: float) -> float:
    return (current - baseline) / baseline * 100


def hours_since(moment: datetime, now: datetime) -> float:
    return (now - moment).total_seconds() / 3600


def plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word}{suffix if count != 1 else ''}"


def name_list(names: list[str], limit: int = 5) -> str:
    shown = ", ".join(names[:limit])
    if len(names) > limit:
        shown += f" and {len(names) - limit} more"
    return shown
