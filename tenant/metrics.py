"""
tenant/metrics.py -- Compliance arithmetic behind the dashboard.

Pure functions over ComplianceScore lists, kept out of the store so they can
be tested without a database.

  compliance_percentage(row)      round_half_up(score / max_score * 100)
  latest_per_framework(rows)      newest assessment per framework;
                                  equal dates -> highest id wins
  average_compliance_score(rows)  round_half_up(mean of the raw percentages),
                                  0 for an empty list

Rounding is half-up (65.5 -> 66), not Python's round-half-to-even.
Rows with max_score <= 0 carry no percentage and are left out of the mean.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from tenant.models import ComplianceScore


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _raw_percentage(row: ComplianceScore) -> float | None:
    if row.max_score <= 0:
        return None
    return row.score / row.max_score * 100


def compliance_percentage(row: ComplianceScore) -> int:
    raw = _raw_percentage(row)
    return 0 if raw is None else round_half_up(raw)


def latest_per_framework(rows: Iterable[ComplianceScore]) -> list[ComplianceScore]:
    """Return one row per framework: the latest by assessment_date, then by id."""
    latest: dict[str, ComplianceScore] = {}
    for row in rows:
        current = latest.get(row.framework)
        if current is None or (row.assessment_date, row.id or 0) > (current.assessment_date, current.id or 0):
            latest[row.framework] = row
    return sorted(latest.values(), key=lambda r: r.framework)


def average_compliance_score(rows: Iterable[ComplianceScore]) -> int:
    percentages = [p for p in (_raw_percentage(r) for r in rows) if p is not None]
    if not percentages:
        return 0
    return round_half_up(sum(percentages) / len(percentages))
