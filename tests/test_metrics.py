"""
tests/test_metrics.py -- Unit tests for tenant/metrics.py.

Pure functions, no database.
"""

from __future__ import annotations

from tenant.metrics import (
    average_compliance_score,
    compliance_percentage,
    latest_per_framework,
    round_half_up,
)
from tenant.models import ComplianceScore


def _score(framework, score, max_score, date, id_):
    return ComplianceScore(framework=framework, score=score, max_score=max_score, assessment_date=date, id=id_)


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(65.5) == 66
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3  # round() would give 2

    def test_below_half_rounds_down(self):
        assert round_half_up(65.49) == 65


class TestCompliancePercentage:
    def test_basic_percentage(self):
        assert compliance_percentage(_score("soc2", 80, 100, "2024-01-01", 1)) == 80

    def test_rounds_half_up(self):
        # 131 / 200 = 65.5%
        assert compliance_percentage(_score("soc2", 131, 200, "2024-01-01", 1)) == 66

    def test_zero_max_score_is_zero(self):
        assert compliance_percentage(_score("soc2", 5, 0, "2024-01-01", 1)) == 0


class TestLatestPerFramework:
    def test_picks_newest_assessment(self):
        rows = [
            _score("soc2", 50, 100, "2024-01-01T00:00:00.000000+00:00", 1),
            _score("soc2", 90, 100, "2024-06-01T00:00:00.000000+00:00", 2),
            _score("gdpr", 70, 100, "2024-03-01T00:00:00.000000+00:00", 3),
        ]
        latest = latest_per_framework(rows)
        assert [(r.framework, r.score) for r in latest] == [("gdpr", 70), ("soc2", 90)]

    def test_equal_dates_highest_id_wins(self):
        rows = [
            _score("soc2", 90, 100, "2024-06-01T00:00:00.000000+00:00", 7),
            _score("soc2", 40, 100, "2024-06-01T00:00:00.000000+00:00", 3),
        ]
        assert latest_per_framework(rows)[0].id == 7

    def test_empty(self):
        assert latest_per_framework([]) == []


class TestAverageComplianceScore:
    def test_empty_is_zero(self):
        assert average_compliance_score([]) == 0

    def test_mean_of_raw_percentages_rounded_half_up(self):
        # 80% and 51% -> 65.5 -> 66
        rows = [_score("soc2", 80, 100, "d", 1), _score("gdpr", 51, 100, "d", 2)]
        assert average_compliance_score(rows) == 66

    def test_rows_without_max_score_are_ignored(self):
        rows = [_score("soc2", 80, 100, "d", 1), _score("gdpr", 0, 0, "d", 2)]
        assert average_compliance_score(rows) == 80
