"""Tests for rule-based waste tagging and sustainability insights."""

from decimal import Decimal

from kitchzero.utils.waste_tags import (
    calculate_waste_score,
    generate_waste_tags,
    get_sustainability_insights,
)


class TestGenerateWasteTags:
    def test_keyword_rules(self):
        assert generate_waste_tags("Milk expired", "RAW") == ["avoidable", "storage issue"]

    def test_multiple_rules_deduplicated(self):
        tags = generate_waste_tags("Expired and then dropped", "RAW")
        assert tags == ["avoidable", "storage issue", "handling error"]

    def test_fallback_by_waste_type(self):
        assert generate_waste_tags("No idea", "RAW") == ["raw waste"]
        assert generate_waste_tags("No idea", "product") == ["product waste"]


class TestWasteScore:
    def test_capped_at_ten(self):
        assert calculate_waste_score(["avoidable", "storage issue"]) == 10

    def test_unavoidable_scores_low(self):
        assert calculate_waste_score(["unavoidable", "customer related"]) == 2


class TestSustainabilityInsights:
    def test_no_waste_scores_full_marks(self):
        insights = get_sustainability_insights([])

        assert insights["sustainability_score"] == 100
        assert insights["avoidable_waste"] == Decimal("0")
        assert insights["top_issues"] == []

    def test_avoidable_share_lowers_score(self):
        insights = get_sustainability_insights(
            [
                {"tags": ["avoidable", "storage issue"], "cost": Decimal("3")},
                {"tags": ["unavoidable"], "cost": Decimal("1")},
            ]
        )

        assert insights["avoidable_waste"] == Decimal("3")
        assert insights["sustainability_score"] == 25
        assert insights["top_issues"][0]["cost"] == Decimal("3")
