"""Tests for cost breakdown extraction."""

from costrag.extraction import LLMCostExtractor, RegexCostExtractor
from costrag.models import CostBreakdown

from .conftest import FakeGenerator


class TestRegexCostExtractor:

    def setup_method(self):
        self.extractor = RegexCostExtractor()

    def test_total_only(self):
        breakdown = self.extractor.extract("Based on past projects the total: 8,500 THB per panel.")
        assert breakdown.as_dict() == {"total": 8500}
        assert breakdown.material is None
        assert breakdown.labor is None
        assert breakdown.overhead is None

    def test_full_breakdown(self):
        answer = (
            "Estimated cost per hollow core slab:\n"
            "- Material cost: ฿5,200.50\n"
            "- Labour: 1,800 THB\n"
            "- Overhead = 750\n"
            "- Total cost: 7,750.50 THB\n"
        )
        assert self.extractor.extract(answer).as_dict() == {
            "material": 5200.5,
            "labor": 1800,
            "overhead": 750,
            "total": 7750.5,
        }

    def test_thai_labels(self):
        answer = "วัตถุดิบ: 4,000 บาท\nค่าแรง: 1,500 บาท\nค่าโสหุ้ย: 500 บาท\nรวม: 6,000 บาท"
        assert self.extractor.extract(answer) == CostBreakdown(
            material=4000, labor=1500, overhead=500, total=6000
        )

    def test_case_insensitive(self):
        assert self.extractor.extract("TOTAL 12,000").total == 12000

    def test_subtotal_is_not_total(self):
        assert self.extractor.extract("subtotal: 3,000") is None

    def test_no_figures(self):
        assert self.extractor.extract("There is not enough data to estimate this cost.") is None
        assert self.extractor.extract("") is None

    def test_label_without_number(self):
        assert self.extractor.extract("Material prices vary by supplier.\n") is None


class TestLLMCostExtractor:

    def test_parses_fenced_json(self):
        generator = FakeGenerator(reply='```json\n{"material": 4000, "labor": null, "overhead": null, "total": 6000}\n```')
        breakdown = LLMCostExtractor(generator).extract("some answer")

        assert breakdown.as_dict() == {"material": 4000, "total": 6000}
        assert generator.calls[0]["user_message"] == "some answer"
        assert generator.calls[0]["temperature"] == 0.0

    def test_malformed_output(self):
        generator = FakeGenerator(reply="I think the total is about 6000")
        assert LLMCostExtractor(generator).extract("some answer") is None

    def test_all_null(self):
        generator = FakeGenerator(reply='{"material": null, "labor": null, "overhead": null, "total": null}')
        assert LLMCostExtractor(generator).extract("some answer") is None

    def test_negative_values_rejected(self):
        generator = FakeGenerator(reply='{"total": -5}')
        assert LLMCostExtractor(generator).extract("some answer") is None
