"""
Structured cost breakdown extraction from generated answers.

The default extractor scans the answer with loose label patterns. It is a
heuristic: figures can be missed or picked up from the wrong sentence, so
the breakdown is advisory. ``LLMCostExtractor`` trades an extra model call
for a schema-validated result behind the same interface.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .generation import BaseTextGenerator
from .models import CostBreakdown

logger = logging.getLogger(__name__)


class CostExtractor(ABC):
    """Turns a free-text answer into an optional ``CostBreakdown``."""

    @abstractmethod
    def extract(self, answer: str) -> Optional[CostBreakdown]:
        """Return the fields found, or None when nothing was found."""
        pass


# Labels in English and Thai (the language the business reports are written in)
_LABELS: Dict[str, str] = {
    "material": r"(?:(?<![a-z])materials?|วัตถุดิบ)",
    "labor": r"(?:(?<![a-z])labou?r|ค่าแรง)",
    "overhead": r"(?:(?<![a-z])overheads?|ค่าโสหุ้ย)",
    "total": r"(?:(?<![a-z])total|รวม)",
}

# Up to 30 non-digit characters between label and figure ("cost: ฿", " = THB ")
_NUMBER = r"[^\d\n]{0,30}?(\d[\d,]*(?:\.\d+)?)"


def _parse_amount(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


class RegexCostExtractor(CostExtractor):
    """Pattern-based extraction of material/labor/overhead/total figures."""

    def __init__(self, labels: Optional[Dict[str, str]] = None):
        labels = labels or _LABELS
        self.patterns = {
            name: re.compile(label + _NUMBER, re.IGNORECASE)
            for name, label in labels.items()
        }

    def extract(self, answer: str) -> Optional[CostBreakdown]:
        if not answer:
            return None

        found = {}
        for name, pattern in self.patterns.items():
            match = pattern.search(answer)
            if match:
                amount = _parse_amount(match.group(1))
                if amount is not None:
                    found[name] = amount

        if not found:
            return None
        return CostBreakdown(**found)


class BreakdownSchema(BaseModel):
    """Fixed schema the extraction model must emit."""
    material: Optional[float] = Field(default=None, ge=0)
    labor: Optional[float] = Field(default=None, ge=0)
    overhead: Optional[float] = Field(default=None, ge=0)
    total: Optional[float] = Field(default=None, ge=0)


class LLMCostExtractor(CostExtractor):
    """Asks a generation model to emit the breakdown as validated JSON."""

    PROMPT = """You extract cost figures from text. Return ONLY a JSON object with the keys "material", "labor", "overhead" and "total".
Each value is a plain number without currency symbols or thousands separators, or null when the text does not state that figure.
Never invent or compute figures that are not written in the text."""

    def __init__(self, generator: BaseTextGenerator, max_tokens: int = 200):
        self.generator = generator
        self.max_tokens = max_tokens

    @staticmethod
    def _strip_fences(text: str) -> str:
        text = text.strip()
        if text.startswith("```"):
            text = re.sub(r"^```(?:json)?\s*", "", text)
            text = re.sub(r"\s*```$", "", text)
        return text

    def extract(self, answer: str) -> Optional[CostBreakdown]:
        if not answer:
            return None

        raw = self.generator.generate(
            self.PROMPT,
            answer,
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        try:
            parsed = BreakdownSchema.model_validate_json(self._strip_fences(raw))
        except PydanticValidationError as e:
            logger.warning("Discarding malformed breakdown from %s: %s", self.generator.model, e)
            return None

        breakdown = CostBreakdown(**parsed.model_dump())
        return None if breakdown.is_empty() else breakdown
