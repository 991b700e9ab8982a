"""Entity extraction from user queries."""

import re
from abc import ABC, abstractmethod

DATE_PATTERN = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
LOCATION_PATTERN = re.compile(r"\b(Hong Kong|HK|China|Asia)\b", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\b\d+(?:\.\d+)?\b")

DOCUMENT_TYPES = ["regulation", "guideline", "policy", "procedure", "requirement", "standard"]
FINANCIAL_TERMS = ["capital", "tier", "basel", "risk", "safety", "compliance"]
COMPOUND_TERMS = [
    "tier 1 capital",
    "common equity tier 1",
    "risk-weighted assets",
    "capital adequacy ratio",
    "liquidity coverage ratio",
]
REGULATORY_FRAMEWORKS = ["basel iii", "basel 3", "basel ii", "basel 2"]


class EntityExtractor(ABC):
    @abstractmethod
    async def extract_entities(self, query: str) -> list[str]:
        ...


class BasicEntityExtractor(EntityExtractor):
    """Dates, document types, financial terms, locations and numbers."""

    async def extract_entities(self, query: str) -> list[str]:
        lowered = query.lower()
        entities: list[str] = DATE_PATTERN.findall(query)
        entities.extend(t for t in DOCUMENT_TYPES if t in lowered)
        entities.extend(t for t in FINANCIAL_TERMS if t in lowered)
        entities.extend(m.lower() for m in LOCATION_PATTERN.findall(query))
        entities.extend(NUMBER_PATTERN.findall(query))
        return list(dict.fromkeys(entities))


class AdvancedEntityExtractor(BasicEntityExtractor):
    """Basic entities plus compound financial terms and Basel frameworks."""

    async def extract_entities(self, query: str) -> list[str]:
        entities = await super().extract_entities(query)
        lowered = query.lower()
        entities.extend(t for t in COMPOUND_TERMS if t in lowered)
        entities.extend(f for f in REGULATORY_FRAMEWORKS if f in lowered)
        return list(dict.fromkeys(entities))
