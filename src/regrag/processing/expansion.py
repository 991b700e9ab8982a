"""
Query expansion: synonym substitution, domain phrases and reformulations.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

SYNONYMS: dict[str, list[str]] = {
    "regulation": ["rule", "law", "policy", "guideline", "standard"],
    "safety": ["security", "protection", "prevention", "safeguard"],
    "risk": ["hazard", "danger", "threat", "peril"],
    "assessment": ["evaluation", "analysis", "review", "examination"],
    "procedure": ["process", "method", "protocol", "workflow"],
    "document": ["report", "paper", "file", "record"],
    "requirement": ["mandate", "necessity", "obligation", "prerequisite"],
    "capital": ["equity", "funds", "assets", "resources"],
    "tier": ["level", "category", "class", "rank"],
    "basel": ["basel iii", "basel 3", "regulatory framework"],
    "compliance": ["adherence", "conformity", "observance"],
    "ratio": ["proportion", "percentage", "rate", "measure"],
}

REFORMULATIONS = [
    "What are the {query}?",
    "Tell me about {query}",
    "Find information on {query}",
    "Search for {query}",
    "Explain {query}",
    "Details about {query}",
]

DOMAIN_EXPANSIONS: dict[str, list[str]] = {
    "capital requirement": [
        "tier 1 capital requirement",
        "common equity tier 1",
        "capital adequacy ratio",
        "minimum capital requirement",
    ],
    "basel iii": [
        "basel 3 requirements",
        "basel iii framework",
        "basel iii compliance",
        "basel iii standards",
    ],
    "risk assessment": [
        "risk evaluation process",
        "risk analysis methodology",
        "risk assessment framework",
        "risk management assessment",
    ],
}

CONTEXTUAL_REFORMULATIONS = [
    "What are the current {query}?",
    "How do {query} work?",
    "What is the process for {query}?",
    "Can you explain {query} in detail?",
    "What are the requirements for {query}?",
    "How to implement {query}?",
]

QUESTION_WORDS = ["what", "how", "why", "when", "where", "which"]


@dataclass
class ExpandedQuery:
    original: str
    expanded: list[str]
    synonyms: dict[str, list[str]] = field(default_factory=dict)
    reformulations: list[str] = field(default_factory=list)
    confidence: float = 0.5


class QueryExpander(ABC):
    @abstractmethod
    async def expand_query(self, query: str) -> ExpandedQuery:
        ...


class BasicQueryExpander(QueryExpander):
    async def expand_query(self, query: str) -> ExpandedQuery:
        lowered = query.lower()
        expanded = [query]
        for term, related in SYNONYMS.items():
            if term not in lowered:
                continue
            pattern = re.compile(re.escape(term), re.IGNORECASE)
            for replacement in related:
                expanded.append(pattern.sub(lambda _m, r=replacement: r, query))

        # Counted before de-duplication
        confidence = min(0.5 + (len(expanded) - 1) * 0.1, 1.0)
        return ExpandedQuery(
            original=query,
            expanded=list(dict.fromkeys(expanded)),
            synonyms=SYNONYMS,
            reformulations=[t.format(query=query) for t in REFORMULATIONS],
            confidence=confidence,
        )


class AdvancedQueryExpander(BasicQueryExpander):
    async def expand_query(self, query: str) -> ExpandedQuery:
        basic = await super().expand_query(query)
        lowered = query.lower()

        expanded = list(basic.expanded)
        for term, expansions in DOMAIN_EXPANSIONS.items():
            if term in lowered:
                expanded.extend(expansions)

        reformulations = list(basic.reformulations)
        reformulations.extend(t.format(query=query) for t in CONTEXTUAL_REFORMULATIONS)
        reformulations.extend(f"{word} {query}?" for word in QUESTION_WORDS)

        bonus = min((len(expanded) - len(basic.expanded)) * 0.05, 0.3)
        return ExpandedQuery(
            original=query,
            expanded=list(dict.fromkeys(expanded)),
            synonyms=basic.synonyms,
            reformulations=list(dict.fromkeys(reformulations)),
            confidence=min(basic.confidence + bonus, 1.0),
        )
