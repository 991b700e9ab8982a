"""Keyword-driven intent classification."""

from abc import ABC, abstractmethod
from enum import Enum


class QueryIntent(str, Enum):
    REGULATORY_INQUIRY = "regulatory_inquiry"
    RISK_ASSESSMENT = "risk_assessment"
    PROCEDURAL_INQUIRY = "procedural_inquiry"
    GENERAL_INQUIRY = "general_inquiry"


# Checked in order; the first list with a match decides
INTENT_PATTERNS: list[tuple[QueryIntent, list[str]]] = [
    (
        QueryIntent.REGULATORY_INQUIRY,
        ["regulation", "rule", "law", "policy", "guideline", "standard",
         "basel", "capital requirement", "compliance"],
    ),
    (
        QueryIntent.RISK_ASSESSMENT,
        ["risk", "safety", "hazard", "danger", "threat", "vulnerability",
         "assessment", "evaluation", "analysis"],
    ),
    (
        QueryIntent.PROCEDURAL_INQUIRY,
        ["procedure", "process", "step", "method", "protocol", "workflow",
         "how to", "what is the process", "steps to"],
    ),
]

COMPOUND_INTENT_PATTERNS: list[tuple[QueryIntent, list[str]]] = [
    (
        QueryIntent.REGULATORY_INQUIRY,
        ["tier 1 capital requirement", "basel iii compliance", "capital adequacy ratio",
         "regulatory framework"],
    ),
    (
        QueryIntent.RISK_ASSESSMENT,
        ["risk assessment", "safety evaluation", "threat analysis", "vulnerability assessment"],
    ),
    (
        QueryIntent.PROCEDURAL_INQUIRY,
        ["how to calculate", "process for determining", "steps to implement", "methodology for"],
    ),
]

QUESTION_WORD_INTENTS = {
    "what": QueryIntent.GENERAL_INQUIRY,
    "how": QueryIntent.PROCEDURAL_INQUIRY,
    "why": QueryIntent.GENERAL_INQUIRY,
    "when": QueryIntent.GENERAL_INQUIRY,
    "where": QueryIntent.GENERAL_INQUIRY,
}


def _match(lowered: str, table: list[tuple[QueryIntent, list[str]]]) -> QueryIntent | None:
    for intent, patterns in table:
        if any(p in lowered for p in patterns):
            return intent
    return None


class IntentClassifier(ABC):
    @abstractmethod
    async def classify_intent(self, query: str) -> QueryIntent:
        ...


class BasicIntentClassifier(IntentClassifier):
    async def classify_intent(self, query: str) -> QueryIntent:
        return _match(query.lower(), INTENT_PATTERNS) or QueryIntent.GENERAL_INQUIRY


class AdvancedIntentClassifier(BasicIntentClassifier):
    """
    Falls through to compound phrases and then the leading question word when
    the basic keyword lists find nothing specific.
    """

    async def classify_intent(self, query: str) -> QueryIntent:
        intent = await super().classify_intent(query)
        if intent is not QueryIntent.GENERAL_INQUIRY:
            return intent

        lowered = query.lower()
        compound = _match(lowered, COMPOUND_INTENT_PATTERNS)
        if compound:
            return compound

        first_word = lowered.split(" ")[0]
        return QUESTION_WORD_INTENTS.get(first_word, QueryIntent.GENERAL_INQUIRY)
