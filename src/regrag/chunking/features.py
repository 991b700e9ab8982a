"""
Regex predicates used to pick a chunking strategy for a document.
"""

import re

_HEADINGS = re.compile(r"\b\d+\.\s|\b[A-Z][A-Z\s]{2,}\b|\b(?:Chapter|Section|Part)\b", re.IGNORECASE)
_STRUCTURED_LISTS = re.compile(r"\b\d+\.\d+\.\d+|\b[a-z]\)\s|\b[A-Z]\)\s")
_REGULATORY_TERMS = re.compile(
    r"\b(?:regulation|guideline|policy|requirement|compliance|supervision)\b", re.IGNORECASE
)
_TECHNICAL_TERMS = re.compile(
    r"\b(?:procedure|method|process|algorithm|implementation)\b", re.IGNORECASE
)
MEANINGFUL_LENGTH = 1000

_HIERARCHY = [
    re.compile(r"\b\d+\.\d+\.\d+\.\d+\b"),
    re.compile(r"\b\d+\.\d+\.\d+\b"),
    re.compile(r"\b\d+\.\d+\b"),
    re.compile(r"\b(?:Chapter|Section|Part)\s+\d+\b", re.IGNORECASE),
]

_ORDER_SIGNALS = [
    re.compile(
        r"\b(?:First|Second|Third|Finally|Next|Then|Therefore|However|Subsequently)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b\d+\.\s|\b[a-z]\)\s|\b[A-Z]\)\s"),
    re.compile(r"\b(?:Step|Procedure|Process|Method|Algorithm|Implementation)\b", re.IGNORECASE),
    re.compile(r"\b(?:Because|Since|As a result|Consequently|Thus|Hence)\b", re.IGNORECASE),
]

_NON_ADJACENT_SIGNALS = [
    re.compile(r'"[^"]*"'),
    re.compile(r"\$[^$]*\$|\\\([^)]*\\\)"),
    re.compile(r"\b(?:Note|Remark|Example|Case Study|Footnote|Appendix)\b", re.IGNORECASE),
    re.compile(r"\|.*\|"),
    re.compile(r"\b(?:However|Nevertheless|On the other hand|In contrast)\b", re.IGNORECASE),
]


def has_meaningful_content(text: str) -> bool:
    """Headings, structured lists, length, or regulatory/technical vocabulary."""
    return bool(
        _HEADINGS.search(text)
        or _STRUCTURED_LISTS.search(text)
        or len(text) > MEANINGFUL_LENGTH
        or _REGULATORY_TERMS.search(text)
        or _TECHNICAL_TERMS.search(text)
    )


def has_structured_content(text: str) -> bool:
    """Numbered sections (1.1, 1.1.1, ...) or Chapter/Section/Part N."""
    return any(p.search(text) for p in _HIERARCHY)


def is_order_important(text: str) -> bool:
    return any(p.search(text) for p in _ORDER_SIGNALS)


def needs_non_adjacent_analysis(text: str) -> bool:
    """Quotes, formulas, asides, tables or contrastive connectives."""
    return any(p.search(text) for p in _NON_ADJACENT_SIGNALS)
