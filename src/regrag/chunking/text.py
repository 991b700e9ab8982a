"""
Text heuristics shared by the chunkers, the graph builder and retrieval.

All functions are pure.
"""

import math
import re
from collections import Counter

_SENTENCE_BREAK = re.compile(r"([.!?])\s+")
_NON_WORD = re.compile(r"[^\w\s]")

STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should", "may", "might",
        "can", "this", "that", "these", "those", "from", "as", "it", "its", "not",
        "than", "then", "there", "their", "they", "them", "which", "what", "when",
        "where", "who", "whom", "why", "how", "all", "any", "each", "other", "such",
        "into", "also", "shall", "must", "upon", "under", "over", "about", "more",
        "most", "some", "only", "very", "so", "if", "no", "nor", "too", "our", "we",
        "you", "your", "he", "she", "his", "her", "i", "me", "my",
    }
)

# Discourse connectives dropped by the contextual keyword pass
CONNECTIVE_WORDS = frozenset(
    {
        "much", "many", "just", "even", "still", "again", "however", "therefore",
        "furthermore", "moreover", "nevertheless", "consequently",
    }
)

# Heading vocabulary dropped by the topic keyword pass
STRUCTURE_WORDS = frozenset(
    {"chapter", "section", "topic", "subject", "heading", "title", "content", "information"}
)


def estimate_tokens(text: str) -> int:
    """Roughly four characters per token."""
    return math.ceil(len(text) / 4)


def split_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation followed by whitespace."""
    marked = _SENTENCE_BREAK.sub(r"\1|", text)
    return [s.strip() for s in marked.split("|") if s.strip()]


def split_paragraphs(text: str) -> list[str]:
    """Blank-line separated paragraphs, falling back to lines."""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    if len(paragraphs) <= 1:
        paragraphs = [line.strip() for line in text.split("\n") if line.strip()]
    return paragraphs


def overlap_words(text: str, overlap_tokens: int) -> str:
    """Trailing words of ``text`` worth roughly ``overlap_tokens`` tokens."""
    count = math.floor(overlap_tokens * 4 / 5)
    if count <= 0:
        return ""
    return " ".join(text.split()[-count:])


def word_set(text: str) -> set[str]:
    """Lowercased whitespace-delimited words."""
    return {w for w in text.lower().split() if w}


def jaccard(a: set[str] | list[str], b: set[str] | list[str]) -> float:
    """Jaccard similarity; two empty sets score 0."""
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


def extract_keywords(
    text: str,
    top_n: int = 10,
    min_length: int = 3,
    extra_stopwords: frozenset[str] | set[str] = frozenset(),
    min_count: int = 1,
) -> list[str]:
    """
    Most frequent non-stopword words.

    Args:
        text: Text to scan
        top_n: Number of keywords to return
        min_length: Words must be strictly longer than this
        extra_stopwords: Additional words to ignore
        min_count: Words must occur at least this many times
    """
    cleaned = _NON_WORD.sub("", text.lower())
    counts = Counter(
        word
        for word in cleaned.split()
        if len(word) > min_length and word not in STOPWORDS and word not in extra_stopwords
    )
    ranked = sorted(
        ((word, n) for word, n in counts.items() if n >= min_count),
        key=lambda item: item[1],
        reverse=True,
    )
    return [word for word, _ in ranked[:top_n]]


def query_terms(query: str) -> list[str]:
    """Terms used for relevance boosting: lowercase, split on single spaces."""
    return [t for t in query.lower().split(" ") if t]


def term_coverage(query: str, contents: list[str]) -> float:
    """Fraction of query terms found in at least one of ``contents``."""
    terms = query_terms(query)
    if not terms:
        return 0.0
    haystack = " ".join(contents).lower()
    return sum(1 for t in terms if t in haystack) / len(terms)


def summarize(text: str, sentences: int = 3) -> str:
    """First few sentences."""
    return " ".join(split_sentences(text)[:sentences])
