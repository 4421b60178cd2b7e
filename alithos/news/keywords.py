"""
Keyword extraction from market questions for news search.

Specific identifiers rank first: company, ticker, years, quoted phrases,
then a few distinctive words from the question.
"""

import re

from .companies import detect_company

STOP_WORDS = frozenset({
    "will", "be", "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "are", "was", "were", "been", "have", "has",
    "had", "do", "does", "did", "this", "that", "these", "those", "what", "which", "who",
    "when", "where", "how", "why", "can", "could", "should", "would", "may", "might",
    "must", "shall", "if", "then", "than", "more", "most", "less", "least", "very",
    "much", "many", "some", "any", "all", "each", "every", "both", "either", "neither",
    "before", "after", "above", "below", "over", "under", "exceed", "between",
})

GENERIC_TERMS = frozenset({
    "largest", "biggest", "smallest", "best", "worst", "top", "bottom",
    "company", "companies", "world", "global", "international", "national",
    "end", "beginning", "start", "finish", "complete",
    "market", "markets", "cap", "capitalization", "value", "worth",
    "price", "prices", "cost", "costs", "revenue", "profit", "loss",
    "happen", "happens", "happened", "occur", "occurs", "occurred",
    "reach", "reaches", "reached", "hit", "hits", "hitting",
    "prediction", "predictions", "stock", "stocks", "successful",
})

QUESTION_WORDS = frozenset({"what", "who", "when", "where", "how", "why", "which", "whose", "whom"})

YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")
QUOTED_PATTERN = re.compile(r"[\"“]([^\"”]+)[\"”]|(?<!\w)'([^']+)'(?!\w)")
WORD_PATTERN = re.compile(r"[A-Za-z][A-Za-z\-]*")

MAX_SPECIFIC_TERMS = 3


def _is_specific(word: str) -> bool:
    lower = word.lower()
    if len(lower) <= 2 or lower in STOP_WORDS or lower in QUESTION_WORDS or lower in GENERIC_TERMS:
        return False
    return word[0].isupper() or len(lower) >= 4


def extract_keywords(question: str, max_keywords: int = 5) -> list[str]:
    """
    Build a short keyword list for a news query.

    Args:
        question: Market question text
        max_keywords: Upper bound on the result length

    Returns:
        Keywords, most specific first, deduplicated case-insensitively
    """
    if not question:
        return []

    keywords: list[str] = []
    seen: set[str] = set()

    def add(term: str) -> None:
        term = term.strip()
        if len(term) > 2 and term.lower() not in seen:
            seen.add(term.lower())
            keywords.append(term)

    company = detect_company(question)
    if company.company_name and company.confidence != "none":
        add(company.company_name.title())
        if company.ticker:
            add(company.ticker)

    for year in YEAR_PATTERN.findall(question):
        add(year)

    for double, single in QUOTED_PATTERN.findall(question):
        add(double or single)

    remainder = YEAR_PATTERN.sub(" ", QUOTED_PATTERN.sub(" ", question))
    specific = []
    for word in WORD_PATTERN.findall(remainder):
        if _is_specific(word) and word.lower() not in seen:
            if word.lower() not in (w.lower() for w in specific):
                specific.append(word)
    for word in specific[:MAX_SPECIFIC_TERMS]:
        add(word)

    return keywords[:max_keywords]


def keywords_to_query(keywords: list[str]) -> str:
    return " ".join(k for k in keywords if k and k.strip())
