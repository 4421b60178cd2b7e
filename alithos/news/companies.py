"""
Company name and ticker detection for market questions.
"""

import re
from dataclasses import dataclass
from typing import Optional

# Lowercase company name -> primary listing ticker
COMPANY_TICKERS = {
    "apple": "AAPL",
    "microsoft": "MSFT",
    "nvidia": "NVDA",
    "alphabet": "GOOGL",
    "google": "GOOGL",
    "amazon": "AMZN",
    "meta": "META",
    "facebook": "META",
    "tesla": "TSLA",
    "berkshire hathaway": "BRK.B",
    "broadcom": "AVGO",
    "taiwan semiconductor": "TSM",
    "tsmc": "TSM",
    "saudi aramco": "2222.SR",
    "aramco": "2222.SR",
    "eli lilly": "LLY",
    "jpmorgan": "JPM",
    "visa": "V",
    "mastercard": "MA",
    "walmart": "WMT",
    "exxon mobil": "XOM",
    "exxon": "XOM",
    "unitedhealth": "UNH",
    "johnson & johnson": "JNJ",
    "procter & gamble": "PG",
    "oracle": "ORCL",
    "costco": "COST",
    "home depot": "HD",
    "netflix": "NFLX",
    "samsung": "005930.KS",
    "toyota": "7203.T",
    "coca cola": "KO",
    "pepsico": "PEP",
    "adobe": "ADBE",
    "salesforce": "CRM",
    "intel": "INTC",
    "amd": "AMD",
    "advanced micro devices": "AMD",
    "palantir": "PLTR",
    "coinbase": "COIN",
    "microstrategy": "MSTR",
    "robinhood": "HOOD",
    "gamestop": "GME",
    "disney": "DIS",
    "boeing": "BA",
    "nike": "NKE",
    "starbucks": "SBUX",
    "mcdonalds": "MCD",
    "uber": "UBER",
    "airbnb": "ABNB",
    "spotify": "SPOT",
    "shopify": "SHOP",
    "paypal": "PYPL",
    "goldman sachs": "GS",
    "morgan stanley": "MS",
    "bank of america": "BAC",
    "openai": None,
    "anthropic": None,
    "spacex": None,
}

NAME_PATTERNS = (
    re.compile(r"will\s+([a-z\s]+?)\s+(?:be|win|have|become)"),
    re.compile(r"(?:the|a)\s+([a-z\s]+?)\s+(?:will|company|stock)"),
    re.compile(r"([a-z\s]+?)\s+(?:will|is expected|forecast)"),
)


@dataclass
class CompanyMatch:
    company_name: Optional[str] = None
    ticker: Optional[str] = None
    confidence: str = "none"  # high | medium | low | none

    def to_dict(self) -> dict:
        return {
            "companyName": self.company_name,
            "ticker": self.ticker,
            "confidence": self.confidence,
        }


def normalize_text(text: str) -> str:
    text = re.sub(r"[^\w\s&]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def _contains(normalized: str, name: str) -> bool:
    return re.search(rf"\b{re.escape(name)}\b", normalized) is not None


def find_companies(text: str) -> list[str]:
    """Known company names mentioned in the text, direct matches first."""
    normalized = normalize_text(text)
    found = [name for name in COMPANY_TICKERS if _contains(normalized, name)]

    for pattern in NAME_PATTERNS:
        match = pattern.search(normalized)
        if not match:
            continue
        candidate = match.group(1).strip()
        for name in COMPANY_TICKERS:
            if name not in found and candidate and _contains(candidate, name):
                found.append(name)
    return found


def detect_company(text: str) -> CompanyMatch:
    """
    Detect the most specific company named in a market question.

    Longer names win. Confidence is high for a clear single or long match,
    low for short ambiguous matches or names without a listed ticker.
    """
    if not text:
        return CompanyMatch()

    companies = find_companies(text)
    if not companies:
        return CompanyMatch()

    companies.sort(key=len, reverse=True)
    name = companies[0]
    ticker = COMPANY_TICKERS.get(name)
    if not ticker:
        return CompanyMatch(name, None, "low")

    confidence = "medium"
    if len(name) > 4 or len(companies) == 1:
        confidence = "high"
    if len(name) <= 3 and len(companies) > 1:
        confidence = "low"
    return CompanyMatch(name, ticker, confidence)


def search_companies(query: str, limit: int = 10) -> list[dict]:
    normalized = normalize_text(query)
    results = [
        {"name": name, "ticker": ticker}
        for name, ticker in COMPANY_TICKERS.items()
        if ticker and normalized and (normalized in name or name in normalized)
    ]
    return results[:limit]
