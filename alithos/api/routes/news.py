"""
News search over NewsAPI.ai and Adjacent News, and keyword extraction from market questions.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...clients.http import UpstreamError
from ...clients.news_client import AdjacentNewsClient, NewsApiClient
from ...news import detect_company, extract_keywords, keywords_to_query
from ...news.companies import search_companies
from ..deps import Services, get_services
from ..errors import ApiError, BadRequest

router = APIRouter(tags=["news"])


def split_terms(raw: Optional[str]) -> list[str]:
    """Comma-separated when a comma is present, else whitespace-separated."""
    if not raw:
        return []
    parts = raw.split(",") if "," in raw else raw.split()
    return [p.strip() for p in parts if p.strip()]


@router.get("/api/newsapi-ai")
async def search_news(
    keywords: Optional[str] = None,
    limit: int = Query(default=10, ge=1, le=100),
    days: int = Query(default=7, ge=1),
    sort_by: str = Query(default="date", alias="sortBy"),
    include_domains: Optional[str] = Query(default=None, alias="includeDomains"),
    exclude_domains: Optional[str] = Query(default=None, alias="excludeDomains"),
    services: Services = Depends(get_services)
):
    terms = split_terms(keywords)
    if not terms:
        raise BadRequest("Keywords query parameter is required")

    api_key = services.config.news.newsapi_ai_key
    if not api_key:
        raise ApiError(
            "API key not configured",
            details="Please set NEWSAPI_AI_API_KEY in your environment variables",
            status_code=401,
        )

    client = NewsApiClient(api_key, timeout_seconds=30)
    try:
        articles, total = await client.search(
            terms,
            limit=limit,
            days=days,
            sort_by=sort_by,
            include_domains=split_terms(include_domains) or None,
            exclude_domains=split_terms(exclude_domains) or None,
        )
    finally:
        await client.close()

    return {"articles": [a.to_dict() for a in articles], "totalResults": total}


@router.get("/api/news/keywords")
async def news_keywords(
    question: str = Query(min_length=1),
    max_keywords: int = Query(default=5, ge=1, le=20, alias="maxKeywords")
):
    """Keywords and the company match for a market question."""
    keywords = extract_keywords(question, max_keywords)
    return {
        "keywords": keywords,
        "query": keywords_to_query(keywords),
        "company": detect_company(question).to_dict(),
    }


@router.get("/api/news/companies")
async def find_companies(q: str = Query(min_length=1), limit: int = Query(default=10, ge=1, le=50)):
    return {"companies": search_companies(q, limit)}


@router.get("/api/adjacent-news/news")
async def adjacent_news(
    market: Optional[str] = None,
    days: int = Query(default=7, ge=1, le=30),
    limit: int = Query(default=10, ge=1, le=50),
    include_domains: Optional[str] = Query(default=None, alias="includeDomains"),
    exclude_domains: Optional[str] = Query(default=None, alias="excludeDomains"),
    services: Services = Depends(get_services)
):
    """Proxy the Adjacent News feed for a market question or topic."""
    if not market:
        raise BadRequest("Market query parameter is required")

    api_key = services.config.news.adjacent_news_key
    if not api_key:
        raise ApiError(
            "API key not configured",
            details="Please set ADJACENT_NEWS_API_KEY in your environment variables",
            status_code=401,
        )

    client = AdjacentNewsClient(api_key, timeout_seconds=30)
    try:
        return await client.get_market_news(
            market,
            days=days,
            limit=limit,
            include_domains=include_domains,
            exclude_domains=exclude_domains,
        )
    except UpstreamError as e:
        if e.status_code in (401, 403):
            raise ApiError(
                "API key missing or invalid. Please configure ADJACENT_NEWS_API_KEY in environment variables.",
                details=e.details,
                status_code=e.status_code,
            )
        raise
    finally:
        await client.close()
