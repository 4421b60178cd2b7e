"""
News clients: NewsAPI.ai (Event Registry) article search and the
Adjacent News per-market feed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

import aiohttp

from .http import HttpClient, UpstreamError
from ..utils.logger import get_logger

logger = get_logger("news")

SNIPPET_LENGTH = 200


@dataclass
class NewsArticle:
    title: str
    url: str
    source: str
    published_at: str
    description: str
    image: Optional[str] = None
    author: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "publishedAt": self.published_at,
            "description": self.description,
            "image": self.image,
            "author": self.author,
        }


def _extract_results(data) -> list[dict]:
    if isinstance(data, list):
        return data
    articles = data.get("articles")
    if isinstance(articles, dict) and isinstance(articles.get("results"), list):
        return articles["results"]
    for key in ("articles", "results", "data"):
        if isinstance(data.get(key), list):
            return data[key]
    return []


def parse_article(raw: dict) -> Optional[NewsArticle]:
    title = raw.get("title") or ""
    url = raw.get("url") or raw.get("link") or ""
    if not title or not url:
        return None

    published = raw.get("date") or raw.get("publishedAt") or ""
    if raw.get("time"):
        published = f"{published}T{raw['time']}" if published else raw["time"]

    source = raw.get("source")
    if isinstance(source, dict):
        source = source.get("title") or source.get("uri")
    source = source or raw.get("domain") or ""

    body = raw.get("body")
    if body:
        description = body[:SNIPPET_LENGTH] + "..." if len(body) > SNIPPET_LENGTH else body
    else:
        description = raw.get("description") or raw.get("snippet") or ""

    author = raw.get("authors") or raw.get("author")
    if isinstance(author, list):
        author = author[0] if author else None
    if isinstance(author, dict):
        author = author.get("name")

    return NewsArticle(
        title=title,
        url=url,
        source=str(source),
        published_at=published,
        description=description,
        image=raw.get("image"),
        author=author,
    )


def build_query(
    keywords: list[str],
    api_key: str,
    limit: int = 10,
    days: int = 7,
    sort_by: str = "date",
    include_domains: Optional[list[str]] = None,
    exclude_domains: Optional[list[str]] = None,
    today: Optional[datetime] = None
) -> dict:
    """Event Registry getArticles body; any keyword may match."""
    body = {
        "action": "getArticles",
        "keyword": keywords,
        "keywordOper": "or",
        "articlesPage": 1,
        "articlesCount": limit,
        "articlesSortBy": sort_by,
        "articlesSortByAsc": False,
        "resultType": "articles",
        "dataType": ["news", "pr"],
        "apiKey": api_key,
    }

    # Only 7 and 31 are accepted for the fixed windows
    if days <= 7:
        body["forceMaxDataTimeWindow"] = 7
    elif days <= 31:
        body["forceMaxDataTimeWindow"] = 31
    else:
        end = today or datetime.now(timezone.utc)
        body["dateStart"] = (end - timedelta(days=days)).strftime("%Y-%m-%d")
        body["dateEnd"] = end.strftime("%Y-%m-%d")

    if exclude_domains:
        body["ignoreSourceUri"] = exclude_domains
    if include_domains:
        body["sourceUri"] = include_domains
    return body


class NewsApiClient(HttpClient):
    """Client for NewsAPI.ai article search. The API key travels in the body."""

    SERVICE = "NewsAPI.ai"
    BASE_URL = "https://eventregistry.org/api/v1"

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout_seconds: float = 30.0):
        super().__init__(base_url or self.BASE_URL, timeout_seconds)
        self.api_key = api_key

    async def search(
        self,
        keywords: list[str],
        limit: int = 10,
        days: int = 7,
        sort_by: str = "date",
        include_domains: Optional[list[str]] = None,
        exclude_domains: Optional[list[str]] = None
    ) -> tuple[list[NewsArticle], int]:
        """
        Search articles matching any of the keywords.

        Returns:
            (articles, total results reported upstream)

        Raises:
            UpstreamError: HTTP failure, or an error object in a 200 body
        """
        body = build_query(keywords, self.api_key, limit, days, sort_by, include_domains, exclude_domains)
        data = await self._request("/article/getArticles", method="POST", json_body=body)

        if isinstance(data, dict) and (data.get("error") or data.get("status") == "error"):
            message = data.get("error") or data.get("message") or "Unknown error from NewsAPI.ai"
            raise UpstreamError(self.SERVICE, 400, str(message), str(data)[:500])

        articles = [a for a in (parse_article(r) for r in _extract_results(data or {})) if a]
        total = len(articles)
        if isinstance(data, dict):
            nested = data.get("articles") if isinstance(data.get("articles"), dict) else {}
            total = nested.get("totalResults") or data.get("totalResults") or total

        logger.info(f"Fetched {len(articles)} news articles", extra={"keywords": keywords})
        return articles, total


class AdjacentNewsClient(HttpClient):
    """
    Client for the Adjacent News market feed.

    The market (a question, topic or keywords) goes in the path; the
    response is passed through as {"data": [...], "meta": {...}}.
    """

    SERVICE = "Adjacent News API"
    BASE_URL = "https://api.data.adj.news/api"

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout_seconds: float = 30.0):
        super().__init__(base_url or self.BASE_URL, timeout_seconds)
        self.api_key = api_key

    async def initialize(self) -> None:
        """Initialize HTTP session with the bearer token."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )

    async def get_market_news(
        self,
        market: str,
        days: int = 7,
        limit: int = 10,
        include_domains: Optional[str] = None,
        exclude_domains: Optional[str] = None
    ) -> dict:
        """
        Fetch news for a market.

        Raises:
            UpstreamError: HTTP failure, an error object in a 200 body (400),
                or a body without a data array (502)
        """
        params = {
            "days": days,
            "limit": limit,
            "excludeDomains": exclude_domains,
            "includeDomains": include_domains,
        }
        data = await self._request(f"/news/{quote(market, safe='')}", params=params)

        if isinstance(data, dict) and data.get("error"):
            raise UpstreamError(self.SERVICE, 400, str(data["error"]), str(data.get("details") or data)[:500])
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise UpstreamError(
                self.SERVICE, 502,
                "Invalid response format from Adjacent News API",
                "Response does not contain a data array",
            )

        logger.info(f"Fetched {len(data['data'])} Adjacent News articles", extra={"market": market})
        return data
