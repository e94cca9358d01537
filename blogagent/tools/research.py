"""Web search for the research step (Tavily)."""

from __future__ import annotations

import logging

import httpx

from blogagent.schemas.artifacts import ResearchSource

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
MAX_SNIPPET_CHARS = 1000


def search_tavily(
    query: str,
    api_key: str | None,
    max_results: int = 5,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> list[ResearchSource]:
    """Return search hits, or [] when search is unavailable.

    Research continues from model knowledge alone when search fails, so
    errors are logged rather than raised.
    """
    if not api_key:
        logger.info("TAVILY_API_KEY not set; researching from model knowledge only")
        return []
    payload = {
        "api_key": api_key,
        "query": query,
        "max_results": max_results,
        "search_depth": "basic",
        "include_answer": False,
        "include_raw_content": False,
    }
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            resp = client.post(TAVILY_URL, json=payload)
            resp.raise_for_status()
            results = resp.json().get("results") or []
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Tavily search failed (non-fatal): %s", e)
        return []
    return [
        ResearchSource(
            title=r.get("title") or "",
            url=r.get("url") or "",
            snippet=(r.get("content") or "")[:MAX_SNIPPET_CHARS],
        )
        for r in results[:max_results]
    ]
