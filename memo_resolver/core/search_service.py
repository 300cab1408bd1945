"""
External lookup - best-effort answer source consulted when no local
category is confident enough.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..util.logging import logger
from .errors import ExternalResolutionFailure


class SearchProvider(ABC):
    """Abstract interface for external answer providers."""

    @abstractmethod
    def search(self, query: str) -> Optional[str]:
        """Return an answer for query, or None when nothing usable was found.

        Implementations may raise ExternalResolutionFailure; callers treat it
        the same as None.
        """
        pass


class DuckDuckGoSearch(SearchProvider):
    """DuckDuckGo Instant Answer API client.

    Uses AbstractText when present, otherwise the text of the first related topic.
    """

    def __init__(self, api_url: str = "https://api.duckduckgo.com/", timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def search(self, query: str) -> Optional[str]:
        params = {"q": query, "format": "json", "no_redirect": 1}
        try:
            response = self.session.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ExternalResolutionFailure(f"DuckDuckGo lookup failed: {e}")

        return extract_answer(data)


def extract_answer(data: Dict[str, Any]) -> Optional[str]:
    """Pick AbstractText, else RelatedTopics[0].Text, else None."""
    if not isinstance(data, dict):
        return None

    abstract = (data.get("AbstractText") or "").strip()
    if abstract:
        return abstract

    topics = data.get("RelatedTopics") or []
    if topics and isinstance(topics[0], dict):
        text = (topics[0].get("Text") or "").strip()
        if text:
            return text

    return None


def safe_search(provider: Optional[SearchProvider], query: str) -> Optional[str]:
    """Call provider.search, converting every failure or empty result into None."""
    if provider is None:
        return None

    try:
        answer = provider.search(query)
    except ExternalResolutionFailure as e:
        logger.log_external_lookup(query, "unavailable", {"error": str(e)})
        return None
    except Exception as e:
        logger.log_external_lookup(query, "unavailable", {"error": f"{type(e).__name__}: {e}"})
        return None

    if not answer or not answer.strip():
        logger.log_external_lookup(query, "empty")
        return None

    logger.log_external_lookup(query, "found")
    return answer
