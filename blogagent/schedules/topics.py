"""Topic sources for scheduled jobs: manual rotation, RSS feed, AI suggestion."""

from __future__ import annotations

import logging
from typing import Callable

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel

from blogagent.llm.base import LLMProvider
from blogagent.schedules.models import Schedule, TopicSource
from blogagent.tools.prompts import render_prompt

logger = logging.getLogger(__name__)


class _TopicSuggestion(BaseModel):
    topic: str


def manual_topic(schedule: Schedule) -> str:
    topics = schedule.active_topics()
    if not topics:
        raise ValueError(f"Schedule {schedule.id} has an empty topic list")
    return topics[schedule.topic_index % len(topics)]


def rss_topic(
    url: str,
    timeout: float = 20.0,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """Title of the newest item of an RSS or Atom feed."""
    with httpx.Client(follow_redirects=True, timeout=timeout, transport=transport) as client:
        resp = client.get(url)
        resp.raise_for_status()
    soup = BeautifulSoup(resp.text, "html.parser")
    item = soup.find("item") or soup.find("entry")
    title = item.find("title") if item else None
    text = title.get_text(strip=True) if title else ""
    if not text:
        raise ValueError(f"No item title found in feed {url}")
    return text


def ai_topic(llm: LLMProvider, schedule: Schedule, recent_topics: list[str] | None = None) -> str:
    prompt = render_prompt(
        "topic_suggest.j2",
        category=schedule.category.value,
        ai_prompt=schedule.ai_prompt,
        recent_topics=recent_topics or [],
    )
    suggestion = llm.complete_structured(prompt, _TopicSuggestion)
    topic = suggestion.topic.strip()
    if not topic:
        raise ValueError("Model suggested an empty topic")
    return topic


class TopicResolver:
    """Picks the next topic for a schedule. The LLM is only built for ai_suggest."""

    def __init__(
        self,
        llm_factory: Callable[[], LLMProvider] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._llm_factory = llm_factory
        self._transport = transport

    def next_topic(self, schedule: Schedule, recent_topics: list[str] | None = None) -> str:
        if schedule.topic_source == TopicSource.MANUAL:
            return manual_topic(schedule)
        if schedule.topic_source == TopicSource.RSS:
            if not schedule.rss_url:
                raise ValueError(f"Schedule {schedule.id} has no rss_url")
            return rss_topic(schedule.rss_url, transport=self._transport)
        if self._llm_factory is None:
            raise ValueError("No LLM configured for ai_suggest topics")
        return ai_topic(self._llm_factory(), schedule, recent_topics)
