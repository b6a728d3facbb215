from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ..config.loader import SummarizerConfig
from ..models.briefing import BriefingStats

logger = logging.getLogger(__name__)

"""Optional text-summarization collaborator.

Calls an OpenAI-compatible chat-completions endpoint with a bounded prompt
built from BriefingStats only (top `max_items` shortage items and the top
numeric columns). Every failure is raised as SummarizerError; callers decide
how to degrade.
"""

__all__ = [
    "MAX_NUMERIC_COLUMNS",
    "OpenAISummarizer",
    "SummarizerError",
    "build_prompt",
]

MAX_NUMERIC_COLUMNS = 5

SYSTEM_PROMPT = (
    "You are an inventory assistant. Write a short briefing (3-5 sentences) "
    "for a warehouse manager. Use only the numbers given to you; do not "
    "invent or recompute figures."
)


class SummarizerError(Exception):
    """The summarizer was unavailable, failed, or returned an unusable response."""


def build_prompt(stats: BriefingStats, file_group: str, max_items: int = 10) -> str:
    """User message for the chat call. Size is bounded by max_items."""
    payload = stats.to_dict(max_items=max_items)
    top_columns = sorted(stats.numeric_stats.items(), key=lambda kv: kv[1].count, reverse=True)
    payload["numericStats"] = {
        name: {"min": s.min, "max": s.max, "avg": round(s.avg, 2), "sum": s.sum, "count": s.count}
        for name, s in top_columns[:MAX_NUMERIC_COLUMNS]
    }
    payload["normalCount"] = stats.normal_count
    return (
        f"Inventory file: {file_group}\n"
        "Statistics (JSON):\n"
        f"{json.dumps(payload, ensure_ascii=False, default=str)}\n"
        "Summarize the stock situation and name the most urgent shortages."
    )


class OpenAISummarizer:
    def __init__(self, config: SummarizerConfig, client: httpx.Client | None = None) -> None:
        self.config = config
        self._client = client

    def _post(self, body: dict[str, Any]) -> httpx.Response:
        url = self.config.api_base.rstrip("/") + "/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return self._client.post(url, headers=headers, json=body, timeout=self.config.timeout_seconds)
        return httpx.post(url, headers=headers, json=body, timeout=self.config.timeout_seconds)

    def summarize(self, stats: BriefingStats, file_group: str) -> str:
        if not self.config.available:
            raise SummarizerError("summarizer disabled or API key not configured")

        body = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(stats, file_group, self.config.max_items)},
            ],
            "temperature": 0.3,
            "max_tokens": 400,
        }
        try:
            resp = self._post(body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SummarizerError(f"summarizer request failed: {e}") from e
        except ValueError as e:
            raise SummarizerError(f"summarizer returned invalid JSON: {e}") from e

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise SummarizerError(f"unexpected summarizer response shape: {e}") from e
        if not isinstance(text, str) or not text.strip():
            raise SummarizerError("summarizer returned empty text")
        logger.debug("summarizer model=%s chars=%d", self.config.model, len(text))
        return text.strip()
