"""
Intent routing for natural-language input.

Classification itself is an external service: given free text it returns
an intent label, the extracted item/location/tag, and a confidence score.
IntentClient posts text to that service. When it is unreachable or
answers garbage, fallback_parse() applies keyword heuristics instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .errors import IntentError

logger = logging.getLogger(__name__)

INTENTS = ("record", "search", "delete", "classify", "statistics")

DEFAULT_TIMEOUT = 15.0
FALLBACK_CONFIDENCE = 0.7
DEFAULT_TAG = "default"

RECORD_KEYWORDS = ("放在", "存放", "收纳", "放到", "藏在", "存在", "我把",
                   "put ", "placed ", "stored ", "left ", "keep ")
DELETE_KEYWORDS = ("删除", "移除", "清空", "去掉", "删掉",
                   "delete", "remove", "forget", "throw away")
CLASSIFY_KEYWORDS = ("标签", "分类", "归类", "打标", "加上", "设置为",
                     "tag ", "label ", "categorize", "classify")
STATISTICS_KEYWORDS = ("统计", "有多少", "总数", "数量", "计算", "汇总",
                       "how many", "statistics", "stats", "count", "summary")

# Words stripped from a query to leave the item name
_FILLER_WORDS = ("删除", "移除", "查询", "找找", "在哪", "标签", "分类", "统计",
                 "记录", "的", "我的", "里", "？", "?")
_FILLER_EN_RE = re.compile(
    r"\b(where|is|are|did|i|put|my|the|a|an|find|search|for|delete|remove|forget|record|records|of)\b",
    re.IGNORECASE,
)

_RECORD_ZH_ITEM_RE = re.compile(r"把(.+?)放在")
_RECORD_ZH_LOC_RE = re.compile(r"放在(.+)")
_RECORD_EN_RE = re.compile(
    r"\b(?:put|placed|stored|left|keep)\s+(?:my\s+|the\s+|a\s+|an\s+)?(.+?)\s+"
    r"((?:in|on|under|inside|behind|at|next to|beside)\s+.+)$",
    re.IGNORECASE,
)
_CLASSIFY_ZH_ITEM_RE = (re.compile(r"给(.+?)加上"), re.compile(r"把(.+?)设置为"))
_CLASSIFY_ZH_TAG_RE = (re.compile(r"加上(.+?)标签"), re.compile(r"设置为(.+?)分类"),
                       re.compile(r"标签(.+)"))
_CLASSIFY_EN_RE = re.compile(
    r"\b(?:tag|label)\s+(?:my\s+|the\s+)?(.+?)\s+(?:as|with)\s+(.+)$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ParsedIntent:
    """Structured result of classifying one line of user input."""
    intent: str
    item: str = ""
    location: str = ""
    tag: Optional[str] = None
    confidence: float = FALLBACK_CONFIDENCE

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "ParsedIntent":
        intent = data.get("intent") or "search"
        if intent not in INTENTS:
            intent = "search"
        try:
            confidence = float(data.get("confidence") or 0.5)
        except (TypeError, ValueError):
            confidence = 0.5
        return cls(
            intent=intent,
            item=(data.get("item") or "").strip(),
            location=(data.get("location") or "").strip(),
            tag=(data.get("tag") or None),
            confidence=confidence,
        )


def _has_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def detect_intent(text: str) -> str:
    """Keyword classification.

    Delete wins, then classify, then statistics. A record keyword beats a
    search keyword; anything else is a search.
    """
    lower = text.lower()

    if _has_any(lower, DELETE_KEYWORDS):
        return "delete"
    if _has_any(lower, CLASSIFY_KEYWORDS):
        return "classify"
    if _has_any(lower, STATISTICS_KEYWORDS):
        return "statistics"
    if _has_any(lower, RECORD_KEYWORDS):
        return "record"
    return "search"


def extract_record(text: str) -> tuple[str, str]:
    """(item, location) from a record sentence; empty strings when unmatched."""
    item_m = _RECORD_ZH_ITEM_RE.search(text)
    loc_m = _RECORD_ZH_LOC_RE.search(text)
    if item_m or loc_m:
        return (item_m.group(1).strip() if item_m else "",
                loc_m.group(1).strip() if loc_m else "")
    m = _RECORD_EN_RE.search(text.strip().rstrip("."))
    if m:
        return m.group(1).strip(), m.group(2).strip()
    return "", ""


def _first_match(patterns, text: str) -> Optional[re.Match]:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m
    return None


def extract_item_and_tag(text: str) -> tuple[str, str]:
    """(item, tag) from a classify sentence."""
    item_m = _first_match(_CLASSIFY_ZH_ITEM_RE, text)
    tag_m = _first_match(_CLASSIFY_ZH_TAG_RE, text)
    if item_m and tag_m:
        tag = tag_m.group(1).strip().replace("标签", "").replace("分类", "")
        return item_m.group(1).strip(), tag or DEFAULT_TAG

    m = _CLASSIFY_EN_RE.search(text.strip().rstrip("."))
    if m:
        return m.group(1).strip(), m.group(2).strip()

    words = text.split()
    if not words:
        return "", DEFAULT_TAG
    return words[0], words[-1] if len(words) > 1 else DEFAULT_TAG


def extract_query(text: str) -> str:
    """Strip filler words, leaving the item being asked about."""
    cleaned = text
    for word in _FILLER_WORDS:
        cleaned = cleaned.replace(word, "")
    cleaned = _FILLER_EN_RE.sub(" ", cleaned)
    return " ".join(cleaned.split())


def fallback_parse(text: str) -> ParsedIntent:
    """Classify without the external service."""
    intent = detect_intent(text)
    if intent == "record":
        item, location = extract_record(text)
        return ParsedIntent(intent, item=item, location=location)
    if intent == "classify":
        item, tag = extract_item_and_tag(text)
        return ParsedIntent(intent, item=item, tag=tag)
    if intent == "statistics":
        return ParsedIntent(intent)
    return ParsedIntent(intent, item=extract_query(text))


class IntentClient:
    """HTTP client for the external intent classification service."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._url = url
        self._client = httpx.Client(headers=headers, timeout=timeout)

    def classify(self, text: str, *, has_search_results: bool = False) -> ParsedIntent:
        """POST the text to the service. Raises IntentError on failure."""
        payload = {"input": text, "context": {"hasSearchResults": has_search_results}}
        try:
            resp = self._client.post(self._url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise IntentError(f"Intent service rejected input: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise IntentError(f"Intent service failed: {e}") from e
        if not isinstance(data, dict):
            raise IntentError(f"Intent service returned {type(data).__name__}, expected object")
        return ParsedIntent.from_response(data)

    def parse(self, text: str, *, has_search_results: bool = False) -> ParsedIntent:
        """Classify via the service, falling back to keyword heuristics."""
        try:
            return self.classify(text, has_search_results=has_search_results)
        except IntentError as e:
            logger.info("Falling back to keyword parsing: %s", e)
            return fallback_parse(text)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
