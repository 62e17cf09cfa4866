"""Validating decoder for enrichment responses.

The backend relays LLM output, so any field may be missing, mistyped or
replaced by free text. Everything here produces a well-formed
:class:`EnrichmentResult`; nothing from the payload reaches the UI unchecked.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from models import EnrichmentResult, FollowUp, KnowledgeCard, PredictedPath, TalkingPoint

TONES = ("curious", "confident", "neutral")
FALLBACK_CARD_CHARS = 300


def try_parse_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Best-effort JSON object extraction (handles occasional extra text around JSON).
    Returns None when no object can be recovered.
    """
    if text is None:
        return None
    s = text.strip()
    if not s:
        return None

    candidates = [s]
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end > start:
        candidates.append(s[start:end + 1])

    for candidate in candidates:
        try:
            obj = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def fallback_result(raw_text: str) -> EnrichmentResult:
    """Wrap unstructured output in a single informational card."""
    return EnrichmentResult(
        knowledge_cards=[
            KnowledgeCard(
                id="topic",
                emoji="📌",
                title="Current Topic",
                content=[str(raw_text).strip()[:FALLBACK_CARD_CHARS]],
                confidence=50,
            )
        ]
    )


def decode_enrichment(body: Any) -> EnrichmentResult:
    """Decode a response body (parsed JSON or raw text) into a result."""
    if isinstance(body, (str, bytes)):
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        parsed = try_parse_json(text)
        if parsed is None:
            return fallback_result(text)
        body = parsed

    if not isinstance(body, dict):
        return fallback_result(json.dumps(body, ensure_ascii=False) if body is not None else "")

    known = ("knowledgeCards", "predictedPaths", "talkingPoints", "followUps")
    if body and not any(k in body for k in known):
        return fallback_result(json.dumps(body, ensure_ascii=False))

    return EnrichmentResult(
        knowledge_cards=[c for c in map(_card, _as_list(body.get("knowledgeCards"))) if c],
        predicted_paths=[p for p in map(_path, _as_list(body.get("predictedPaths"))) if p],
        talking_points=[t for t in map(_point, _as_list(body.get("talkingPoints"))) if t],
        follow_ups=[f for f in map(_follow_up, _as_list(body.get("followUps"))) if f],
    )


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    return [_text(x) for x in _as_list(value) if _text(x)]


def _percent(value: Any, default: int) -> int:
    try:
        n = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, n))


def _card(item: Any) -> Optional[KnowledgeCard]:
    if isinstance(item, str):
        item = {"title": item}
    if not isinstance(item, dict):
        return None
    title = _text(item.get("title"))
    content = _str_list(item.get("content"))
    if not title and not content:
        return None
    return KnowledgeCard(
        id=_text(item.get("id")) or "topic",
        emoji=_text(item.get("emoji")),
        title=title,
        content=content,
        tags=_str_list(item.get("tags")),
        sources=_str_list(item.get("sources")),
        confidence=_percent(item.get("confidence"), 50),
    )


def _path(item: Any) -> Optional[PredictedPath]:
    if isinstance(item, str):
        item = {"text": item}
    if not isinstance(item, dict) or not _text(item.get("text")):
        return None
    return PredictedPath(
        text=_text(item.get("text")),
        probability=_percent(item.get("probability"), 0),
        why=_text(item.get("why")),
    )


def _point(item: Any) -> Optional[TalkingPoint]:
    if isinstance(item, str):
        item = {"text": item}
    if not isinstance(item, dict) or not _text(item.get("text")):
        return None
    tone = _text(item.get("tone")).lower()
    return TalkingPoint(text=_text(item.get("text")), tone=tone if tone in TONES else "neutral")


def _follow_up(item: Any) -> Optional[FollowUp]:
    if isinstance(item, str):
        item = {"text": item}
    if not isinstance(item, dict) or not _text(item.get("text")):
        return None
    return FollowUp(text=_text(item.get("text")))
