"""Lenient coercion of LLM responses.

Model output is the only place where loosely typed data enters Sift; these
helpers turn it into plain Python values once, at that edge.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict
    """
    if not raw:
        return {}

    text = raw.strip()
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
        if isinstance(data, list) and data and isinstance(data[0], dict):
            # Some models wrap the object in a one-element array
            return data[0]
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(raw[start:end])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    return {}


def coerce_confidence(value: Any) -> Optional[float]:
    """Clamp a model-reported confidence into [0, 1]; None if not numeric.

    Percent-style scores (e.g. 85) are scaled down; slight overshoots
    such as 1.05 are clamped to 1.0.
    """
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    if 1.5 < score <= 100.0:
        score = score / 100.0
    return max(0.0, min(1.0, score))


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string into an aware UTC datetime, or None.

    Date-only strings become midnight UTC. Naive values are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text or text.lower() in ("null", "none", "n/a"):
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def coerce_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]
