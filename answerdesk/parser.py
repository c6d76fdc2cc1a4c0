"""Tolerant extraction of the ``{answer, resource_id}`` payload from model text.

The model is asked, not guaranteed, to answer with JSON only. Anything that
does not parse degrades to a plain-text answer without sources; this module
never raises on bad model output.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .config import config
from .models import ParsedAnswer

logger = config.get_logger(__name__)

# Greedy: first "{" to last "}" across lines
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def dedupe_ids(raw_ids: Any) -> list[str]:
    """Coerce a ``resource_id`` value to a duplicate-free list of strings.

    Returns:
        Ids in first-seen order.
    """
    if raw_ids is None:
        return []
    if isinstance(raw_ids, (str, int)):
        raw_ids = [raw_ids]
    if not isinstance(raw_ids, (list, tuple)):
        return []
    ids = [str(item).strip() for item in raw_ids if item is not None]
    return list(dict.fromkeys(item for item in ids if item))


def fallback(raw: str) -> ParsedAnswer:
    return ParsedAnswer(answer=(raw or "").strip(), resource_ids=[], kind="fallback")


def parse_model_output(raw: str) -> ParsedAnswer:
    """Extract the answer and cited resource ids from raw model output.

    Returns:
        A ``parsed`` answer when a JSON object was found and decoded,
        otherwise a ``fallback`` answer holding the trimmed raw text.
    """
    match = _JSON_OBJECT_RE.search(raw or "")
    if match is None:
        return fallback(raw)

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Model output is not valid JSON; using plain text answer")
        return fallback(raw)

    if not isinstance(payload, dict):
        return fallback(raw)

    answer = payload.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        answer = raw.strip()

    return ParsedAnswer(
        answer=answer.strip(),
        resource_ids=dedupe_ids(payload.get("resource_id")),
        kind="parsed",
    )
