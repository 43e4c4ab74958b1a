"""Normalization of the per-position umpire payload stored on a schedule cell.

Clients have sent this payload in several shapes over time: a JSON string, a
sparse mapping keyed by position, bare ids per position, and objects that use
``umpire_id``/``id``/``ID`` instead of ``umpireId``. Everything here degrades to
an empty slot instead of raising.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, Optional

from app.models.fields import UmpirePosition

POSITION_KEYS = tuple(p.value for p in UmpirePosition)

_ID_ALIASES = ("umpireId", "umpire_id", "id", "ID")


def empty_slot() -> Dict[str, Any]:
    return {"umpireId": None, "name": "", "double": ""}


def coerce_umpire_id(value: Any) -> Optional[int]:
    """Return a strictly positive integer id, or None for anything else.

    Accepts ints, integral floats and numeric strings (surrounding whitespace
    allowed). Booleans, ``0``, negatives, NaN/inf and fractional values map to
    None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value) if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return coerce_umpire_id(int(text))
        except ValueError:
            pass
        try:
            return coerce_umpire_id(float(text))
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_slot(slot: Any) -> Dict[str, Any]:
    """Normalize one position's value into ``{umpireId, name, double}``.

    Extra keys on an object-shaped slot are preserved.
    """
    if isinstance(slot, dict):
        raw_id = None
        for alias in _ID_ALIASES:
            if slot.get(alias) is not None:
                raw_id = slot[alias]
                break
        out = dict(slot)
        out["umpireId"] = coerce_umpire_id(raw_id)
        out["name"] = _as_text(slot.get("name"))
        out["double"] = _as_text(slot.get("double"))
        return out

    out = empty_slot()
    if isinstance(slot, (int, float, str)):
        out["umpireId"] = coerce_umpire_id(slot)
    return out


def normalize_umpires_payload(raw: Any) -> Dict[str, Dict[str, Any]]:
    """Return a complete mapping over the eight position keys.

    ``raw`` may be None, a JSON-encoded string or a mapping. Malformed JSON,
    lists and scalars are treated as an empty payload.
    """
    payload: Any = raw
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload) if payload.strip() else {}
        except ValueError:
            payload = {}
    if not isinstance(payload, dict):
        payload = {}

    return {key: normalize_slot(payload.get(key)) for key in POSITION_KEYS}


def has_umpire(slots: Dict[str, Dict[str, Any]], position: UmpirePosition) -> bool:
    slot = slots.get(position.value) or {}
    return slot.get("umpireId") is not None
