"""Utility to safely decode JSON text coming from storage or the network."""

from __future__ import annotations

import json
from typing import Any, Optional, Union


def decode_json(payload: Union[str, bytes, None]) -> Optional[Any]:
    """Attempt to parse JSON from payload; return ``None`` when it is not JSON."""

    if payload is None:
        return None
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        return None


def canonical_json(value: Any) -> str:
    """Stable textual rendering used wherever output must be reproducible."""

    return json.dumps(value, sort_keys=True, indent=2, ensure_ascii=False, default=str)
