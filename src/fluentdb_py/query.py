from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .attribute_value import AttributeValue, marshal_attribute_value_json, unmarshal_attribute_value_json
from .errors import ValidationError


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, AttributeValue]
    index: str | None = None
    sort: str | None = None


def encode_cursor(
    last_key: Mapping[str, AttributeValue] | None,
    *,
    index: str | None = None,
    sort: str | None = None,
) -> str:
    if not last_key:
        return ""

    payload: dict[str, Any] = {
        "lastKey": {k: marshal_attribute_value_json(last_key[k]) for k in sorted(last_key)},
    }
    if index is not None:
        payload["index"] = index
    if sort is not None:
        payload["sort"] = sort

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValidationError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    try:
        parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as err:
        raise ValidationError("cursor is not valid") from err
    if not isinstance(parsed, dict):
        raise ValidationError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValidationError("cursor lastKey is invalid")

    index = parsed.get("index")
    sort = parsed.get("sort")
    return Cursor(
        last_key={str(k): unmarshal_attribute_value_json(v) for k, v in sorted(last_key_raw.items())},
        index=index if isinstance(index, str) else None,
        sort=sort if sort in {"ASC", "DESC"} else None,
    )
