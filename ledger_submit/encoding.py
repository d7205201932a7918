"""
Deterministic encoding for envelopes.

The wire blob and the transaction hash must be reproducible: the same
envelope always encodes to the same bytes, so a resubmission is
byte-identical and the gateway can recognize it as a duplicate.

Rules (canonical JSON):
    - Keys sorted (recursive)
    - No whitespace
    - UTF-8, no ASCII escapes
    - NaN/Infinity rejected
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize to canonical JSON as UTF-8 bytes."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """SHA256 hex digest (64 lowercase chars, no prefix)."""
    return hashlib.sha256(data).hexdigest()


def encode_blob(obj: dict[str, Any]) -> str:
    """Encode a dict as a base64 canonical-JSON blob for submission."""
    return base64.b64encode(canonical_json_bytes(obj)).decode("ascii")


def decode_blob(blob: str) -> dict[str, Any]:
    """Decode a blob produced by encode_blob().

    Raises:
        ValueError: If the blob is not valid base64 JSON object.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"invalid envelope blob: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("envelope blob must decode to a JSON object")
    return data
