"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/keys.py.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from collections.abc import Mapping
from urllib.parse import parse_qsl

from ..types import JSONValue

logger = logging.getLogger("quotashield.runtime.keys")

ANONYMOUS_IDENTITY = "anonymous"
DEGENERATE_KEY_PREFIX = "degenerate:"


def normalize_identity(identity: str | None) -> str:
    """Return a stable identity; empty or missing identities share ``anonymous``."""
    value = (identity or "").strip()
    return value or ANONYMOUS_IDENTITY


# Parameter names are case-insensitive; values (page tokens, ids) are not.
def _lower_keys(params: Mapping[str, JSONValue]) -> dict[str, JSONValue]:
    return {str(k).strip().lower(): v for k, v in params.items()}


def _canonical_params(params: Mapping[str, JSONValue] | str | None) -> JSONValue:
    if params is None:
        return None
    if isinstance(params, Mapping):
        return _lower_keys(params)

    raw = params.strip()
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        pass
    else:
        return _lower_keys(decoded) if isinstance(decoded, Mapping) else decoded
    if "=" in raw:
        pairs = parse_qsl(raw.lstrip("?"), keep_blank_values=True)
        if pairs:
            merged: dict[str, JSONValue] = {}
            for key, value in pairs:
                key = key.strip().lower()
                if key not in merged:
                    merged[key] = value
                elif isinstance(merged[key], list):
                    merged[key].append(value)
                else:
                    merged[key] = [merged[key], value]
            return merged
    return raw


def generate_key(
    method: str,
    resource: str,
    params: Mapping[str, JSONValue] | str | None = None,
    identity: str | None = None,
) -> str:
    """
    Build a deterministic request key.

    Method and resource casing, parameter field order and parameter encoding
    (mapping, JSON text or query string) do not change the key. Empty method
    or resource produce a unique degenerate key instead of raising, so the
    request still runs in isolation.
    """
    method_norm = (method or "").strip().upper()
    resource_norm = (resource or "").strip().lower()
    if not method_norm or not resource_norm:
        key = f"{DEGENERATE_KEY_PREFIX}{uuid.uuid4().hex}"
        logger.warning(
            "Degenerate request key issued (method=%r, resource=%r)", method, resource
        )
        return key

    payload = {
        "method": method_norm,
        "resource": resource_norm,
        "params": _canonical_params(params),
        "identity": normalize_identity(identity),
    }
    normalized = json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def is_degenerate_key(key: str) -> bool:
    """Whether `key` was issued for invalid input."""
    return key.startswith(DEGENERATE_KEY_PREFIX)
