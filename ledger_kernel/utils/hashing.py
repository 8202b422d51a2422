"""
Canonical JSON and SHA-256 digests.

The audit chain and report fingerprints both hash canonical JSON: sorted
keys, no whitespace, and one spelling per value type, so a row written on
one machine verifies on another.
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import singledispatch
from typing import Any
from uuid import UUID

CHAIN_ORIGIN = "GENESIS"
_FIELD_SEPARATOR = "|"


@singledispatch
def _encode(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    raise TypeError(f"Cannot canonicalize {type(value).__name__}")


@_encode.register
def _(value: Decimal) -> str:
    # 50, 50.0 and 50.00 are the same amount
    return str(value.normalize())


@_encode.register
def _(value: date) -> str:
    return value.isoformat()


@_encode.register
def _(value: UUID) -> str:
    return str(value)


@_encode.register
def _(value: Enum) -> Any:
    return value.value


@_encode.register(tuple)
@_encode.register(set)
@_encode.register(frozenset)
def _(value) -> list:
    return list(value)


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Digest of one audit row, folding in the previous row's digest.

    The first row of the chain links to ``CHAIN_ORIGIN``. Changing any
    field of any earlier row changes every digest after it.
    """
    return _sha256(
        _FIELD_SEPARATOR.join(
            (entity_type, str(entity_id), action, payload_hash, prev_hash or CHAIN_ORIGIN)
        )
    )


def hash_report(report: Any) -> str:
    """Fingerprint of a report dataclass; equal books give equal fingerprints."""
    return _sha256(canonicalize_json(report))
