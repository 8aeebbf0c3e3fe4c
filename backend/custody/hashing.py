"""
Content digests and the checkpoint hash chain.

Each checkpoint stores the hash of its predecessor (prev_hash) and its own
entry_hash computed over prev_hash plus its immutable fields. Editing or
deleting any stored checkpoint breaks every later link.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Iterable

GENESIS_HASH = "GENESIS"


def digest_text(text: str) -> str:
    """SHA-256 of UTF-8 text as 64 hex characters."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_entry_hash(prev_hash: str, fields: Dict[str, Any]) -> str:
    block = json.dumps({
        "prev_hash": prev_hash,
        "fields": fields,
    }, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(block.encode("utf-8")).hexdigest()


def verify_chain(entries: Iterable[Dict[str, Any]]) -> bool:
    """
    entries: dicts with "prev_hash", "entry_hash" and "fields", in ledger order.
    """
    prev = GENESIS_HASH
    for entry in entries:
        expected = compute_entry_hash(prev, entry["fields"])
        if entry["entry_hash"] != expected or entry["prev_hash"] != prev:
            return False
        prev = entry["entry_hash"]
    return True
