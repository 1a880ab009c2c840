"""Seed derivation.

Every random stream is a ``random.Random`` seeded from :func:`derive_seed`,
so a ``(run_seed, depth)`` pair always replays the same floor.
"""

from __future__ import annotations

import hashlib
import random
from typing import Optional, Union

SEED_MASK = (1 << 64) - 1


def derive_seed(*parts) -> int:
    """Hash ``parts`` into a 64-bit seed; order matters, types do not."""
    key = ":".join(str(p) for p in parts).encode("utf-8")
    return int.from_bytes(hashlib.sha256(key).digest()[:8], "big")


def make_rng(*parts) -> random.Random:
    return random.Random(derive_seed(*parts))


def coerce_seed(value: Optional[Union[int, str]]) -> int:
    """Turn user input into a run seed.

    Integers (or digit strings) are masked to 64 bits; any other string is
    hashed so named seeds like ``"goblin-king"`` are stable. ``None`` draws
    a fresh random seed.
    """
    if value is None:
        return random.SystemRandom().getrandbits(64)
    if isinstance(value, bool):
        raise ValueError("seed must be an int or string")
    if isinstance(value, int):
        return value & SEED_MASK
    text = str(value).strip()
    if not text:
        raise ValueError("seed string is empty")
    if text.lstrip("-").isdigit():
        return int(text) & SEED_MASK
    return derive_seed("named", text)
