"""Generation settings.

Defaults live on the dataclass. ``load_config`` layers ``UNDERCROFT_*``
environment variables (a ``.env`` file is honoured through python-dotenv)
and finally explicit keyword overrides on top.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_SCORE_WEIGHTS = {
    "redundancy": 3.0,
    "pacing": 2.0,
    "density": 1.0,
    "dead_ends": 2.0,
}


@dataclass
class GenerationConfig:
    width: int = 80
    height: int = 50
    candidates: int = 3
    diagonal: bool = True
    min_rooms: int = 6
    max_rooms: int = 14
    min_room_size: int = 4
    max_room_size: int = 10
    loop_factor: float = 0.15
    door_chance: float = 0.65
    pacing_target: float = 1.1
    density_target: float = 0.38
    score_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SCORE_WEIGHTS))
    lane_threshold: int = 16
    clearance_threshold: int = 4
    fault_band_period: int = 6
    max_fault_bridges: int = 4
    special_min_separation: int = 10
    enable_metrics: bool = True
    passes: Optional[Tuple[str, ...]] = None

    def sized(self, width: int, height: int) -> "GenerationConfig":
        return replace(self, width=width, height=height)


def _flag(val: str) -> bool:
    return val.strip().lower() not in {"0", "false", "no", ""}


def _names(val: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in val.split(",") if p.strip())


_ENV_MAP = {
    "UNDERCROFT_WIDTH": ("width", int),
    "UNDERCROFT_HEIGHT": ("height", int),
    "UNDERCROFT_CANDIDATES": ("candidates", int),
    "UNDERCROFT_DIAGONAL": ("diagonal", _flag),
    "UNDERCROFT_ENABLE_METRICS": ("enable_metrics", _flag),
    "UNDERCROFT_LOOP_FACTOR": ("loop_factor", float),
    "UNDERCROFT_PASSES": ("passes", _names),
}


def load_config(env: Optional[Dict[str, str]] = None, **overrides) -> GenerationConfig:
    """Build a config from defaults, the environment and explicit overrides.

    ``env`` defaults to ``os.environ`` after loading any ``.env`` file.
    Malformed numeric values raise ``ValueError`` rather than being ignored.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    values = {}
    for env_key, (attr, cast) in _ENV_MAP.items():
        if env_key in env:
            try:
                values[attr] = cast(env[env_key])
            except ValueError as exc:
                raise ValueError(f"{env_key}={env[env_key]!r} is not valid: {exc}") from exc
    values.update({k: v for k, v in overrides.items() if v is not None})
    if "passes" in values and values["passes"] is not None:
        values["passes"] = tuple(values["passes"])
    return GenerationConfig(**values)
