"""Public dungeon package interface."""

from .config import GenerationConfig, load_config
from .connectivity import (
    bridge_edges,
    critical_path,
    reachable,
    shortest_path,
    stairs_connected,
)
from .generator import GENERATOR_KINDS, build_candidate, kind_for_depth
from .grid import FrozenGridError, Grid
from .metrics import summarize
from .pipeline import PASS_NAMES, Floor, generate
from .rng import coerce_seed, derive_seed
from .selection import GenerationError, select_candidate
from .tiles import (
    BOULDER,
    BRIDGE,
    CHASM,
    DOOR_CLOSED,
    DOOR_LOCKED,
    DOOR_OPEN,
    DOOR_SECRET,
    FLOOR,
    PILLAR,
    RUBBLE,
    STAIRS_DOWN,
    STAIRS_UP,
    WALL,
)  # noqa: F401

__all__ = [
    "Floor",
    "generate",
    "Grid",
    "GenerationConfig",
    "load_config",
    "GenerationError",
    "FrozenGridError",
    "GENERATOR_KINDS",
    "PASS_NAMES",
    "build_candidate",
    "kind_for_depth",
    "select_candidate",
    "summarize",
    "coerce_seed",
    "derive_seed",
    "bridge_edges",
    "critical_path",
    "reachable",
    "shortest_path",
    "stairs_connected",
    "WALL",
    "FLOOR",
    "RUBBLE",
    "BRIDGE",
    "CHASM",
    "DOOR_OPEN",
    "DOOR_CLOSED",
    "DOOR_LOCKED",
    "DOOR_SECRET",
    "BOULDER",
    "PILLAR",
    "STAIRS_UP",
    "STAIRS_DOWN",
]
