"""Candidate selection.

A floor is built from a handful of candidate layouts of the same kind; each
is scored with a fixed weighted formula and the best one wins (lowest
attempt index on ties).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import List, Optional

from ..logging_utils import get_logger
from .config import GenerationConfig
from .connectivity import ORTHO, avoiding, bridge_edges, critical_path, path_edges, shortest_path
from .generator import build_candidate
from .grid import Grid
from .rng import derive_seed
from .tiles import is_passable

log = get_logger("undercroft.selection")


class GenerationError(RuntimeError):
    """A generator produced an unusable grid twice in a row."""


@dataclass
class CandidateScore:
    index: int
    seed: int
    score: float
    redundancy: float
    pacing: float
    density: float
    dead_end_ratio: float
    path_length: int
    retried: bool = False

    def to_dict(self):
        return asdict(self)


@dataclass
class Selection:
    grid: Grid
    scores: List[CandidateScore]
    chosen: int

    @property
    def best(self) -> CandidateScore:
        return self.scores[self.chosen]


def validate_candidate(grid: Grid) -> Optional[str]:
    """Return why ``grid`` cannot be handed on, or None when it is usable."""
    if not grid.passable_coords():
        return "no passable tiles"
    for label, pos in (("entrance", grid.entrance), ("exit", grid.exit)):
        if pos is None:
            return f"{label} missing"
        if not grid.in_bounds(*pos):
            return f"{label} {pos} off-grid"
        if not grid.is_passable(*pos):
            return f"{label} {pos} not passable"
    if critical_path(grid) is None:
        return "no path between stairs"
    return None


def dead_end_ratio(grid: Grid) -> float:
    floors = grid.passable_coords()
    if not floors:
        return 0.0
    dead = 0
    for x, y in floors:
        degree = sum(1 for dx, dy in ORTHO if grid.is_passable(x + dx, y + dy))
        if degree == 1:
            dead += 1
    return dead / len(floors)


def score_candidate(grid: Grid, config: GenerationConfig, index: int = 0) -> CandidateScore:
    path = critical_path(grid) or []
    edges = max(0, len(path) - 1)
    bridges = bridge_edges(grid)
    on_path = sum(1 for e in path_edges(path) if e in bridges)
    bridge_term = 1.0 - on_path / edges if edges else 1.0
    alternate = None
    if len(path) > 2:
        alternate = shortest_path(grid, grid.entrance, grid.exit, passable=avoiding(path[1:-1]))
    alt_ratio = len(path) / len(alternate) if alternate else 0.0
    redundancy = 0.5 * bridge_term + 0.5 * alt_ratio

    target = config.pacing_target * math.hypot(grid.width, grid.height)
    pacing = max(0.0, 1.0 - abs(edges - target) / target)

    interior = max(1, (grid.width - 2) * (grid.height - 2))
    density_value = len(grid.passable_coords()) / interior
    density = max(0.0, 1.0 - abs(density_value - config.density_target) / config.density_target)

    dead = dead_end_ratio(grid)
    weights = config.score_weights
    score = 0.0
    score += weights.get("redundancy", 0.0) * redundancy
    score += weights.get("pacing", 0.0) * pacing
    score += weights.get("density", 0.0) * density
    score -= weights.get("dead_ends", 0.0) * dead
    return CandidateScore(
        index=index,
        seed=grid.seed if grid.seed is not None else 0,
        score=round(score, 6),
        redundancy=round(redundancy, 6),
        pacing=round(pacing, 6),
        density=round(density, 6),
        dead_end_ratio=round(dead, 6),
        path_length=len(path),
    )


def _build_checked(kind: str, seed: int, width: int, height: int, config: GenerationConfig):
    grid = build_candidate(kind, seed, width, height, config)
    reason = validate_candidate(grid)
    if reason is None:
        return grid, False
    log.warn(event="candidate_invalid", kind=kind, seed=seed, reason=reason)
    retry_seed = derive_seed(seed, "retry")
    grid = build_candidate(kind, retry_seed, width, height, config)
    reason = validate_candidate(grid)
    if reason is not None:
        log.error(event="generator_defect", kind=kind, seed=seed, retry_seed=retry_seed, reason=reason)
        raise GenerationError(f"{kind} generator produced an unusable grid twice (seed={seed}): {reason}")
    return grid, True


def select_candidate(kind: str, floor_seed: int, width: int, height: int, config: GenerationConfig) -> Selection:
    count = min(3, max(2, config.candidates))
    best_grid = None
    best_index = 0
    scores: List[CandidateScore] = []
    for index in range(count):
        seed = derive_seed(floor_seed, "candidate", index)
        grid, retried = _build_checked(kind, seed, width, height, config)
        result = score_candidate(grid, config, index)
        result.retried = retried
        scores.append(result)
        if best_grid is None or result.score > scores[best_index].score:
            best_grid = grid
            best_index = index
    return Selection(grid=best_grid, scores=scores, chosen=best_index)
