"""Pipeline orchestration for floor generation.

``Floor`` is the public entry point: it picks a generator kind for the
depth, builds and scores candidate layouts, runs the structural passes in a
fixed order and finally places features and freezes the grid. Everything
random is derived from ``(run_seed, depth)`` so a floor can be rebuilt at
will.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..logging_utils import get_logger
from .biomes import zone_biomes
from .burrows import dig_crawlspaces, dig_crosscuts
from .chasms import carve_fault_band, carve_moats
from .config import GenerationConfig, load_config
from .corridors import braid_dead_ends, widen_corridor_hubs
from .doors import add_inter_room_doors
from .features import assign_room_kinds, finalize_features
from .generator import kind_for_depth
from .grid import Grid
from .metrics import init_metrics, record
from .mutation import MutationResult, PassContext
from .rng import coerce_seed, derive_seed, make_rng
from .selection import Selection, select_candidate
from .tactics import break_up_clearance, dampen_lanes
from .weaving import weave_global, weave_stairs_path

log = get_logger("undercroft.pipeline")

MIN_SIZE = (20, 15)
MAX_SIZE = (200, 200)

Pass = Callable[[Grid, Any, PassContext], MutationResult]

PASS_ORDER: Tuple[Tuple[str, Pass], ...] = (
    ("stairs_weave", weave_stairs_path),
    ("global_weave", weave_global),
    ("inter_room_doors", add_inter_room_doors),
    ("corridor_hubs", widen_corridor_hubs),
    ("braid", braid_dead_ends),
    ("crosscuts", dig_crosscuts),
    ("crawlspaces", dig_crawlspaces),
    ("fault_band", carve_fault_band),
    ("moats", carve_moats),
    ("biome_zones", zone_biomes),
    ("lane_dampening", dampen_lanes),
    ("clearance_breakup", break_up_clearance),
)
PASS_NAMES = tuple(name for name, _ in PASS_ORDER)


def resolve_passes(names: Optional[Tuple[str, ...]]) -> List[Tuple[str, Pass]]:
    """Passes to run, in the given order; None means all of them."""
    if names is None:
        return list(PASS_ORDER)
    table = dict(PASS_ORDER)
    unknown = [n for n in names if n not in table]
    if unknown:
        raise ValueError(f"unknown pass name(s) {', '.join(unknown)}; expected some of {', '.join(PASS_NAMES)}")
    return [(n, table[n]) for n in names]


def check_size(width: int, height: int) -> None:
    if width < MIN_SIZE[0] or height < MIN_SIZE[1]:
        raise ValueError(f"floor size {width}x{height} is below the minimum {MIN_SIZE[0]}x{MIN_SIZE[1]}")
    if width > MAX_SIZE[0] or height > MAX_SIZE[1]:
        raise ValueError(f"floor size {width}x{height} exceeds the maximum {MAX_SIZE[0]}x{MAX_SIZE[1]}")


@dataclass
class Floor:
    run_seed: Union[int, str, None] = None
    depth: int = 1
    size: Optional[Tuple[int, int]] = None
    kind: Optional[str] = None
    config: Optional[GenerationConfig] = None
    metrics: Dict[str, Any] = field(default_factory=dict, init=False)

    def __post_init__(self):
        self.run_seed = coerce_seed(self.run_seed)
        if self.depth < 1:
            raise ValueError(f"depth must be >= 1, got {self.depth}")
        if self.config is None:
            self.config = load_config()
        width, height = self.size if self.size is not None else (self.config.width, self.config.height)
        check_size(width, height)
        self.size = (width, height)
        self.passes = resolve_passes(self.config.passes)
        self.floor_seed = derive_seed(self.run_seed, self.depth)
        if self.kind is None:
            self.kind = kind_for_depth(self.run_seed, self.depth)
        self.metrics = init_metrics() if self.config.enable_metrics else {}
        self.selection: Optional[Selection] = None
        self.grid: Optional[Grid] = None
        self._run_pipeline()

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    def _run_pipeline(self):
        """Execute the generation phases in order with per-phase timing.

        With metrics enabled each phase's duration lands in ``phase_ms`` and
        the total in ``runtime_ms``; with metrics off the phases just run.
        """
        enabled = self.config.enable_metrics
        start = time.perf_counter()
        phase_times: Dict[str, int] = {}
        if enabled:
            def _phase(label, fn, *a, **k):
                ps = time.perf_counter(); r = fn(*a, **k); pe = time.perf_counter()
                phase_times[label] = int((pe - ps) * 1000)
                return r
        else:
            def _phase(label, fn, *a, **k):
                return fn(*a, **k)

        config = self.config
        flog = log.bind(seed=self.run_seed, depth=self.depth)
        # Candidate layouts; the best one becomes the floor
        self.selection = _phase('select', select_candidate, self.kind, self.floor_seed, self.width, self.height, config)
        grid = self.selection.grid
        rng = make_rng(self.floor_seed, "passes")
        ctx = PassContext(config=config, run_seed=self.run_seed, depth=self.depth)
        # Special rooms first so structural passes keep clear of them
        specials = _phase('room_kinds', assign_room_kinds, grid, rng, config.special_min_separation)
        for name, fn in self.passes:
            result = _phase(name, fn, grid, rng, ctx)
            if flog.enabled("debug"):
                flog.debug(event="pass_done", name=name, applied=result.applied, **result.stats)
            if enabled:
                record(self.metrics, name, result)
        features = _phase('features', finalize_features, grid, rng, ctx)
        grid.freeze()
        self.grid = grid

        best = self.selection.best
        if enabled:
            self.metrics.update(grid.metrics)
            self.metrics.update(features.stats)
            self.metrics.update(
                kind=self.kind,
                floor_seed=self.floor_seed,
                depth=self.depth,
                candidate_score=best.score,
                candidate_index=self.selection.chosen,
                candidates=[s.to_dict() for s in self.selection.scores],
                special_kinds=[r.kind for r in specials],
                path_length=len(grid.shortest_path(grid.entrance, grid.exit) or []),
            )
            self.metrics['runtime_ms'] = int((time.perf_counter() - start) * 1000)
            self.metrics['phase_ms'] = phase_times
            grid.metrics = self.metrics
        flog.info(
            event="floor_generated",
            kind=self.kind,
            size=f"{self.width}x{self.height}",
            score=best.score,
            rooms=len(grid.rooms),
            runtime_ms=int((time.perf_counter() - start) * 1000),
            fingerprint=grid.fingerprint()[:12],
        )


def generate(
    run_seed: Union[int, str, None],
    depth: int = 1,
    size_hint: Optional[Tuple[int, int]] = None,
    kind: Optional[str] = None,
    config: Optional[GenerationConfig] = None,
) -> Grid:
    """Build one floor and return its frozen grid."""
    return Floor(run_seed, depth=depth, size=size_hint, kind=kind, config=config).grid
