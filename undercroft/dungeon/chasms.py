"""Chasm features: run-level fault bands and moated rooms.

Fault bands are a property of the run, not the floor. Depths are grouped
into strata of ``fault_band_period`` floors; each stratum may hold one band
of two or three consecutive depths. The band's seam comes from a seed
derived from the run seed alone, so every floor in the band carves the
same curve, shifted a little per depth.

When a seam would cut floor off, tiles where it crosses a sole connector
become bridges, then bridges go where the old stairs route crossed it, then
the shortest bridge run joins any stranded floor back up. Failing that the
pass tries a narrower seam, then a seam that stays clear of the route, and
only then gives up on the floor.
"""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .connectivity import ORTHO, bridge_edges, reachable, shortest_path, stairs_connected
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, protected_tiles, try_commit
from .rng import derive_seed, make_rng
from .tiles import BOULDER, BRIDGE, CHASM, FLOOR, RUBBLE


@dataclass(frozen=True)
class FaultBand:
    stratum: int
    start_depth: int
    length: int
    seed: int
    horizontal: bool
    base: float
    drift: float
    width: int
    intensity: int

    def covers(self, depth: int) -> bool:
        return self.start_depth <= depth < self.start_depth + self.length


def fault_band_for(run_seed: int, depth: int, period: int = 6) -> Optional[FaultBand]:
    """The fault band active at ``depth`` for this run, if any."""
    if depth < 1 or period < 1:
        return None
    stratum = (depth - 1) // period
    rng = make_rng(run_seed, "fault-band", stratum)
    active = rng.random() < 0.6
    length = rng.randint(2, 3)
    start = stratum * period + 1 + rng.randint(0, max(0, period - length))
    band = FaultBand(
        stratum=stratum,
        start_depth=start,
        length=length,
        seed=derive_seed(run_seed, "fault", stratum),
        horizontal=rng.random() < 0.5,
        base=rng.uniform(0.3, 0.7),
        drift=rng.uniform(-0.08, 0.08),
        width=rng.choice((1, 1, 2)),
        intensity=rng.randint(40, 100),
    )
    if not active or not band.covers(depth):
        return None
    return band


def seam_tiles(band: FaultBand, depth: int, width: int, height: int, seam_width: Optional[int] = None) -> List[Coord]:
    """Tiles of the band's seam on a ``width`` x ``height`` floor at ``depth``.

    The centerline is a momentum random walk smoothed with a 5-tap moving
    average. Consecutive columns are joined so the seam has no diagonal gaps.
    """
    rng = random.Random(band.seed)
    seam_width = band.width if seam_width is None else seam_width
    span, cross = (width, height) if band.horizontal else (height, width)
    local = depth - band.start_depth
    pos = (band.base + band.drift * local) * cross
    vel = 0.0
    raw = []
    for _ in range(span):
        vel = max(-0.8, min(0.8, vel + rng.uniform(-0.35, 0.35)))
        pos = max(2.0, min(cross - 3.0, pos + vel))
        raw.append(pos)
    length = max(8, span * band.intensity // 100)
    lo = rng.randint(0, max(0, span - length))
    tiles: List[Coord] = []
    prev = None
    for i in range(lo, min(span, lo + length)):
        window = raw[max(0, i - 2): i + 3]
        c = int(round(sum(window) / len(window)))
        low, high = (c, c) if prev is None else (min(prev, c), max(prev, c))
        for k in range(low, high + seam_width):
            tiles.append((i, k) if band.horizontal else (k, i))
        prev = c
    return tiles


def _chasm_span(grid: Grid, seam: Set[Coord], reached: Set[Coord], lost: Set[Coord]) -> Optional[List[Coord]]:
    """Shortest run of seam chasm tiles from the reached floor to the lost floor."""
    parent: Dict[Coord, Optional[Coord]] = {}
    q = deque()
    for x, y in sorted(seam):
        if grid.tiles[x][y] == CHASM and any((x + dx, y + dy) in reached for dx, dy in ORTHO):
            parent[(x, y)] = None
            q.append((x, y))
    while q:
        cur = q.popleft()
        if any((cur[0] + dx, cur[1] + dy) in lost for dx, dy in ORTHO):
            run = [cur]
            while parent[run[-1]] is not None:
                run.append(parent[run[-1]])
            return run
        for dx, dy in ORTHO:
            n = (cur[0] + dx, cur[1] + dy)
            if n in seam and n not in parent and grid.tiles[n[0]][n[1]] == CHASM:
                parent[n] = cur
                q.append(n)
    return None


def carve_chasm_seam(
    grid: Grid,
    seam: Iterable[Coord],
    max_bridges: int = 4,
    protected: Set[Coord] = frozenset(),
) -> Tuple[bool, dict]:
    """Turn the seam's floor tiles into chasm without cutting any floor off.

    Seam tiles on a bridge edge of the open floor (a sole connector) are laid
    as bridges straight away. If the chasm still severs the stairs, every
    seam tile on the previous 4-connected stairs route becomes a bridge,
    which restores that route exactly. Floor that was reachable before and
    is stranded afterwards gets the shortest bridge run across the chasm.
    Needing more than ``max_bridges`` repair bridges abandons the edit and
    leaves the grid untouched.
    """
    before = shortest_path(grid, grid.entrance, grid.exit, diagonal=False)
    stats = {"chasm": 0, "bridges": 0}
    if before is None:
        return False, stats
    route = set(before)
    targets = sorted(
        {
            (x, y)
            for x, y in seam
            if grid.in_interior(x, y) and (x, y) not in protected and grid.tiles[x][y] in (FLOOR, RUBBLE)
        }
    )
    if not targets:
        return False, stats
    target_set = set(targets)
    connectors = {p for edge in bridge_edges(grid, diagonal=False) for p in edge} & target_set
    was_reachable = reachable(grid, grid.entrance, diagonal=False) - target_set

    def edit(g: Grid):
        for x, y in targets:
            g.set(x, y, BRIDGE if (x, y) in connectors else CHASM)
        repairs = 0
        if not stairs_connected(g):
            crossings = [p for p in targets if p in route and p not in connectors]
            repairs += len(crossings)
            if repairs > max_bridges:
                return False
            for x, y in crossings:
                g.set(x, y, BRIDGE)
        while True:
            now = reachable(g, g.entrance, diagonal=False)
            lost = was_reachable - now
            if not lost:
                return True
            span = _chasm_span(g, target_set, now, lost)
            if span is None or repairs + len(span) > max_bridges:
                return False
            for x, y in span:
                g.set(x, y, BRIDGE)
            repairs += len(span)

    def nothing_stranded(g: Grid) -> bool:
        return was_reachable <= reachable(g, g.entrance, diagonal=False)

    if not try_commit(grid, edit, verify=nothing_stranded):
        return False, stats
    stats["bridges"] = sum(1 for x, y in targets if grid.tiles[x][y] == BRIDGE)
    stats["chasm"] = len(targets) - stats["bridges"]
    return True, stats


def carve_fault_band(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    band = fault_band_for(ctx.run_seed, ctx.depth, ctx.config.fault_band_period)
    stats = {"active": False}
    if band is None:
        return MutationResult(False, stats)
    stats.update(
        start_depth=band.start_depth,
        length=band.length,
        local=ctx.depth - band.start_depth,
        intensity=band.intensity,
    )
    protected = protected_tiles(grid)
    full = seam_tiles(band, ctx.depth, grid.width, grid.height)
    narrow = seam_tiles(band, ctx.depth, grid.width, grid.height, seam_width=1)
    route = shortest_path(grid, grid.entrance, grid.exit, diagonal=False) or []
    near_route = {(x + dx, y + dy) for x, y in route for dx in (-1, 0, 1) for dy in (-1, 0, 1)}
    clear = [p for p in narrow if p not in near_route]

    for attempt, seam in enumerate((full, narrow, clear)):
        ok, seam_stats = carve_chasm_seam(grid, seam, ctx.config.max_fault_bridges, protected)
        if ok:
            stats.update(seam_stats, active=True, attempt=attempt, shrunk=attempt > 0)
            break
    else:
        stats["rolled_back"] = True
        return MutationResult(False, stats)

    edges = sorted(
        (x, y)
        for x in range(1, grid.width - 1)
        for y in range(1, grid.height - 1)
        if grid.tiles[x][y] == FLOOR
        and (x, y) not in protected
        and any(grid.tiles[x + dx][y + dy] == CHASM for dx, dy in ((1, 0), (-1, 0), (0, 1), (0, -1)))
    )
    boulders = 0
    for x, y in rng.sample(edges, min(3, len(edges))):
        if try_commit(grid, lambda g, x=x, y=y: g.set(x, y, BOULDER)):
            boulders += 1
    stats["boulders"] = boulders
    return MutationResult(True, stats)


def carve_moats(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    """Ring large special rooms with a chasm, leaving an island reached by bridges."""
    stairs = [p for p in (grid.entrance, grid.exit) if p is not None]
    rooms = [r for r in grid.rooms if r.special and r.w >= 7 and r.h >= 7 and not any(r.contains(*s) for s in stairs)]
    rng.shuffle(rooms)
    stats = {"rooms": 0, "chasm": 0, "bridges": 0}
    for room in rooms:
        if stats["rooms"] >= 2:
            break
        ix, iy, iw, ih = room.x + 1, room.y + 1, room.w - 2, room.h - 2
        ring = [
            (x, y)
            for x in range(ix, ix + iw)
            for y in range(iy, iy + ih)
            if x in (ix, ix + iw - 1) or y in (iy, iy + ih - 1)
        ]
        cx, cy = room.center
        if rng.random() < 0.5:
            spans = [(cx, iy), (cx, iy + ih - 1)]
        else:
            spans = [(ix, cy), (ix + iw - 1, cy)]
        if rng.random() < 0.5:
            spans = spans[:1]
        cells = [p for p in ring if grid.tiles[p[0]][p[1]] == FLOOR]

        def edit(g: Grid, cells=cells, spans=spans):
            for x, y in cells:
                g.set(x, y, BRIDGE if (x, y) in spans else CHASM)

        def island_reachable(g: Grid, center=(cx, cy)) -> bool:
            return shortest_path(g, g.entrance, center, diagonal=False) is not None

        if try_commit(grid, edit, verify=island_reachable):
            stats["rooms"] += 1
            stats["bridges"] += sum(1 for p in cells if p in spans)
            stats["chasm"] += sum(1 for p in cells if p not in spans)
    return MutationResult(stats["rooms"] > 0, stats)
