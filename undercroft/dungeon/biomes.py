"""Biome zoning.

A few seed points grow into regions by simultaneous flood fill over open
floor, Voronoi style, so regions stay inside the component their seed
started in. Each region gets one style and its edit is committed or reverted
on its own; only committed regions are recorded on the grid.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List

from .connectivity import ORTHO
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, protected_tiles, try_commit
from .tiles import BOULDER, CHASM, FLOOR, FLOORLIKE, PILLAR, RUBBLE

STYLES = ("pillars", "rubble", "cracked")


def grow_regions(grid: Grid, seeds: List[Coord], eligible) -> Dict[Coord, int]:
    """Assign each eligible tile to the seed whose flood reaches it first."""
    owner: Dict[Coord, int] = {}
    q = deque()
    for rid, seed in enumerate(seeds):
        if seed in eligible and seed not in owner:
            owner[seed] = rid
            q.append(seed)
    while q:
        x, y = q.popleft()
        for dx, dy in ORTHO:
            n = (x + dx, y + dy)
            if n in eligible and n not in owner:
                owner[n] = owner[(x, y)]
                q.append(n)
    return owner


def _open(grid: Grid, x: int, y: int) -> bool:
    """Floor whose whole 8-neighbourhood is floor-like."""
    if grid.tiles[x][y] != FLOOR:
        return False
    return all(
        grid.tiles[x + dx][y + dy] in FLOORLIKE for dx in (-1, 0, 1) for dy in (-1, 0, 1) if grid.in_bounds(x + dx, y + dy)
    )


def _style_edits(grid: Grid, tiles: List[Coord], style: str, rng) -> Dict[Coord, str]:
    edits: Dict[Coord, str] = {}
    if style == "pillars":
        for x, y in tiles:
            if x % 3 == 1 and y % 3 == 1 and _open(grid, x, y) and rng.random() < 0.5:
                edits[(x, y)] = PILLAR
            if len(edits) >= 12:
                break
    elif style == "rubble":
        for x, y in tiles:
            roll = rng.random()
            if roll < 0.03 and _open(grid, x, y):
                edits[(x, y)] = BOULDER
            elif roll < 0.25:
                edits[(x, y)] = RUBBLE
    else:
        centres = [p for p in tiles if _open(grid, *p)]
        members = set(tiles)
        for cx, cy in rng.sample(centres, min(len(centres), rng.randint(1, 3))):
            edits[(cx, cy)] = CHASM
            around = [(cx + dx, cy + dy) for dx, dy in ORTHO if (cx + dx, cy + dy) in members]
            for p in rng.sample(around, min(len(around), rng.randint(1, 3))):
                edits[p] = CHASM
    return edits


def zone_biomes(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    protected = protected_tiles(grid)
    eligible = {
        (x, y)
        for x in range(1, grid.width - 1)
        for y in range(1, grid.height - 1)
        if grid.tiles[x][y] == FLOOR and (x, y) not in protected
    }
    stats = {"regions": 0, "committed": 0, "reverted": 0, "edits": 0}
    if len(eligible) < 40:
        return MutationResult(False, stats)
    seeds = rng.sample(sorted(eligible), rng.randint(2, 4))
    owner = grow_regions(grid, seeds, eligible)
    grid.regions = {}
    grid.region_styles = {}
    stats["regions"] = len(seeds)
    for rid in range(len(seeds)):
        style = rng.choice(STYLES)
        tiles = sorted(p for p, r in owner.items() if r == rid)
        edits = _style_edits(grid, tiles, style, rng)

        def edit(g: Grid, edits=edits):
            for (x, y), tile in sorted(edits.items()):
                g.set(x, y, tile)

        if edits and try_commit(grid, edit):
            grid.regions.update((p, rid) for p in tiles)
            grid.region_styles[rid] = style
            stats["committed"] += 1
            stats["edits"] += len(edits)
            stats[style] = stats.get(style, 0) + 1
        elif edits:
            stats["reverted"] += 1
    return MutationResult(stats["committed"] > 0, stats)
