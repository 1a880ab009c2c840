"""Chokepoint weaving.

Bridges are edges of the passable graph that sit on no cycle. Weaving
carves a 2x2 bypass loop beside a bridge edge so it joins a cycle. The
stairs pass works on bridges along the critical path; the global pass then
handles any bridge that cuts off a sizeable chunk of the floor. Edges with
the largest cut go first.
"""

from __future__ import annotations

from typing import Callable, List, Sequence

from .connectivity import Edge, bridge_cut_sizes, bridge_edges, critical_path, path_edges, two_edge_components
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, protected_tiles, touches_room, try_commit
from .tiles import FLOOR, WALL

GLOBAL_MIN_CUT = 6
MAX_ATTEMPTS = 16


def path_bridges(grid: Grid) -> List[Edge]:
    """Bridge edges along the current critical path, in path order."""
    path = critical_path(grid)
    if not path:
        return []
    bridges = bridge_edges(grid)
    return [e for e in path_edges(path) if e in bridges]


def _loop_options(edge: Edge) -> List[Sequence[Coord]]:
    (ax, ay), (bx, by) = edge
    if ay == by:
        return [((ax, ay + s), (bx, by + s)) for s in (-1, 1)]
    if ax == bx:
        return [((ax + s, ay), (bx + s, by)) for s in (-1, 1)]
    # a diagonal edge always shares a triangle with its corner tile
    return []


def _loop_carvable(grid: Grid, tiles: Sequence[Coord], protected) -> bool:
    walls = 0
    for x, y in tiles:
        if not grid.in_interior(x, y) or (x, y) in protected or touches_room(grid, x, y):
            return False
        tile = grid.tiles[x][y]
        if tile == WALL:
            walls += 1
        elif tile != FLOOR:
            return False
    return walls > 0


def _carve_loop(tiles: Sequence[Coord]):
    def edit(grid: Grid):
        for x, y in tiles:
            if grid.tiles[x][y] == WALL:
                grid.set(x, y, FLOOR)

    return edit


def _weave(grid: Grid, rng, ranked: Callable[[Grid], List[Edge]], count: Callable[[Grid], int], budget: int) -> int:
    protected = protected_tiles(grid)
    carved = attempts = 0
    while carved < budget and attempts < MAX_ATTEMPTS:
        edges = ranked(grid)
        if not edges:
            break
        current = count(grid)
        progressed = False
        for edge in edges:
            options = _loop_options(edge)
            if rng.random() < 0.5:
                options.reverse()
            for tiles in options:
                if not _loop_carvable(grid, tiles, protected):
                    continue
                attempts += 1
                if try_commit(grid, _carve_loop(tiles), verify=lambda g: count(g) < current):
                    carved += 1
                    progressed = True
                    break
                if attempts >= MAX_ATTEMPTS:
                    break
            if progressed or attempts >= MAX_ATTEMPTS:
                break
        if not progressed:
            break
    return carved


def _ranked_path_bridges(grid: Grid) -> List[Edge]:
    on_path = path_bridges(grid)
    if not on_path:
        return []
    cuts = bridge_cut_sizes(grid)
    return sorted(on_path, key=lambda e: (-cuts.get(e, 0), e))


def _ranked_global_bridges(grid: Grid) -> List[Edge]:
    cuts = bridge_cut_sizes(grid)
    return sorted((e for e, size in cuts.items() if size >= GLOBAL_MIN_CUT), key=lambda e: (-cuts[e], e))


def weave_stairs_path(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    before = len(path_bridges(grid))
    budget = min(6, 3 + ctx.depth // 4)
    carved = _weave(grid, rng, _ranked_path_bridges, lambda g: len(path_bridges(g)), budget) if before else 0
    comp = two_edge_components(grid)
    stats = {
        "bridges_before": before,
        "bridges_after": len(path_bridges(grid)),
        "bypass_loops": carved,
        "redundant": comp.get(grid.entrance) == comp.get(grid.exit),
    }
    return MutationResult(carved > 0, stats)


def weave_global(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    before = len(bridge_edges(grid))
    area = grid.width * grid.height
    budget = max(2, min(8, area // 900))
    carved = _weave(grid, rng, _ranked_global_bridges, lambda g: len(bridge_edges(g)), budget)
    stats = {
        "bridges_before": before,
        "bridges_after": len(bridge_edges(grid)) if carved else before,
        "bypass_loops": carved,
    }
    return MutationResult(carved > 0, stats)
