"""Corridor post-passes: junction hubs and dead-end braiding."""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional

from .connectivity import ORTHO
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, is_corridor, protected_tiles, touches_room, try_commit
from .tiles import CHASM, FLOOR, WALL

BRAID_MAX_LEN = 7


def _degree4(grid: Grid, x: int, y: int) -> int:
    return sum(1 for dx, dy in ORTHO if grid.is_passable(x + dx, y + dy))


def widen_corridor_hubs(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    """Open a few corridor junctions into 3x3 hubs."""
    protected = protected_tiles(grid, stairs_radius=3, door_radius=2)
    junctions = []
    for x in range(2, grid.width - 2):
        for y in range(2, grid.height - 2):
            if not is_corridor(grid, x, y) or _degree4(grid, x, y) < 3:
                continue
            block = [(x + dx, y + dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)]
            if any(p in protected or touches_room(grid, *p) for p in block):
                continue
            junctions.append((x, y))
    rng.shuffle(junctions)
    budget = rng.randint(1, 3)
    hubs: List[Coord] = []
    tiles = 0
    for x, y in junctions:
        if len(hubs) >= budget:
            break
        if any(abs(x - hx) + abs(y - hy) < 6 for hx, hy in hubs):
            continue
        block = [(x + dx, y + dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)]
        walls = [p for p in block if grid.tiles[p[0]][p[1]] == WALL]

        def edit(g: Grid, walls=walls):
            for px, py in walls:
                g.set(px, py, FLOOR)

        if walls and try_commit(grid, edit):
            hubs.append((x, y))
            tiles += len(walls)
    return MutationResult(bool(hubs), {"hubs": len(hubs), "tiles": tiles, "junctions": len(junctions)})


def dead_ends(grid: Grid) -> List[Coord]:
    return [
        (x, y)
        for x in range(1, grid.width - 1)
        for y in range(1, grid.height - 1)
        if is_corridor(grid, x, y) and _degree4(grid, x, y) == 1
    ]


def braid_dead_ends(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    """Connect corridor dead ends to nearby corridors through short rock tunnels."""
    protected = protected_tiles(grid, stairs_radius=3, door_radius=1)

    def diggable(x: int, y: int) -> bool:
        if not (2 <= x < grid.width - 2 and 2 <= y < grid.height - 2):
            return False
        if grid.tiles[x][y] != WALL or (x, y) in protected or touches_room(grid, x, y):
            return False
        return not any(grid.tiles[x + dx][y + dy] == CHASM for dx, dy in ORTHO)

    chance = min(0.8, 0.35 + 0.015 * min(12, max(0, ctx.depth - 3)))
    budget = max(3, min(28, grid.width * grid.height // 650))
    ends = dead_ends(grid)
    before = len(ends)
    rng.shuffle(ends)
    tunnels = carved = 0
    for px, py in ends:
        if tunnels >= budget:
            break
        if not is_corridor(grid, px, py) or _degree4(grid, px, py) != 1:
            continue
        if rng.random() >= chance:
            continue
        back = next((px + dx, py + dy) for dx, dy in ORTHO if grid.is_passable(px + dx, py + dy))
        order = list(ORTHO)
        rng.shuffle(order)

        parent: Dict[Coord, Optional[Coord]] = {}
        q = deque()
        for dx, dy in ORTHO:
            s = (px + dx, py + dy)
            if s != back and diggable(*s):
                parent[s] = None
                q.append((s, 1))
        end = None
        while q and end is None:
            (cx, cy), dist = q.popleft()
            for dx, dy in ORTHO:
                t = (cx + dx, cy + dy)
                if t in ((px, py), back) or not grid.in_bounds(*t):
                    continue
                if is_corridor(grid, *t):
                    end = (cx, cy)
                    break
            if end is not None or dist >= BRAID_MAX_LEN:
                continue
            for dx, dy in order:
                n = (cx + dx, cy + dy)
                if n not in parent and diggable(*n):
                    parent[n] = (cx, cy)
                    q.append((n, dist + 1))
        if end is None:
            continue
        route = [end]
        while parent[route[-1]] is not None:
            route.append(parent[route[-1]])

        def edit(g: Grid, route=route):
            for x, y in route:
                g.set(x, y, FLOOR)

        if try_commit(grid, edit):
            tunnels += 1
            carved += len(route)
    after = len(dead_ends(grid))
    return MutationResult(tunnels > 0, {"dead_ends_before": before, "dead_ends_after": after, "tunnels": tunnels, "tiles": carved})
