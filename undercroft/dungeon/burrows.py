"""Passages dug through solid rock: gated crosscuts and hidden crawlspaces.

Both passes search through wall mass with :func:`cheapest_dig` rather than
over the passable graph. A dug tunnel may only touch open floor at its two
ends, so the doors gating those ends are the only way in.
"""

from __future__ import annotations

from typing import Dict, List

from .connectivity import ORTHO, cheapest_dig, multi_source_field
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, is_corridor, protected_tiles, touches_room, try_commit
from .tiles import DOOR_LOCKED, DOOR_SECRET, DOORS, FLOOR, MARKER, WALL


def _manhattan(a: Coord, b: Coord) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def _sealed_rock(grid: Grid, x: int, y: int, openings) -> bool:
    """Rock whose only open 4-neighbours are the given endpoint tiles."""
    if not grid.in_interior(x, y) or grid.tiles[x][y] != WALL or touches_room(grid, x, y):
        return False
    for dx, dy in ORTHO:
        n = (x + dx, y + dy)
        if grid.tiles[n[0]][n[1]] != WALL and n not in openings:
            return False
    return True


def dig_crosscuts(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    """Dig gated shortcuts between corridor points that are close but far apart on foot."""
    protected = protected_tiles(grid, stairs_radius=3, door_radius=1)
    corridor = [p for p in grid.coords() if grid.in_interior(*p) and is_corridor(grid, *p) and p not in protected]
    stats = {"crosscuts": 0, "tiles": 0, "locked": 0, "secret": 0}
    if len(corridor) < 20:
        return MutationResult(False, stats)
    budget = 1 if grid.width * grid.height < 3000 else 2
    used: List[Coord] = []
    for _ in range(budget):
        best = None
        for s in rng.sample(corridor, min(8, len(corridor))):
            if any(_manhattan(s, u) < 8 for u in used):
                continue
            field = multi_source_field(grid, [s], diagonal=False)
            for t in corridor:
                walk = field.get(t)
                if walk is None:
                    continue
                m = _manhattan(s, t)
                if m < 6 or m > 24 or any(_manhattan(t, u) < 8 for u in used):
                    continue
                key = (walk - m, -m)
                if best is None or key > best[0]:
                    best = (key, s, t)
        if best is None or best[0][0] < 12:
            break
        _, s, t = best
        used.extend((s, t))

        def cost(x: int, y: int, s=s, t=t):
            if (x, y) == t:
                return 1
            return 1 if _sealed_rock(grid, x, y, (s, t)) else None

        path = cheapest_dig(grid, [s], lambda p, t=t: p == t, cost, target=t)
        if path is None or len(path) < 5:
            continue
        tunnel = path[1:-1]
        gates = [rng.choice((DOOR_SECRET, DOOR_LOCKED)) for _ in range(2)]

        def edit(g: Grid, tunnel=tunnel, gates=gates):
            for x, y in tunnel:
                g.set(x, y, FLOOR)
            g.set(tunnel[0][0], tunnel[0][1], gates[0])
            g.set(tunnel[-1][0], tunnel[-1][1], gates[1])

        if try_commit(grid, edit):
            stats["crosscuts"] += 1
            stats["tiles"] += len(tunnel)
            stats["locked"] += gates.count(DOOR_LOCKED)
            stats["secret"] += gates.count(DOOR_SECRET)
    return MutationResult(stats["crosscuts"] > 0, stats)


def rock_depth(grid: Grid) -> Dict[Coord, int]:
    """Distance from each wall tile to the nearest open tile or the map edge."""
    sources = [p for p in grid.coords() if grid.tiles[p[0]][p[1]] != WALL or not grid.in_interior(*p)]
    return multi_source_field(grid, sources, passable=lambda g, x, y: g.tiles[x][y] == WALL, diagonal=False)


def dig_crawlspaces(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    """Grow a small hidden tunnel network in deep rock, reached through secret doors."""
    stats = {"tiles": 0, "doors": 0, "caches": 0}
    depth = rock_depth(grid)
    deep = sorted((p for p, d in depth.items() if d >= 3), key=lambda p: (-depth[p], p))
    if not deep:
        return MutationResult(False, stats)
    protected = protected_tiles(grid, stairs_radius=3, door_radius=1)
    seed = rng.choice(deep[:5])
    target = rng.randint(10, 22)
    network = [seed]
    members = {seed}
    frontier = [seed]
    while len(network) < target and frontier:
        cur = rng.choice(frontier)
        options = []
        for dx, dy in ORTHO:
            n = (cur[0] + dx, cur[1] + dy)
            if n in members or depth.get(n, 0) < 2:
                continue
            # one tile wide: a new tile may only touch its parent
            if any((n[0] + ex, n[1] + ey) in members and (n[0] + ex, n[1] + ey) != cur for ex, ey in ORTHO):
                continue
            options.append(n)
        if not options:
            frontier.remove(cur)
            continue
        n = rng.choice(options)
        network.append(n)
        members.add(n)
        frontier.append(n)

    doors: List[Coord] = []

    def door_spot(p: Coord) -> bool:
        x, y = p
        if depth.get(p) != 1 or p in protected or touches_room(grid, x, y):
            return False
        if any(_manhattan(p, d) < 6 for d in doors):
            return False
        if any(grid.tiles[x + dx][y + dy] in DOORS for dx, dy in ORTHO):
            return False
        return any(is_corridor(grid, x + dx, y + dy) and (x + dx, y + dy) not in protected for dx, dy in ORTHO)

    def cost(x: int, y: int):
        p = (x, y)
        if p in members or grid.tiles[x][y] != WALL or p in protected:
            return None
        if depth.get(p, 0) >= 2:
            return 1
        return 1 if door_spot(p) else None

    exits = []
    for _ in range(rng.randint(1, 3)):
        path = cheapest_dig(grid, network, door_spot, cost)
        if path is None:
            break
        exits.append(path[1:])
        doors.append(path[-1])
        # later exits must not reuse this one's tunnel
        members.update(path[1:])
    if not exits:
        return MutationResult(False, stats)

    def edit(g: Grid):
        for x, y in network:
            g.set(x, y, FLOOR)
        for route in exits:
            for x, y in route[:-1]:
                g.set(x, y, FLOOR)
            g.set(route[-1][0], route[-1][1], DOOR_SECRET)
        g.set_flag(seed[0], seed[1], MARKER)

    if not try_commit(grid, edit):
        return MutationResult(False, stats)
    stats["tiles"] = len(network) + sum(len(r) - 1 for r in exits)
    stats["doors"] = len(exits)
    stats["caches"] = 1
    return MutationResult(True, stats)
