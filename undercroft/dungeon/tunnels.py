"""Corridor carving and room-graph helpers shared by the layout generators."""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from .connectivity import ORTHO
from .grid import Coord, Grid
from .tiles import DOOR_CLOSED, DOOR_OPEN, DOORS, FLOOR, PASSABLE, WALL


def carve(grid: Grid, x: int, y: int) -> bool:
    """Turn interior rock into floor. The outer border is never carved."""
    if grid.in_interior(x, y) and grid.tiles[x][y] == WALL:
        grid.set(x, y, FLOOR)
        return True
    return False


def carve_line(grid: Grid, a: Coord, b: Coord, horizontal_first: bool = True) -> int:
    """Carve an L-shaped corridor from a to b (straight when they share an axis)."""
    (x, y), (tx, ty) = a, b
    carved = int(carve(grid, x, y))
    while (x, y) != (tx, ty):
        if horizontal_first and x != tx or y == ty:
            x += 1 if tx > x else -1
        else:
            y += 1 if ty > y else -1
        carved += carve(grid, x, y)
    return carved


def carve_walk(grid: Grid, a: Coord, b: Coord, rng, wander: float = 0.35) -> int:
    """Biased random walk from a toward b.

    Each step prefers directions that close the distance; with probability
    ``wander`` any direction is allowed. Steps that would leave the interior
    count as stalls. Too many stalls, or an exhausted step budget, fall
    back to a straight L from wherever the walk stopped.
    """
    (x, y), (tx, ty) = a, b
    carved = int(carve(grid, x, y))
    budget = (abs(tx - x) + abs(ty - y)) * 3 + 8
    stalls = 0
    while (x, y) != (tx, ty) and budget > 0 and stalls < 8:
        budget -= 1
        options = []
        if x < tx:
            options.append((1, 0))
        elif x > tx:
            options.append((-1, 0))
        if y < ty:
            options.append((0, 1))
        elif y > ty:
            options.append((0, -1))
        if rng.random() < wander:
            options.extend(ORTHO)
        dx, dy = rng.choice(options)
        nx, ny = x + dx, y + dy
        if not grid.in_interior(nx, ny):
            stalls += 1
            continue
        x, y = nx, ny
        carved += carve(grid, x, y)
    if (x, y) != (tx, ty):
        carved += carve_line(grid, (x, y), (tx, ty), abs(tx - x) >= abs(ty - y))
    return carved


def spanning_edges(points: Sequence[Coord], rng, loop_factor: float = 0.0, k: int = 4):
    """Minimum spanning tree over k-nearest candidate edges, plus loop edges.

    Returns ``(tree, extra)`` as lists of index pairs. Candidate edges are
    weighted by Euclidean distance; each non-tree candidate becomes a loop
    edge with probability ``loop_factor``.
    """
    n = len(points)
    if n < 2:
        return [], []

    def dist(i, j):
        return math.hypot(points[i][0] - points[j][0], points[i][1] - points[j][1])

    candidates = set()
    for i in range(n):
        nearest = sorted((dist(i, j), j) for j in range(n) if j != i)[:k]
        for d, j in nearest:
            candidates.add((d, min(i, j), max(i, j)))
    edges = sorted(candidates)

    parent = list(range(n))

    def find(a):
        while parent[a] != a:
            parent[a] = parent[parent[a]]
            a = parent[a]
        return a

    def union(a, b):
        ra, rb = find(a), find(b)
        if ra == rb:
            return False
        parent[rb] = ra
        return True

    tree: List[Tuple[int, int]] = [(i, j) for _, i, j in edges if union(i, j)]
    if len(tree) < n - 1:
        # k-nearest graph split into clusters; link them over the full graph
        full = sorted((dist(i, j), i, j) for i in range(n) for j in range(i + 1, n))
        tree.extend((i, j) for _, i, j in full if union(i, j))
    in_tree = set(tree)
    extra = [(i, j) for _, i, j in edges if (i, j) not in in_tree and rng.random() < loop_factor]
    return tree, extra


def place_doorways(grid: Grid, rng, chance: float) -> int:
    """Hang doors in single-width corridor openings of each room's wall ring.

    Candidate openings are collected in coordinate order first, so the number
    of seeded draws does not depend on earlier door decisions.
    """
    candidates = []
    for room in grid.rooms:
        sides = []
        for x in range(room.x, room.x + room.w):
            sides.append(((x, room.y - 1), (0, -1)))
            sides.append(((x, room.y + room.h), (0, 1)))
        for y in range(room.y, room.y + room.h):
            sides.append(((room.x - 1, y), (-1, 0)))
            sides.append(((room.x + room.w, y), (1, 0)))
        for (x, y), (ox, oy) in sides:
            if not grid.in_interior(x, y) or grid.tiles[x][y] != FLOOR or grid.room_ids[x][y] != -1:
                continue
            out = (x + ox, y + oy)
            if not grid.in_bounds(*out) or grid.tiles[out[0]][out[1]] not in PASSABLE:
                continue
            # openings must be exactly one tile wide
            lx, ly = x + oy, y + ox
            rx, ry = x - oy, y - ox
            if grid.tiles[lx][ly] != WALL or grid.tiles[rx][ry] != WALL:
                continue
            touching = {grid.room_ids[x + dx][y + dy] for dx, dy in ORTHO} - {-1}
            if touching != {room.id}:
                continue
            candidates.append((x, y))
    placed = 0
    for x, y in sorted(set(candidates)):
        roll = rng.random()
        style = rng.random()
        if roll >= chance:
            continue
        if any(grid.tiles[x + dx][y + dy] in DOORS for dx, dy in ORTHO):
            continue
        grid.set(x, y, DOOR_OPEN if style < 0.2 else DOOR_CLOSED)
        placed += 1
    return placed
