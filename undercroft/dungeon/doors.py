"""Inter-room doors: direct connections through thin walls between rooms.

Only ordinary rooms are linked, at most once per pair, and never right
beside an existing door. Most new doors are plain; some are locked or
hidden, which leaves the old route as the only normal way round.
"""

from __future__ import annotations

from typing import Dict, List, Set, Tuple

from .connectivity import ORTHO
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, try_commit
from .tiles import DOOR_CLOSED, DOOR_LOCKED, DOOR_SECRET, DOORS, FLOOR, WALL


def _wall_links(grid: Grid) -> Dict[Tuple[int, int], List[List[Coord]]]:
    """Map each room pair to the straight 1-2 tile wall runs that separate them."""
    links: Dict[Tuple[int, int], List[List[Coord]]] = {}
    for room in grid.rooms:
        if room.special:
            continue
        starts = []
        for x in range(room.x, room.x + room.w):
            starts.append(((x, room.y - 1), (0, -1)))
            starts.append(((x, room.y + room.h), (0, 1)))
        for y in range(room.y, room.y + room.h):
            starts.append(((room.x - 1, y), (-1, 0)))
            starts.append(((room.x + room.w, y), (1, 0)))
        for (x, y), (dx, dy) in starts:
            run: List[Coord] = []
            cx, cy = x, y
            for _ in range(3):
                if not grid.in_interior(cx, cy):
                    break
                other = grid.room_ids[cx][cy]
                if other != -1:
                    if other != room.id and run and not grid.rooms[other].special:
                        key = (min(room.id, other), max(room.id, other))
                        links.setdefault(key, []).append(run)
                    break
                if grid.tiles[cx][cy] != WALL:
                    break
                # keep clear of corridors running alongside the wall
                side = [(cx + dy, cy + dx), (cx - dy, cy - dx)]
                if any(grid.tiles[sx][sy] != WALL for sx, sy in side):
                    break
                run.append((cx, cy))
                cx, cy = cx + dx, cy + dy
    return links


def _door_rooms(grid: Grid, x: int, y: int) -> Set[int]:
    """Rooms a door opens onto, looking through one floor tile on each side.

    A door set in a 2-tile wall run has the opened run tile behind it, so the
    room on that side is two steps away.
    """
    rooms: Set[int] = set()
    for dx, dy in ORTHO:
        for step in (1, 2):
            nx, ny = x + dx * step, y + dy * step
            if not grid.in_bounds(nx, ny):
                break
            if grid.room_ids[nx][ny] != -1:
                rooms.add(grid.room_ids[nx][ny])
                break
            if grid.tiles[nx][ny] != FLOOR:
                break
    return rooms


def _pair_has_door(grid: Grid, a: int, b: int) -> bool:
    return any({a, b} <= _door_rooms(grid, x, y) for x, y in grid.doors)


def add_inter_room_doors(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    links = _wall_links(grid)
    pairs = sorted(links)
    rng.shuffle(pairs)
    budget = 1 + len(grid.rooms) // 6
    stats = {"candidates": len(pairs), "doors": 0, "locked": 0, "secret": 0}
    for pair in pairs:
        if stats["doors"] >= budget:
            break
        if _pair_has_door(grid, *pair):
            continue
        runs = sorted(links[pair], key=lambda r: (len(r), r))
        run = rng.choice(runs[: max(1, len(runs) // 2)])
        roll = rng.random()
        glyph = DOOR_CLOSED if roll < 0.7 else DOOR_LOCKED if roll < 0.85 else DOOR_SECRET
        door = run[0]
        if any(grid.in_bounds(door[0] + dx, door[1] + dy) and grid.tiles[door[0] + dx][door[1] + dy] in DOORS for dx, dy in ORTHO):
            continue

        def edit(g: Grid, run=run, glyph=glyph):
            g.set(run[0][0], run[0][1], glyph)
            for x, y in run[1:]:
                g.set(x, y, FLOOR)

        if try_commit(grid, edit):
            stats["doors"] += 1
            if glyph == DOOR_LOCKED:
                stats["locked"] += 1
            elif glyph == DOOR_SECRET:
                stats["secret"] += 1
    return MutationResult(stats["doors"] > 0, stats)
