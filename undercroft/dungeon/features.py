"""Special rooms and small gameplay features (traps, caches).

Room kinds are handed out before the structural passes so those passes can
leave special rooms alone. Everything that depends on the final layout
(spine tagging, traps, caches, separation stats) runs afterwards.
"""

from __future__ import annotations

from typing import List, Optional

from .connectivity import critical_path, multi_source_field, passable_with_keys
from .corridors import dead_ends
from .grid import Grid
from .mutation import MutationResult, PassContext, is_corridor
from .rooms import Room
from .tiles import MARKER, TRAP

SPINE_KINDS = ("shrine", "armory", "library")
OFF_SPINE_KINDS = ("treasure", "lair", "laboratory")
SPECIAL_KINDS = SPINE_KINDS + OFF_SPINE_KINDS


def _spine_rooms(grid: Grid) -> List[Room]:
    path = critical_path(grid) or []
    return [r for r in grid.rooms if any(r.contains(x, y) for x, y in path)]


def _distance_to(grid: Grid, sources: List[Room], room: Room) -> Optional[int]:
    field = multi_source_field(grid, [c for r in sources for c in r.cells()], passable=passable_with_keys)
    dists = [field[c] for c in room.cells() if c in field]
    return min(dists) if dists else None


def assign_room_kinds(grid: Grid, rng, min_separation: int = 10) -> List[Room]:
    """Pick special rooms and give each a kind. Returns the rooms chosen.

    Spine kinds go to rooms the stairs path runs through when possible,
    off-spine kinds to the rest. A room closer than ``min_separation``
    steps to an already chosen special room is skipped; rooms that cannot
    be reached from any special room count as far enough.
    """
    stairs = [p for p in (grid.entrance, grid.exit) if p is not None]
    pool = [r for r in grid.rooms if not r.special and not any(r.contains(*s) for s in stairs)]
    if not pool:
        return []
    spine_ids = {r.id for r in _spine_rooms(grid)}
    count = min(4, 1 + len(grid.rooms) // 4)
    chosen: List[Room] = []
    for i in range(count):
        on_spine = i % 2 == 0
        kind = rng.choice(SPINE_KINDS if on_spine else OFF_SPINE_KINDS)
        open_rooms = [r for r in pool if r not in chosen]
        if chosen:
            spaced = []
            for r in open_rooms:
                d = _distance_to(grid, chosen, r)
                if d is None or d >= min_separation:
                    spaced.append(r)
            open_rooms = spaced
        preferred = [r for r in open_rooms if (r.id in spine_ids) == on_spine]
        options = sorted(preferred or open_rooms, key=lambda r: r.id)
        if not options:
            break
        room = rng.choice(options)
        room.kind = kind
        chosen.append(room)
    return chosen


def tag_spine(grid: Grid) -> int:
    spine = {r.id for r in _spine_rooms(grid)}
    for room in grid.rooms:
        room.on_spine = room.id in spine
    return len(spine)


def special_room_min_sep(grid: Grid) -> Optional[int]:
    """Smallest walking distance between any two special rooms."""
    specials = [r for r in grid.rooms if r.special]
    best = None
    for i, room in enumerate(specials):
        for other in specials[i + 1:]:
            d = _distance_to(grid, [room], other)
            if d is not None and (best is None or d < best):
                best = d
    return best


def finalize_features(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    stats = {"spine_room_count": tag_spine(grid)}
    stats["special_room_min_sep"] = special_room_min_sep(grid)
    stats["special_rooms"] = sum(1 for r in grid.rooms if r.special)

    path = critical_path(grid) or []
    stairs = [p for p in (grid.entrance, grid.exit) if p is not None]
    trap_spots = sorted(
        p for p in set(path)
        if is_corridor(grid, *p) and all(abs(p[0] - s[0]) + abs(p[1] - s[1]) > 4 for s in stairs)
    )
    traps = rng.sample(trap_spots, min(len(trap_spots), max(1, len(path) // 25))) if trap_spots else []
    for x, y in traps:
        grid.set_flag(x, y, TRAP)

    on_path = set(path)
    cache_spots = [p for p in dead_ends(grid) if p not in on_path]
    caches = rng.sample(cache_spots, min(3, len(cache_spots)))
    for x, y in caches:
        grid.set_flag(x, y, MARKER)
    stats["traps"] = len(traps)
    stats["caches"] = len(caches)
    return MutationResult(bool(traps or caches), stats)
