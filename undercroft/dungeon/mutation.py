"""Shared contract for structural post-passes.

A pass is ``fn(grid, rng, ctx) -> MutationResult``. It proposes edits and
pushes each one through :func:`try_commit`, which keeps the edit only if
the stairs are still connected afterwards (plus any pass-specific check)
and otherwise restores the grid from the journal exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set

from .config import GenerationConfig
from .connectivity import stairs_connected
from .grid import Coord, Grid
from .tiles import FLOOR


@dataclass
class MutationResult:
    applied: bool = False
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PassContext:
    config: GenerationConfig
    run_seed: int = 0
    depth: int = 1


Edit = Callable[[Grid], Optional[bool]]
Verify = Callable[[Grid], bool]


def try_commit(grid: Grid, edit: Edit, verify: Optional[Verify] = None) -> bool:
    """Apply ``edit``; keep it only if it changed something and the stairs still connect.

    ``edit`` may return False to abandon the attempt itself. Returns True
    when the edit was committed.
    """
    with grid.journal() as journal:
        ok = edit(grid) is not False
        ok = ok and journal.changed and stairs_connected(grid)
        ok = ok and (verify is None or verify(grid))
        if not ok:
            journal.rollback()
    return ok


def protected_tiles(grid: Grid, stairs_radius: int = 2, door_radius: int = 1) -> Set[Coord]:
    """Tiles no cosmetic or structural pass may rewrite.

    Stairs with a Manhattan margin, doors with a Chebyshev margin, and the
    interior plus wall ring of every special room.
    """
    out: Set[Coord] = set()
    for pos in (grid.entrance, grid.exit):
        if pos is None:
            continue
        sx, sy = pos
        for dx in range(-stairs_radius, stairs_radius + 1):
            for dy in range(-stairs_radius, stairs_radius + 1):
                if abs(dx) + abs(dy) <= stairs_radius:
                    out.add((sx + dx, sy + dy))
    for dx0, dy0 in grid.doors:
        for dx in range(-door_radius, door_radius + 1):
            for dy in range(-door_radius, door_radius + 1):
                out.add((dx0 + dx, dy0 + dy))
    for room in grid.rooms:
        if room.special:
            out.update(room.cells())
            out.update(room.ring())
    return out


def is_corridor(grid: Grid, x: int, y: int) -> bool:
    return grid.tiles[x][y] == FLOOR and grid.room_ids[x][y] == -1


def touches_room(grid: Grid, x: int, y: int) -> bool:
    """True when (x, y) or any 8-neighbour lies inside a room."""
    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            nx, ny = x + dx, y + dy
            if grid.in_bounds(nx, ny) and grid.room_ids[nx][ny] != -1:
                return True
    return False
