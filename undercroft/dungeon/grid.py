"""The floor grid: tile matrix, overlays, room and door registries.

The grid is column-major (``tiles[x][y]``). Every tile write goes through
:meth:`Grid.set`, which keeps the door registry in sync and records
pre-images into any open journal so a pass can undo its edit exactly.
"""

from __future__ import annotations

import hashlib
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .rooms import Room
from .tiles import (
    ALL_TILES,
    DISCOVERED,
    DOOR_CLOSED,
    DOOR_LOCKED,
    DOOR_OPEN,
    DOOR_SECRET,
    DOOR_STATES,
    FLOOR,
    STAIRS_DOWN,
    STAIRS_UP,
    WALL,
    is_passable,
)

Coord = Tuple[int, int]


class FrozenGridError(RuntimeError):
    """Raised when generation code writes to a grid handed off to gameplay."""


class Journal:
    """Pre-images of every tile touched while the journal is open."""

    def __init__(self, grid: "Grid"):
        self.grid = grid
        self._before: Dict[Coord, Tuple[str, int]] = {}

    def record(self, x: int, y: int) -> None:
        if (x, y) not in self._before:
            self._before[(x, y)] = (self.grid.tiles[x][y], self.grid.flags[x][y])

    @property
    def changed(self) -> bool:
        return bool(self._before)

    @property
    def touched(self) -> List[Coord]:
        return list(self._before)

    def rollback(self) -> None:
        for (x, y), (tile, flags) in reversed(list(self._before.items())):
            self.grid._write(x, y, tile)
            self.grid.flags[x][y] = flags
        self._before.clear()


class Grid:
    def __init__(self, width: int, height: int, fill: str = WALL, *, diagonal: bool = True):
        if width < 3 or height < 3:
            raise ValueError(f"grid must be at least 3x3, got {width}x{height}")
        self.width = width
        self.height = height
        self.diagonal = diagonal
        self.tiles: List[List[str]] = [[fill] * height for _ in range(width)]
        self.flags: List[List[int]] = [[0] * height for _ in range(width)]
        self.room_ids: List[List[int]] = [[-1] * height for _ in range(width)]
        self.rooms: List[Room] = []
        self.doors: Dict[Coord, str] = {}
        self.entrance: Optional[Coord] = None
        self.exit: Optional[Coord] = None
        self.regions: Dict[Coord, int] = {}
        self.region_styles: Dict[int, str] = {}
        self.kind = ""
        self.seed: Optional[int] = None
        self.metrics: Dict[str, Any] = {}
        self.frozen = False
        self._journals: List[Journal] = []

    # ------------------------------------------------------------------ bounds
    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def in_interior(self, x: int, y: int) -> bool:
        return 1 <= x < self.width - 1 and 1 <= y < self.height - 1

    def coords(self) -> Iterator[Coord]:
        for x in range(self.width):
            for y in range(self.height):
                yield x, y

    def passable_coords(self) -> List[Coord]:
        return [(x, y) for x, y in self.coords() if is_passable(self.tiles[x][y])]

    # ------------------------------------------------------------------ tiles
    def get(self, x: int, y: int) -> str:
        return self.tiles[x][y]

    def set(self, x: int, y: int, tile: str) -> None:
        if self.frozen:
            raise FrozenGridError(f"grid is frozen; refusing to write {tile!r} at {(x, y)}")
        if self.tiles[x][y] == tile:
            return
        for journal in self._journals:
            journal.record(x, y)
        self._write(x, y, tile)

    def _write(self, x: int, y: int, tile: str) -> None:
        self.tiles[x][y] = tile
        if tile in DOOR_STATES:
            self.doors[(x, y)] = DOOR_STATES[tile]
        else:
            self.doors.pop((x, y), None)

    def set_flag(self, x: int, y: int, flag: int, on: bool = True) -> None:
        for journal in self._journals:
            journal.record(x, y)
        if on:
            self.flags[x][y] |= flag
        else:
            self.flags[x][y] &= ~flag

    def has_flag(self, x: int, y: int, flag: int) -> bool:
        return bool(self.flags[x][y] & flag)

    @contextmanager
    def journal(self) -> Iterator[Journal]:
        """Record pre-images of every write until the block exits.

        The caller decides whether to keep the edit; ``journal.rollback()``
        restores the grid exactly. Journals nest.
        """
        j = Journal(self)
        self._journals.append(j)
        try:
            yield j
        finally:
            self._journals.remove(j)

    # ------------------------------------------------------------------ rooms / stairs
    def add_room(self, x: int, y: int, w: int, h: int, kind: str = "normal", carve: bool = True) -> Room:
        room = Room(len(self.rooms), x, y, w, h, kind)
        for ix, iy in room.cells():
            self.room_ids[ix][iy] = room.id
            if carve:
                self.set(ix, iy, FLOOR)
        self.rooms.append(room)
        return room

    def place_stairs(self, entrance: Coord, exit: Coord) -> None:
        for pos in (entrance, exit):
            if not self.in_bounds(*pos):
                raise ValueError(f"stairs position {pos} is off-grid")
        if self.entrance and self.get(*self.entrance) == STAIRS_UP:
            self.set(*self.entrance, FLOOR)
        if self.exit and self.get(*self.exit) == STAIRS_DOWN:
            self.set(*self.exit, FLOOR)
        self.entrance = tuple(entrance)
        self.exit = tuple(exit)
        self.set(*self.entrance, STAIRS_UP)
        if self.exit != self.entrance:
            self.set(*self.exit, STAIRS_DOWN)

    def freeze(self) -> "Grid":
        self.frozen = True
        return self

    # ------------------------------------------------------------------ gameplay queries
    def is_passable(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and is_passable(self.tiles[x][y])

    def tile_at(self, coord: Coord) -> Optional[str]:
        x, y = coord
        return self.tiles[x][y] if self.in_bounds(x, y) else None

    def room_at(self, coord: Coord) -> Optional[Room]:
        x, y = coord
        if not self.in_bounds(x, y):
            return None
        rid = self.room_ids[x][y]
        return self.rooms[rid] if rid >= 0 else None

    def shortest_path(self, a: Coord, b: Coord, weighted: bool = False) -> Optional[List[Coord]]:
        from .connectivity import shortest_path
        from .tiles import door_cost

        return shortest_path(self, a, b, cost=door_cost if weighted else None)

    def mark_discovered(self, x: int, y: int) -> None:
        if self.in_bounds(x, y):
            self.flags[x][y] |= DISCOVERED

    # ------------------------------------------------------------------ door state
    # Door changes never add or remove tiles, so they are allowed after freeze.
    def _swap_door(self, x: int, y: int, expected: Sequence[str], new: str) -> bool:
        if not self.in_bounds(x, y) or self.tiles[x][y] not in expected:
            return False
        for journal in self._journals:
            journal.record(x, y)
        self._write(x, y, new)
        return True

    def open_door(self, x: int, y: int) -> bool:
        return self._swap_door(x, y, (DOOR_CLOSED,), DOOR_OPEN)

    def close_door(self, x: int, y: int) -> bool:
        return self._swap_door(x, y, (DOOR_OPEN,), DOOR_CLOSED)

    def lock_door(self, x: int, y: int) -> bool:
        return self._swap_door(x, y, (DOOR_OPEN, DOOR_CLOSED), DOOR_LOCKED)

    def unlock_door(self, x: int, y: int) -> bool:
        return self._swap_door(x, y, (DOOR_LOCKED,), DOOR_CLOSED)

    def reveal_secret(self, x: int, y: int) -> bool:
        return self._swap_door(x, y, (DOOR_SECRET,), DOOR_CLOSED)

    # ------------------------------------------------------------------ output
    def to_ascii(self) -> List[str]:
        return ["".join(self.tiles[x][y] for x in range(self.width)) for y in range(self.height)]

    def fingerprint(self) -> str:
        h = hashlib.sha256()
        h.update("\n".join(self.to_ascii()).encode("utf-8"))
        for pos in sorted(self.doors):
            h.update(f"|{pos[0]},{pos[1]}={self.doors[pos]}".encode("utf-8"))
        h.update(repr(self.flags).encode("utf-8"))
        return h.hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "kind": self.kind,
            "tiles": self.to_ascii(),
            "entrance": list(self.entrance) if self.entrance else None,
            "exit": list(self.exit) if self.exit else None,
            "doors": [{"x": x, "y": y, "state": self.doors[(x, y)]} for x, y in sorted(self.doors)],
            "rooms": [r.to_dict() for r in self.rooms],
            "regions": {str(rid): style for rid, style in sorted(self.region_styles.items())},
        }

    @classmethod
    def from_ascii(cls, rows: Sequence[str], *, diagonal: bool = True) -> "Grid":
        """Build a grid from row-major text; ``<`` and ``>`` become the stairs."""
        if not rows or any(len(r) != len(rows[0]) for r in rows):
            raise ValueError("rows must be non-empty and equally long")
        grid = cls(len(rows[0]), len(rows), diagonal=diagonal)
        entrance = exit = None
        for y, row in enumerate(rows):
            for x, ch in enumerate(row):
                if ch not in ALL_TILES:
                    raise ValueError(f"unknown tile {ch!r} at {(x, y)}")
                grid._write(x, y, ch)
                if ch == STAIRS_UP:
                    entrance = (x, y)
                elif ch == STAIRS_DOWN:
                    exit = (x, y)
        grid.entrance, grid.exit = entrance, exit
        return grid
