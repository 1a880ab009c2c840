import random
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from .config import GenerationConfig


@dataclass
class Room:
    id: int
    x: int
    y: int
    w: int
    h: int
    kind: str = "normal"
    on_spine: bool = False

    def cells(self) -> Iterator[Tuple[int, int]]:
        for ix in range(self.x, self.x + self.w):
            for iy in range(self.y, self.y + self.h):
                yield ix, iy

    def ring(self) -> Iterator[Tuple[int, int]]:
        """Wall ring tiles surrounding the interior, corners included."""
        for ix in range(self.x - 1, self.x + self.w + 1):
            yield ix, self.y - 1
            yield ix, self.y + self.h
        for iy in range(self.y, self.y + self.h):
            yield self.x - 1, iy
            yield self.x + self.w, iy

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.w and self.y <= y < self.y + self.h

    @property
    def center(self) -> Tuple[int, int]:
        return (self.x + self.w // 2, self.y + self.h // 2)

    @property
    def special(self) -> bool:
        return self.kind != "normal"

    def to_dict(self):
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "kind": self.kind,
            "on_spine": self.on_spine,
        }


def place_rooms(grid, config: GenerationConfig, rng=None, *, pad: int = 2) -> List[Room]:
    """Place non-overlapping rooms onto the grid and register them.

    Rooms keep ``pad`` tiles of rock between each other so every room keeps
    its own wall ring. Returns the rooms placed, in placement order.
    """
    if rng is None:
        rng = random
    target = rng.randint(config.min_rooms, config.max_rooms)
    attempts = target * 15
    rooms: List[Room] = []
    while len(rooms) < target and attempts > 0:
        attempts -= 1
        w = rng.randint(config.min_room_size, config.max_room_size)
        h = rng.randint(config.min_room_size, max(config.min_room_size, config.max_room_size - 2))
        if w > grid.width - 4 or h > grid.height - 4:
            continue
        x = rng.randint(2, grid.width - w - 2)
        y = rng.randint(2, grid.height - h - 2)
        if _room_overlaps((x, y, w, h), rooms, pad):
            continue
        rooms.append(grid.add_room(x, y, w, h))
    return rooms


def _room_overlaps(rect, existing: List[Room], pad: int) -> bool:
    x, y, w, h = rect
    for r in existing:
        if x - pad < r.x + r.w and x + w + pad > r.x and y - pad < r.y + r.h and y + h + pad > r.y:
            return True
    return False
