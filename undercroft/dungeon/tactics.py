"""Tactical passes: break up sniper lanes and wide-open floors."""

from __future__ import annotations

from typing import Dict, List, NamedTuple

from .connectivity import critical_path, multi_source_field, passable
from .grid import Coord, Grid
from .mutation import MutationResult, PassContext, protected_tiles, try_commit
from .tiles import BOULDER, FLOOR, FLOORLIKE, PILLAR, WALL, lane_clear


class Lane(NamedTuple):
    length: int
    horizontal: bool
    x: int
    y: int

    def tile(self, offset: int) -> Coord:
        return (self.x + offset, self.y) if self.horizontal else (self.x, self.y + offset)


def find_lanes(grid: Grid, min_length: int = 2) -> List[Lane]:
    """Maximal straight runs of projectile-clear tiles, longest first."""
    lanes: List[Lane] = []
    for y in range(grid.height):
        run = 0
        for x in range(grid.width + 1):
            if x < grid.width and lane_clear(grid.tiles[x][y]):
                run += 1
                continue
            if run >= min_length:
                lanes.append(Lane(run, True, x - run, y))
            run = 0
    for x in range(grid.width):
        run = 0
        for y in range(grid.height + 1):
            if y < grid.height and lane_clear(grid.tiles[x][y]):
                run += 1
                continue
            if run >= min_length:
                lanes.append(Lane(run, False, x, y - run))
            run = 0
    lanes.sort(key=lambda lane: (-lane.length, not lane.horizontal, lane.x, lane.y))
    return lanes


def longest_lane(grid: Grid) -> int:
    lanes = find_lanes(grid)
    return lanes[0].length if lanes else 0


def _bypass(lane: Lane, mid: Coord, side: int) -> List[Coord]:
    mx, my = mid
    if lane.horizontal:
        return [(mx - 1, my + side), (mx, my + side), (mx + 1, my + side)]
    return [(mx + side, my - 1), (mx + side, my), (mx + side, my + 1)]


def dampen_lanes(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    threshold = ctx.config.lane_threshold
    protected = protected_tiles(grid, stairs_radius=2, door_radius=1)
    before = longest_lane(grid)
    stats = {"longest_before": before, "chicanes": 0, "covers": 0}
    rounds = 0
    while rounds < 4:
        long_lanes = find_lanes(grid, threshold + 1)[:4]
        if not long_lanes:
            break
        broke = False
        for lane in long_lanes:
            for offset in (0, -2, 2, -4, 4):
                step = lane.length // 2 + offset
                if not 0 < step < lane.length - 1:
                    continue
                mx, my = lane.tile(step)
                if (mx, my) in protected or grid.tiles[mx][my] != FLOOR:
                    continue
                sides = [-1, 1]
                rng.shuffle(sides)
                for side in sides:
                    path = _bypass(lane, (mx, my), side)
                    if any(
                        not grid.in_interior(*p) or p in protected or grid.tiles[p[0]][p[1]] not in FLOORLIKE | {WALL}
                        for p in path
                    ):
                        continue

                    def chicane(g: Grid, mid=(mx, my), path=path):
                        g.set(mid[0], mid[1], BOULDER)
                        for px, py in path:
                            if g.tiles[px][py] == WALL:
                                g.set(px, py, FLOOR)

                    if try_commit(grid, chicane):
                        stats["chicanes"] += 1
                        broke = True
                        break
                if not broke and try_commit(grid, lambda g, x=mx, y=my: g.set(x, y, BOULDER)):
                    stats["covers"] += 1
                    broke = True
                if broke:
                    break
            if broke:
                break
        if not broke:
            break
        rounds += 1
    stats["longest_after"] = longest_lane(grid)
    return MutationResult(stats["chicanes"] + stats["covers"] > 0, stats)


def clearance_field(grid: Grid) -> Dict[Coord, int]:
    """Steps from each passable tile to the nearest obstacle."""
    obstacles = [(x, y) for x, y in grid.coords() if not passable(grid, x, y)]
    field = multi_source_field(grid, obstacles, diagonal=True)
    return {p: d for p, d in field.items() if d > 0}


def _local_max(field: Dict[Coord, int], p: Coord) -> bool:
    x, y = p
    v = field[p]
    return all(field.get((x + dx, y + dy), 0) <= v for dx in (-1, 0, 1) for dy in (-1, 0, 1))


def break_up_clearance(grid: Grid, rng, ctx: PassContext) -> MutationResult:
    threshold = ctx.config.clearance_threshold
    protected = protected_tiles(grid)
    field = clearance_field(grid)
    stats = {"clearance_before": max(field.values(), default=0), "pillars": 0, "boulders": 0}
    budget = max(2, min(8, grid.width * grid.height // 700))
    tried = set()
    placed = 0
    while placed < budget:
        path = set(critical_path(grid) or ())
        peaks = sorted(
            (p for p, v in field.items()
             if v >= threshold and p not in tried and p not in path and p not in protected
             and grid.tiles[p[0]][p[1]] == FLOOR and _local_max(field, p)),
            key=lambda p: (-field[p], p),
        )
        if not peaks:
            break
        x, y = peaks[0]
        tried.add((x, y))
        tile = PILLAR if rng.random() < 0.6 else BOULDER
        if try_commit(grid, lambda g: g.set(x, y, tile)):
            placed += 1
            stats["pillars" if tile == PILLAR else "boulders"] += 1
            field = clearance_field(grid)
    stats["clearance_after"] = max(field.values(), default=0)
    return MutationResult(placed > 0, stats)
