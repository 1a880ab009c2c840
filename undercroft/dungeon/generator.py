"""Base layout generators.

Each generator kind is a plain function ``(width, height, rng, config) ->
Grid`` registered in :data:`GENERATORS`. :func:`build_candidate` is the
single entry point: it dispatches on the kind, places the stairs and then
checks the stairs path with the oracle, carving a repair corridor between
the two nearest components if the layout left them apart.

Kinds:
  rooms       room-and-corridor; MST plus loop edges tuned by ``loop_factor``
  cavern      cellular automaton; surviving pockets joined by one spanning tree
  maze        labyrinth (backtracker or Wilson) with a few chambers and breaks
  mines       small chambers joined by wandering, biased tunnels
  catacombs   lattice of crypts linked by a randomised spanning tree
  rogue_grid  classic 3x3 room grid
"""

from __future__ import annotations

import math
import random
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .config import GenerationConfig
from .connectivity import ORTHO, cheapest_dig, multi_source_field, reachable, shortest_path
from .grid import Coord, Grid
from .rooms import place_rooms
from .rng import make_rng
from .tiles import FLOOR, WALL, is_passable
from .tunnels import carve, carve_line, carve_walk, place_doorways, spanning_edges


def generate_rooms(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    grid = Grid(width, height, diagonal=config.diagonal)
    rooms = place_rooms(grid, config, rng)
    if not rooms:
        w, h = max(3, width // 3), max(3, height // 3)
        rooms = [grid.add_room((width - w) // 2, (height - h) // 2, w, h)]
    centers = [r.center for r in rooms]
    tree, extra = spanning_edges(centers, rng, config.loop_factor)
    for a, b in tree + extra:
        if rng.random() < 0.55:
            carve_line(grid, centers[a], centers[b], rng.random() < 0.5)
        else:
            carve_walk(grid, centers[a], centers[b], rng, wander=0.25)
    place_doorways(grid, rng, config.door_chance)
    return grid


def generate_cavern(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    grid = Grid(width, height, diagonal=config.diagonal)
    rock = [[True] * height for _ in range(width)]
    for x in range(1, width - 1):
        for y in range(1, height - 1):
            rock[x][y] = rng.random() < 0.45
    for _ in range(4):
        nxt = [col[:] for col in rock]
        for x in range(1, width - 1):
            for y in range(1, height - 1):
                walls = sum(
                    rock[x + dx][y + dy] for dx in (-1, 0, 1) for dy in (-1, 0, 1) if dx or dy
                )
                if walls >= 5:
                    nxt[x][y] = True
                elif walls <= 3:
                    nxt[x][y] = False
        rock = nxt
    for x in range(1, width - 1):
        for y in range(1, height - 1):
            if not rock[x][y]:
                grid.set(x, y, FLOOR)

    pockets = []
    seen = set()
    for pos in grid.passable_coords():
        if pos in seen:
            continue
        comp = reachable(grid, pos, diagonal=False)
        seen |= comp
        pockets.append(sorted(comp))
    keep = []
    for comp in pockets:
        if len(comp) < 8:
            for x, y in comp:
                grid.set(x, y, WALL)
        else:
            keep.append(comp)
    if not keep:
        cx, cy = width // 2, height // 2
        rx, ry = max(2, width // 5), max(2, height // 5)
        for x in range(1, width - 1):
            for y in range(1, height - 1):
                if ((x - cx) / rx) ** 2 + ((y - cy) / ry) ** 2 <= 1.0:
                    grid.set(x, y, FLOOR)
        return grid
    keep.sort(key=lambda c: (-len(c), c[0]))
    anchors = []
    for comp in keep:
        mx = sum(p[0] for p in comp) / len(comp)
        my = sum(p[1] for p in comp) / len(comp)
        anchors.append(min(comp, key=lambda p: ((p[0] - mx) ** 2 + (p[1] - my) ** 2, p)))
    tree, _ = spanning_edges(anchors, rng, 0.0)
    for a, b in tree:
        carve_walk(grid, anchors[a], anchors[b], rng, wander=0.4)
    grid.metrics["cavern_pockets"] = len(keep)
    return grid


def _maze_cells(width: int, height: int) -> List[Coord]:
    return [(x, y) for x in range(1, width - 1, 2) for y in range(1, height - 1, 2)]


def _cell_neighbors(cell: Coord, cells: set) -> List[Coord]:
    x, y = cell
    return [(x + dx * 2, y + dy * 2) for dx, dy in ORTHO if (x + dx * 2, y + dy * 2) in cells]


def _open_between(grid: Grid, a: Coord, b: Coord) -> None:
    grid.set(a[0], a[1], FLOOR)
    grid.set((a[0] + b[0]) // 2, (a[1] + b[1]) // 2, FLOOR)
    grid.set(b[0], b[1], FLOOR)


def generate_maze(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    grid = Grid(width, height, diagonal=config.diagonal)
    cells = _maze_cells(width, height)
    cell_set = set(cells)
    algorithm = "backtracker" if rng.random() < 0.6 else "wilson"
    start = rng.choice(cells)
    grid.set(start[0], start[1], FLOOR)
    if algorithm == "backtracker":
        visited = {start}
        stack = [start]
        while stack:
            cur = stack[-1]
            options = [n for n in _cell_neighbors(cur, cell_set) if n not in visited]
            if not options:
                stack.pop()
                continue
            nxt = rng.choice(options)
            visited.add(nxt)
            _open_between(grid, cur, nxt)
            stack.append(nxt)
    else:
        in_maze = {start}
        order = cells[:]
        rng.shuffle(order)
        for cell in order:
            if cell in in_maze:
                continue
            step = {}
            cur = cell
            while cur not in in_maze:
                # overwriting the step erases any loop the walk made
                step[cur] = rng.choice(_cell_neighbors(cur, cell_set))
                cur = step[cur]
            cur = cell
            while cur not in in_maze:
                in_maze.add(cur)
                _open_between(grid, cur, step[cur])
                cur = step[cur]
    grid.metrics["maze_algorithm"] = algorithm

    chambers = []
    for _ in range(rng.randint(1, 3)):
        w, h = rng.choice((3, 5)), rng.choice((3, 5))
        if w > width - 4 or h > height - 4:
            continue
        x = rng.randrange(1, width - w - 1, 2)
        y = rng.randrange(1, height - h - 1, 2)
        if any(x - 2 < c.x + c.w and x + w + 2 > c.x and y - 2 < c.y + c.h and y + h + 2 > c.y for c in chambers):
            continue
        chambers.append(grid.add_room(x, y, w, h))

    breaks = []
    for x in range(1, width - 1):
        for y in range(1, height - 1):
            if grid.tiles[x][y] != WALL or (x % 2) == (y % 2):
                continue
            if x % 2 == 0:
                a, b = (x - 1, y), (x + 1, y)
            else:
                a, b = (x, y - 1), (x, y + 1)
            if grid.in_interior(*a) and grid.in_interior(*b) and grid.tiles[a[0]][a[1]] == FLOOR == grid.tiles[b[0]][b[1]]:
                breaks.append((x, y))
    for x, y in rng.sample(breaks, min(len(breaks), max(1, len(cells) // 60))):
        grid.set(x, y, FLOOR)
    return grid


def generate_mines(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    grid = Grid(width, height, diagonal=config.diagonal)
    chamber_cfg = replace(config, min_room_size=3, max_room_size=6, min_rooms=6, max_rooms=12)
    rooms = place_rooms(grid, chamber_cfg, rng)
    if not rooms:
        rooms = [grid.add_room(width // 2 - 1, height // 2 - 1, 3, 3)]
    centers = [r.center for r in rooms]
    tree, extra = spanning_edges(centers, rng, 0.08)
    for a, b in tree + extra:
        carve_walk(grid, centers[a], centers[b], rng, wander=0.55)
    for _ in range(rng.randint(2, 4)):
        x, y = rng.choice(centers)
        dx, dy = rng.choice(ORTHO)
        for _ in range(rng.randint(6, 14)):
            if rng.random() < 0.3:
                dx, dy = rng.choice(ORTHO)
            if not grid.in_interior(x + dx, y + dy):
                break
            x, y = x + dx, y + dy
            carve(grid, x, y)
    return grid


def generate_catacombs(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    step = 8
    cols, rows = (width - 2) // step, (height - 2) // step
    if cols < 2 or rows < 2:
        return generate_rooms(width, height, rng, config)
    grid = Grid(width, height, diagonal=config.diagonal)
    ox = (width - cols * step) // 2
    oy = (height - rows * step) // 2
    anchors: Dict[Coord, Coord] = {}
    for i in range(cols):
        for j in range(rows):
            w, h = rng.randint(3, 5), rng.randint(3, 5)
            x = ox + i * step + 1 + rng.randint(0, step - 2 - w)
            y = oy + j * step + 1 + rng.randint(0, step - 2 - h)
            anchors[(i, j)] = grid.add_room(x, y, w, h).center

    visited = {(0, 0)}
    stack = [(0, 0)]
    links = []
    while stack:
        cur = stack[-1]
        options = [
            (cur[0] + dx, cur[1] + dy)
            for dx, dy in ORTHO
            if (cur[0] + dx, cur[1] + dy) in anchors and (cur[0] + dx, cur[1] + dy) not in visited
        ]
        if not options:
            stack.pop()
            continue
        nxt = rng.choice(options)
        visited.add(nxt)
        links.append((cur, nxt))
        stack.append(nxt)
    for i in range(cols):
        for j in range(rows):
            for nxt in ((i + 1, j), (i, j + 1)):
                if nxt in anchors and ((i, j), nxt) not in links and (nxt, (i, j)) not in links:
                    if rng.random() < 0.1:
                        links.append(((i, j), nxt))
    for a, b in links:
        carve_line(grid, anchors[a], anchors[b], a[1] == b[1])
    place_doorways(grid, rng, min(1.0, config.door_chance + 0.2))
    return grid


def generate_rogue_grid(width: int, height: int, rng, config: GenerationConfig) -> Grid:
    grid = Grid(width, height, diagonal=config.diagonal)
    cw, ch = (width - 2) // 3, (height - 2) // 3
    if cw < 5 or ch < 5:
        return generate_rooms(width, height, rng, config)
    anchors: Dict[Coord, Coord] = {}
    for i in range(3):
        for j in range(3):
            left, top = 1 + i * cw, 1 + j * ch
            if rng.random() < 0.15:
                x = left + rng.randint(1, cw - 2)
                y = top + rng.randint(1, ch - 2)
                carve(grid, x, y)
                anchors[(i, j)] = (x, y)
                continue
            w = rng.randint(3, max(3, cw - 3))
            h = rng.randint(3, max(3, ch - 3))
            x = left + 1 + rng.randint(0, cw - 2 - w)
            y = top + 1 + rng.randint(0, ch - 2 - h)
            anchors[(i, j)] = grid.add_room(x, y, w, h).center

    cells = sorted(anchors)
    visited = {rng.choice(cells)}
    links = []
    while len(visited) < len(cells):
        frontier = sorted(
            (a, (a[0] + dx, a[1] + dy))
            for a in visited
            for dx, dy in ORTHO
            if (a[0] + dx, a[1] + dy) in anchors and (a[0] + dx, a[1] + dy) not in visited
        )
        a, b = rng.choice(frontier)
        visited.add(b)
        links.append((a, b))
    spare = sorted(
        (a, (a[0] + dx, a[1] + dy))
        for a in cells
        for dx, dy in ((1, 0), (0, 1))
        if (a[0] + dx, a[1] + dy) in anchors and (a, (a[0] + dx, a[1] + dy)) not in links and ((a[0] + dx, a[1] + dy), a) not in links
    )
    links.extend(rng.sample(spare, min(len(spare), rng.randint(1, 2))))
    for a, b in links:
        carve_line(grid, anchors[a], anchors[b], a[1] == b[1])
    place_doorways(grid, rng, config.door_chance)
    return grid


GENERATORS: Dict[str, Callable[..., Grid]] = {
    "rooms": generate_rooms,
    "cavern": generate_cavern,
    "maze": generate_maze,
    "mines": generate_mines,
    "catacombs": generate_catacombs,
    "rogue_grid": generate_rogue_grid,
}
GENERATOR_KINDS = tuple(GENERATORS)

_THEMED_DEPTHS = {2: "mines", 4: "cavern", 7: "mines", 8: "catacombs"}
_KIND_WEIGHTS = (("rooms", 5), ("rogue_grid", 2), ("catacombs", 2), ("cavern", 2), ("mines", 2), ("maze", 1))


def kind_for_depth(run_seed: int, depth: int) -> str:
    """Pick the generator kind for a floor: themed depths first, then a seeded roll."""
    if depth in _THEMED_DEPTHS:
        return _THEMED_DEPTHS[depth]
    table = [(k, w) for k, w in _KIND_WEIGHTS if k != "maze" or depth >= 3]
    roll = make_rng(run_seed, depth, "kind").uniform(0, sum(w for _, w in table))
    for kind, weight in table:
        roll -= weight
        if roll < 0:
            return kind
    return table[-1][0]


def place_stairs(grid: Grid, rng) -> None:
    rooms = grid.rooms
    if len(rooms) >= 2:
        entrance = rooms[0].center
        ex, ey = entrance
        far = max(rooms[1:], key=lambda r: (math.hypot(r.center[0] - ex, r.center[1] - ey), -r.id))
        grid.place_stairs(entrance, far.center)
        return
    floors = grid.passable_coords()
    if not floors:
        return
    entrance = rng.choice(floors)
    field = multi_source_field(grid, [entrance], diagonal=False)
    exit = max(sorted(field), key=lambda p: field[p])
    grid.place_stairs(entrance, exit)


def ensure_stairs_connected(grid: Grid) -> bool:
    """Carve a repair corridor if the stairs ended up in different components.

    The dig starts from every tile of the entrance component and stops at
    the first tile of the exit component; open floor costs 1 and rock 3, so
    the repair reuses corridors where it can.
    """
    if grid.entrance is None or grid.exit is None:
        return False
    if shortest_path(grid, grid.entrance, grid.exit, diagonal=False) is not None:
        return True
    start = reachable(grid, grid.entrance, diagonal=False)
    goal = reachable(grid, grid.exit, diagonal=False)

    def cost(x: int, y: int) -> Optional[int]:
        if not grid.in_interior(x, y):
            return None
        tile = grid.tiles[x][y]
        if is_passable(tile):
            return 1
        return 3 if tile == WALL else None

    path = cheapest_dig(grid, start, lambda p: p in goal, cost)
    if path is None:
        return False
    for x, y in path:
        carve(grid, x, y)
    grid.metrics["repairs"] = grid.metrics.get("repairs", 0) + 1
    return shortest_path(grid, grid.entrance, grid.exit, diagonal=False) is not None


def build_candidate(kind: str, seed: int, width: int, height: int, config: GenerationConfig) -> Grid:
    if kind not in GENERATORS:
        raise ValueError(f"unknown generator kind {kind!r}; expected one of {', '.join(GENERATOR_KINDS)}")
    rng = random.Random(seed)
    grid = GENERATORS[kind](width, height, rng, config)
    grid.kind = kind
    grid.seed = seed
    place_stairs(grid, rng)
    ensure_stairs_connected(grid)
    return grid
