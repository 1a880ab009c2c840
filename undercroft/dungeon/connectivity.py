"""Connectivity oracle: flood fill, shortest paths, bridges and distance fields.

Every function is a pure query over the grid passed in. Nothing is cached
between calls because passes mutate the grid between queries.

Predicates take ``(grid, x, y)``. Adjacency is 4-way, or 8-way when the
grid's movement rule allows diagonals; a diagonal step needs at least one
of its two orthogonal corner tiles to satisfy the same predicate, so no
move ever squeezes between two blockers.
"""

from __future__ import annotations

import heapq
from collections import deque
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .grid import Coord, Grid
from .tiles import PASSABLE, PASSABLE_WITH_KEYS

Edge = Tuple[Coord, Coord]
Predicate = Callable[[Grid, int, int], bool]

ORTHO = ((1, 0), (-1, 0), (0, 1), (0, -1))
DIAG = ((1, 1), (1, -1), (-1, 1), (-1, -1))


def passable(grid: Grid, x: int, y: int) -> bool:
    return grid.tiles[x][y] in PASSABLE


def passable_with_keys(grid: Grid, x: int, y: int) -> bool:
    return grid.tiles[x][y] in PASSABLE_WITH_KEYS


def avoiding(blocked: Iterable[Coord], base: Predicate = passable) -> Predicate:
    blocked = frozenset(blocked)

    def pred(grid: Grid, x: int, y: int) -> bool:
        return (x, y) not in blocked and base(grid, x, y)

    return pred


def edge_key(a: Coord, b: Coord) -> Edge:
    return (a, b) if a <= b else (b, a)


def path_edges(path: Optional[List[Coord]]) -> List[Edge]:
    if not path:
        return []
    return [edge_key(path[i], path[i + 1]) for i in range(len(path) - 1)]


def _diag(grid: Grid, diagonal: Optional[bool]) -> bool:
    return grid.diagonal if diagonal is None else diagonal


def neighbors(grid: Grid, x: int, y: int, ok: Predicate = passable, diagonal: bool = True) -> Iterator[Coord]:
    """Yield passable neighbours of (x, y) in a fixed order."""
    w, h = grid.width, grid.height
    for dx, dy in ORTHO:
        nx, ny = x + dx, y + dy
        if 0 <= nx < w and 0 <= ny < h and ok(grid, nx, ny):
            yield nx, ny
    if diagonal:
        for dx, dy in DIAG:
            nx, ny = x + dx, y + dy
            if 0 <= nx < w and 0 <= ny < h and ok(grid, nx, ny):
                if ok(grid, nx, y) or ok(grid, x, ny):
                    yield nx, ny


def _usable(grid: Grid, pos: Optional[Coord], ok: Predicate) -> bool:
    return pos is not None and grid.in_bounds(*pos) and ok(grid, *pos)


def reachable(grid: Grid, start: Optional[Coord], passable: Predicate = passable, diagonal: Optional[bool] = None) -> Set[Coord]:
    if not _usable(grid, start, passable):
        return set()
    diagonal = _diag(grid, diagonal)
    seen = {start}
    q = deque([start])
    while q:
        x, y = q.popleft()
        for nb in neighbors(grid, x, y, passable, diagonal):
            if nb not in seen:
                seen.add(nb)
                q.append(nb)
    return seen


def _unwind(parent: Dict[Coord, Optional[Coord]], goal: Coord) -> List[Coord]:
    path = [goal]
    while parent[path[-1]] is not None:
        path.append(parent[path[-1]])
    path.reverse()
    return path


def shortest_path(
    grid: Grid,
    start: Optional[Coord],
    goal: Optional[Coord],
    passable: Predicate = passable,
    cost: Optional[Callable[[str], int]] = None,
    diagonal: Optional[bool] = None,
) -> Optional[List[Coord]]:
    """Return the coordinate sequence start..goal, or None when unreachable.

    BFS when ``cost`` is None; otherwise Dijkstra where entering a tile costs
    ``cost(tile)``.
    """
    if not _usable(grid, start, passable) or not _usable(grid, goal, passable):
        return None
    start, goal = tuple(start), tuple(goal)
    if start == goal:
        return [start]
    diagonal = _diag(grid, diagonal)
    parent: Dict[Coord, Optional[Coord]] = {start: None}
    if cost is None:
        q = deque([start])
        while q:
            cur = q.popleft()
            for nb in neighbors(grid, cur[0], cur[1], passable, diagonal):
                if nb in parent:
                    continue
                parent[nb] = cur
                if nb == goal:
                    return _unwind(parent, goal)
                q.append(nb)
        return None
    dist = {start: 0}
    heap = [(0, start)]
    while heap:
        d, cur = heapq.heappop(heap)
        if d > dist[cur]:
            continue
        if cur == goal:
            return _unwind(parent, goal)
        for nb in neighbors(grid, cur[0], cur[1], passable, diagonal):
            nd = d + cost(grid.tiles[nb[0]][nb[1]])
            if nb not in dist or nd < dist[nb]:
                dist[nb] = nd
                parent[nb] = cur
                heapq.heappush(heap, (nd, nb))
    return None


def critical_path(grid: Grid, diagonal: Optional[bool] = None) -> Optional[List[Coord]]:
    return shortest_path(grid, grid.entrance, grid.exit, diagonal=diagonal)


def stairs_connected(grid: Grid) -> bool:
    # Reachability is the same under both adjacency rules, so the cheaper one is enough.
    return shortest_path(grid, grid.entrance, grid.exit, diagonal=False) is not None


def bridge_edges(grid: Grid, passable: Predicate = passable, diagonal: Optional[bool] = None) -> Set[Edge]:
    """Edges of the passable graph that lie on no cycle.

    Iterative DFS over a discovery/low-link table; roots are visited in
    coordinate order so the traversal is reproducible.
    """
    diagonal = _diag(grid, diagonal)
    disc: Dict[Coord, int] = {}
    low: Dict[Coord, int] = {}
    bridges: Set[Edge] = set()
    timer = 0
    for root in grid.coords():
        if root in disc or not passable(grid, *root):
            continue
        disc[root] = low[root] = timer
        timer += 1
        stack = [(root, None, neighbors(grid, root[0], root[1], passable, diagonal))]
        while stack:
            node, parent, it = stack[-1]
            descended = False
            for nb in it:
                if nb == parent:
                    continue
                if nb in disc:
                    if disc[nb] < low[node]:
                        low[node] = disc[nb]
                    continue
                disc[nb] = low[nb] = timer
                timer += 1
                stack.append((nb, node, neighbors(grid, nb[0], nb[1], passable, diagonal)))
                descended = True
                break
            if descended:
                continue
            stack.pop()
            if parent is not None:
                if low[node] < low[parent]:
                    low[parent] = low[node]
                if low[node] > disc[parent]:
                    bridges.add(edge_key(parent, node))
    return bridges


def two_edge_components(
    grid: Grid,
    bridges: Optional[Set[Edge]] = None,
    passable: Predicate = passable,
    diagonal: Optional[bool] = None,
) -> Dict[Coord, int]:
    """Label each passable tile with its 2-edge-connected component."""
    diagonal = _diag(grid, diagonal)
    if bridges is None:
        bridges = bridge_edges(grid, passable, diagonal)
    comp: Dict[Coord, int] = {}
    next_id = 0
    for root in grid.coords():
        if root in comp or not passable(grid, *root):
            continue
        comp[root] = next_id
        q = deque([root])
        while q:
            cur = q.popleft()
            for nb in neighbors(grid, cur[0], cur[1], passable, diagonal):
                if nb not in comp and edge_key(cur, nb) not in bridges:
                    comp[nb] = next_id
                    q.append(nb)
        next_id += 1
    return comp


def bridge_cut_sizes(
    grid: Grid,
    bridges: Optional[Set[Edge]] = None,
    passable: Predicate = passable,
    diagonal: Optional[bool] = None,
) -> Dict[Edge, int]:
    """Tiles on the smaller side of each bridge.

    Components are contracted into a bridge forest weighted by tile count;
    a bridge's cut size is min(subtree, tree total - subtree).
    """
    if bridges is None:
        bridges = bridge_edges(grid, passable, diagonal)
    comp = two_edge_components(grid, bridges, passable, diagonal)
    weight: Dict[int, int] = {}
    for c in comp.values():
        weight[c] = weight.get(c, 0) + 1
    adj: Dict[int, List[Tuple[int, Edge]]] = {c: [] for c in weight}
    for edge in sorted(bridges):
        a, b = comp[edge[0]], comp[edge[1]]
        adj[a].append((b, edge))
        adj[b].append((a, edge))

    sizes: Dict[Edge, int] = {}
    visited: Set[int] = set()
    for root in sorted(weight):
        if root in visited:
            continue
        order: List[Tuple[int, Optional[int], Optional[Edge]]] = []
        visited.add(root)
        stack = [(root, None, None)]
        while stack:
            node, par, via = stack.pop()
            order.append((node, par, via))
            for nb, edge in adj[node]:
                if nb not in visited:
                    visited.add(nb)
                    stack.append((nb, node, edge))
        subtree = {node: weight[node] for node, _, _ in order}
        for node, par, _ in reversed(order):
            if par is not None:
                subtree[par] += subtree[node]
        total = subtree[root]
        for node, par, via in order:
            if via is not None:
                sizes[via] = min(subtree[node], total - subtree[node])
    return sizes


def multi_source_field(
    grid: Grid,
    sources: Iterable[Coord],
    passable: Predicate = passable,
    cost: Optional[Callable[[str], int]] = None,
    diagonal: Optional[bool] = None,
    limit: Optional[int] = None,
) -> Dict[Coord, int]:
    """Cost to reach each tile from the nearest source, in one Dijkstra.

    Sources start at cost 0 whether or not they are passable; expansion only
    enters passable tiles. ``limit`` stops expansion beyond that cost.
    """
    diagonal = _diag(grid, diagonal)
    dist: Dict[Coord, int] = {}
    heap: List[Tuple[int, Coord]] = []
    for src in sorted(set(tuple(s) for s in sources)):
        if grid.in_bounds(*src):
            dist[src] = 0
            heap.append((0, src))
    heapq.heapify(heap)
    while heap:
        d, cur = heapq.heappop(heap)
        if d > dist[cur]:
            continue
        for nb in neighbors(grid, cur[0], cur[1], passable, diagonal):
            nd = d + (cost(grid.tiles[nb[0]][nb[1]]) if cost else 1)
            if limit is not None and nd > limit:
                continue
            if nb not in dist or nd < dist[nb]:
                dist[nb] = nd
                heapq.heappush(heap, (nd, nb))
    return dist


def cheapest_dig(
    grid: Grid,
    sources: Iterable[Coord],
    goal_test: Callable[[Coord], bool],
    step_cost: Callable[[int, int], Optional[int]],
    target: Optional[Coord] = None,
) -> Optional[List[Coord]]:
    """Cheapest 4-connected route from any source to a tile passing ``goal_test``.

    Unlike the passable-graph queries this walks through any tile for which
    ``step_cost`` returns a number, rock included, so callers can price
    digging against reusing open floor. Without ``target`` this is plain
    Dijkstra and the route is the cheapest to any goal tile. A ``target``
    biases the search by Manhattan distance to that tile, which is
    admissible only when ``target`` is the sole tile passing ``goal_test``
    and every step costs at least 1. Leave it out for goal sets.
    """
    parent: Dict[Coord, Optional[Coord]] = {}
    best: Dict[Coord, int] = {}
    heap: List[Tuple[int, int, Coord]] = []

    def h(pos: Coord) -> int:
        if target is None:
            return 0
        return abs(pos[0] - target[0]) + abs(pos[1] - target[1])

    for src in sorted(set(tuple(s) for s in sources)):
        parent[src] = None
        best[src] = 0
        heap.append((h(src), 0, src))
    heapq.heapify(heap)
    while heap:
        _, g, cur = heapq.heappop(heap)
        if g > best[cur]:
            continue
        if parent[cur] is not None and goal_test(cur):
            return _unwind(parent, cur)
        for dx, dy in ORTHO:
            nx, ny = cur[0] + dx, cur[1] + dy
            if not grid.in_bounds(nx, ny):
                continue
            step = step_cost(nx, ny)
            if step is None:
                continue
            nb = (nx, ny)
            ng = g + step
            if nb not in best or ng < best[nb]:
                best[nb] = ng
                parent[nb] = cur
                heapq.heappush(heap, (ng + h(nb), ng, nb))
    return None
