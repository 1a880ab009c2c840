"""Base layout generators.

Checks per kind:
1. The candidate validates (stairs on passable tiles with a path between).
2. The outer border is never carved.
3. Same seed gives the same layout.
"""

from __future__ import annotations

import pytest

from undercroft.dungeon.generator import (
    GENERATOR_KINDS,
    build_candidate,
    ensure_stairs_connected,
    kind_for_depth,
    place_stairs,
)
from undercroft.dungeon.grid import Grid
from undercroft.dungeon.selection import validate_candidate
from undercroft.dungeon.tiles import WALL
from undercroft.dungeon.tunnels import spanning_edges

from dungeon_test_utils import stairs_linked


def border(grid):
    for x in range(grid.width):
        yield x, 0
        yield x, grid.height - 1
    for y in range(grid.height):
        yield 0, y
        yield grid.width - 1, y


@pytest.mark.parametrize("kind", GENERATOR_KINDS)
def test_every_kind_builds_a_valid_candidate(kind, small_config):
    for seed in (1, 2, 3):
        g = build_candidate(kind, seed, 48, 32, small_config)
        assert g.kind == kind
        assert validate_candidate(g) is None, f"{kind} seed {seed}"
        assert stairs_linked(g)
        assert all(g.tiles[x][y] == WALL for x, y in border(g))


@pytest.mark.parametrize("kind", GENERATOR_KINDS)
def test_generators_are_deterministic(kind, small_config):
    a = build_candidate(kind, 77, 48, 32, small_config)
    b = build_candidate(kind, 77, 48, 32, small_config)
    assert a.fingerprint() == b.fingerprint()
    assert a.doors == b.doors


def test_unknown_kind_raises(small_config):
    with pytest.raises(ValueError):
        build_candidate("volcano", 1, 48, 32, small_config)


def test_small_grids_fall_back_for_lattice_kinds(small_config):
    g = build_candidate("catacombs", 5, 20, 15, small_config)
    assert validate_candidate(g) is None
    g = build_candidate("rogue_grid", 5, 20, 15, small_config)
    assert validate_candidate(g) is None


def test_themed_depths_and_roll_is_stable():
    assert kind_for_depth(1, 2) == "mines"
    assert kind_for_depth(99, 4) == "cavern"
    assert kind_for_depth(5, 8) == "catacombs"
    assert kind_for_depth(123, 5) == kind_for_depth(123, 5)
    for seed in range(40):
        assert kind_for_depth(seed, 1) != "maze"
        assert kind_for_depth(seed, 1) in GENERATOR_KINDS


def test_repair_corridor_joins_split_layout():
    g = Grid(30, 10)
    g.add_room(2, 2, 4, 4)
    g.add_room(22, 2, 4, 4)
    place_stairs(g, None)
    assert g.entrance == (4, 4) and g.exit == (24, 4)
    assert not stairs_linked(g)
    assert ensure_stairs_connected(g)
    assert stairs_linked(g)
    assert g.metrics["repairs"] == 1
    assert g.tiles[0][4] == WALL


def test_spanning_tree_connects_every_point():
    import random

    points = [(2, 2), (10, 3), (30, 4), (5, 20), (25, 22), (40, 40)]
    tree, extra = spanning_edges(points, random.Random(3), loop_factor=0.0)
    assert len(tree) == len(points) - 1
    assert extra == []
    parent = list(range(len(points)))

    def find(i):
        while parent[i] != i:
            i = parent[i]
        return i

    for a, b in tree:
        parent[find(a)] = find(b)
    assert len({find(i) for i in range(len(points))}) == 1
