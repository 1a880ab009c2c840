"""Connectivity oracle tests on hand-built grids."""

from undercroft.dungeon.connectivity import (
    avoiding,
    bridge_cut_sizes,
    bridge_edges,
    cheapest_dig,
    critical_path,
    edge_key,
    multi_source_field,
    passable_with_keys,
    reachable,
    shortest_path,
    stairs_connected,
    two_edge_components,
)
from undercroft.dungeon.generator import ensure_stairs_connected

from dungeon_test_utils import bfs_reachable, corner_cuts, corridor_strip, grid_from_rows, two_rooms_one_corridor


def test_reachable_matches_independent_bfs():
    g = two_rooms_one_corridor()
    for diagonal in (False, True):
        assert reachable(g, g.entrance, diagonal=diagonal) == bfs_reachable(g, g.entrance, diagonal=diagonal)


def test_unusable_endpoints_give_empty_results():
    g = two_rooms_one_corridor()
    assert reachable(g, (0, 0)) == set()
    assert reachable(g, None) == set()
    assert shortest_path(g, (0, 0), g.exit) is None
    assert shortest_path(g, g.entrance, g.entrance) == [g.entrance]


def test_diagonal_step_needs_an_open_corner():
    g = grid_from_rows(
        "#####",
        "#<###",
        "##>##",
        "#####",
    )
    assert shortest_path(g, g.entrance, g.exit) is None
    assert not stairs_connected(g)
    g.set(2, 1, ".")
    path = shortest_path(g, g.entrance, g.exit)
    assert path == [(1, 1), (2, 2)]
    assert corner_cuts(g, path) == []


def test_four_way_grid_never_moves_diagonally():
    g = grid_from_rows(
        "#####",
        "#<..#",
        "#..>#",
        "#####",
        diagonal=False,
    )
    path = critical_path(g)
    assert len(path) == 4
    for (ax, ay), (bx, by) in zip(path, path[1:]):
        assert abs(ax - bx) + abs(ay - by) == 1


def test_locked_and_secret_doors():
    g = grid_from_rows(
        "#######",
        "#<.L.>#",
        "#######",
    )
    assert critical_path(g) is None
    assert shortest_path(g, g.entrance, g.exit, passable=passable_with_keys) is not None
    g.set(3, 1, "S")
    assert shortest_path(g, g.entrance, g.exit, passable=passable_with_keys) is None
    assert g.reveal_secret(3, 1)
    assert critical_path(g) is not None


def test_weighted_path_prefers_open_floor_over_doors():
    g = grid_from_rows(
        "#######",
        "#<.+.>#",
        "#.....#",
        "#######",
    )
    plain = g.shortest_path(g.entrance, g.exit)
    weighted = g.shortest_path(g.entrance, g.exit, weighted=True)
    assert (3, 1) in plain
    assert (3, 1) not in weighted


def test_corridor_edges_are_bridges():
    g = two_rooms_one_corridor()
    bridges = bridge_edges(g, diagonal=False)
    expected = {edge_key((x, 3), (x + 1, 3)) for x in range(5, 13)}
    assert bridges == expected


def test_diagonal_corners_shorten_the_bridge_chain():
    g = two_rooms_one_corridor()
    bridges = bridge_edges(g, diagonal=True)
    # the first corridor tile also touches the room diagonally, which closes a triangle
    assert bridges == {edge_key((x, 3), (x + 1, 3)) for x in range(6, 12)}


def test_bridge_edges_is_idempotent():
    g = two_rooms_one_corridor()
    assert bridge_edges(g) == bridge_edges(g)
    before = g.fingerprint()
    bridge_edges(g)
    assert g.fingerprint() == before


def test_two_edge_components_and_cut_sizes():
    g = two_rooms_one_corridor()
    comp = two_edge_components(g, diagonal=False)
    assert comp[g.entrance] != comp[g.exit]
    assert comp[(1, 1)] == comp[g.entrance]
    sizes = bridge_cut_sizes(g, diagonal=False)
    assert sizes[edge_key((5, 3), (6, 3))] == 25
    assert sizes[edge_key((8, 3), (9, 3))] == 28


def test_avoiding_blocks_the_only_route():
    g = corridor_strip(12)
    path = critical_path(g)
    assert shortest_path(g, g.entrance, g.exit, passable=avoiding(path[1:-1])) is None


def test_multi_source_field_distances():
    g = corridor_strip(12)
    field = multi_source_field(g, [g.entrance])
    assert field[g.entrance] == 0
    assert field[g.exit] == 9
    limited = multi_source_field(g, [g.entrance], limit=3)
    assert max(limited.values()) == 3


def test_cheapest_dig_walks_through_rock():
    g = grid_from_rows(
        "#########",
        "#<#####>#",
        "#########",
    )

    def cost(x, y):
        return 1 if g.in_interior(x, y) else None

    path = cheapest_dig(g, [g.entrance], lambda p: p == g.exit, cost, target=g.exit)
    assert path[0] == g.entrance and path[-1] == g.exit
    assert len(path) == 7
    assert all(g.in_interior(*p) for p in path)


def test_cheapest_dig_to_a_goal_set_takes_the_cheapest_tile():
    g = grid_from_rows(
        "###########",
        "#.##<#...>#",
        "###########",
    )
    goal = {(1, 1), (6, 1), (7, 1), (8, 1), (9, 1)}

    def cost(x, y):
        if not g.in_interior(x, y):
            return None
        return 3 if g.tiles[x][y] == "#" else 1

    path = cheapest_dig(g, [g.entrance], lambda p: p in goal, cost)
    assert path == [(4, 1), (5, 1), (6, 1)]


def test_stairs_repair_digs_toward_the_nearest_part_of_the_exit_side():
    # the exit component reaches back west of the entrance; the cheap dig is
    # one rock tile west, not the two toward the exit itself
    g = grid_from_rows(
        "############",
        "#.#<##....>#",
        "#.########.#",
        "#.########.#",
        "#..........#",
        "############",
    )
    assert shortest_path(g, g.entrance, g.exit, diagonal=False) is None
    assert ensure_stairs_connected(g)
    assert g.tiles[2][1] == "."
    assert g.tiles[4][1] == "#" and g.tiles[5][1] == "#"
    assert g.metrics["repairs"] == 1
    assert stairs_connected(g)
