"""Special rooms, spine tagging and trap/cache placement."""

import random

import pytest

from undercroft.dungeon.features import (
    SPECIAL_KINDS,
    SPINE_KINDS,
    assign_room_kinds,
    finalize_features,
    special_room_min_sep,
    tag_spine,
)
from undercroft.dungeon.generator import build_candidate
from undercroft.dungeon.grid import Grid
from undercroft.dungeon.mutation import PassContext
from undercroft.dungeon.tiles import FLOOR, MARKER, TRAP

from dungeon_test_utils import corridor_strip


def row_of_rooms():
    """Five 5x5 rooms strung along one corridor; stairs in the outer two."""
    g = Grid(50, 12)
    for x in (2, 12, 22, 32, 42):
        g.add_room(x, 3, 5, 5)
    for x in range(1, 48):
        g.set(x, 5, FLOOR)
    g.place_stairs((4, 5), (44, 5))
    return g


@pytest.mark.parametrize("seed", [4, 9, 15])
def test_special_rooms_follow_the_rules(seed, small_config):
    g = build_candidate("rooms", seed, 48, 32, small_config)
    chosen = assign_room_kinds(g, random.Random(seed))
    assert chosen
    assert len(chosen) <= min(4, 1 + len(g.rooms) // 4)
    assert chosen[0].kind in SPINE_KINDS
    for room in chosen:
        assert room.kind in SPECIAL_KINDS
        assert not room.contains(*g.entrance) and not room.contains(*g.exit)
    sep = special_room_min_sep(g)
    assert sep is None or sep >= 10


def test_separation_limits_how_many_rooms_are_picked():
    g = row_of_rooms()
    assert len(assign_room_kinds(g, random.Random(1), min_separation=1000)) == 1
    g = row_of_rooms()
    assert len(assign_room_kinds(g, random.Random(1), min_separation=0)) == 2


def test_no_rooms_means_no_specials():
    g = corridor_strip(20)
    assert assign_room_kinds(g, random.Random(1)) == []
    assert tag_spine(g) == 0
    assert special_room_min_sep(g) is None


def test_spine_covers_every_room_on_the_stairs_path():
    g = row_of_rooms()
    assert tag_spine(g) == 5
    assert all(r.on_spine for r in g.rooms)
    g.set(9, 5, "#")
    g.set(10, 5, "#")
    # with the corridor cut there is no stairs path at all
    assert tag_spine(g) == 0


def test_traps_sit_on_the_path_away_from_stairs(small_config):
    g = Grid(40, 10)
    for x in range(1, 39):
        g.set(x, 5, FLOOR)
    for y in range(1, 5):
        g.set(20, y, FLOOR)
    g.place_stairs((1, 5), (38, 5))
    result = finalize_features(g, random.Random(3), PassContext(small_config))
    assert result.applied
    assert result.stats["traps"] == 1
    assert result.stats["caches"] == 1
    assert g.has_flag(20, 1, MARKER)
    traps = [(x, y) for x, y in g.coords() if g.has_flag(x, y, TRAP)]
    assert len(traps) == 1
    (tx, ty), = traps
    # the path may clip the spur junction diagonally
    assert ty in (4, 5) and 5 < tx < 34


def test_long_path_gets_more_traps(small_config):
    g = corridor_strip(60)
    result = finalize_features(g, random.Random(5), PassContext(small_config))
    assert result.stats["traps"] == 2
    assert result.stats["caches"] == 0
    assert result.stats["special_room_min_sep"] is None
