"""Grid model: journal, freeze, door state and serialisation."""

import pytest

from undercroft.dungeon.config import load_config
from undercroft.dungeon.grid import FrozenGridError, Grid
from undercroft.dungeon.rng import coerce_seed, derive_seed, make_rng
from undercroft.dungeon.tiles import BOULDER, DISCOVERED, DOOR_CLOSED, FLOOR, TRAP, WALL

from dungeon_test_utils import corridor_strip, grid_from_rows, snapshot


def test_grid_rejects_tiny_sizes():
    with pytest.raises(ValueError):
        Grid(2, 10)


def test_journal_rollback_restores_exact_state():
    g = corridor_strip(12)
    before = snapshot(g)
    fp = g.fingerprint()
    with g.journal() as j:
        g.set(4, 1, DOOR_CLOSED)
        g.set(4, 1, BOULDER)
        g.set(5, 1, WALL)
        g.set_flag(6, 1, TRAP)
        assert j.changed
        assert sorted(j.touched) == [(4, 1), (5, 1), (6, 1)]
        j.rollback()
    assert snapshot(g) == before
    assert g.fingerprint() == fp
    assert (4, 1) not in g.doors


def test_writing_same_tile_records_nothing():
    g = corridor_strip(12)
    with g.journal() as j:
        g.set(4, 1, FLOOR)
        assert not j.changed


def test_door_registry_tracks_writes():
    g = corridor_strip(12)
    g.set(5, 1, DOOR_CLOSED)
    assert g.doors == {(5, 1): "closed"}
    assert g.lock_door(5, 1)
    assert g.doors[(5, 1)] == "locked"
    assert not g.open_door(5, 1)
    assert g.unlock_door(5, 1)
    assert g.open_door(5, 1)
    assert g.doors[(5, 1)] == "open"
    assert g.close_door(5, 1)
    g.set(5, 1, FLOOR)
    assert g.doors == {}


def test_frozen_grid_refuses_tile_writes_but_allows_door_state():
    g = corridor_strip(12)
    g.set(5, 1, DOOR_CLOSED)
    g.freeze()
    with pytest.raises(FrozenGridError):
        g.set(4, 1, WALL)
    assert g.open_door(5, 1)
    g.mark_discovered(2, 1)
    assert g.has_flag(2, 1, DISCOVERED)


def test_place_stairs_moves_old_stairs():
    g = corridor_strip(12)
    g.place_stairs((3, 1), (8, 1))
    assert g.tile_at((1, 1)) == FLOOR and g.tile_at((10, 1)) == FLOOR
    assert g.tile_at((3, 1)) == "<" and g.tile_at((8, 1)) == ">"
    with pytest.raises(ValueError):
        g.place_stairs((0, 0), (40, 1))


def test_queries_outside_the_grid():
    g = corridor_strip(12)
    assert g.tile_at((-1, 0)) is None
    assert g.room_at((100, 100)) is None
    assert not g.is_passable(-1, 1)


def test_room_registry():
    g = Grid(20, 12)
    room = g.add_room(3, 3, 4, 3)
    assert g.room_at((4, 4)) is room
    assert g.room_at((1, 1)) is None
    assert all(g.tiles[x][y] == FLOOR for x, y in room.cells())
    assert (2, 2) in set(room.ring())
    assert room.center == (5, 4)


def test_ascii_round_trip_and_errors():
    rows = ["#####", "#<.>#", "#####"]
    g = grid_from_rows(*rows)
    assert g.to_ascii() == rows
    assert g.entrance == (1, 1) and g.exit == (3, 1)
    with pytest.raises(ValueError):
        Grid.from_ascii(["###", "#x#", "###"])
    with pytest.raises(ValueError):
        Grid.from_ascii(["###", "##", "###"])


def test_to_dict_shape():
    g = corridor_strip(12)
    g.set(5, 1, DOOR_CLOSED)
    data = g.to_dict()
    assert data["width"] == 12 and data["height"] == 3
    assert data["entrance"] == [1, 1]
    assert data["doors"] == [{"x": 5, "y": 1, "state": "closed"}]
    assert data["tiles"][1].startswith("#<")


def test_fingerprint_sees_flags():
    a = corridor_strip(12)
    b = corridor_strip(12)
    assert a.fingerprint() == b.fingerprint()
    b.set_flag(3, 1, TRAP)
    assert a.fingerprint() != b.fingerprint()


def test_seed_helpers():
    assert derive_seed(1, 2) == derive_seed("1", "2")
    assert derive_seed(1, 2) != derive_seed(2, 1)
    assert make_rng(5, "x").random() == make_rng(5, "x").random()
    assert coerce_seed(42) == 42
    assert coerce_seed("42") == 42
    assert coerce_seed("goblin-king") == coerce_seed("goblin-king")
    assert coerce_seed("goblin-king") != coerce_seed("goblin-queen")
    assert 0 <= coerce_seed(None) < 2 ** 64
    with pytest.raises(ValueError):
        coerce_seed("   ")
    with pytest.raises(ValueError):
        coerce_seed(True)


def test_load_config_layers():
    cfg = load_config(env={"UNDERCROFT_WIDTH": "60", "UNDERCROFT_DIAGONAL": "no", "UNDERCROFT_PASSES": "braid, moats"})
    assert cfg.width == 60 and cfg.height == 50
    assert cfg.diagonal is False
    assert cfg.passes == ("braid", "moats")
    cfg = load_config(env={"UNDERCROFT_WIDTH": "60"}, width=44, height=None)
    assert cfg.width == 44 and cfg.height == 50
    with pytest.raises(ValueError):
        load_config(env={"UNDERCROFT_HEIGHT": "tall"})
