"""Tile glyphs, overlay flags and the terrain predicates built on them.

Tiles are single characters so a grid column is a plain list of str and
``to_ascii`` is a join.
"""

WALL = "#"
FLOOR = "."
RUBBLE = ","
BRIDGE = "="
CHASM = ":"
DOOR_OPEN = "'"
DOOR_CLOSED = "+"
DOOR_LOCKED = "L"
DOOR_SECRET = "S"
BOULDER = "0"
PILLAR = "I"
STAIRS_UP = "<"
STAIRS_DOWN = ">"

# Overlay bitset
DISCOVERED = 1
TRAP = 2
MARKER = 4

DOOR_STATES = {
    DOOR_OPEN: "open",
    DOOR_CLOSED: "closed",
    DOOR_LOCKED: "locked",
    DOOR_SECRET: "secret",
}

FLOORLIKE = frozenset({FLOOR, RUBBLE, BRIDGE})
STAIRS = frozenset({STAIRS_UP, STAIRS_DOWN})
DOORS = frozenset(DOOR_STATES)

PASSABLE = FLOORLIKE | STAIRS | {DOOR_OPEN, DOOR_CLOSED}
PASSABLE_WITH_KEYS = PASSABLE | {DOOR_LOCKED}
BLOCKS_PROJECTILES = frozenset({WALL, PILLAR, BOULDER, DOOR_CLOSED, DOOR_LOCKED, DOOR_SECRET})

ALL_TILES = frozenset({WALL, CHASM, BOULDER, PILLAR}) | PASSABLE | DOORS


def is_passable(tile: str) -> bool:
    return tile in PASSABLE


def lane_clear(tile: str) -> bool:
    """True for tiles a thrown or fired object travels across."""
    return tile in PASSABLE and tile not in BLOCKS_PROJECTILES


def door_cost(tile: str) -> int:
    """Step cost used for weighted pathing: doors take time to work through."""
    if tile == DOOR_CLOSED:
        return 2
    if tile == DOOR_LOCKED:
        return 4
    return 1
