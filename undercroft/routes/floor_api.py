"""
project: Undercroft
module: floor_api.py
License: MIT

Read-only floor query routes.

Floors are addressed by ``(seed, depth)`` and rebuilt on demand; the most
recent ones are kept in a small in-process cache. Optional query args
``w``, ``h`` and ``kind`` pick the size and generator kind.
"""

import threading

from flask import Blueprint, Response, current_app, jsonify, request

from undercroft.dungeon import Floor, GenerationError, coerce_seed, load_config, summarize
from undercroft.logging_utils import get_logger

log = get_logger("undercroft.http")

# (seed, depth, size, kind, generation overrides) -> Floor. Guarded by a lock because
# the dev server and most WSGI servers handle requests on several threads.
_floor_cache = {}
_floor_cache_lock = threading.Lock()
_FLOOR_CACHE_MAX = 8

bp_floor = Blueprint("floor_api", __name__)


def _generation_overrides() -> dict:
    return dict(current_app.config.get("UNDERCROFT_GENERATION") or {})


def get_cached_floor(seed: int, depth: int, size, kind):
    overrides = _generation_overrides()
    if current_app.config.get("UNDERCROFT_DISABLE_CACHE"):
        return Floor(seed, depth=depth, size=size, kind=kind, config=load_config(**overrides))
    key = (seed, depth, size, kind, repr(sorted(overrides.items())))
    with _floor_cache_lock:
        floor = _floor_cache.get(key)
    if floor is not None:
        return floor
    floor = Floor(seed, depth=depth, size=size, kind=kind, config=load_config(**overrides))
    with _floor_cache_lock:
        _floor_cache[key] = floor
        if len(_floor_cache) > _FLOOR_CACHE_MAX:
            first_key = next(iter(_floor_cache.keys()))
            if first_key != key:
                _floor_cache.pop(first_key, None)
    return floor


def clear_floor_cache() -> None:
    with _floor_cache_lock:
        _floor_cache.clear()


def _bad_request(message: str):
    return jsonify({"error": message}), 400


def _floor_from_request(seed: str, depth: int):
    """Build (or fetch) the floor named by the URL and query string.

    Raises ValueError for a malformed seed, size or kind.
    """
    run_seed = coerce_seed(seed)
    w = request.args.get("w", type=int)
    h = request.args.get("h", type=int)
    if (w is None) != (h is None):
        raise ValueError("w and h must be given together")
    size = (w, h) if w is not None else None
    kind = request.args.get("kind") or None
    return get_cached_floor(run_seed, depth, size, kind)


def _with_floor(seed: str, depth: int, render):
    try:
        floor = _floor_from_request(seed, depth)
    except ValueError as exc:
        return _bad_request(str(exc))
    except GenerationError as exc:
        log.error(event="floor_request_failed", seed=seed, depth=depth, reason=str(exc))
        return jsonify({"error": "generation failed"}), 500
    return render(floor)


def _parse_coord(raw):
    if raw is None:
        raise ValueError("missing coordinate")
    parts = raw.split(",")
    if len(parts) != 2:
        raise ValueError(f"bad coordinate {raw!r}; expected x,y")
    return int(parts[0]), int(parts[1])


@bp_floor.route("/api/floor/<seed>/<int:depth>")
def floor_map(seed, depth):
    """
    Return the floor as JSON.
    Response: { 'seed', 'depth', 'fingerprint', 'grid': {tiles, doors, rooms, ...} }
    """

    def render(floor):
        return jsonify(
            {
                "seed": floor.run_seed,
                "depth": floor.depth,
                "fingerprint": floor.grid.fingerprint(),
                "grid": floor.grid.to_dict(),
            }
        )

    return _with_floor(seed, depth, render)


@bp_floor.route("/api/floor/<seed>/<int:depth>/path")
def floor_path(seed, depth):
    """Shortest path between ``from`` and ``to`` (``x,y``), or null when there is none."""
    try:
        start = _parse_coord(request.args.get("from"))
        goal = _parse_coord(request.args.get("to"))
    except ValueError as exc:
        return _bad_request(str(exc))
    weighted = request.args.get("weighted", "0") in ("1", "true", "yes")

    def render(floor):
        path = floor.grid.shortest_path(start, goal, weighted=weighted)
        return jsonify(
            {
                "from": list(start),
                "to": list(goal),
                "path": [list(p) for p in path] if path else None,
                "length": len(path) if path else 0,
            }
        )

    return _with_floor(seed, depth, render)


@bp_floor.route("/api/floor/<seed>/<int:depth>/metrics")
def floor_metrics(seed, depth):
    return _with_floor(seed, depth, lambda floor: jsonify(floor.metrics))


@bp_floor.route("/api/floor/<seed>/<int:depth>/summary")
def floor_summary(seed, depth):
    return _with_floor(
        seed, depth, lambda floor: Response(summarize(floor.metrics) + "\n", mimetype="text/plain")
    )


@bp_floor.route("/api/floor/seed/<value>")
def seed_value(value):
    """Resolve a seed string (digits or a name) to the integer run seed."""
    try:
        return jsonify({"input": value, "seed": coerce_seed(value)})
    except ValueError as exc:
        return _bad_request(str(exc))
