import undercroft.routes.floor_api as floor_api
from undercroft.dungeon import coerce_seed


def test_floor_map(client):
    r = client.get("/api/floor/42/1")
    assert r.status_code == 200
    data = r.get_json()
    assert data["seed"] == 42 and data["depth"] == 1
    grid = data["grid"]
    assert grid["width"] == 40 and grid["height"] == 28
    assert len(grid["tiles"]) == 28
    ex, ey = grid["entrance"]
    assert grid["tiles"][ey][ex] == "<"
    # a second request is served from the cache
    again = client.get("/api/floor/42/1").get_json()
    assert again["fingerprint"] == data["fingerprint"]
    assert len(floor_api._floor_cache) == 1


def test_named_seed_and_size(client):
    r = client.get("/api/floor/goblin-king/2?w=30&h=20&kind=rooms")
    assert r.status_code == 200
    data = r.get_json()
    assert data["seed"] == coerce_seed("goblin-king")
    assert data["grid"]["width"] == 30
    assert data["grid"]["kind"] == "rooms"


def test_bad_requests(client):
    assert client.get("/api/floor/1/1?w=30").status_code == 400
    r = client.get("/api/floor/1/1?kind=volcano")
    assert r.status_code == 400
    assert "volcano" in r.get_json()["error"]
    assert client.get("/api/floor/1/1?w=10&h=10").status_code == 400
    assert client.get("/api/floor/1/0").status_code == 400


def test_path_between_stairs(client):
    grid = client.get("/api/floor/7/1").get_json()["grid"]
    a = ",".join(map(str, grid["entrance"]))
    b = ",".join(map(str, grid["exit"]))
    r = client.get(f"/api/floor/7/1/path?from={a}&to={b}")
    assert r.status_code == 200
    data = r.get_json()
    assert data["path"][0] == grid["entrance"] and data["path"][-1] == grid["exit"]
    assert data["length"] == len(data["path"])
    weighted = client.get(f"/api/floor/7/1/path?from={a}&to={b}&weighted=1").get_json()
    assert weighted["path"][-1] == grid["exit"]


def test_path_into_rock_is_null(client):
    r = client.get("/api/floor/7/1/path?from=0,0&to=1,1")
    assert r.status_code == 200
    assert r.get_json() == {"from": [0, 0], "to": [1, 1], "path": None, "length": 0}
    assert client.get("/api/floor/7/1/path?from=3&to=1,1").status_code == 400
    assert client.get("/api/floor/7/1/path?to=1,1").status_code == 400


def test_metrics_and_summary(client):
    metrics = client.get("/api/floor/9/3/metrics").get_json()
    assert metrics["depth"] == 3
    assert "passes" in metrics and "phase_ms" in metrics
    r = client.get("/api/floor/9/3/summary")
    assert r.status_code == 200
    assert r.mimetype == "text/plain"
    assert "stairs path:" in r.get_data(as_text=True)


def test_seed_lookup(client):
    r = client.get("/api/floor/seed/goblin-king")
    assert r.get_json() == {"input": "goblin-king", "seed": coerce_seed("goblin-king")}


def test_cache_can_be_disabled(test_app):
    test_app.config["UNDERCROFT_DISABLE_CACHE"] = True
    client = test_app.test_client()
    assert client.get("/api/floor/5/1").status_code == 200
    assert floor_api._floor_cache == {}
