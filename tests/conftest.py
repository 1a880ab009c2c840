import os
import sys

import pytest

# Ensure repository root importable early
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from undercroft import create_app  # noqa: E402
from undercroft.dungeon import load_config  # noqa: E402
from undercroft.routes.floor_api import clear_floor_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Generation settings must come from the test, not the developer's shell
    for key in list(os.environ):
        if key.startswith("UNDERCROFT_") and key not in ("UNDERCROFT_LOG_LEVEL", "UNDERCROFT_LOG_JSON"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def small_config():
    return load_config(env={}, width=40, height=28)


@pytest.fixture()
def test_app():
    app = create_app(
        {
            "TESTING": True,
            "UNDERCROFT_GENERATION": {"width": 40, "height": 28},
        }
    )
    clear_floor_cache()
    return app


@pytest.fixture()
def client(test_app):
    return test_app.test_client()
