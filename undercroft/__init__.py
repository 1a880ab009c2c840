"""
project: Undercroft
module: __init__.py
License: MIT

Flask application factory for the floor query service.

Configuration is sourced from environment variables (a local ``.env`` is
loaded first) with development defaults. Generation settings for HTTP
requests live under the ``UNDERCROFT_GENERATION`` config key as a dict of
``GenerationConfig`` overrides.
"""

import os

from dotenv import load_dotenv
from flask import Flask

# Load .env if present so UNDERCROFT_* settings can be supplied without
# exporting shell variables during development.
load_dotenv()


def create_app(overrides=None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret-change-me"),
        UNDERCROFT_GENERATION={},
        UNDERCROFT_DISABLE_CACHE=os.getenv("UNDERCROFT_DISABLE_CACHE", "0") == "1",
    )
    if overrides:
        app.config.update(overrides)

    from undercroft.routes.floor_api import bp_floor

    app.register_blueprint(bp_floor)
    return app
