import json

import pytest

import undercroft.logging_utils as logging_utils
from undercroft.logging_utils import _format, get_logger, set_level


@pytest.fixture(autouse=True)
def _plain_logs(monkeypatch):
    monkeypatch.setattr(logging_utils, "JSON_MODE", False)
    monkeypatch.setattr(logging_utils, "CURRENT_LEVEL", logging_utils.LEVELS["info"])


def test_key_value_lines():
    line = _format("info", event="floor generated", depth=3, score=1.5, skipped=None)
    assert line.startswith("level=info ts=")
    assert "event=floor_generated" in line
    assert "depth=3" in line and "score=1.5" in line
    assert "skipped" not in line


def test_json_lines(monkeypatch):
    monkeypatch.setattr(logging_utils, "JSON_MODE", True)
    rec = json.loads(_format("warn", event="retry", seed=7, reason=None))
    assert rec["level"] == "warn"
    assert rec["event"] == "retry" and rec["seed"] == 7
    assert "reason" not in rec
    assert isinstance(rec["ts"], int)


def test_level_filtering_and_streams(capsys):
    log = get_logger("undercroft.test")
    assert get_logger("undercroft.test") is log
    log.debug(event="hidden")
    log.info(event="shown")
    log.error(event="broken")
    out, err = capsys.readouterr()
    assert "hidden" not in out
    assert "event=shown" in out and "logger=undercroft.test" in out
    assert "event=broken" in err
    set_level("error")
    log.warn(event="quiet")
    out, err = capsys.readouterr()
    assert out == err == ""


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        set_level("verbose")


def test_bound_context_and_bool_values(capsys):
    log = get_logger("undercroft.test").bind(seed=42, depth=3)
    log.info(event="pass_done", applied=True, depth=4)
    line = capsys.readouterr().out.strip()
    assert line.split()[2] == "logger=undercroft.test"
    assert "seed=42" in line and "depth=4" in line and "depth=3" not in line
    assert "applied=true" in line
    assert get_logger("undercroft.test").context == {}
