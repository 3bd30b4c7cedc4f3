"""Unit tests for CLI helpers."""

import json
import logging
import sys
from unittest.mock import patch

import pytest
from conftest import FakeModelClient, make_results

from reel_planner.__main__ import _load_analysis_results, main, setup_logging


@pytest.fixture(autouse=True)
def _detach_handlers(monkeypatch):
    """setup_logging attaches handlers to the package logger; drop them after."""
    monkeypatch.setattr("reel_planner.__main__.load_dotenv", lambda *a, **kw: False)
    logger = logging.getLogger("reel_planner")
    before = list(logger.handlers)
    yield
    for handler in logger.handlers[len(before):]:
        handler.close()
    logger.handlers = before


def test_load_bare_array(tmp_path):
    path = tmp_path / "results.json"
    path.write_text(json.dumps(make_results("a", "b")), encoding="utf-8")
    assert [r["id"] for r in _load_analysis_results(str(path))] == ["a", "b"]


def test_load_wrapped_object(tmp_path):
    path = tmp_path / "results.json"
    path.write_text(json.dumps({"analysisResults": make_results("a")}), encoding="utf-8")
    assert len(_load_analysis_results(str(path))) == 1


@pytest.mark.parametrize("content", ["[]", '{"photos": []}', '"text"'])
def test_load_rejects_non_batches(tmp_path, content):
    path = tmp_path / "results.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        _load_analysis_results(str(path))


def test_setup_logging_creates_log_file(tmp_path):
    setup_logging(str(tmp_path / "logs"))
    assert (tmp_path / "logs" / "reel_planner.log").is_file()


def test_setup_logging_replaces_its_own_handlers(tmp_path):
    logger = logging.getLogger("reel_planner")
    baseline = len(logger.handlers)
    setup_logging(str(tmp_path / "a"))
    path = setup_logging(str(tmp_path / "b"))
    assert len(logger.handlers) == baseline + 2
    assert path == str(tmp_path / "b" / "reel_planner.log")


@pytest.mark.parametrize(("verbose", "level"), [(False, logging.INFO), (True, logging.DEBUG)])
def test_setup_logging_console_level(tmp_path, verbose, level):
    setup_logging(str(tmp_path), verbose=verbose)
    consoles = [
        h
        for h in logging.getLogger("reel_planner").handlers
        if type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stderr
    ]
    assert consoles[-1].level == level


def test_plan_prints_fallback_plan(tmp_path, capsys):
    path = tmp_path / "results.json"
    path.write_text(json.dumps(make_results("a", "b", "c")), encoding="utf-8")
    fake = FakeModelClient("not json")

    with patch("reel_planner.client.get_client", return_value=fake):
        with pytest.raises(SystemExit) as exc:
            main(["--plan", str(path), "--log-dir", str(tmp_path / "logs")])

    assert exc.value.code == 0
    plan = json.loads(capsys.readouterr().out)
    assert plan["ordered_ids"] == ["a", "b", "c"]
    assert plan["usedPlanner"] == "fallback"


def test_plan_without_api_key_exits(tmp_path, capsys):
    path = tmp_path / "results.json"
    path.write_text(json.dumps(make_results("a")), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--plan", str(path), "--log-dir", str(tmp_path / "logs")])
    assert exc.value.code == 1
    assert "No API key" in capsys.readouterr().err


def test_plan_missing_file_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--plan", str(tmp_path / "nope.json"), "--log-dir", str(tmp_path)])
    assert exc.value.code == 1
    assert "Error" in capsys.readouterr().err


def test_serve_runs_uvicorn(tmp_path):
    with patch("uvicorn.run") as run:
        main(["--port", "9000", "--log-dir", str(tmp_path)])
    args, kwargs = run.call_args
    assert kwargs == {"host": "127.0.0.1", "port": 9000}
