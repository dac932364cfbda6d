"""
Tests for scripts/push_session.py
"""
import importlib.util
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

SCRIPT = Path(__file__).resolve().parents[3] / "scripts" / "push_session.py"


@pytest.fixture(scope="module")
def push_session_module():
    spec = importlib.util.spec_from_file_location("push_session", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _reply(status_code, payload):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.json.return_value = payload
    return resp


def test_posts_session_with_token(push_session_module, tmp_path, capsys):
    session_file = tmp_path / "session.json"
    session_file.write_text(json.dumps({"id": "s-1", "accuracy": 72}))

    with patch.object(push_session_module.requests, "post") as post:
        post.return_value = _reply(200, {"ok": True, "message": "Session s-1 uploaded successfully"})
        code = push_session_module.main([str(session_file), "--server", "http://relay/", "--token", "tok"])

    assert code == 0
    assert "Session s-1 uploaded successfully" in capsys.readouterr().out
    args, kwargs = post.call_args
    assert args[0] == "http://relay/ingest"
    assert kwargs["json"] == {"id": "s-1", "accuracy": 72}
    assert kwargs["headers"] == {"Authorization": "Bearer tok"}


def test_http_error_exits_non_zero(push_session_module, tmp_path, capsys):
    session_file = tmp_path / "session.json"
    session_file.write_text(json.dumps({"accuracy": 500}))

    with patch.object(push_session_module.requests, "post") as post:
        post.return_value = _reply(400, {"error": "Invalid request body"})
        code = push_session_module.main([str(session_file), "--token", "tok"])

    assert code == 1
    assert "HTTP 400" in capsys.readouterr().err
