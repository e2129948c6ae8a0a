from __future__ import annotations

from pathlib import Path

from artifact_service.main import parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.state_dir is None
    assert args.host is None
    assert args.port is None


def test_parse_args_overrides():
    args = parse_args(["--state-dir", "/srv/artifacts", "--host", "127.0.0.1", "--port", "8080"])
    assert args.state_dir == Path("/srv/artifacts")
    assert args.host == "127.0.0.1"
    assert args.port == 8080
