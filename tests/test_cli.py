"""Tests for the command line entry point."""

import argparse
import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from nuportal import cli
from nuportal.errors import TransportError
from nuportal.storage.token_store import TokenKind, TokenStore


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Keep the root logger untouched by ``main``."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Environment pointing the CLI at a SQLite store under tmp_path."""
    db_url = f"sqlite:///{tmp_path / 'tokens.db'}"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NUPORTAL_BASE_URL", "https://portal.example.com")
    monkeypatch.setenv("NUPORTAL_CLIENT_ID", "id")
    monkeypatch.setenv("NUPORTAL_CLIENT_SECRET", "secret")
    monkeypatch.setenv("NUPORTAL_FEDERATION", "BDV")
    monkeypatch.setenv("NUPORTAL_DATABASE_URL", db_url)
    return db_url


def _store_fresh_token(db_url: str, value: str = "abcdefghijkl") -> None:
    with TokenStore(db_url) as store:
        store.upsert("BDV", TokenKind.ACCESS, value, datetime.now(timezone.utc))


class TestParsePairs:
    def test_pairs(self):
        assert cli._parse_pairs(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}

    def test_empty(self):
        assert cli._parse_pairs(None) == {}

    def test_malformed(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli._parse_pairs(["novalue"])


class TestCommands:
    """Tests for CLI subcommands."""

    def test_init_db_and_status(self, cli_env, capsys):
        assert cli.main(["init-db"]) == 0
        assert cli.main(["status"]) == 0

        out = capsys.readouterr().out
        assert "Token table ready" in out
        assert "No tokens stored for BDV" in out

    def test_status_lists_tokens(self, cli_env, capsys):
        _store_fresh_token(cli_env)

        assert cli.main(["status"]) == 0

        assert "access" in capsys.readouterr().out

    def test_token_is_masked(self, cli_env, capsys):
        _store_fresh_token(cli_env, "abcdefghijkl")

        assert cli.main(["token"]) == 0

        out = capsys.readouterr().out
        assert "abcd...ijkl" in out
        assert "abcdefghijkl" not in out

    def test_request_prints_json(self, cli_env, capsys):
        _store_fresh_token(cli_env)

        with patch("nuportal.clients.gateway.HttpGateway.send", return_value={"ok": True}) as send:
            code = cli.main(["request", "/rs/2014/federations", "--query", "season=2024"])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"ok": True}
        assert send.call_args.kwargs["query"] == {"season": "2024"}
        assert send.call_args.kwargs["bearer_token"] == "abcdefghijkl"

    def test_failure_exit_code(self, cli_env, capsys):
        with patch(
            "nuportal.clients.gateway.HttpGateway.send",
            side_effect=TransportError("unreachable"),
        ):
            code = cli.main(["request", "/rs/2014/federations"])

        assert code == 1
        assert "authentication failed" in capsys.readouterr().err

    def test_missing_configuration(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        for name in ("NUPORTAL_BASE_URL", "NUPORTAL_CLIENT_ID", "NUPORTAL_CLIENT_SECRET"):
            monkeypatch.delenv(name, raising=False)

        assert cli.main(["status"]) == 1
        assert "is required" in capsys.readouterr().err
