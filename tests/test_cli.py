"""Tests for the main.py command-line entry point."""

import json

import pytest

from core.config import get_settings
from main import main


@pytest.fixture
def cli_env(tmp_path, monkeypatch, jwt_secret):
    """Point the CLI at throwaway databases and fast bcrypt."""
    monkeypatch.setenv("JWT_SECRET", jwt_secret)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'users.db'}")
    monkeypatch.setenv("CACHE_DB_PATH", str(tmp_path / "cache.db"))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def _register(capsys) -> int:
    code = main(["register", "a@b.com", "abc", "A B", "--password", "Passw0rd!"])
    capsys.readouterr()
    return code


def test_register_login_whoami(cli_env, capsys):
    assert _register(capsys) == 0

    assert main(["login", "a@b.com", "--password", "Passw0rd!"]) == 0
    token = capsys.readouterr().out.strip()
    assert token.count(".") == 2

    assert main(["whoami", token]) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["email"] == "a@b.com"
    assert info["username"] == "abc"
    assert "password_hash" not in info


def test_register_weak_password(cli_env, capsys):
    assert main(["register", "a@b.com", "abc", "A B", "--password", "short"]) == 1
    assert "password" in capsys.readouterr().err


def test_register_duplicate(cli_env, capsys):
    _register(capsys)
    assert main(["register", "a@b.com", "other", "Other", "--password", "Passw0rd!"]) == 1
    assert "already exists" in capsys.readouterr().err


def test_login_failures_share_one_message(cli_env, capsys):
    _register(capsys)
    assert main(["login", "a@b.com", "--password", "Wr0ngpass!"]) == 1
    wrong = capsys.readouterr().err
    assert main(["login", "nobody@b.com", "--password", "Passw0rd!"]) == 1
    unknown = capsys.readouterr().err
    assert "Invalid credentials or token." in wrong
    assert "Invalid credentials or token." in unknown


def test_whoami_rejects_garbage(cli_env, capsys):
    assert main(["whoami", "garbage"]) == 1


def test_purge_cache(cli_env, capsys):
    assert main(["purge-cache"]) == 0
    assert "Removed 0" in capsys.readouterr().out


def test_purge_cache_disabled(cli_env, capsys, monkeypatch):
    monkeypatch.setenv("CACHE_ENABLED", "false")
    get_settings.cache_clear()
    assert main(["purge-cache"]) == 0
    assert "disabled" in capsys.readouterr().out


def test_store_unavailable_exits_2(cli_env, capsys, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{cli_env / 'missing-dir' / 'users.db'}")
    get_settings.cache_clear()
    assert main(["login", "a@b.com", "--password", "Passw0rd!"]) == 2
    assert "unavailable" in capsys.readouterr().err
