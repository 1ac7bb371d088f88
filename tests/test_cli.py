"""
tests/test_cli.py -- The management commands in main.py.

The service is swapped for one backed by an in-memory store and getpass is
stubbed, so no terminal or database file is touched.
"""

from __future__ import annotations

import pytest

import main
from auth.service import IdentityService


@pytest.fixture
def cli_service(identity_service: IdentityService, monkeypatch: pytest.MonkeyPatch) -> IdentityService:
    monkeypatch.setattr(main, "_identity_service", lambda: identity_service)
    # The commands close the store when done; keep it open for assertions.
    monkeypatch.setattr(identity_service.store, "close", lambda: None)
    return identity_service


def _passwords(monkeypatch: pytest.MonkeyPatch, *answers: str) -> None:
    replies = iter(answers)
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt="": next(replies))


def test_create_user(cli_service: IdentityService, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _passwords(monkeypatch, "pw1", "pw1")
    assert main.main(["create-user", "alice", "--email", "a@x.io"]) == 0
    assert "Created user alice" in capsys.readouterr().out
    cli_service.login("alice", "pw1")


def test_create_user_mismatched_passwords(cli_service: IdentityService, monkeypatch: pytest.MonkeyPatch) -> None:
    _passwords(monkeypatch, "pw1", "pw2")
    assert main.main(["create-user", "alice"]) == 1
    assert not cli_service.username_exists("alice")


def test_create_user_conflict(cli_service: IdentityService, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    cli_service.register("alice", "pw1")
    _passwords(monkeypatch, "pw2", "pw2")
    assert main.main(["create-user", "alice"]) == 1
    assert "username 'alice' already exists" in capsys.readouterr().out


def test_list_users(cli_service: IdentityService, capsys) -> None:
    cli_service.register("bob", "pw", "b@x.io")
    cli_service.register("alice", "pw")
    assert main.main(["list-users"]) == 0
    out = capsys.readouterr().out
    assert out.index("alice") < out.index("bob")
    assert "b@x.io" in out
