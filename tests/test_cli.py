"""Tests for the teamsync CLI commands."""

import argparse
import json
import logging
import sys

import pytest
from unittest.mock import AsyncMock, patch

from teamsync.__main__ import JSONFormatter, cmd_list, cmd_refresh, cmd_set_role, cmd_status
from teamsync.people import Person, RemoteUpdateError, Role


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Point the CLI at a temporary store for site 1."""
    monkeypatch.setenv("TEAMSYNC_SITE_ID", "1")
    monkeypatch.setenv("TEAMSYNC_STORE_DB_PATH", str(tmp_path / "people.db"))
    return monkeypatch


def make_args(**kwargs):
    kwargs.setdefault("config", None)
    kwargs.setdefault("json", False)
    return argparse.Namespace(**kwargs)


def make_person(user_id, role=Role.EDITOR):
    return Person(
        user_id=user_id,
        site_id=1,
        username=f"user{user_id}",
        display_name=f"User {user_id}",
        role=role,
    )


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_format(self):
        record = logging.LogRecord(
            "teamsync.people.service", logging.ERROR, __file__, 1,
            "Error fetching all people: %s", ("locked",), None,
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "ERROR"
        assert data["component"] == "teamsync.people.service"
        assert data["message"] == "Error fetching all people: locked"

    def test_format_exception(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "teamsync.people.remote", logging.ERROR, __file__, 1,
            "Error fetching team", (), exc_info,
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Error fetching team"
        assert "ValueError: bad payload" in data["exception"]


class TestCommands:
    """Tests for the CLI commands."""

    @pytest.mark.asyncio
    async def test_refresh_then_list(self, env, capsys):
        """Test refresh stores the team and list prints it."""
        with patch(
            "teamsync.people.remote.PeopleRemote.get_team",
            new=AsyncMock(return_value=[make_person(1), make_person(2, Role.ADMIN)]),
        ):
            assert await cmd_refresh(make_args()) == 0

        out = capsys.readouterr().out
        assert "Inserted: 2" in out

        assert await cmd_list(make_args(json=True)) == 0
        people = json.loads(capsys.readouterr().out)
        assert [p["user_id"] for p in people] == [1, 2]
        assert people[1]["role"] == "administrator"

    @pytest.mark.asyncio
    async def test_refresh_without_site(self, monkeypatch, capsys):
        monkeypatch.delenv("TEAMSYNC_SITE_ID", raising=False)

        assert await cmd_refresh(make_args()) == 1
        assert "No site configured" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_set_role_rolled_back(self, env, capsys):
        """Test a rejected role change exits non-zero and keeps the old role."""
        with patch(
            "teamsync.people.remote.PeopleRemote.get_team",
            new=AsyncMock(return_value=[make_person(1)]),
        ):
            await cmd_refresh(make_args())

        with patch(
            "teamsync.people.remote.PeopleRemote.update_person",
            new=AsyncMock(side_effect=RemoteUpdateError("403")),
        ):
            code = await cmd_set_role(make_args(user_id=1, role="admin"))

        assert code == 1
        assert "stored role is now editor" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_set_role_confirmed(self, env, capsys):
        with patch(
            "teamsync.people.remote.PeopleRemote.get_team",
            new=AsyncMock(return_value=[make_person(1)]),
        ):
            await cmd_refresh(make_args())

        with patch(
            "teamsync.people.remote.PeopleRemote.update_person",
            new=AsyncMock(return_value=None),
        ):
            code = await cmd_set_role(make_args(user_id=1, role="author"))

        assert code == 0
        assert "Update confirmed" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_set_role_unknown_person(self, env, capsys):
        assert await cmd_set_role(make_args(user_id=9, role="editor")) == 1
        assert "not stored" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_status_json(self, env, capsys):
        assert await cmd_status(make_args(json=True)) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["site"]["id"] == 1
        assert status["store"]["people_count"] == 0

    @pytest.mark.asyncio
    async def test_status_does_not_create_database(self, env, tmp_path, capsys):
        """Test status reports an empty store without creating its file."""
        assert await cmd_status(make_args(json=False)) == 0

        assert not (tmp_path / "people.db").exists()
        assert "People stored: 0" in capsys.readouterr().out
