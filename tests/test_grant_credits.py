"""Tests for the operator top-up script. The session factory is mocked."""

from __future__ import annotations

import importlib.util
import json
import uuid
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "grant_credits.py"
_spec = importlib.util.spec_from_file_location("grant_credits_script", _SCRIPT)
grant_script = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(grant_script)

FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
SUBSCRIPTION_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")


def _result(row=None):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


def _factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


@pytest.mark.parametrize(
    "argv",
    [[], [str(FAKE_USER_ID)], ["not-a-uuid", "5"], [str(FAKE_USER_ID), "five"]],
)
def test_parse_args_rejects_bad_input(argv):
    assert grant_script.parse_args(argv) is None


def test_parse_args_default_description():
    assert grant_script.parse_args([str(FAKE_USER_ID), "25"]) == (
        FAKE_USER_ID, 25, "Operator top-up",
    )


@pytest.mark.asyncio
async def test_main_grants_and_commits(capsys):
    session = AsyncMock()
    session.execute.side_effect = [
        _result((SUBSCRIPTION_ID, "FREE", 50, 5)),
        _result((30,)),
        _result(),
    ]

    with patch.object(grant_script, "async_session_factory", _factory(session)):
        code = await grant_script.main([str(FAKE_USER_ID), "25", "Support refund"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {
        "user_id": str(FAKE_USER_ID), "granted": 25, "balance": 30,
    }
    ledger = session.execute.call_args_list[2][0][1]
    assert ledger["usage_type"] == "TOP_UP"
    assert ledger["description"] == "Support refund"
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_main_rejects_non_positive_amount(capsys):
    session = AsyncMock()

    with patch.object(grant_script, "async_session_factory", _factory(session)):
        code = await grant_script.main([str(FAKE_USER_ID), "0"])

    assert code == 1
    assert "VALIDATION" in capsys.readouterr().err
    session.execute.assert_not_called()
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_main_usage_error(capsys):
    assert await grant_script.main(["only-one"]) == 1
    assert "usage" in capsys.readouterr().err
