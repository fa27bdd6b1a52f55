"""
Unit tests for the default /notify-bot collaborator.

Requests go through the real control plane app with a valid secret so the
full request path is exercised.
"""

import discord
import pytest
from aiohttp import test_utils

from src.core.database.queries import StatsQueries
from src.web.auth import SECRET_HEADER
from src.web.server import build_app
from src.web.state import ControlPlaneState
from src.webhooks.notify_bot import MAX_MESSAGE_LENGTH, handle_notify_bot

SECRET = "s3cret"


@pytest.fixture
def connection(mocker):
    conn = mocker.MagicMock()
    conn.is_ready.return_value = True

    user = mocker.MagicMock()
    user.send = mocker.AsyncMock()
    conn.get_user.return_value = user
    conn.fetch_user = mocker.AsyncMock(return_value=user)

    channel = mocker.MagicMock(spec=discord.TextChannel)
    channel.send = mocker.AsyncMock()
    conn.get_channel.return_value = channel
    conn.fetch_channel = mocker.AsyncMock(return_value=channel)

    conn.test_user = user
    conn.test_channel = channel
    return conn


async def _post(connection, body=None, *, data=None):
    state = ControlPlaneState(
        connection=connection,
        queries=StatsQueries.unavailable(),
        notify_handler=handle_notify_bot,
        webhook_secret=SECRET,
    )
    client = test_utils.TestClient(test_utils.TestServer(build_app(state)))
    await client.start_server()
    try:
        if data is not None:
            resp = await client.post("/notify-bot", data=data, headers={SECRET_HEADER: SECRET})
        else:
            resp = await client.post("/notify-bot", json=body, headers={SECRET_HEADER: SECRET})
        return resp.status, await resp.json()
    finally:
        await client.close()


def _http_error(mocker, cls, status):
    return cls(mocker.MagicMock(status=status, reason="error"), "discord said no")


@pytest.mark.asyncio
class TestDelivery:
    async def test_direct_message_to_cached_user(self, connection):
        status, body = await _post(connection, {"message": "Server ready", "user_id": "1234"})

        assert status == 200
        assert body == {"success": True}
        connection.get_user.assert_called_once_with(1234)
        connection.test_user.send.assert_awaited_once_with("Server ready")

    async def test_user_fetched_when_not_cached(self, connection):
        connection.get_user.return_value = None

        status, _ = await _post(connection, {"message": "hi", "user_id": 42})

        assert status == 200
        connection.fetch_user.assert_awaited_once_with(42)

    async def test_channel_message(self, connection):
        status, _ = await _post(connection, {"message": "deploy done", "channel_id": "5678"})

        assert status == 200
        connection.test_channel.send.assert_awaited_once_with("deploy done")


@pytest.mark.asyncio
class TestValidation:
    @pytest.mark.parametrize(
        "body",
        [
            {"user_id": "1"},
            {"message": "", "user_id": "1"},
            {"message": 5, "user_id": "1"},
            {"message": "hi"},
            {"message": "hi", "user_id": "1", "channel_id": "2"},
            {"message": "hi", "user_id": "abc"},
            {"message": "hi", "user_id": True},
            {"message": "x" * (MAX_MESSAGE_LENGTH + 1), "user_id": "1"},
        ],
    )
    async def test_bad_body_is_400(self, connection, body):
        status, payload = await _post(connection, body)

        assert status == 400
        assert payload["success"] is False
        connection.test_user.send.assert_not_awaited()

    async def test_non_json_is_400(self, connection):
        status, _ = await _post(connection, data="not json")

        assert status == 400

    async def test_not_ready_is_503(self, connection):
        connection.is_ready.return_value = False

        status, payload = await _post(connection, {"message": "hi", "user_id": "1"})

        assert status == 503
        assert payload["error"] == "Bot is not ready"

    async def test_non_messageable_channel_is_400(self, mocker, connection):
        connection.get_channel.return_value = mocker.MagicMock(spec=discord.CategoryChannel)

        status, _ = await _post(connection, {"message": "hi", "channel_id": "9"})

        assert status == 400


@pytest.mark.asyncio
class TestDiscordErrors:
    async def test_unknown_user_is_404(self, mocker, connection):
        connection.get_user.return_value = None
        connection.fetch_user.side_effect = _http_error(mocker, discord.NotFound, 404)

        status, payload = await _post(connection, {"message": "hi", "user_id": "1"})

        assert status == 404
        assert payload == {"success": False, "error": "Unknown user"}

    async def test_forbidden_is_502(self, mocker, connection):
        connection.test_user.send.side_effect = _http_error(mocker, discord.Forbidden, 403)

        status, payload = await _post(connection, {"message": "hi", "user_id": "1"})

        assert status == 502
        assert payload["error"] == "Discord API error"
