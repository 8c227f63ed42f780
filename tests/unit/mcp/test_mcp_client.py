"""Tests for MCPClient against the scripted stub backend."""

import asyncio
import json

import pytest

from vcs_bridge.config.defaults import PROTOCOL_VERSION
from vcs_bridge.errors import BridgeError, ErrorCategory
from vcs_bridge.mcp import MCPClient, TextContent, ToolResult
from vcs_bridge.mcp.protocol import Message, Method

pytestmark = pytest.mark.subprocess

# Well past any pipe buffer, so the write blocks when the backend stops reading
LARGE_ARGUMENT = 4 * 1024 * 1024


def _events(log_output) -> list[dict]:
    return [json.loads(line) for line in log_output.getvalue().splitlines() if line.strip()]


class TestClientLifecycle:
    """Start / stop behavior."""

    @pytest.mark.asyncio
    async def test_start_then_stop(self, stub_config):
        """start() then stop() leaves the client not running; a second stop is fine."""
        client = MCPClient(stub_config)
        await client.start()
        assert client.running
        assert client.pid is not None

        await client.stop()
        assert not client.running
        assert client.pid is None

        await client.stop()
        assert not client.running

    @pytest.mark.asyncio
    async def test_handshake_records_server_info(self, stub_config):
        """The initialize result is kept on the client."""
        async with MCPClient(stub_config) as client:
            assert client.protocol_version == PROTOCOL_VERSION
            assert client.server_info == {"name": "stub-server", "version": "1.0.0"}
            assert "tools" in client.server_capabilities
        assert not client.running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, stub_config):
        """start() on a running client does not spawn again."""
        async with MCPClient(stub_config) as client:
            pid = client.pid
            await client.start()
            assert client.pid == pid

    @pytest.mark.asyncio
    async def test_stopped_client_cannot_restart(self, stub_config):
        """A stopped handle is terminal."""
        client = MCPClient(stub_config)
        await client.start()
        await client.stop()

        with pytest.raises(BridgeError) as exc_info:
            await client.start()
        assert exc_info.value.code == "CLIENT_STOPPED"

    @pytest.mark.asyncio
    async def test_stop_on_unstarted_client(self, stub_config):
        """stop() before start() is safe."""
        client = MCPClient(stub_config)
        await client.stop()
        assert not client.running

    @pytest.mark.asyncio
    async def test_missing_executable(self, missing_config):
        """A command that cannot be launched raises SPAWN_FAILURE with a hint."""
        client = MCPClient(missing_config)

        with pytest.raises(BridgeError) as exc_info:
            await client.start()

        error = exc_info.value
        assert error.code == "SPAWN_FAILURE"
        assert error.category == ErrorCategory.SPAWN
        assert error.server_name == "ghost"
        assert "vcs-bridge-no-such-backend-binary" in error.suggestion
        assert not client.running

    @pytest.mark.asyncio
    @pytest.mark.parametrize("scenario", ["handshake_error", "exit_on_init", "garbage_on_init"])
    async def test_handshake_failure_stops_process(self, make_stub_config, scenario):
        """Any initialize failure raises HANDSHAKE_FAILURE and leaves nothing running."""
        client = MCPClient(make_stub_config(scenario=scenario))

        with pytest.raises(BridgeError) as exc_info:
            await client.start()

        assert exc_info.value.code == "HANDSHAKE_FAILURE"
        assert exc_info.value.category == ErrorCategory.HANDSHAKE
        assert not client.running
        assert client.pid is None

    @pytest.mark.asyncio
    async def test_handshake_error_message(self, make_stub_config):
        """The backend's error message is kept in the detail."""
        client = MCPClient(make_stub_config(scenario="handshake_error"))

        with pytest.raises(BridgeError) as exc_info:
            await client.start()

        assert "Backend misconfigured" in exc_info.value.detail


class TestClientCalls:
    """tools/call round trips."""

    @pytest.mark.asyncio
    async def test_git_status_clean(self, stub_config):
        """A text result decodes into a successful ToolResult."""
        async with MCPClient(stub_config) as client:
            result = await client.call("git_status", {})

        assert result == ToolResult(is_error=False, content=[TextContent(text="clean")])
        assert result.text == "clean"

    @pytest.mark.asyncio
    async def test_sequential_calls_stay_in_order(self, stub_config):
        """The i-th result answers the i-th request."""
        async with MCPClient(stub_config) as client:
            results = [await client.call("echo", {"value": f"v{i}"}) for i in range(10)]

        assert [r.text for r in results] == [f"v{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_serialized(self, stub_config):
        """Calls issued concurrently on one client each get their own answer."""
        async with MCPClient(stub_config) as client:
            results = await asyncio.gather(
                *(client.call("echo", {"value": str(i)}) for i in range(8))
            )

        assert [r.text for r in results] == [str(i) for i in range(8)]

    @pytest.mark.asyncio
    async def test_message_ids_increase(self, stub_config):
        """Each request takes the next id."""
        async with MCPClient(stub_config) as client:
            after_handshake = client.message_id
            await client.call("git_status")
            await client.call("git_status")
            assert client.message_id == after_handshake + 2

    @pytest.mark.asyncio
    async def test_backend_error_becomes_error_result(self, stub_config):
        """An error response is data, not an exception."""
        async with MCPClient(stub_config) as client:
            result = await client.call("fail", {})
            assert client.running

        assert result.is_error
        assert result.content == [TextContent(text="Method not found: fail")]
        assert client.last_error is not None
        assert client.last_error.code == -32601

    @pytest.mark.asyncio
    async def test_null_result(self, stub_config):
        """A response without a usable result is reported as an error result."""
        async with MCPClient(stub_config) as client:
            result = await client.call("empty")

        assert result.is_error
        assert result.text == "No result returned"

    @pytest.mark.asyncio
    async def test_call_before_start(self, stub_config):
        """call() on a never-started client fails before any I/O."""
        client = MCPClient(stub_config)

        with pytest.raises(BridgeError, match="not running") as exc_info:
            await client.call("git_status")

        assert exc_info.value.code == "NOT_RUNNING"
        assert client.pid is None
        assert client.message_id == 0

    @pytest.mark.asyncio
    async def test_call_after_stop(self, stub_config):
        """call() on a stopped client fails before any I/O."""
        client = MCPClient(stub_config)
        await client.start()
        await client.stop()
        sent = client.message_id

        with pytest.raises(BridgeError, match="not running"):
            await client.call("git_status")
        assert client.message_id == sent


class TestClientUnsolicitedMessages:
    """Messages from the backend that are not the pending response."""

    @pytest.mark.asyncio
    async def test_notifications_are_skipped(self, stub_config, debug_logger, log_output):
        """Notifications before the response are skipped and logged at DEBUG."""
        async with MCPClient(stub_config, logger=debug_logger) as client:
            result = await client.call("notify_first")
            follow_up = await client.call("echo", {"value": "next"})

        assert result.text == "after notifications"
        assert follow_up.text == "next"
        skipped = [e for e in _events(log_output) if e.get("event") == "message_skipped"]
        assert len(skipped) == 2
        assert all(e["level"] == "DEBUG" for e in skipped)

    @pytest.mark.asyncio
    async def test_ping_from_backend_is_answered(self, stub_config):
        """A ping request from the backend gets an empty result."""
        async with MCPClient(stub_config) as client:
            result = await client.call("ping_first")

        assert result.text == "pong"

    @pytest.mark.asyncio
    async def test_unknown_request_from_backend(self, stub_config):
        """Other backend requests are refused with method-not-found."""
        async with MCPClient(stub_config) as client:
            result = await client.call("unknown_request")

        assert result.text == "-32601"


class TestClientFailures:
    """Transport and protocol failures stop the client."""

    @pytest.mark.asyncio
    async def test_id_mismatch(self, stub_config):
        """A response for another id raises and stops the client."""
        client = MCPClient(stub_config)
        await client.start()

        with pytest.raises(BridgeError) as exc_info:
            await client.call("wrong_id")

        assert exc_info.value.code == "RESPONSE_ID_MISMATCH"
        assert exc_info.value.category == ErrorCategory.PROTOCOL
        assert not client.running

    @pytest.mark.asyncio
    async def test_timeout_stops_client(self, stub_config):
        """Timeout expiry kills the backend and raises CALL_TIMEOUT."""
        client = MCPClient(stub_config)
        await client.start()

        with pytest.raises(BridgeError) as exc_info:
            await client.call("hang", timeout=0.3)

        error = exc_info.value
        assert error.code == "CALL_TIMEOUT"
        assert error.is_transport
        assert not client.running

        with pytest.raises(BridgeError, match="not running"):
            await client.call("git_status")

    @pytest.mark.asyncio
    async def test_server_timeout_is_default(self, make_stub_config):
        """Without an explicit timeout the server's configured timeout applies."""
        client = MCPClient(make_stub_config(timeout=0.3))
        await client.start()

        with pytest.raises(BridgeError) as exc_info:
            await client.call("hang")

        assert exc_info.value.code == "CALL_TIMEOUT"

    @pytest.mark.asyncio
    async def test_cancellation_stops_client(self, stub_config):
        """Cancelling a pending call stops the client before re-raising."""
        client = MCPClient(stub_config)
        await client.start()

        task = asyncio.create_task(client.call("hang"))
        await asyncio.sleep(0.3)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not client.running

    @pytest.mark.asyncio
    async def test_timeout_covers_blocked_write(self, make_stub_config):
        """A backend that stops reading stdin times out instead of blocking the write."""
        client = MCPClient(make_stub_config(scenario="deaf", timeout=1.0))
        await client.start()

        with pytest.raises(BridgeError) as exc_info:
            await asyncio.wait_for(client.call("echo", {"value": "x" * LARGE_ARGUMENT}), 8)

        assert exc_info.value.code == "CALL_TIMEOUT"
        assert not client.running

    @pytest.mark.asyncio
    async def test_cancellation_during_write_stops_client(self, make_stub_config):
        """Cancelling a call blocked on its write leaves no half-written client behind."""
        client = MCPClient(make_stub_config(scenario="deaf"))
        await client.start()

        task = asyncio.create_task(client.call("echo", {"value": "x" * LARGE_ARGUMENT}))
        await asyncio.sleep(0.5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not client.running

        with pytest.raises(BridgeError, match="not running"):
            await client.call("git_status")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tool", ["exit", "partial"])
    async def test_backend_exit(self, stub_config, tool):
        """EOF or a trailing partial line is a transport failure."""
        client = MCPClient(stub_config)
        await client.start()

        with pytest.raises(BridgeError) as exc_info:
            await client.call(tool)

        assert exc_info.value.code == "TRANSPORT_FAILURE"
        assert exc_info.value.is_transport
        assert not client.running


class TestClientListing:
    """tools/list, resources/list and resources/read."""

    @pytest.mark.asyncio
    async def test_list_tools(self, stub_config):
        async with MCPClient(stub_config) as client:
            tools = await client.list_tools()

        assert [t.name for t in tools] == ["git_status", "git_commit", "echo"]
        assert tools[0].description == "Working tree status"

    @pytest.mark.asyncio
    async def test_resources_follow_cursor(self, stub_config):
        """Paged resource lists are concatenated."""
        async with MCPClient(stub_config) as client:
            resources = await client.get_resources()

        assert [r.uri for r in resources] == ["repo://one", "repo://two"]
        assert resources[1].mime_type == "text/plain"

    @pytest.mark.asyncio
    async def test_read_resource(self, stub_config):
        async with MCPClient(stub_config) as client:
            contents = await client.read_resource("repo://one")

        assert len(contents) == 1
        assert contents[0].text == "body"

    @pytest.mark.asyncio
    async def test_read_resource_error(self, stub_config):
        """An error response yields an empty list and a recorded error."""
        async with MCPClient(stub_config) as client:
            contents = await client.read_resource("repo://missing")
            assert client.running

        assert contents == []
        assert client.last_error.code == -32002

    @pytest.mark.asyncio
    async def test_last_error_cleared_by_next_success(self, stub_config):
        """last_error describes only the most recent operation."""
        async with MCPClient(stub_config) as client:
            assert await client.list_tools()
            assert client.last_error is None

            assert await client.read_resource("repo://missing") == []
            assert client.last_error is not None

            assert await client.read_resource("repo://one")
            assert client.last_error is None

            await client.call("fail")
            assert client.last_error.code == -32601
            await client.call("git_status")
            assert client.last_error is None

    @pytest.mark.asyncio
    async def test_answer_ignores_message_without_id(self, stub_config):
        """Only requests get a reply; an id-less message is dropped without I/O."""
        client = MCPClient(stub_config)

        await client._answer(Message.notification(Method.PING))

        assert client.message_id == 0


class TestClientEnvironment:
    """Environment overlay applied at spawn."""

    @pytest.mark.asyncio
    async def test_overlay_reaches_backend(self, make_stub_config, monkeypatch):
        monkeypatch.delenv("VCS_BRIDGE_TEST_VALUE", raising=False)
        config = make_stub_config(env={"VCS_BRIDGE_TEST_VALUE": "abc"})

        async with MCPClient(config) as client:
            result = await client.call("env", {"name": "VCS_BRIDGE_TEST_VALUE"})

        assert result.text == "abc"

    @pytest.mark.asyncio
    async def test_empty_overlay_value_not_exported(self, make_stub_config, monkeypatch):
        monkeypatch.delenv("VCS_BRIDGE_TEST_VALUE", raising=False)
        config = make_stub_config(env={"VCS_BRIDGE_TEST_VALUE": ""})

        async with MCPClient(config) as client:
            result = await client.call("env", {"name": "VCS_BRIDGE_TEST_VALUE"})

        assert result.text == "<unset>"

    @pytest.mark.asyncio
    async def test_overlay_values_never_logged(self, make_stub_config, debug_logger, log_output):
        config = make_stub_config(env={"VCS_BRIDGE_TEST_TOKEN": "s3cret-value"})

        async with MCPClient(config, logger=debug_logger) as client:
            await client.call("git_status")

        assert "s3cret-value" not in log_output.getvalue()
