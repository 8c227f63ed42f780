"""Property-based tests for the JSON-RPC message model.

Tests wire encoding, decoding and envelope shape rules.
"""

import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vcs_bridge.errors import BridgeError
from vcs_bridge.mcp.protocol import Message, Method, RPCError
from vcs_bridge.mcp.types import ToolResult

# =============================================================================
# Strategies for generating protocol data
# =============================================================================

# Known methods plus arbitrary server-defined ones
valid_method = st.one_of(
    st.sampled_from(list(Method)),
    st.from_regex(r"^[a-z][a-z0-9_/]{0,30}$", fullmatch=True),
)

valid_id = st.one_of(
    st.integers(min_value=-(2**53), max_value=2**53),
    st.text(min_size=1, max_size=20),
)

json_primitives = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-(2**53), max_value=2**53),
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(max_size=100),
)

json_values = st.recursive(
    json_primitives,
    lambda children: st.one_of(
        st.lists(children, max_size=5),
        st.dictionaries(st.text(max_size=10), children, max_size=5),
    ),
    max_leaves=20,
)

valid_params = st.dictionaries(
    st.from_regex(r"^[a-zA-Z][a-zA-Z0-9_]{0,15}$", fullmatch=True),
    json_values,
    max_size=5,
)

rpc_errors = st.builds(
    RPCError,
    code=st.integers(min_value=-33000, max_value=33000),
    message=st.text(max_size=50),
    data=st.one_of(st.none(), json_values.filter(lambda v: v is not None)),
)

messages = st.one_of(
    st.builds(Message.request, valid_method, st.one_of(st.none(), valid_params), id=valid_id),
    st.builds(Message.notification, valid_method, st.one_of(st.none(), valid_params)),
    st.builds(Message.response, valid_id, json_values),
    st.builds(
        lambda msg_id, error: Message(id=msg_id, error=error), valid_id, rpc_errors
    ),
)


# =============================================================================
# Property Tests for Wire Encoding
# =============================================================================


@pytest.mark.property
class TestWireRoundTrip:
    """Encoding then decoding preserves every populated field."""

    @given(messages)
    @settings(max_examples=200)
    def test_round_trip(self, message):
        decoded = Message.decode(message.encode_line())

        assert decoded == message
        assert decoded.id == message.id
        assert decoded.method_name == message.method_name
        assert decoded.params == message.params
        assert decoded.result == message.result
        assert decoded.error == message.error

    @given(messages)
    @settings(max_examples=100)
    def test_one_line_per_message(self, message):
        line = message.encode_line()

        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        assert json.loads(line)["jsonrpc"] == "2.0"

    @given(valid_method, valid_params, st.integers(min_value=1, max_value=2**31))
    @settings(max_examples=50)
    def test_request_wire_shape(self, method, params, req_id):
        wire = json.loads(Message.request(method, params, id=req_id).encode_line())

        assert wire["id"] == req_id
        assert wire["method"] == (method.value if isinstance(method, Method) else method)
        assert "result" not in wire
        assert "error" not in wire

    @given(valid_method)
    @settings(max_examples=50)
    def test_notification_has_no_id(self, method):
        wire = json.loads(Message.notification(method).encode_line())
        assert "id" not in wire

    @given(valid_id)
    @settings(max_examples=50)
    def test_null_result_is_kept(self, msg_id):
        """A JSON null result is a value, distinct from a missing result."""
        wire = json.loads(Message.response(msg_id, None).encode_line())
        assert "result" in wire
        assert wire["result"] is None


@pytest.mark.property
class TestDecodeRejects:
    """Malformed lines raise DECODE_FAILURE, never anything else."""

    @given(st.text(max_size=200))
    @settings(max_examples=200)
    def test_arbitrary_text(self, text):
        try:
            Message.decode(text)
        except BridgeError as e:
            assert e.code == "DECODE_FAILURE"
            assert e.is_transport

    @given(st.binary(max_size=100))
    @settings(max_examples=100)
    def test_arbitrary_bytes(self, data):
        try:
            Message.decode(data)
        except BridgeError as e:
            assert e.code == "DECODE_FAILURE"

    @given(valid_id, json_values, rpc_errors)
    @settings(max_examples=50)
    def test_result_and_error_together(self, msg_id, result, error):
        line = json.dumps(
            {"jsonrpc": "2.0", "id": msg_id, "result": result, "error": error.to_dict()}
        )
        with pytest.raises(BridgeError):
            Message.decode(line)


@pytest.mark.property
class TestToolResultDecoding:
    """tools/call results never raise while decoding."""

    @given(json_values)
    @settings(max_examples=200)
    def test_any_result(self, raw):
        result = ToolResult.from_result(raw)
        assert isinstance(result.is_error, bool)
        assert isinstance(result.text, str)

    @given(st.lists(st.text(max_size=20), max_size=5))
    @settings(max_examples=50)
    def test_text_parts_joined(self, parts):
        raw = {"content": [{"type": "text", "text": p} for p in parts]}
        assert ToolResult.from_result(raw).text == "\n".join(parts)

    @given(rpc_errors)
    @settings(max_examples=50)
    def test_error_response(self, error):
        result = ToolResult.from_error(error)
        assert result.is_error
        assert result.text == error.message
