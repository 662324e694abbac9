"""
Tests for the viewer-side transport session.

Run tests:
    pytest tests/test_session.py -v
"""

import asyncio
import json
import uuid

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from viewer.session import ViewerSession, parse_page_url, viz_id_from_path


class FakeConnection:
    """In-memory stand-in for a websocket client connection."""

    def __init__(self, inbound=(), closed=False, drop_after=None):
        self.inbound = list(inbound)
        self.sent = []
        self.closed = closed
        self.drop_after = drop_after

    async def send(self, message):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(message))

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for i, frame in enumerate(self.inbound):
            if i == self.drop_after:
                raise ConnectionClosedError(None, None)
            yield frame


def _frame(**payload):
    return json.dumps(payload)


class TestPageUrl:
    def test_endpoint_and_viz_id(self):
        assert parse_page_url("http://localhost:8000/demo") == ("ws://localhost:8000/", "demo")

    def test_https_uses_wss(self):
        endpoint, _ = parse_page_url("https://viz.example.org/demo")
        assert endpoint == "wss://viz.example.org/"

    def test_viz_id_strips_every_slash(self):
        assert viz_id_from_path("/runs/42/") == "runs42"

    def test_url_without_host(self):
        with pytest.raises(ValueError):
            parse_page_url("/demo")


class TestLifecycle:
    def test_client_id_is_a_uuid(self):
        session = ViewerSession("http://localhost:8000/demo")
        uuid.UUID(session.client_id)
        assert session.client_id != ViewerSession("http://localhost:8000/demo").client_id

    def test_open_sends_connect(self):
        connection = FakeConnection()
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")
        asyncio.run(session.open(connection))
        assert connection.sent == [{"action": "connect", "clientId": "c1", "vizId": "demo"}]

    def test_context_exit_sends_disconnect_and_closes(self):
        connection = FakeConnection()

        async def scenario():
            async with ViewerSession("http://localhost:8000/demo", client_id="c1") as session:
                await session.open(connection)

        asyncio.run(scenario())
        assert connection.sent[-1] == {"action": "disconnect", "clientId": "c1", "vizId": "demo"}
        assert connection.closed

    def test_disconnect_sent_on_error_path(self):
        connection = FakeConnection()

        async def scenario():
            async with ViewerSession("http://localhost:8000/demo", client_id="c1") as session:
                await session.open(connection)
                raise KeyError("boom")

        with pytest.raises(KeyError):
            asyncio.run(scenario())
        assert connection.sent[-1]["action"] == "disconnect"

    def test_close_tolerates_closed_socket(self):
        connection = FakeConnection()
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")

        async def scenario():
            await session.open(connection)
            connection.closed = True
            await session.close()

        asyncio.run(scenario())
        assert session.connection is None

    def test_close_releases_socket_when_send_fails(self):
        connection = FakeConnection()
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")

        async def scenario():
            await session.open(connection)

            async def failing_send(message):
                raise OSError("broken pipe")

            connection.send = failing_send
            await session.close()

        with pytest.raises(OSError):
            asyncio.run(scenario())
        assert connection.closed
        assert session.component.store._listeners == []

    def test_close_without_open_unsubscribes_component(self):
        session = ViewerSession("http://localhost:8000/demo")
        asyncio.run(session.close())
        assert session.component.store._listeners == []

    def test_unexpected_close_ends_run_quietly(self, info, caplog):
        connection = FakeConnection(
            inbound=[_frame(action="initialize", info=info, traces={}), _frame(action="saveHTML")],
            drop_after=1,
        )
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")

        async def scenario():
            await session.open(connection)
            await session.run()

        asyncio.run(scenario())
        assert session.component.store.has_info
        assert session.saved == 0
        assert "closed unexpectedly" in caplog.text

    def test_run_requires_open(self):
        with pytest.raises(RuntimeError):
            asyncio.run(ViewerSession("http://localhost:8000/demo").run())


class TestDispatch:
    def test_full_exchange(self, info, trace_a):
        connection = FakeConnection(inbound=[
            _frame(action="initialize", info=info, traces={}),
            _frame(action="putTrace", tId="a", t=trace_a),
            _frame(action="saveHTML"),
            _frame(action="removeTrace", tId="a"),
        ])
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")

        async def scenario():
            await session.open(connection)
            await session.run()

        asyncio.run(scenario())

        assert session.component.store.snapshot() == {}
        save = connection.sent[-1]
        assert save["action"] == "save"
        assert (save["clientId"], save["vizId"]) == ("c1", "demo")
        assert 'data-trace-id="a"' in save["content"]
        assert save["content"].endswith("</style>")
        assert session.saved == 1

    def test_unknown_action_is_ignored(self, caplog):
        session = ViewerSession("http://localhost:8000/demo")
        session.connection = FakeConnection()

        asyncio.run(session.dispatch('{"action": "selfDestruct"}'))
        asyncio.run(session.dispatch("{not json"))

        assert len(session.component.store) == 0
        assert "Ignoring message" in caplog.text

    def test_bad_frames_do_not_end_session(self, info, trace_a, caplog):
        connection = FakeConnection(inbound=[
            b"\xff\xfe{",
            _frame(action="initialize", info={"x": [0, "a", 2]}, traces={}),
            _frame(action="initialize", traces={}),
            _frame(action="initialize", info=info, traces={}),
            _frame(action="putTrace", tId="a", t=trace_a),
            _frame(action="putTrace", tId="b", t=trace_a),
            _frame(action="removeTrace", tId="a"),
        ])
        session = ViewerSession("http://localhost:8000/demo", client_id="c1")

        async def scenario():
            await session.open(connection)
            await session.run()

        asyncio.run(scenario())
        assert session.component.store.info == info
        assert session.component.store.ids() == ["b"]
        assert session.component.cell("b")
        assert caplog.text.count("Ignoring message") == 3

    def test_remove_unknown_trace(self, info):
        session = ViewerSession("http://localhost:8000/demo")
        session.connection = FakeConnection()

        async def scenario():
            await session.dispatch(_frame(action="initialize", info=info, traces={}))
            await session.dispatch(_frame(action="removeTrace", tId="ghost"))

        asyncio.run(scenario())
        assert session.component.store.has_info
        assert len(session.component.store) == 0
