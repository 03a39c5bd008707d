import asyncio

import pytest

from shared.envelope import AuthAck, Broadcast, Chat, Disconnect, encode
from shared.errors import TransportError
from shared.MessageTypes import AuthStatus
from minechat.session import EndedBy, Session, SessionEnd

from conftest import FakeConnection, ScriptedInput


def _session(connection, display, interrupt=None):
    return Session(connection, "client-identity", display=display, interrupt=interrupt,
                   farewell_timeout=0.5)


@pytest.mark.asyncio
async def test_server_broadcast_then_disconnect(display):
    connection = FakeConnection([
        Broadcast(sender_name="Bob", text="hi"),
        Disconnect(reason="server shutdown"),
    ])
    session = _session(connection, display)

    end = await session.run(ScriptedInput())

    assert end == SessionEnd(reason="server shutdown", initiated_by=EndedBy.SERVER)
    assert display.lines == ["[Bob] hi", "Disconnected: server shutdown"]
    assert connection.sent == []
    assert connection.closed
    assert not session.alive


@pytest.mark.asyncio
async def test_chat_then_exit_command(display):
    connection = FakeConnection()

    end = await _session(connection, display).run(ScriptedInput(["hello", "/exit"]))

    assert end == SessionEnd(reason="Client exit", initiated_by=EndedBy.CLIENT)
    assert connection.sent_envelopes == [Chat(text="hello"), Disconnect(reason="Client exit")]
    assert connection.closed


@pytest.mark.asyncio
async def test_malformed_frame_is_dropped(display):
    connection = FakeConnection([
        Broadcast(sender_name="Alice", text="one"),
        b"{this is not json\n",
        Broadcast(sender_name="Bob", text="two"),
        Disconnect(reason="bye"),
    ])

    end = await _session(connection, display).run(ScriptedInput())

    assert display.lines[:2] == ["[Alice] one", "[Bob] two"]
    assert end.reason == "bye"


@pytest.mark.asyncio
async def test_end_of_input_says_goodbye(display):
    connection = FakeConnection()

    end = await _session(connection, display).run(ScriptedInput(eof=True))

    assert end.initiated_by is EndedBy.CLIENT
    assert connection.sent_envelopes == [Disconnect(reason="Client exit")]
    assert display.lines == ["Disconnected: Client exit"]


@pytest.mark.asyncio
async def test_interrupt_says_goodbye(display):
    connection = FakeConnection()
    interrupt = asyncio.Event()
    interrupt.set()

    end = await _session(connection, display, interrupt).run(ScriptedInput())

    assert end == SessionEnd(reason="Client exit", initiated_by=EndedBy.CLIENT)
    assert connection.sent_envelopes == [Disconnect(reason="Client exit")]
    assert connection.closed


@pytest.mark.asyncio
async def test_interrupt_while_parked(display):
    connection = FakeConnection()
    interrupt = asyncio.Event()
    session = _session(connection, display, interrupt)

    task = asyncio.create_task(session.run(ScriptedInput()))
    await asyncio.sleep(0.05)
    assert session.alive
    interrupt.set()
    end = await asyncio.wait_for(task, timeout=1.0)

    assert end.reason == "Client exit"
    assert connection.sent_envelopes == [Disconnect(reason="Client exit")]


@pytest.mark.asyncio
async def test_peer_closed_without_disconnect(display):
    connection = FakeConnection([Broadcast(sender_name="Bob", text="hi")], eof=True)

    end = await _session(connection, display).run(ScriptedInput())

    assert end == SessionEnd(reason="connection closed", initiated_by=EndedBy.SERVER)
    assert display.lines == ["[Bob] hi", "Disconnected: connection closed"]
    assert connection.sent == []


@pytest.mark.asyncio
async def test_failed_goodbye_is_swallowed(display):
    connection = FakeConnection(fail_send=True)

    end = await _session(connection, display).run(ScriptedInput(eof=True))

    assert end.reason == "Client exit"
    assert connection.closed


@pytest.mark.asyncio
async def test_failed_chat_send_propagates(display):
    connection = FakeConnection(fail_send=True)

    with pytest.raises(TransportError):
        await _session(connection, display).run(ScriptedInput(["hello"]))
    assert connection.closed


@pytest.mark.asyncio
async def test_non_session_messages_are_ignored(display):
    connection = FakeConnection([
        AuthAck(status=AuthStatus.SUCCESS, message="again?"),
        Chat(text="echo"),
        b'{"type":"TYPING","payload":{"from":"Bob"}}\n',
        Broadcast(sender_name="Bob", text="still here"),
        Disconnect(reason="done"),
    ])

    await _session(connection, display).run(ScriptedInput())

    assert display.lines == ["[Bob] still here", "Disconnected: done"]


@pytest.mark.asyncio
async def test_lines_are_trimmed_and_blank_lines_skipped(display):
    connection = FakeConnection()

    await _session(connection, display).run(ScriptedInput(["  hi there \n", "", "   ", "/exit\n"]))

    assert connection.sent_envelopes == [Chat(text="hi there"), Disconnect(reason="Client exit")]


@pytest.mark.asyncio
async def test_busy_server_does_not_starve_input(display):
    flood = [Broadcast(sender_name="Spam", text=str(i)) for i in range(50)]
    connection = FakeConnection(flood)

    end = await _session(connection, display).run(ScriptedInput(["/exit"]))

    assert end.initiated_by is EndedBy.CLIENT
    assert len([line for line in display.lines if line.startswith("[Spam]")]) <= 2
    assert connection.sent_envelopes == [Disconnect(reason="Client exit")]


@pytest.mark.asyncio
async def test_outbound_frames_are_single_lines(display):
    connection = FakeConnection()

    await _session(connection, display).run(ScriptedInput(["one", "two", "/exit"]))

    assert connection.sent == [
        encode(Chat(text="one")),
        encode(Chat(text="two")),
        encode(Disconnect(reason="Client exit")),
    ]


@pytest.mark.asyncio
async def test_hung_goodbye_is_bounded(display):
    connection = FakeConnection(hang_send=True)
    session = Session(connection, "client-identity", display=display, farewell_timeout=0.1)

    end = await asyncio.wait_for(session.run(ScriptedInput(eof=True)), timeout=1.0)

    assert end == SessionEnd(reason="Client exit", initiated_by=EndedBy.CLIENT)
    assert connection.closed
    assert connection.sent == []
