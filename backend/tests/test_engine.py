"""End-to-end tests for ChatEngine event handling and user actions."""
import pytest

from chatsync.realtime.models import ConnectionState, User


class TestScenario:

    @pytest.mark.asyncio
    async def test_connect_join_history_and_new_message(self, engine, transport, make_wire_message):
        """connect -> joinChat -> recentMessages [] -> newMessage "hi"."""
        await engine.join("bob", 1)
        await engine.connection.drain()
        session = transport.latest

        session.fire("connect")
        await engine.connection.drain()
        assert session.emitted == [("joinChat", {"username": "bob", "userId": 1})]

        session.fire("recentMessages", [])
        session.fire("newMessage", make_wire_message("hi", username="bob", user_id=1))

        assert engine.state is ConnectionState.JOINED
        messages = engine.store.messages
        assert len(messages) == 1
        assert messages[0].content == "hi"
        assert messages[0].author.username == "bob"
        assert messages[0].isSystem is False


class TestInboundEvents:

    @pytest.mark.asyncio
    async def test_recent_messages_replace_history(
        self, engine, transport, joined_engine, make_wire_message
    ):
        session = await joined_engine(engine, transport)
        session.fire("newMessage", make_wire_message("before sync"))
        session.fire("recentMessages", [make_wire_message("m1"), make_wire_message("m2")])
        session.fire("newMessage", make_wire_message("m3"))

        assert [m.content for m in engine.store] == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_kept(self, engine, transport, joined_engine, make_wire_message):
        session = await joined_engine(engine, transport)
        session.fire("newMessage", make_wire_message("hi", message_id="42"))
        session.fire("newMessage", make_wire_message("hi", message_id="42"))
        assert [m.id for m in engine.store] == ["42", "42"]

    @pytest.mark.asyncio
    async def test_user_joined_and_left(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        session.fire("userJoined", {"username": "alice"})
        session.fire("userLeft", {"username": "alice"})

        contents = [m.content for m in engine.store]
        assert contents == ["alice joined the chat", "alice left the chat"]
        assert all(m.isSystem for m in engine.store)

    @pytest.mark.asyncio
    async def test_join_leave_text_does_not_touch_presence(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        session.fire("onlineUsers", [{"id": 1, "username": "bob"}])
        session.fire("userJoined", {"username": "alice"})
        assert engine.presence.usernames() == ["bob"]

    @pytest.mark.asyncio
    async def test_online_users_replaced(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        session.fire("onlineUsers", [{"id": 1, "username": "a"}])
        session.fire("onlineUsers", [{"id": 1, "username": "a"}, {"id": 2, "username": "b"}])
        assert set(engine.presence.online) == {User(id=1, username="a"), User(id=2, username="b")}

    @pytest.mark.asyncio
    async def test_own_typing_signal_ignored(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport, username="bob")
        session.fire("userTyping", {"username": "bob", "isTyping": True})
        assert len(engine.store) == 0

    @pytest.mark.asyncio
    async def test_other_typing_signal(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport, username="bob")
        session.fire("userTyping", {"username": "alice", "isTyping": True})
        session.fire("userTyping", {"username": "alice", "isTyping": False})
        assert [m.content for m in engine.store] == ["alice is typing..."]

    @pytest.mark.asyncio
    async def test_backend_error_notification(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        session.fire("error", {"message": "User not found"})

        assert engine.notifications.current.text == "User not found"
        assert engine.notifications.current.isError is True
        assert engine.state is ConnectionState.JOINED

    @pytest.mark.asyncio
    async def test_malformed_payload_is_soft_error(
        self, engine, transport, joined_engine, make_wire_message
    ):
        session = await joined_engine(engine, transport)
        session.fire("newMessage", make_wire_message("ok"))
        session.fire("newMessage", {"content": "no author"})

        assert [m.content for m in engine.store] == ["ok"]
        assert engine.notifications.current.isError is True
        assert "newMessage" in engine.notifications.current.text
        assert engine.state is ConnectionState.JOINED

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        engine.notifications.clear()
        session.fire("reactionAdded", {"emoji": "+1"})
        assert engine.notifications.current is None
        assert len(engine.store) == 0


class TestOutbound:

    @pytest.mark.asyncio
    async def test_send_message_when_joined(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport, user_id=9)
        assert await engine.send_message("hello there") is True
        assert session.emitted[-1] == ("sendMessage", {"content": "hello there", "userId": 9})

    @pytest.mark.asyncio
    async def test_blank_message_not_sent(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport)
        assert await engine.send_message("   ") is False
        assert await engine.send_message("") is False
        assert [event for event, _ in session.emitted] == ["joinChat"]

    @pytest.mark.asyncio
    async def test_send_requires_joined(self, engine, transport):
        await engine.join("bob", 1)
        await engine.connection.drain()
        transport.latest.fire("connect")
        await engine.connection.drain()

        assert engine.state is ConnectionState.CONNECTED
        assert await engine.send_message("too early") is False

    @pytest.mark.asyncio
    async def test_send_without_session(self, engine):
        assert await engine.send_message("hi") is False
        assert await engine.send_typing(True) is False

    @pytest.mark.asyncio
    async def test_send_typing(self, engine, transport, joined_engine):
        session = await joined_engine(engine, transport, username="bob", user_id=1)
        assert await engine.send_typing(True) is True
        assert session.emitted[-1] == ("typing", {"username": "bob", "userId": 1, "isTyping": True})


class TestObservability:

    @pytest.mark.asyncio
    async def test_listeners_receive_facets(
        self, engine, transport, joined_engine, make_wire_message
    ):
        facets = []
        engine.add_listener(facets.append)
        session = await joined_engine(engine, transport)
        session.fire("newMessage", make_wire_message("hi"))
        session.fire("onlineUsers", [])

        assert "state" in facets
        assert "notification" in facets
        assert facets[-2:] == ["messages", "presence"]

    @pytest.mark.asyncio
    async def test_remove_listener(self, engine):
        facets = []
        engine.add_listener(facets.append)
        engine.remove_listener(facets.append)
        await engine.join("bob", 1)
        assert facets == []

    @pytest.mark.asyncio
    async def test_snapshot_uses_wire_names(
        self, engine, transport, joined_engine, make_wire_message
    ):
        session = await joined_engine(engine, transport)
        session.fire("newMessage", make_wire_message("hi", message_id="m1"))

        data = engine.snapshot().model_dump(mode="json", by_alias=True)
        assert data["state"] == "joined"
        assert data["identity"] == {"username": "bob", "userId": 1}
        assert data["messages"][0]["user"]["username"] == "bob"
        assert "createdAt" in data["messages"][0]
        assert data["notification"]["text"] == "Connected to server"
