from __future__ import annotations

import pytest

from docchat.conversation import ConversationLog
from docchat.models import Message, Role


def test_streaming_message_content_is_replaced():
    log = ConversationLog()
    user = log.append(Message(role=Role.USER, content="Hi"))
    assistant = log.begin_streaming(Message(role=Role.ASSISTANT, content=""))
    snapshot = log.messages

    updated = log.update_streaming(assistant.id, "Hello")

    assert log.streaming_id == assistant.id
    assert updated.id == assistant.id
    assert [message.content for message in log.messages] == ["Hi", "Hello"]
    assert log.messages[0] is user
    assert snapshot[1].content == ""


def test_update_requires_active_stream():
    log = ConversationLog()
    assistant = log.begin_streaming(Message(role=Role.ASSISTANT, content=""))
    log.end_streaming(assistant.id)

    with pytest.raises(RuntimeError):
        log.update_streaming(assistant.id, "late")


def test_stale_message_cannot_write_into_new_stream():
    log = ConversationLog()
    old = log.begin_streaming(Message(role=Role.ASSISTANT, content=""))
    new = log.begin_streaming(Message(role=Role.ASSISTANT, content=""))

    with pytest.raises(RuntimeError):
        log.update_streaming(old.id, "stale")
    log.end_streaming(old.id)

    assert log.streaming_id == new.id
    assert log.update_streaming(new.id, "fresh").content == "fresh"
    assert [message.content for message in log.messages] == ["", "fresh"]


def test_only_assistant_messages_stream():
    log = ConversationLog()

    with pytest.raises(ValueError):
        log.begin_streaming(Message(role=Role.USER, content="Hi"))
    assert len(log) == 0


def test_clear_while_streaming_drops_target():
    log = ConversationLog()
    assistant = log.begin_streaming(Message(role=Role.ASSISTANT, content=""))

    log.clear()

    assert log.messages == ()
    assert log.streaming_id is None
    with pytest.raises(RuntimeError):
        log.update_streaming(assistant.id, "late")
