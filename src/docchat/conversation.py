"""Ordered log of the messages exchanged in a session."""
from __future__ import annotations

from dataclasses import replace
from typing import Optional, Tuple

from .models import Message, Role


class ConversationLog:
    """Append-only sequence of messages.

    Only the active streaming message may change after it was appended, and
    only its ``content``. Each change replaces the whole tuple.
    """

    def __init__(self) -> None:
        self._messages: Tuple[Message, ...] = ()
        self._streaming_id: Optional[str] = None

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self._messages

    @property
    def streaming_id(self) -> Optional[str]:
        return self._streaming_id

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> Message:
        self._messages = self._messages + (message,)
        return message

    def begin_streaming(self, message: Message) -> Message:
        """Append an assistant message and make it the streaming target."""

        if message.role is not Role.ASSISTANT:
            raise ValueError("Only assistant messages can be streamed")
        self.append(message)
        self._streaming_id = message.id
        return message

    def update_streaming(self, message_id: str, content: str) -> Message:
        """Replace the content of streaming message *message_id*.

        Raises :class:`RuntimeError` when *message_id* is not the active
        streaming target, which keeps a stale turn from writing into the
        message of the turn that replaced it.
        """

        if self._streaming_id is None or message_id != self._streaming_id:
            raise RuntimeError(f"Message {message_id} is not the active streaming message")
        updated: Optional[Message] = None
        messages = []
        for message in self._messages:
            if message.id == message_id:
                updated = replace(message, content=content)
                messages.append(updated)
            else:
                messages.append(message)
        if updated is None:
            self._streaming_id = None
            raise RuntimeError("Streaming message is no longer in the log")
        self._messages = tuple(messages)
        return updated

    def end_streaming(self, message_id: Optional[str] = None) -> None:
        """Stop streaming into *message_id*, or into whatever streams if omitted."""

        if message_id is None or message_id == self._streaming_id:
            self._streaming_id = None

    def clear(self) -> None:
        self._messages = ()
        self._streaming_id = None
