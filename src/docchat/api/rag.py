"""API router exposing the chat session: documents, messages and streaming turns."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from docchat.models import Document, Message, UploadedFile
from docchat.notifications import Notification
from docchat.services.rag import RAGSession, get_rag_session

LOGGER = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

router = APIRouter(prefix="/session", tags=["session"])


class CitationOut(BaseModel):
    document_name: str
    page: int
    snippet: str


class MessageOut(BaseModel):
    """A conversation entry as shown to clients."""

    id: str
    role: str
    content: str
    sources: Optional[list[CitationOut]] = None
    timestamp: datetime
    is_error: bool = False

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        sources = None
        if message.sources is not None:
            sources = [
                CitationOut(document_name=source.document_name, page=source.page, snippet=source.snippet)
                for source in message.sources
            ]
        return cls(
            id=message.id,
            role=message.role.value,
            content=message.content,
            sources=sources,
            timestamp=message.timestamp,
            is_error=message.is_error,
        )


class DocumentOut(BaseModel):
    """An uploaded document without its chunk bodies."""

    id: str
    name: str
    size: int
    status: str
    page_count: Optional[int] = None
    chunk_count: int = 0
    error: Optional[str] = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentOut":
        return cls(
            id=document.id,
            name=document.name,
            size=document.size,
            status=document.status.value,
            page_count=document.page_count,
            chunk_count=len(document.chunks),
            error=document.error,
        )


class SessionState(BaseModel):
    """Snapshot of everything a client needs to render the session."""

    session_id: str
    documents: list[DocumentOut]
    messages: list[MessageOut]
    is_loading: bool
    explanation_mode: str
    ready_document_count: int
    stream_state: str


class SendMessageRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Question to ask against the uploaded documents.")


class NotificationOut(BaseModel):
    level: str
    message: str
    timestamp: datetime

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationOut":
        return cls(level=notification.level.value, message=notification.message, timestamp=notification.timestamp)


class ExplanationModeOut(BaseModel):
    explanation_mode: str


def _documents(session: RAGSession) -> list[DocumentOut]:
    return [DocumentOut.from_document(document) for document in session.documents]


def _messages(session: RAGSession) -> list[MessageOut]:
    return [MessageOut.from_message(message) for message in session.messages]


@router.get("", response_model=SessionState)
def read_session(session: RAGSession = Depends(get_rag_session)) -> SessionState:
    """Return the full session snapshot."""

    return SessionState(
        session_id=session.session_id,
        documents=_documents(session),
        messages=_messages(session),
        is_loading=session.is_loading,
        explanation_mode=session.explanation_mode.value,
        ready_document_count=session.ready_document_count,
        stream_state=session.stream_state.value,
    )


@router.get("/documents", response_model=list[DocumentOut])
def list_documents(session: RAGSession = Depends(get_rag_session)) -> list[DocumentOut]:
    return _documents(session)


@router.post("/documents", response_model=list[DocumentOut])
async def upload_documents(
    files: list[UploadFile] = File(...),
    session: RAGSession = Depends(get_rag_session),
) -> list[DocumentOut]:
    """Ingest every uploaded file concurrently.

    A file that cannot be processed is returned with status ``error``; the
    request itself still succeeds.
    """

    if not files:
        raise HTTPException(status_code=400, detail="At least one file must be provided")

    uploads = []
    for upload in files:
        data = await upload.read()
        uploads.append(UploadedFile(name=upload.filename or "upload", data=data))

    results = await asyncio.gather(*(session.add_document(upload) for upload in uploads))
    return [DocumentOut.from_document(document) for document in results if document is not None]


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(document_id: str, session: RAGSession = Depends(get_rag_session)) -> None:
    if not session.remove_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")


@router.get("/messages", response_model=list[MessageOut])
def list_messages(session: RAGSession = Depends(get_rag_session)) -> list[MessageOut]:
    return _messages(session)


@router.delete("/messages", status_code=204)
async def clear_messages(session: RAGSession = Depends(get_rag_session)) -> None:
    session.clear_conversation()


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


@router.post("/messages")
async def send_message(
    request: SendMessageRequest,
    session: RAGSession = Depends(get_rag_session),
) -> StreamingResponse:
    """Answer a question as a server-sent event stream.

    Emits ``message`` events carrying the changed message after every update
    (the user message first, then the growing assistant message) and a final
    ``done`` event. ``ping`` events keep idle connections open.
    """

    text = request.text.strip()
    if not text:
        raise HTTPException(status_code=422, detail="Message must not be empty")

    async def event_gen() -> AsyncIterator[str]:
        queue: asyncio.Queue[Optional[Message]] = asyncio.Queue()

        async def producer() -> None:
            try:
                await session.send_message(text, on_update=queue.put_nowait)
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(producer())
        try:
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield _sse("ping", "{}")
                    continue
                if message is None:
                    break
                yield _sse("message", MessageOut.from_message(message).model_dump_json())
            yield _sse("done", "[DONE]")
        finally:
            if not task.done():
                LOGGER.info("Client disconnected; stopping turn")
                task.cancel()

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_gen(), media_type="text/event-stream", headers=headers)


@router.post("/stop")
async def stop_turn(session: RAGSession = Depends(get_rag_session)) -> dict[str, bool]:
    return {"stopped": session.stop()}


@router.post("/explanation-mode/toggle", response_model=ExplanationModeOut)
async def toggle_explanation_mode(session: RAGSession = Depends(get_rag_session)) -> ExplanationModeOut:
    return ExplanationModeOut(explanation_mode=session.toggle_explanation_mode().value)


@router.get("/notifications", response_model=list[NotificationOut])
async def drain_notifications(session: RAGSession = Depends(get_rag_session)) -> list[NotificationOut]:
    """Return and clear pending notifications."""

    return [NotificationOut.from_notification(item) for item in session.drain_notifications()]
