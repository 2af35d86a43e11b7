from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Union

from docchat.completion import CompletionRequest, CompletionService, HttpCompletionService
from docchat.config import Settings, load_settings
from docchat.conversation import ConversationLog
from docchat.corpus import Corpus
from docchat.errors import ExtractionError, NetworkError, StreamProtocolError
from docchat.ingest.chunking import ChunkingConfig, chunk_text
from docchat.ingest.extractors import DocumentExtractor
from docchat.ingest.models import Chunk
from docchat.logging_config import AUDIT_LOGGER_NAME
from docchat.models import (
    Document,
    DocumentStatus,
    ExplanationMode,
    Message,
    Role,
    UploadedFile,
    new_id,
)
from docchat.notifications import Notification, NotificationCenter
from docchat.prompt_builder import build_citations, build_context, build_history
from docchat.retriever import retrieve
from docchat.streaming import StreamAssembler, StreamState, maybe_await
from docchat.telemetry import (
    emit_completion_request,
    emit_completion_result,
    emit_exception,
    emit_ingest_event,
    emit_retriever_event,
)

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

ERROR_MESSAGE_TEMPLATE = "Sorry, I encountered an error: {reason}. Please try again."

MessageCallback = Callable[[Message], Union[None, Awaitable[None]]]


@dataclass(slots=True)
class _Turn:
    """Mutable bookkeeping for the turn currently being answered."""

    task: Optional["asyncio.Task[Optional[Message]]"] = None
    assistant_message: Optional[Message] = None
    stop_requested: bool = False


class RAGSession:
    """State owner for one chat session.

    Holds the corpus of uploaded documents and the conversation log, and
    coordinates document ingestion and user turns. All state changes happen on
    the event loop by swapping whole snapshots, so concurrent ingestions do not
    need locks.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        completion_service: Optional[CompletionService] = None,
        extractor: Optional[DocumentExtractor] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.session_id = session_id or new_id()
        self.corpus = Corpus()
        self.log = ConversationLog()
        self.notifications = NotificationCenter()
        self._extractor = extractor or DocumentExtractor()
        self._completion = completion_service or HttpCompletionService.from_settings(self.settings)
        self._chunking = ChunkingConfig(
            chunk_chars=self.settings.chunk_chars,
            overlap_chars=self.settings.chunk_overlap,
        )
        self._explanation_mode = ExplanationMode.SIMPLE
        self._turn: Optional[_Turn] = None
        self._last_stream_state = StreamState.IDLE

    # Read-only projections -------------------------------------------------------
    @property
    def documents(self) -> Tuple[Document, ...]:
        return self.corpus.documents

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self.log.messages

    @property
    def is_loading(self) -> bool:
        return self._turn is not None

    @property
    def explanation_mode(self) -> ExplanationMode:
        return self._explanation_mode

    @property
    def ready_document_count(self) -> int:
        return self.corpus.ready_count

    @property
    def stream_state(self) -> StreamState:
        return self._last_stream_state

    def drain_notifications(self) -> list[Notification]:
        return self.notifications.drain()

    # Documents -------------------------------------------------------------------
    async def add_document(self, upload: UploadedFile) -> Optional[Document]:
        """Ingest *upload* and return its final record.

        Extraction failures leave the document in ``error`` status. Returns
        ``None`` when the document was removed before ingestion finished.
        """

        document = Document(id=new_id(), name=upload.name, size=upload.size)
        self.corpus.add(document)
        started = time.perf_counter()
        emit_ingest_event(
            "ingest.file.start",
            file_name=upload.name,
            session_id=self.session_id,
            document_id=document.id,
            size_bytes=upload.size,
        )
        if self.corpus.set_status(document.id, DocumentStatus.INDEXING) is None:
            return None

        try:
            chunks, page_count = await self._extract_and_chunk(document, upload)
        except Exception as error:
            return self._fail_document(document, error, started)

        updated = self.corpus.set_status(
            document.id,
            DocumentStatus.READY,
            chunks=chunks,
            page_count=page_count,
        )
        duration_ms = (time.perf_counter() - started) * 1000.0
        if updated is None:
            return None

        LOGGER.info("Indexed %s into %d chunks in %.1fms", upload.name, len(chunks), duration_ms)
        emit_ingest_event(
            "ingest.file.complete",
            file_name=upload.name,
            session_id=self.session_id,
            document_id=document.id,
            size_bytes=upload.size,
            duration_ms=duration_ms,
            pages=page_count,
            chunks=len(chunks),
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "session_id": self.session_id,
                "file_name": upload.name,
                "chunk_count": len(chunks),
            }
        )
        self.notifications.success(f"{upload.name} indexed successfully")
        return updated

    async def _extract_and_chunk(
        self, document: Document, upload: UploadedFile
    ) -> Tuple[Tuple[Chunk, ...], int]:
        timeout = self.settings.extraction_timeout
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._extractor.extract, upload.data, upload.name),
                timeout=timeout,
            )
        except asyncio.TimeoutError as error:
            raise ExtractionError(f"Extraction timed out after {timeout:g}s", cause=error) from error
        chunks = tuple(chunk_text(result.text, document.id, document.name, self._chunking))
        return chunks, result.page_count

    def _fail_document(self, document: Document, error: Exception, started: float) -> Optional[Document]:
        reason = str(error) or error.__class__.__name__
        if isinstance(error, ExtractionError):
            LOGGER.warning("Failed to process %s: %s", document.name, reason)
        else:
            LOGGER.exception("Unexpected error while processing %s", document.name)
            emit_exception(module=f"{__name__}.ingest", error=error, session_id=self.session_id)
        emit_ingest_event(
            "ingest.file.error",
            file_name=document.name,
            session_id=self.session_id,
            document_id=document.id,
            size_bytes=document.size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )
        updated = self.corpus.set_status(document.id, DocumentStatus.ERROR, error=reason)
        if updated is not None:
            self.notifications.error(f"Failed to process {document.name}")
        return updated

    def remove_document(self, document_id: str) -> bool:
        removed = self.corpus.remove(document_id)
        if removed:
            LOGGER.info("Removed document %s", document_id)
        return removed

    # Conversation ----------------------------------------------------------------
    def toggle_explanation_mode(self) -> ExplanationMode:
        self._explanation_mode = self._explanation_mode.toggled()
        return self._explanation_mode

    def clear_conversation(self) -> None:
        self.stop()
        self.log.clear()

    def stop(self) -> bool:
        """Cancel the in-flight turn, keeping whatever was streamed so far."""

        turn = self._turn
        if turn is None or turn.task is None or turn.task.done():
            return False
        turn.stop_requested = True
        turn.task.cancel()
        return True

    async def send_message(self, text: str, on_update: Optional[MessageCallback] = None) -> Optional[Message]:
        """Run one user turn and return the message that ended it.

        That is the streamed assistant message, or the error message appended
        when the turn failed. A turn interrupted by :meth:`stop` returns the
        partially streamed message (``None`` if streaming had not started).
        Blank input is ignored. A turn already in flight is stopped first, and
        only one turn runs at a time however many sends overlap.
        """

        content = text.strip()
        if not content:
            return None

        await self._stop_and_wait()

        # No await between the wait above and claiming the slot below.
        history = build_history(self.log.messages, self.settings.history_messages)
        user_message = self.log.append(Message(role=Role.USER, content=content))
        turn = _Turn()
        self._turn = turn
        turn.task = asyncio.create_task(self._run_turn(content, history, user_message, turn, on_update))
        try:
            return await turn.task
        except asyncio.CancelledError:
            if turn.stop_requested and turn.task.cancelled():
                return turn.assistant_message
            raise
        finally:
            if self._turn is turn and turn.task.done():
                self._turn = None

    async def _stop_and_wait(self) -> None:
        while self._turn is not None:
            turn = self._turn
            if turn.task is None or turn.task.done():
                self._turn = None
                continue
            self.stop()
            await asyncio.wait({turn.task})

    async def _run_turn(
        self,
        content: str,
        history: list[dict[str, str]],
        user_message: Message,
        turn: _Turn,
        on_update: Optional[MessageCallback],
    ) -> Message:
        await self._notify(on_update, user_message)

        req_id = uuid.uuid4().hex
        started = time.perf_counter()
        assembler = StreamAssembler(
            max_malformed_retries=self.settings.stream_max_malformed_retries,
            max_buffer_chars=self.settings.stream_max_buffer_chars,
        )
        try:
            chunks = self._retrieve(content)
            citations = build_citations(chunks)
            request = CompletionRequest(
                message=content,
                context=build_context(chunks),
                history=history,
                explanation_mode=self._explanation_mode,
            )
            emit_completion_request(
                req_id=req_id,
                session_id=self.session_id,
                message_preview=content,
                context_len=len(request.context),
                history_len=len(history),
                explanation_mode=request.explanation_mode.value,
                sources=[chunk.id for chunk in chunks],
            )

            async with self._completion.stream(request) as frames:
                assistant = self.log.begin_streaming(
                    Message(role=Role.ASSISTANT, content="", sources=citations or None)
                )
                turn.assistant_message = assistant
                await self._notify(on_update, assistant)

                async def _on_content(accumulated: str) -> None:
                    message = self.log.update_streaming(assistant.id, accumulated)
                    turn.assistant_message = message
                    await self._notify(on_update, message)

                await assembler.run(frames, _on_content)
        except asyncio.CancelledError:
            LOGGER.info("Turn %s cancelled after %d characters", req_id, len(assembler.content))
            if turn.stop_requested:
                self.notifications.info("Response generation stopped")
            raise
        except Exception as error:
            return await self._fail_turn(error, req_id, on_update)
        finally:
            if turn.assistant_message is not None:
                self.log.end_streaming(turn.assistant_message.id)
            self._last_stream_state = assembler.state
            emit_completion_result(
                req_id=req_id,
                session_id=self.session_id,
                state=assembler.state.value,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                frames=assembler.frames,
                answer_preview=assembler.content,
            )

        AUDIT_LOGGER.info(
            {
                "event": "turn",
                "session_id": self.session_id,
                "question": content,
                "sources": [citation.document_name for citation in citations],
                "answer_chars": len(assembler.content),
            }
        )
        if turn.assistant_message is None:
            raise RuntimeError(f"Turn {req_id} finished without an assistant message")
        return turn.assistant_message

    def _retrieve(self, query: str) -> list[Chunk]:
        top_k = self.settings.retrieval_top_k
        started = time.perf_counter()
        chunks = retrieve(query, self.corpus, top_k)
        emit_retriever_event(
            session_id=self.session_id,
            query=query,
            top_k=top_k,
            results=[{"id": chunk.id, "page": chunk.page} for chunk in chunks],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return chunks

    async def _fail_turn(self, error: Exception, req_id: str, on_update: Optional[MessageCallback]) -> Message:
        reason = str(error) or error.__class__.__name__
        if isinstance(error, (NetworkError, StreamProtocolError)):
            LOGGER.warning("Turn %s failed: %s", req_id, reason)
        else:
            LOGGER.exception("Unexpected error during turn %s", req_id)
            emit_exception(module=f"{__name__}.turn", error=error, req_id=req_id, session_id=self.session_id)

        self.notifications.error(reason)
        message = self.log.append(
            Message(
                role=Role.ASSISTANT,
                content=ERROR_MESSAGE_TEMPLATE.format(reason=reason),
                is_error=True,
            )
        )
        await self._notify(on_update, message)
        return message

    @staticmethod
    async def _notify(on_update: Optional[MessageCallback], message: Message) -> None:
        if on_update is not None:
            await maybe_await(on_update(message))

    async def close(self) -> None:
        """Stop any in-flight turn and drop all session state."""

        await self._stop_and_wait()
        self.log.clear()
        for document in self.corpus.documents:
            self.corpus.remove(document.id)
        LOGGER.info("Session %s closed", self.session_id)


_rag_session: Optional[RAGSession] = None


def get_rag_session() -> RAGSession:
    """FastAPI dependency returning the shared :class:`RAGSession` instance."""

    global _rag_session
    if _rag_session is None:
        _rag_session = RAGSession()
    return _rag_session


async def close_rag_session() -> None:
    """Tear down the shared session, if one was created."""

    global _rag_session
    session, _rag_session = _rag_session, None
    if session is not None:
        await session.close()
