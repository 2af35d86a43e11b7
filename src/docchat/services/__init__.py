"""Service layer objects that own session state."""

from .rag import RAGSession, close_rag_session, get_rag_session

__all__ = ["RAGSession", "close_rag_session", "get_rag_session"]
