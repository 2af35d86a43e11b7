"""Chat with uploaded documents using retrieval-augmented generation."""

__version__ = "0.1.0"
