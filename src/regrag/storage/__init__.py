"""Collaborator interfaces and their in-memory and HTTP implementations."""

from .base import DocumentStore, EmbeddingOracle, TextGenerator
from .http import HttpDocumentStore, HttpEmbeddingClient, HttpTextGenerator
from .memory import HashingEmbedder, InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "EmbeddingOracle",
    "HashingEmbedder",
    "HttpDocumentStore",
    "HttpEmbeddingClient",
    "HttpTextGenerator",
    "InMemoryDocumentStore",
    "TextGenerator",
]
