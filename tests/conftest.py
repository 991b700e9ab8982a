"""
Global pytest configuration and fixtures for test isolation.

Every test starts from reseeded random state, fresh cached settings and
container, and no trace id or stored probe timings.
"""

import random

import numpy as np
import pytest

from regrag.models import Chunk, DocumentInfo
from regrag.storage.memory import HashingEmbedder, InMemoryDocumentStore


def reset_all_global_state():
    """Reset module-level caches and reseed random generators."""
    random.seed(1337)
    np.random.seed(1337)

    from regrag.api.server import _reset_globals_for_tests
    from regrag.config.container import get_container
    from regrag.config.settings import get_settings
    from regrag.observability.logging import clear_trace_id
    from regrag.observability.probe import clear_trace_metrics

    _reset_globals_for_tests()
    get_settings.cache_clear()
    get_container.cache_clear()
    clear_trace_id()
    clear_trace_metrics()


@pytest.fixture(autouse=True)
def test_isolation():
    """Per-test isolation to ensure clean state for each test."""
    reset_all_global_state()
    yield


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def embedder():
    return HashingEmbedder(256)


@pytest.fixture
def regulatory_document():
    """A short capital adequacy circular with numbered sections."""
    return DocumentInfo(
        doc_id="CIRC-2024-01",
        title="Capital Adequacy Circular",
        doc_type_code="CIR",
        doc_type_desc="Circular",
        version="1.0",
        issue_date="2024-01-15",
        headers=("Central Bank", "Central Bank"),
        footers=("Page 1", "Page 2"),
        body_content=(
            "1. Introduction\n\n"
            "This circular sets out the capital adequacy requirements for licensed banks. "
            "Banks must maintain regulatory capital at all times.",
            "2. Capital Requirements\n\n"
            "2.1 Minimum Ratio\n\n"
            "The capital adequacy ratio must exceed 8% of risk-weighted assets. "
            "Tier 1 capital shall constitute at least 6% of risk-weighted assets.\n\n"
            "2.2 Reporting\n\n"
            "Banks shall submit quarterly compliance reports to the supervisory department.",
        ),
        page_numbers=(1, 2),
    )


@pytest.fixture
def add_chunk(store, embedder):
    """Embed and store a single chunk in the ``store`` fixture."""

    async def _add(doc_id, chunk_id, content, keywords=()):
        chunk = Chunk(id=chunk_id, content=content, keywords=list(keywords))
        await store.upsert_chunk(doc_id, chunk, await embedder.embed(content))
        return chunk

    return _add
