"""
Tests for the chunking strategies, the strategy selector and the smart pipeline.
"""

from unittest.mock import AsyncMock

import pytest

from regrag.chunking import (
    ChunkingStrategySelector,
    ContextualChunker,
    HierarchicalChunker,
    MultiModalChunker,
    QuestionAnswerChunker,
    SemanticChunker,
    SemanticVariant,
    SmartChunker,
    SmartChunkingOptions,
    StandardChunker,
    TopicBasedChunker,
)
from regrag.chunking.hierarchical import parse_sections
from regrag.chunking.question_answer import extract_pairs
from regrag.chunking.semantic import cluster_sentences, merge_adjacent_groups
from regrag.chunking.smart import detect_content_type, map_concepts, merge_overlapping
from regrag.chunking.text import estimate_tokens, extract_keywords, jaccard, split_sentences
from regrag.chunking.topic import extract_topics
from regrag.errors import GenerationError
from regrag.models import Chunk, ChunkType, DocumentInfo

# 59 characters, 15 estimated tokens
SENTENCE = "Banks must hold capital against every credit risk exposure."


def document(*pages: str, doc_id: str = "DOC-1") -> DocumentInfo:
    return DocumentInfo(
        doc_id=doc_id,
        title="Test Document",
        body_content=tuple(pages),
        page_numbers=tuple(range(1, len(pages) + 1)),
    )


HIERARCHICAL_TEXT = (
    "6. Capital\n"
    "Banks must hold capital.\n"
    "6.1 Tier Capital\n"
    "Tier capital rules apply.\n"
    "6.1.1 Tier One\n"
    "Common equity counts as tier one.\n"
    "6.1.2 Tier Two\n"
    "Subordinated debt counts as tier two."
)

QA_TEXT = (
    "Question 1: What is CET1?\n"
    "Answer 1: Common equity tier one capital.\n"
    "Question 2: What is the minimum ratio?\n"
    "Answer 2: Eight percent of risk-weighted assets."
)

TOPIC_TEXT = (
    "Preamble text here.\n"
    "CAPITAL REQUIREMENTS\n"
    "Banks hold capital.\n"
    "2.1 Minimum Levels\n"
    "Eight percent."
)


class TestTextHelpers:
    """Pure text helpers shared by the chunkers."""

    def test_estimate_tokens_rounds_up(self):
        """Test token estimate rounds up."""
        assert estimate_tokens(SENTENCE) == 15
        assert estimate_tokens("") == 0

    def test_split_sentences(self):
        """Test sentence splitting on terminal punctuation."""
        assert split_sentences("One. Two! Three? Four") == ["One.", "Two!", "Three?", "Four"]

    def test_jaccard(self):
        """Test Jaccard similarity."""
        assert jaccard({"capital", "ratio", "tier"}, {"capital", "ratio", "buffer"}) == 0.5
        assert jaccard(set(), set()) == 0.0

    def test_extract_keywords_skips_stopwords_and_short_words(self):
        """Test keyword extraction skips stopwords and short words."""
        keywords = extract_keywords("The capital and the capital ratio of the bank", min_count=1)
        assert keywords[0] == "capital"
        assert "the" not in keywords
        assert "bank" in keywords

    def test_extract_keywords_min_count(self):
        """Test keyword extraction minimum count."""
        assert extract_keywords("capital ratio capital", min_count=2) == ["capital"]


class TestStandardChunker:
    """Sentence packing with trailing-word overlap."""

    @pytest.mark.asyncio
    async def test_single_paragraph_chunk_count(self):
        """A 1,200 character paragraph with a 300 token budget is one chunk."""
        text = (SENTENCE + " ") * 20
        assert len(text) == 1200

        chunks = await StandardChunker(max_tokens=300, overlap_percentage=10).chunk(document(text))

        assert len(chunks) == -(-estimate_tokens(text) // 300)
        assert chunks[0].id == "DOC-1_chunk_1"
        assert chunks[0].metadata["chunking_strategy"] == "standard_chunking"

    @pytest.mark.asyncio
    async def test_chunks_after_first_start_with_overlap(self):
        """Each later chunk begins with the trailing words of its predecessor."""
        text = (SENTENCE + " ") * 60
        chunks = await StandardChunker(max_tokens=300, overlap_percentage=10).chunk(document(text))

        assert len(chunks) > 1
        # 30 overlap tokens -> 24 trailing words
        for previous, current in zip(chunks, chunks[1:]):
            seed = " ".join(previous.content.split()[-24:])
            assert current.content.startswith(seed)

    @pytest.mark.asyncio
    async def test_chunks_respect_token_budget(self):
        """Test every chunk fits the token budget."""
        text = (SENTENCE + " ") * 60
        chunks = await StandardChunker(max_tokens=300, overlap_percentage=10).chunk(document(text))
        assert all(estimate_tokens(c.content) <= 300 for c in chunks)

    @pytest.mark.asyncio
    async def test_zero_overlap(self):
        """Test chunking without overlap."""
        text = (SENTENCE + " ") * 60
        chunks = await StandardChunker(max_tokens=300, overlap_percentage=0).chunk(document(text))
        assert all(c.content.startswith("Banks must hold") for c in chunks)

    @pytest.mark.asyncio
    async def test_chunking_is_idempotent(self):
        """Identical input and options give identical boundaries."""
        doc = document((SENTENCE + " ") * 45)
        chunker = StandardChunker(max_tokens=120, overlap_percentage=10)
        first = await chunker.chunk(doc)
        second = await chunker.chunk(doc)
        assert [(c.id, c.content) for c in first] == [(c.id, c.content) for c in second]


class TestHierarchicalChunker:
    """Parent and child chunks for numbered documents."""

    def test_parse_sections(self):
        """Test numbered section parsing."""
        sections = parse_sections(HIERARCHICAL_TEXT)
        assert [s.number for s in sections] == ["6", "6.1", "6.1.1", "6.1.2"]
        assert sections[2].structural_parent == "6.1"
        assert sections[0].structural_parent is None

    @pytest.mark.asyncio
    async def test_parents_and_children_are_linked(self):
        """Test parent and child chunks reference each other."""
        chunks = await HierarchicalChunker(child_chunk_size=200, overlap_tokens=0).chunk(
            document(HIERARCHICAL_TEXT)
        )
        by_id = {c.id: c for c in chunks}

        parent = by_id["DOC-1_parent_3"]
        child = by_id["DOC-1_child_3"]
        assert parent.metadata["hierarchy_role"] == "parent"
        assert parent.metadata["child_chunk_ids"] == ["DOC-1_child_3"]
        assert child.metadata["parent_chunk_id"] == "DOC-1_parent_3"
        assert child.relationship_weights["DOC-1_parent_3"] == 1.0
        assert parent.relationship_weights["DOC-1_child_3"] == 1.0

    @pytest.mark.asyncio
    async def test_siblings_share_structural_parent(self):
        """6.1.1 and 6.1.2 children are siblings under 6.1."""
        chunks = await HierarchicalChunker(child_chunk_size=200, overlap_tokens=0).chunk(
            document(HIERARCHICAL_TEXT)
        )
        by_id = {c.id: c for c in chunks}

        assert by_id["DOC-1_child_3"].relationship_weights["DOC-1_child_4"] == 0.5
        assert by_id["DOC-1_child_4"].relationship_weights["DOC-1_child_3"] == 0.5
        assert "DOC-1_child_4" not in by_id["DOC-1_child_1"].relationship_weights


class TestSemanticChunker:
    """Semantic grouping algorithms."""

    def test_cluster_sentences(self):
        """Test clustering splits on low adjacent overlap."""
        groups = cluster_sentences(
            ["capital ratio rules", "capital ratio limits", "holiday schedule"], 0.3
        )
        assert groups == [["capital ratio rules", "capital ratio limits"], ["holiday schedule"]]

    def test_merge_adjacent_groups(self):
        """Test adjacent group merging."""
        merged = merge_adjacent_groups([["capital ratio"], ["capital ratio buffer"], ["holiday"]], 0.3)
        assert merged == [["capital ratio", "capital ratio buffer"], ["holiday"]]

    @pytest.mark.asyncio
    async def test_proposition_based_uses_generator(self):
        """Test proposition grouping through the generator."""
        generator = AsyncMock()
        generator.generate.side_effect = [
            '["Banks hold capital.", "Capital exceeds 8%."]',
            '[["Banks hold capital.", "Capital exceeds 8%."]]',
        ]
        chunker = SemanticChunker(
            variant=SemanticVariant.PROPOSITION_BASED, generator=generator, llm_available=True
        )

        chunks = await chunker.chunk(document("Banks hold capital. Capital exceeds 8%."))

        assert [c.content for c in chunks] == ["Banks hold capital. Capital exceeds 8%."]
        assert chunks[0].metadata["chunking_strategy"] == "proposition_based"
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_proposition_failure_falls_back_to_token_packing(self):
        """Unparseable LLM output degrades to standard_deviation packing."""
        generator = AsyncMock()
        generator.generate.return_value = "not json"
        chunker = SemanticChunker(
            variant=SemanticVariant.PROPOSITION_BASED, generator=generator, llm_available=True
        )

        chunks = await chunker.chunk(document(SENTENCE))

        assert chunks[0].metadata["chunking_strategy"] == "standard_deviation"
        assert chunks[0].content == SENTENCE

    @pytest.mark.asyncio
    async def test_generator_error_falls_back(self):
        """Test generator failure falls back to standard deviation."""
        generator = AsyncMock()
        generator.generate.side_effect = GenerationError("model offline")
        chunker = SemanticChunker(
            variant=SemanticVariant.PROPOSITION_BASED, generator=generator, llm_available=True
        )
        chunks = await chunker.chunk(document(SENTENCE))
        assert chunks[0].metadata["chunking_strategy"] == "standard_deviation"


class TestChunkingStrategySelector:
    """The Q0-Q3 decision tree."""

    def test_no_signal_selects_standard(self):
        """Test text without meaningful content selects standard chunking."""
        selection = ChunkingStrategySelector().select(document("ok"))
        assert selection.strategy.name == "standard_chunking"
        assert selection.variant is None

    def test_structure_without_meaning_selects_hierarchical(self):
        """Test structured text without meaningful content selects hierarchical."""
        selection = ChunkingStrategySelector().select(document("1.1 ab"))
        assert selection.name == "hierarchical_chunking"

    def test_llm_available_selects_propositions(self):
        """Test available LLM selects proposition-based chunking."""
        selector = ChunkingStrategySelector(llm_available=True, generator=AsyncMock())
        assert selector.select(document(SENTENCE)).variant is SemanticVariant.PROPOSITION_BASED

    def test_llm_flag_without_generator_is_ignored(self):
        """Test LLM flag without a generator is ignored."""
        selector = ChunkingStrategySelector(llm_available=True)
        assert selector.llm_available is False
        assert selector.select(document(SENTENCE)).variant is not SemanticVariant.PROPOSITION_BASED

    def test_unordered_text_selects_clustering(self):
        """Test unordered text selects clustering."""
        selection = ChunkingStrategySelector().select(
            document("Capital buffers protect banks. Liquidity ratios matter too.")
        )
        assert selection.name == "clustering"

    def test_asides_select_double_pass(self):
        """Test asides and quotes select double pass."""
        selection = ChunkingStrategySelector().select(
            document('First, banks report capital. Note: "eligible" instruments only.')
        )
        assert selection.name == "double_pass"

    def test_ordered_text_selects_standard_deviation(self):
        """Test ordered text selects standard deviation."""
        selection = ChunkingStrategySelector().select(
            document("First, banks report capital. Then they publish ratios.")
        )
        assert selection.name == "standard_deviation"

    @pytest.mark.asyncio
    async def test_chunk_document_uses_selection(self, regulatory_document):
        """Test chunk_document runs the selected strategy."""
        selector = ChunkingStrategySelector()
        chunks = await selector.chunk_document(regulatory_document)
        assert chunks
        assert all(c.metadata["doc_id"] == "CIRC-2024-01" for c in chunks)

    @pytest.mark.asyncio
    async def test_chunk_document_is_idempotent(self, regulatory_document):
        """Test chunk_document is idempotent."""
        selector = ChunkingStrategySelector()
        first = await selector.chunk_document(regulatory_document)
        second = await selector.chunk_document(regulatory_document)
        assert [(c.id, c.content) for c in first] == [(c.id, c.content) for c in second]


class TestContentChunkers:
    """Question/answer, topic, contextual and multimodal chunkers."""

    def test_extract_numbered_pairs(self):
        """Test numbered question and answer extraction."""
        pairs = extract_pairs(QA_TEXT)
        assert [p.question for p in pairs] == ["What is CET1?", "What is the minimum ratio?"]
        assert pairs[1].answer == "Eight percent of risk-weighted assets."

    def test_question_answer_chunks_are_linked(self):
        """Test question and answer chunks are linked both ways."""
        chunks = QuestionAnswerChunker().chunk(QA_TEXT, {"doc_id": "FAQ"}, prefix="FAQ")

        assert [c.id for c in chunks[:2]] == ["FAQ_qa_question_0", "FAQ_qa_answer_0"]
        question, answer = chunks[0], chunks[1]
        assert question.chunk_type is ChunkType.QUESTION
        assert answer.chunk_type is ChunkType.ANSWER
        assert question.relationship_weights[answer.id] == 0.9
        assert answer.metadata["related_question"] == question.id
        assert question.metadata["doc_id"] == "FAQ"

    def test_line_scan_finds_unmarked_questions(self):
        """Test line scan finds unmarked questions."""
        pairs = extract_pairs("What is leverage?\nThe ratio of capital to exposure.")
        assert len(pairs) == 1
        assert pairs[0].answer == "The ratio of capital to exposure."

    def test_extract_topics_with_preamble(self):
        """Test topic extraction keeps the preamble."""
        topics = extract_topics(TOPIC_TEXT)
        assert [t.heading for t in topics] == ["", "CAPITAL REQUIREMENTS"]
        assert topics[1].subsections[0].heading == "2.1 Minimum Levels"

    def test_topic_chunks_link_subsections(self):
        """Test topic chunks link their subsections."""
        chunks = TopicBasedChunker().chunk(TOPIC_TEXT, prefix="T")
        by_id = {c.id: c for c in chunks}

        assert by_id["T_topic_0"].metadata["topic"] == "Preamble"
        subsection = by_id["T_subsection_1_0"]
        assert subsection.chunk_type is ChunkType.SUBSECTION
        assert subsection.metadata["parent_chunk_id"] == "T_topic_1"
        assert subsection.relationship_weights["T_topic_1"] == 0.7

    def test_contextual_overlap_and_extension(self):
        """Test contextual overlap and context extension."""
        paragraphs = ["a" * 60, "b" * 60, "c" * 60]
        chunker = ContextualChunker(chunk_size=100, overlap_size=20, context_window=10)
        chunks = chunker.chunk("\n\n".join(paragraphs), prefix="C")

        assert len(chunks) == 3
        assert chunks[0].content == "a" * 60
        assert chunks[1].content.startswith("a" * 20)
        assert chunks[0].context_extension == chunks[0].content + "\n\n" + chunks[1].content[:10]
        assert chunks[1].metadata["has_overlap"] is True
        assert chunks[0].metadata["original_content_length"] == 60

    def test_multimodal_extracts_markdown_image(self):
        """Test markdown image extraction."""
        content = "Capital trends are shown below. ![capital chart](charts/cet1.png) for details."
        chunks = MultiModalChunker().extract_images(content, prefix="M")

        assert chunks[0].id == "M_image_0"
        assert chunks[0].chunk_type is ChunkType.IMAGE
        assert chunks[0].metadata["image_url"] == "charts/cet1.png"
        assert chunks[0].metadata["image_type"] == "chart"
        assert "chart" in chunks[0].keywords

    def test_multimodal_produces_no_text_chunks(self):
        """Test multimodal chunker emits no text chunks."""
        assert MultiModalChunker().chunk("![x](y.png)") == []


class TestSmartChunker:
    """Content-shape dispatch and enrichment passes."""

    def test_detect_content_type(self):
        """Test content shape detection."""
        assert detect_content_type(QA_TEXT) == "question_answer"
        assert detect_content_type("Section 1: Scope of the rules") == "topic_based"
        assert detect_content_type("Plain prose about capital.") == "contextual"

    def test_unknown_strategy_raises(self):
        """Test unknown smart strategy raises."""
        with pytest.raises(ValueError, match="Unknown chunking strategy"):
            SmartChunker().chunk_document("text", options=SmartChunkingOptions(chunking_strategy="bogus"))

    def test_merge_overlapping_redirects_references(self):
        """Test merging redirects references to the surviving chunk."""
        a = Chunk(id="a", content="first", keywords=["capital", "ratio", "tier"])
        b = Chunk(id="b", content="second", keywords=["capital", "ratio", "tier"], relationship_weights={"c": 0.5})
        c = Chunk(id="c", content="third", keywords=["holiday"], relationship_weights={"b": 0.9})

        survivors = merge_overlapping([a, b, c])

        assert [s.id for s in survivors] == ["a", "c"]
        assert a.content == "first\n\nsecond"
        assert a.metadata["original_chunks"] == ["a", "b"]
        assert a.relationship_weights == {"c": 0.5}
        assert c.relationship_weights == {"a": 0.9}
        assert c.related_chunks == ["a"]

    def test_map_concepts(self):
        """Test concept grouping."""
        chunk = Chunk(id="x", content="", keywords=["compliance", "capital", "legal"])
        map_concepts([chunk])
        assert chunk.metadata["concepts"] == ["regulation", "capital"]
        assert chunk.metadata["concept_count"] == 2

    def test_contextual_strategy_enrichment(self):
        """Test contextual strategy enrichment passes."""
        paragraphs = [
            "Capital adequacy rules for licensed banks are set by the regulator.",
            "Liquidity coverage must be reported every month without exception.",
            "Governance committees review operational incidents quarterly.",
        ]
        chunker = SmartChunker(contextual=ContextualChunker(chunk_size=80, overlap_size=0))
        chunks = chunker.chunk_document(
            "\n\n".join(paragraphs),
            {"doc_id": "S"},
            SmartChunkingOptions(chunking_strategy="contextual", context_extension_size=30),
            prefix="S",
        )

        assert len(chunks) == 3
        assert chunks[1].id in chunks[0].related_chunks
        assert chunks[0].relationship_weights[chunks[1].id] > 0.3
        assert all(c.context_extension for c in chunks)
        assert all("concepts" in c.metadata for c in chunks)
        assert all(c.metadata["relationship_count"] >= 1 for c in chunks)

    def test_smart_chunking_is_idempotent(self):
        """Test smart chunking is idempotent."""
        text = TOPIC_TEXT + "\n\n" + "Capital rules apply to every licensed bank in the country."
        first = SmartChunker().chunk_document(text, prefix="I")
        second = SmartChunker().chunk_document(text, prefix="I")
        assert [(c.id, c.content, c.keywords) for c in first] == [(c.id, c.content, c.keywords) for c in second]

    def test_image_chunks_are_appended(self):
        """Test image chunks are appended after text chunks."""
        text = "Capital overview.\n\n![ratio chart](ratio.png)"
        chunks = SmartChunker().chunk_document(text, prefix="P")
        assert any(c.chunk_type is ChunkType.IMAGE for c in chunks)
