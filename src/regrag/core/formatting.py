"""Presentation helpers for document links and retrieval metrics."""

from dataclasses import dataclass

from ..models import RetrievalMetrics

DOCUMENT_URL_TEMPLATE = "https://brdr.hkma.gov.hk/eng/doc-ldg/docId/getPdf/{doc_id}/{doc_id}.pdf"

TOOL_LABELS = {
    "searchDocuments": "Document Search",
    "clarifyQuery": "Query Clarification",
    "analyzeDocument": "Document Analysis",
    "manageContext": "Context Management",
    "refineQuery": "Query Refinement",
    "vector_search": "Vector Search",
    "keyword_search": "Keyword Search",
    "hybrid_search": "Hybrid Search",
    "knowledge_graph_search": "Knowledge Graph Search",
}


@dataclass
class DocumentLink:
    doc_id: str
    url: str
    title: str | None = None


def generate_document_url(doc_id: str) -> str:
    return DOCUMENT_URL_TEMPLATE.format(doc_id=doc_id)


def format_document_links(doc_ids: list[str]) -> list[DocumentLink]:
    return [
        DocumentLink(doc_id=doc_id, url=generate_document_url(doc_id), title=f"Document {doc_id}")
        for doc_id in doc_ids
    ]


def format_metrics(metrics: RetrievalMetrics) -> str:
    tools = ", ".join(TOOL_LABELS.get(t, t) for t in metrics.tools_called) or "None"
    return (
        f"⏱️ Response Time: {round(metrics.query_time_ms)}ms\n"
        f"🔧 Tools Used: {tools}\n"
        f"📝 Tokens Used: {metrics.token_count}"
    )


def format_document_links_text(links: list[DocumentLink]) -> str:
    if not links:
        return ""
    lines = "\n".join(f"• [{link.doc_id}]({link.url})" for link in links)
    return f"\n\n📄 **Source Documents:**\n{lines}"
