"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Prompt templates built from SiYuan content.

Each builder loads the referenced content through the same cache as the
resources and embeds it in the instruction text.
"""

import logging

from .cache import CacheManager
from .error_handler import SiYuanMCPError
from .resources.block import fetch_block
from .resources.document import fetch_document
from .resources.search import fetch_search
from .utils import SiYuanClient

logger = logging.getLogger(__name__)

ANALYSIS_INSTRUCTIONS = {
    "summary": "Summarize the main points and conclusions of the document.",
    "structure": "Describe the document's structure: headings, sections and how they build on each other.",
    "keywords": "Extract the key terms and concepts, with one line explaining each.",
    "quality": "Assess clarity, completeness and consistency, and list concrete improvements.",
}

SUMMARY_LENGTHS = {
    "brief": "in two or three sentences",
    "detailed": "in one or two paragraphs",
    "comprehensive": "covering every section in detail",
}

SUMMARY_FORMATS = {
    "paragraph": "as prose",
    "bullets": "as a bulleted list",
    "outline": "as a hierarchical outline",
}

SEARCH_SCOPES = ("workspace", "notebook", "document")


def _choice(value: str, options, name: str) -> str:
    if value not in options:
        raise ValueError(f"Invalid {name}: {value}. Valid options: {', '.join(options)}")
    return value


async def _load_content(content_id: str, cache: CacheManager, client: SiYuanClient) -> str:
    """Content of a document, falling back to a plain block for non-document IDs."""
    try:
        data = await fetch_document(content_id, cache, client)
    except SiYuanMCPError:
        logger.debug("%s is not a document, loading it as a block", content_id)
        data = await fetch_block(content_id, cache, client)
    return data.get("content", "")


async def analyze_document(
    document_id: str,
    cache: CacheManager,
    client: SiYuanClient,
    analysis_type: str = "summary",
) -> str:
    _choice(analysis_type, ANALYSIS_INSTRUCTIONS, "analysis type")
    document = await fetch_document(document_id, cache, client)
    title = document.get("title") or document_id

    return (
        f"Analyze the SiYuan document \"{title}\" (ID {document_id}).\n\n"
        f"{ANALYSIS_INSTRUCTIONS[analysis_type]}\n\n"
        "Document content (Kramdown):\n"
        "---\n"
        f"{document.get('content', '')}\n"
        "---"
    )


async def generate_summary(
    content_id: str,
    cache: CacheManager,
    client: SiYuanClient,
    length: str = "detailed",
    format: str = "paragraph",
) -> str:
    _choice(length, SUMMARY_LENGTHS, "length")
    _choice(format, SUMMARY_FORMATS, "format")
    content = await _load_content(content_id, cache, client)

    return (
        f"Summarize the following SiYuan content {SUMMARY_LENGTHS[length]}, {SUMMARY_FORMATS[format]}.\n\n"
        "---\n"
        f"{content}\n"
        "---"
    )


async def generate_outline(
    document_id: str,
    cache: CacheManager,
    client: SiYuanClient,
    depth: int = 3,
) -> str:
    if depth < 1:
        raise ValueError("depth must be at least 1")
    document = await fetch_document(document_id, cache, client)

    return (
        f"Create an outline of the document \"{document.get('title') or document_id}\" "
        f"at most {depth} levels deep. Use the existing headings where they fit.\n\n"
        "---\n"
        f"{document.get('content', '')}\n"
        "---"
    )


async def smart_search(
    query: str,
    cache: CacheManager,
    client: SiYuanClient,
    scope: str = "workspace",
    scope_id: str = "",
) -> str:
    _choice(scope, SEARCH_SCOPES, "scope")
    if scope != "workspace" and not scope_id:
        raise ValueError(f"scope_id is required for {scope} scope")

    data = await fetch_search(query, cache, client)
    results = data["results"]
    if scope == "notebook":
        results = [block for block in results if block.get("box") == scope_id]
    elif scope == "document":
        results = [block for block in results if block.get("rootID") == scope_id]

    lines = [
        f"- [{block.get('id')}] {block.get('hPath', '')}: {block.get('content', '')}"
        for block in results
    ]
    found = "\n".join(lines) if lines else "(no matching blocks)"

    return (
        f"The user is looking for: \"{query}\".\n"
        f"Full-text search in the {scope} found {len(results)} blocks:\n\n"
        f"{found}\n\n"
        "Identify which results answer the request, explain why, and suggest "
        "refined queries if none of them fit."
    )
