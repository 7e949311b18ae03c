"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Document Tools

Create, update, delete, list and export documents.
"""

import json
from typing import Optional

from fastmcp import Context

from ..cache import (
    NOTEBOOKS_LIST_KEY,
    SEARCH_KEY_PREFIX,
    CacheManager,
    block_children_key,
    block_key,
    document_key,
    notebook_key,
)
from ..endpoints import (
    BLOCK_APPEND,
    BLOCK_UPDATE,
    DOC_CREATE_WITH_MD,
    DOC_REMOVE,
    EXPORT_HTML,
    EXPORT_MD_CONTENT,
    QUERY_SQL,
)
from ..error_handler import tool_error_handler
from ..types import ExportFormat

# Update modes of update_document
UPDATE_MODE_REPLACE = 0
UPDATE_MODE_APPEND = 1

MAX_RECENT_DOCS = 100


def _document_path(path: str, title: str) -> str:
    """Human-readable path of the new document, e.g. /Projects/Plan."""
    base = "/" + path.strip("/") if path and path.strip("/") else ""
    return f"{base}/{title}"


@tool_error_handler("create_document")
async def create_document(
    notebook: str,
    path: str,
    title: str,
    markdown: str,
    ctx: Context,
    cache: CacheManager,
    client,
) -> str:
    """
    Create a document from Markdown.

    Args:
        notebook: Notebook ID
        path: Parent path of the document, "/" for the notebook root
        title: Document title
        markdown: Document content
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client

    Returns:
        JSON string with the ID of the new document
    """
    if not notebook or not title:
        raise ValueError("notebook and title are required")

    doc_path = _document_path(path, title)
    await ctx.info(f"Creating document {doc_path} in notebook {notebook}")

    document_id = await client.call(DOC_CREATE_WITH_MD, {
        "notebook": notebook,
        "path": doc_path,
        "markdown": markdown,
    })

    cache.delete(notebook_key(notebook))
    cache.delete(NOTEBOOKS_LIST_KEY)

    return json.dumps({
        "success": True,
        "document_id": document_id,
        "notebook": notebook,
        "path": doc_path,
    }, indent=2)


@tool_error_handler("update_document")
async def update_document(
    document_id: str,
    markdown: str,
    ctx: Context,
    cache: CacheManager,
    client,
    mode: int = UPDATE_MODE_REPLACE,
) -> str:
    """
    Replace or append to the content of a document.

    Args:
        document_id: Root block ID of the document
        markdown: New content
        mode: 0 replaces the content, 1 appends to it
    """
    if not document_id:
        raise ValueError("document_id is required")
    if mode not in (UPDATE_MODE_REPLACE, UPDATE_MODE_APPEND):
        raise ValueError(f"mode must be {UPDATE_MODE_REPLACE} (replace) or {UPDATE_MODE_APPEND} (append)")

    if mode == UPDATE_MODE_APPEND:
        await ctx.info(f"Appending to document {document_id}")
        result = await client.call(BLOCK_APPEND, {"dataType": "markdown", "data": markdown, "parentID": document_id})
    else:
        await ctx.info(f"Replacing content of document {document_id}")
        result = await client.call(BLOCK_UPDATE, {"dataType": "markdown", "data": markdown, "id": document_id})

    cache.delete(document_key(document_id))
    cache.delete(block_key(document_id))
    cache.delete(block_children_key(document_id))
    cache.delete_prefix(SEARCH_KEY_PREFIX)

    return json.dumps({
        "success": True,
        "document_id": document_id,
        "mode": "append" if mode == UPDATE_MODE_APPEND else "replace",
        "operations": result,
    }, indent=2, default=str)


@tool_error_handler("delete_document")
async def delete_document(
    notebook: str,
    path: str,
    ctx: Context,
    cache: CacheManager,
    client,
    document_id: Optional[str] = None,
) -> str:
    """
    Delete a document by its storage path, e.g. /20240101120000-abcdefg.sy.

    Passing document_id as well drops the document's own cached content.
    """
    if not notebook or not path:
        raise ValueError("notebook and path are required")
    await ctx.info(f"Deleting document {path} from notebook {notebook}")

    await client.call(DOC_REMOVE, {"notebook": notebook, "path": path})

    cache.delete(notebook_key(notebook))
    if document_id:
        cache.delete(document_key(document_id))
        cache.delete(block_key(document_id))
        cache.delete(block_children_key(document_id))
    cache.delete_prefix(SEARCH_KEY_PREFIX)

    return json.dumps({"success": True, "notebook": notebook, "path": path}, indent=2)


@tool_error_handler("list_recent_docs")
async def list_recent_docs(ctx: Context, client, limit: int = 10) -> str:
    """List the most recently updated documents."""
    if limit < 1 or limit > MAX_RECENT_DOCS:
        raise ValueError(f"limit must be between 1 and {MAX_RECENT_DOCS}")
    await ctx.info(f"Listing {limit} recent documents")

    rows = await client.call(QUERY_SQL, {
        "stmt": f"SELECT id, box, hpath, content, updated FROM blocks WHERE type = 'd' ORDER BY updated DESC LIMIT {int(limit)}"
    }) or []

    documents = [
        {
            "id": row.get("id"),
            "notebook": row.get("box"),
            "path": row.get("hpath"),
            "title": row.get("content"),
            "updated": row.get("updated"),
        }
        for row in rows
    ]
    return json.dumps({"count": len(documents), "documents": documents}, indent=2)


@tool_error_handler("export_document")
async def export_document(document_id: str, ctx: Context, client, format: str = "markdown") -> str:
    """Export a document as Markdown or HTML."""
    if not document_id:
        raise ValueError("document_id is required")
    try:
        export_format = ExportFormat((format or "").lower())
    except ValueError:
        valid = ", ".join(member.value for member in ExportFormat)
        raise ValueError(f"Invalid export format: {format}. Valid options: {valid}") from None

    await ctx.info(f"Exporting document {document_id} as {export_format.value}")
    if export_format == ExportFormat.HTML:
        result = await client.call(EXPORT_HTML, {"id": document_id, "pdf": False, "savePath": ""}) or {}
    else:
        result = await client.call(EXPORT_MD_CONTENT, {"id": document_id}) or {}

    return json.dumps({
        "document_id": document_id,
        "format": export_format.value,
        "path": result.get("hPath", ""),
        "content": result.get("content", ""),
    }, indent=2)
