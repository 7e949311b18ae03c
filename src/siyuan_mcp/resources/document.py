"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Document Resource

Provides document content as Kramdown via the siyuan://document/{document_id} URI.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastmcp import Context

from ..cache import CacheManager, document_key
from ..endpoints import BLOCK_GET_ATTRS, BLOCK_GET_KRAMDOWN
from ..error_handler import ResourceNotFoundError, resource_error_handler, validate_resource_id
from ..types import ResourceTTL
from ..utils import SiYuanClient


async def fetch_document(document_id: str, cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    """Return a document's Kramdown content and attributes, from cache when fresh."""
    key = document_key(document_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    kramdown = await client.call(BLOCK_GET_KRAMDOWN, {"id": document_id})
    if not kramdown:
        raise ResourceNotFoundError("document", document_id)
    attrs = await client.call(BLOCK_GET_ATTRS, {"id": document_id}) or {}

    data = {
        "id": document_id,
        "title": attrs.get("title", ""),
        "content": kramdown.get("kramdown", ""),
        "attributes": attrs,
        "metadata": {
            "resource_type": "document",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uri": f"siyuan://document/{document_id}",
        },
    }
    cache.set(key, data, ResourceTTL.DOCUMENT)
    return data


@resource_error_handler("document")
async def document(document_id: str, ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """
    Access a SiYuan document.

    Args:
        document_id: The root block ID of the document
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client

    Returns:
        JSON string containing the document content, title and attributes
    """
    document_id = validate_resource_id(document_id, "document")
    await ctx.info(f"Fetching document {document_id}")
    data = await fetch_document(document_id, cache, client)
    return json.dumps(data, indent=2, default=str)
