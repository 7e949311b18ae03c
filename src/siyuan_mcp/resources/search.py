"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Search Resource

Provides full-text search results via siyuan://search/{query} and
siyuan://search/{query}/{method}/{limit}. Template parameters arrive as
strings and are converted here.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Union

from fastmcp import Context

from ..cache import CacheManager, search_key
from ..endpoints import SEARCH_FULLTEXT
from ..error_handler import resource_error_handler
from ..types import ResourceTTL, SearchMethod
from ..utils import SiYuanClient

DEFAULT_SEARCH_LIMIT = 20

# Block types included in every full-text search
SEARCH_BLOCK_TYPES = {
    "document": True,
    "heading": True,
    "list": True,
    "listItem": True,
    "codeBlock": True,
    "mathBlock": True,
    "table": True,
    "blockquote": True,
    "superBlock": True,
    "paragraph": True,
}


def _as_int(value: Union[int, str], name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Search {name} must be an integer, got {value!r}") from None


async def fetch_search(
    query: str,
    cache: CacheManager,
    client: SiYuanClient,
    method: int = SearchMethod.KEYWORD.value,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> Dict[str, Any]:
    """Run a full-text search, from cache when fresh."""
    if not query or not query.strip():
        raise ValueError("Search query must not be empty")
    if method not in [member.value for member in SearchMethod]:
        raise ValueError(f"Invalid search method: {method}")
    if limit < 1:
        raise ValueError(f"Search limit must be positive, got {limit}")

    key = search_key(query, method, limit)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await client.call(SEARCH_FULLTEXT, {
        "query": query,
        "method": method,
        "types": SEARCH_BLOCK_TYPES,
        "paths": [],
        "groupBy": 0,
        "orderBy": 0,
        "page": 1,
        "pageSize": limit,
    }) or {}

    blocks = result.get("blocks") or []
    data = {
        "query": query,
        "method": method,
        "method_description": SearchMethod.get_description(method),
        "limit": limit,
        "results": blocks,
        "matched_blocks": result.get("matchedBlockCount", len(blocks)),
        "matched_documents": result.get("matchedRootCount", 0),
        "metadata": {
            "resource_type": "search",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uri": f"siyuan://search/{query}/{method}/{limit}",
        },
    }
    cache.set(key, data, ResourceTTL.SEARCH)
    return data


@resource_error_handler("search")
async def search(
    query: str,
    ctx: Context,
    cache: CacheManager,
    client: SiYuanClient,
    method: Union[int, str] = SearchMethod.KEYWORD.value,
    limit: Union[int, str] = DEFAULT_SEARCH_LIMIT,
) -> str:
    """
    Search block content across the workspace.

    Args:
        query: The search text
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client
        method: 0 keyword, 1 query syntax, 2 SQL, 3 regex
        limit: Maximum number of blocks returned

    Returns:
        JSON string containing matching blocks
    """
    method = _as_int(method, "method")
    limit = _as_int(limit, "limit")
    await ctx.info(f"Searching for '{query}'")
    data = await fetch_search(query, cache, client, method, limit)
    return json.dumps(data, indent=2, default=str)
