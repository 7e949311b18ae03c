"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Block Resources

Provides siyuan://block/{block_id} and siyuan://block/{block_id}/children.
Blocks change often, so both are cached briefly.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastmcp import Context

from ..cache import CacheManager, block_children_key, block_key
from ..endpoints import BLOCK_GET_ATTRS, BLOCK_GET_CHILDREN, BLOCK_GET_KRAMDOWN
from ..error_handler import ResourceNotFoundError, resource_error_handler, validate_resource_id
from ..types import ResourceTTL
from ..utils import SiYuanClient


async def fetch_block(block_id: str, cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    """Return a block's Kramdown and attributes, from cache when fresh."""
    key = block_key(block_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    kramdown = await client.call(BLOCK_GET_KRAMDOWN, {"id": block_id})
    if not kramdown:
        raise ResourceNotFoundError("block", block_id)
    attrs = await client.call(BLOCK_GET_ATTRS, {"id": block_id}) or {}

    data = {
        "id": block_id,
        "content": kramdown.get("kramdown", ""),
        "attributes": attrs,
        "metadata": {
            "resource_type": "block",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uri": f"siyuan://block/{block_id}",
        },
    }
    cache.set(key, data, ResourceTTL.BLOCK)
    return data


async def fetch_block_children(block_id: str, cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    """Return the direct children of a block, from cache when fresh."""
    key = block_children_key(block_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    children = await client.call(BLOCK_GET_CHILDREN, {"id": block_id}) or []
    data = {
        "id": block_id,
        "children": children,
        "count": len(children),
        "metadata": {
            "resource_type": "block_children",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uri": f"siyuan://block/{block_id}/children",
        },
    }
    cache.set(key, data, ResourceTTL.BLOCK_CHILDREN)
    return data


@resource_error_handler("block")
async def block(block_id: str, ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """
    Access a single SiYuan block.

    Args:
        block_id: The SiYuan block ID
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client

    Returns:
        JSON string containing the block content and attributes
    """
    block_id = validate_resource_id(block_id, "block")
    await ctx.info(f"Fetching block {block_id}")
    data = await fetch_block(block_id, cache, client)
    return json.dumps(data, indent=2, default=str)


@resource_error_handler("block_children")
async def block_children(block_id: str, ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """List the direct children of a block."""
    block_id = validate_resource_id(block_id, "block")
    await ctx.info(f"Fetching children of block {block_id}")
    data = await fetch_block_children(block_id, cache, client)
    return json.dumps(data, indent=2, default=str)
