"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Block Tools

Insert, update, delete, move and inspect blocks. Every write drops the cache
keys that could still show the old content, once SiYuan has accepted the write.
A block may sit anywhere inside a document, so cached documents and search
results are dropped wholesale.
"""

import json
from typing import Optional

from fastmcp import Context

from ..cache import (
    BLOCK_CHILDREN_KEY_PREFIX,
    DOCUMENT_KEY_PREFIX,
    SEARCH_KEY_PREFIX,
    CacheManager,
    block_children_key,
    block_key,
)
from ..endpoints import BLOCK_DELETE, BLOCK_INSERT, BLOCK_MOVE, BLOCK_UPDATE
from ..error_handler import tool_error_handler
from ..resources.block import fetch_block
from ..types import DataType
from ..utils import SiYuanClient


def _require(value: Optional[str], name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{name} is required")
    return value.strip()


def _drop_content_views(cache: CacheManager) -> None:
    cache.delete_prefix(DOCUMENT_KEY_PREFIX)
    cache.delete_prefix(SEARCH_KEY_PREFIX)


@tool_error_handler("insert_block")
async def insert_block(
    data: str,
    parent_id: str,
    ctx: Context,
    cache: CacheManager,
    client: SiYuanClient,
    data_type: str = "markdown",
    previous_id: Optional[str] = None,
) -> str:
    """
    Insert a block under a parent, optionally after a given sibling.

    Returns:
        JSON string with the operations SiYuan applied
    """
    parent_id = _require(parent_id, "parent_id")
    data_type = DataType.validate(data_type)
    await ctx.info(f"Inserting block under {parent_id}")

    payload = {"dataType": data_type, "data": data, "parentID": parent_id}
    if previous_id:
        payload["previousID"] = previous_id
    result = await client.call(BLOCK_INSERT, payload)

    cache.delete(block_key(parent_id))
    cache.delete(block_children_key(parent_id))
    _drop_content_views(cache)

    return json.dumps({"success": True, "parent_id": parent_id, "operations": result}, indent=2, default=str)


@tool_error_handler("update_block")
async def update_block(
    block_id: str,
    data: str,
    ctx: Context,
    cache: CacheManager,
    client: SiYuanClient,
    data_type: str = "markdown",
    parent_id: Optional[str] = None,
) -> str:
    """
    Replace the content of a block.

    Args:
        block_id: The block to update
        data: New content
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client
        data_type: "markdown" or "dom"
        parent_id: Parent block, if known, so its children listing is refreshed too

    Returns:
        JSON string with the operations SiYuan applied
    """
    block_id = _require(block_id, "block_id")
    data_type = DataType.validate(data_type)
    await ctx.info(f"Updating block {block_id}")

    result = await client.call(BLOCK_UPDATE, {"dataType": data_type, "data": data, "id": block_id})

    cache.delete(block_key(block_id))
    if parent_id:
        cache.delete(block_children_key(parent_id))
    _drop_content_views(cache)

    return json.dumps({"success": True, "block_id": block_id, "operations": result}, indent=2, default=str)


@tool_error_handler("delete_block")
async def delete_block(
    block_id: str,
    ctx: Context,
    cache: CacheManager,
    client: SiYuanClient,
    parent_id: Optional[str] = None,
) -> str:
    """Delete a block and everything under it."""
    block_id = _require(block_id, "block_id")
    await ctx.info(f"Deleting block {block_id}")

    result = await client.call(BLOCK_DELETE, {"id": block_id})

    cache.delete(block_key(block_id))
    cache.delete(block_children_key(block_id))
    if parent_id:
        cache.delete(block_children_key(parent_id))
    _drop_content_views(cache)

    return json.dumps({"success": True, "block_id": block_id, "operations": result}, indent=2, default=str)


@tool_error_handler("move_block")
async def move_block(
    block_id: str,
    parent_id: str,
    ctx: Context,
    cache: CacheManager,
    client: SiYuanClient,
    previous_id: Optional[str] = None,
    from_parent_id: Optional[str] = None,
) -> str:
    """
    Move a block under a new parent, optionally after a given sibling.

    When the current parent is not passed as from_parent_id, every cached
    children listing is dropped.
    """
    block_id = _require(block_id, "block_id")
    parent_id = _require(parent_id, "parent_id")
    await ctx.info(f"Moving block {block_id} under {parent_id}")

    payload = {"id": block_id, "parentID": parent_id}
    if previous_id:
        payload["previousID"] = previous_id
    result = await client.call(BLOCK_MOVE, payload)

    cache.delete(block_key(block_id))
    cache.delete(block_key(parent_id))
    cache.delete(block_children_key(parent_id))
    if from_parent_id:
        cache.delete(block_key(from_parent_id))
        cache.delete(block_children_key(from_parent_id))
    else:
        cache.delete_prefix(BLOCK_CHILDREN_KEY_PREFIX)
    _drop_content_views(cache)

    return json.dumps(
        {"success": True, "block_id": block_id, "parent_id": parent_id, "operations": result},
        indent=2,
        default=str,
    )


@tool_error_handler("get_block_info")
async def get_block_info(block_id: str, ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """
    Get a block's Kramdown content and attributes.

    Served from the same cache entry as the siyuan://block/{block_id} resource.
    """
    block_id = _require(block_id, "block_id")
    await ctx.info(f"Fetching block {block_id}")
    data = await fetch_block(block_id, cache, client)
    return json.dumps(data, indent=2, default=str)
