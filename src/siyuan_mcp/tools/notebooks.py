"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Notebook Tools
"""

import json

from fastmcp import Context

from ..cache import NOTEBOOKS_LIST_KEY, CacheManager, notebook_key
from ..endpoints import NOTEBOOK_CREATE, NOTEBOOK_RENAME
from ..error_handler import tool_error_handler
from ..resources.notebook import fetch_notebooks


@tool_error_handler("create_notebook")
async def create_notebook(name: str, ctx: Context, cache: CacheManager, client) -> str:
    """Create a notebook and return its details."""
    if not name or not name.strip():
        raise ValueError("name is required")
    await ctx.info(f"Creating notebook '{name}'")

    result = await client.call(NOTEBOOK_CREATE, {"name": name}) or {}
    cache.delete(NOTEBOOKS_LIST_KEY)

    return json.dumps({"success": True, "notebook": result.get("notebook", result)}, indent=2, default=str)


@tool_error_handler("rename_notebook")
async def rename_notebook(notebook: str, name: str, ctx: Context, cache: CacheManager, client) -> str:
    if not notebook or not name or not name.strip():
        raise ValueError("notebook and name are required")
    await ctx.info(f"Renaming notebook {notebook} to '{name}'")

    await client.call(NOTEBOOK_RENAME, {"notebook": notebook, "name": name})
    cache.delete(notebook_key(notebook))
    cache.delete(NOTEBOOKS_LIST_KEY)

    return json.dumps({"success": True, "notebook": notebook, "name": name}, indent=2)


@tool_error_handler("list_notebooks")
async def list_notebooks(ctx: Context, cache: CacheManager, client) -> str:
    await ctx.info("Listing notebooks")
    data = await fetch_notebooks(cache, client)
    return json.dumps(data, indent=2, default=str)
