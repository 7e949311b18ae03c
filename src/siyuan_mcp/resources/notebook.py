"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Notebook Resources

Provides the siyuan://notebooks listing and siyuan://notebook/{notebook_id}
details, both served through the cache.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastmcp import Context

from ..cache import NOTEBOOKS_LIST_KEY, CacheManager, notebook_key
from ..endpoints import DOCS_LIST_BY_PATH, NOTEBOOK_GET_CONF, NOTEBOOK_LIST
from ..error_handler import resource_error_handler, validate_resource_id
from ..types import ResourceTTL
from ..utils import SiYuanClient


def _metadata(resource_type: str, uri: str) -> Dict[str, Any]:
    return {
        "resource_type": resource_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uri": uri,
    }


async def fetch_notebooks(cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    """Return the notebook list, from cache when fresh."""
    cached = cache.get(NOTEBOOKS_LIST_KEY)
    if cached is not None:
        return cached

    result = await client.call(NOTEBOOK_LIST)
    notebooks = (result or {}).get("notebooks", [])
    data = {
        "notebooks": notebooks,
        "count": len(notebooks),
        "metadata": _metadata("notebooks", "siyuan://notebooks"),
    }
    cache.set(NOTEBOOKS_LIST_KEY, data, ResourceTTL.NOTEBOOKS)
    return data


async def fetch_notebook(notebook_id: str, cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    """Return a notebook's configuration and top-level documents, from cache when fresh."""
    key = notebook_key(notebook_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    conf = await client.call(NOTEBOOK_GET_CONF, {"notebook": notebook_id})
    docs = await client.call(DOCS_LIST_BY_PATH, {"notebook": notebook_id, "path": "/"})
    data = {
        "id": notebook_id,
        "config": conf,
        "documents": (docs or {}).get("files", []),
        "metadata": _metadata("notebook", f"siyuan://notebook/{notebook_id}"),
    }
    cache.set(key, data, ResourceTTL.NOTEBOOK)
    return data


@resource_error_handler("notebooks")
async def notebooks(ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """
    List every notebook in the workspace.

    Returns:
        JSON string with the notebooks and their count
    """
    await ctx.info("Fetching notebook list")
    data = await fetch_notebooks(cache, client)
    return json.dumps(data, indent=2, default=str)


@resource_error_handler("notebook")
async def notebook(notebook_id: str, ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """
    Access a SiYuan notebook's configuration and top-level documents.

    Args:
        notebook_id: The SiYuan notebook ID
        ctx: FastMCP context
        cache: Cache instance
        client: SiYuan API client

    Returns:
        JSON string containing the notebook data
    """
    notebook_id = validate_resource_id(notebook_id, "notebook")
    await ctx.info(f"Fetching notebook {notebook_id}")
    data = await fetch_notebook(notebook_id, cache, client)
    return json.dumps(data, indent=2, default=str)
