"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Workspace Resource

Provides the kernel version, configuration and notebooks via siyuan://workspace.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastmcp import Context

from ..cache import WORKSPACE_KEY, CacheManager
from ..endpoints import SYSTEM_GET_CONF, SYSTEM_VERSION
from ..error_handler import resource_error_handler
from ..types import ResourceTTL
from ..utils import SiYuanClient
from .notebook import fetch_notebooks


async def fetch_workspace(cache: CacheManager, client: SiYuanClient) -> Dict[str, Any]:
    cached = cache.get(WORKSPACE_KEY)
    if cached is not None:
        return cached

    version = await client.call(SYSTEM_VERSION)
    conf = await client.call(SYSTEM_GET_CONF) or {}
    notebooks = await fetch_notebooks(cache, client)

    data = {
        "version": version,
        "configuration": conf.get("conf", conf),
        "notebooks": notebooks["notebooks"],
        "metadata": {
            "resource_type": "workspace",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uri": "siyuan://workspace",
        },
    }
    cache.set(WORKSPACE_KEY, data, ResourceTTL.WORKSPACE)
    return data


@resource_error_handler("workspace")
async def workspace(ctx: Context, cache: CacheManager, client: SiYuanClient) -> str:
    """Describe the SiYuan workspace: kernel version, configuration and notebooks."""
    await ctx.info("Fetching workspace information")
    data = await fetch_workspace(cache, client)
    return json.dumps(data, indent=2, default=str)
