"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan Search Tools

Full-text search over blocks and read-only SQL queries against SiYuan's block database.
"""

import json
from typing import List, Optional

from fastmcp import Context

from ..cache import CacheManager
from ..endpoints import QUERY_SQL
from ..error_handler import tool_error_handler
from ..resources.search import DEFAULT_SEARCH_LIMIT, fetch_search

DEFAULT_SQL_LIMIT = 100


@tool_error_handler("search_content")
async def search_content(
    query: str,
    ctx: Context,
    cache: CacheManager,
    client,
    method: int = 0,
    limit: int = DEFAULT_SEARCH_LIMIT,
    notebooks: Optional[List[str]] = None,
) -> str:
    """
    Search block content across the workspace.

    Args:
        query: Search text
        method: 0 keyword, 1 query syntax, 2 SQL, 3 regex
        limit: Maximum number of results
        notebooks: Restrict results to these notebook IDs

    Returns:
        JSON string with the matching blocks
    """
    await ctx.info(f"Searching for '{query}'")
    data = await fetch_search(query, cache, client, method, limit)

    results = data["results"]
    if notebooks:
        results = [block for block in results if block.get("box") in notebooks]

    return json.dumps({
        "query": query,
        "method": data["method_description"],
        "count": len(results),
        "results": results,
    }, indent=2, default=str)


def _is_read_only(sql: str) -> bool:
    statement = sql.strip().rstrip(";").strip()
    return statement.lower().startswith(("select", "with")) and ";" not in statement


@tool_error_handler("sql_query")
async def sql_query(sql: str, ctx: Context, client, limit: int = DEFAULT_SQL_LIMIT) -> str:
    """
    Run a read-only SQL query against the blocks database.

    Only SELECT statements are accepted. Results are capped at limit rows.
    """
    if not sql or not _is_read_only(sql):
        raise ValueError("Only a single SELECT statement is allowed")
    if limit < 1:
        raise ValueError("limit must be positive")

    await ctx.info("Running SQL query")
    rows = await client.call(QUERY_SQL, {"stmt": sql}) or []

    return json.dumps({
        "count": len(rows),
        "truncated": len(rows) > limit,
        "rows": rows[:limit],
    }, indent=2, default=str)
