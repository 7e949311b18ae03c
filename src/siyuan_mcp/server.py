"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

This module builds the FastMCP server for SiYuan integration.

A fresh server is built for every MCP session. All sessions share the
process-wide cache and SiYuan client that are passed in.
"""

import asyncio
import logging
from typing import List, Optional

from fastmcp import Context, FastMCP

from . import prompts
from .cache import CacheManager
from .config import Settings, configure_logging
from .resources.block import block as block_resource
from .resources.block import block_children as block_children_resource
from .resources.document import document as document_resource
from .resources.notebook import notebook as notebook_resource
from .resources.notebook import notebooks as notebooks_resource
from .resources.search import DEFAULT_SEARCH_LIMIT
from .resources.search import search as search_resource
from .resources.workspace import workspace as workspace_resource
from .tools import blocks as block_tools
from .tools import documents as document_tools
from .tools import notebooks as notebook_tools
from .tools import search as search_tools
from .utils import SiYuanClient

logger = logging.getLogger(__name__)

SERVER_NAME = "siyuan_mcp"
SERVER_VERSION = "0.1.0"
SERVER_INSTRUCTIONS = (
    "SiYuan MCP Server - read and edit notebooks, documents and blocks of a "
    "local SiYuan workspace. Content is addressed by SiYuan block IDs such as "
    "20240101120000-abcdefg."
)

NOTEBOOK_RESOURCE_TAGS = ["notebook", "siyuan", "navigation"]
DOCUMENT_RESOURCE_TAGS = ["document", "siyuan", "content"]
BLOCK_RESOURCE_TAGS = ["block", "siyuan", "content"]
SEARCH_RESOURCE_TAGS = ["search", "siyuan"]


def build_server(cache: CacheManager, client: SiYuanClient) -> FastMCP:
    """Create a FastMCP server with every SiYuan tool, resource and prompt registered."""
    mcp = FastMCP(name=SERVER_NAME, instructions=SERVER_INSTRUCTIONS)

    # Document tools

    @mcp.tool(
        name="create_document",
        description="Create a SiYuan document from Markdown. The document is placed under `path` "
                    "(\"/\" for the notebook root) with the given title. Returns the new document ID.",
        tags=["create", "siyuan", "documents"]
    )
    async def create_document(notebook: str, path: str, title: str, markdown: str, ctx: Context) -> str:
        return await document_tools.create_document(notebook, path, title, markdown, ctx, cache, client)

    @mcp.tool(
        name="update_document",
        description="Replace (mode=0) or append to (mode=1) the Markdown content of a document.",
        tags=["update", "siyuan", "documents"]
    )
    async def update_document(document_id: str, markdown: str, ctx: Context, mode: int = 0) -> str:
        return await document_tools.update_document(document_id, markdown, ctx, cache, client, mode)

    @mcp.tool(
        name="delete_document",
        description="Delete a document by notebook ID and storage path (e.g. /20240101120000-abcdefg.sy).",
        tags=["delete", "siyuan", "documents"]
    )
    async def delete_document(notebook: str, path: str, ctx: Context, document_id: Optional[str] = None) -> str:
        return await document_tools.delete_document(notebook, path, ctx, cache, client, document_id)

    @mcp.tool(
        name="list_recent_docs",
        description="List the most recently updated documents across all notebooks.",
        tags=["search", "siyuan", "documents"]
    )
    async def list_recent_docs(ctx: Context, limit: int = 10) -> str:
        return await document_tools.list_recent_docs(ctx, client, limit)

    @mcp.tool(
        name="export_document",
        description="Export a document as Markdown or HTML.",
        tags=["export", "siyuan", "documents"]
    )
    async def export_document(document_id: str, ctx: Context, format: str = "markdown") -> str:
        return await document_tools.export_document(document_id, ctx, client, format)

    # Block tools

    @mcp.tool(
        name="insert_block",
        description="Insert a new block under `parent_id`, after `previous_id` when given. "
                    "`data_type` is \"markdown\" or \"dom\".",
        tags=["create", "siyuan", "blocks"]
    )
    async def insert_block(
        data: str,
        parent_id: str,
        ctx: Context,
        data_type: str = "markdown",
        previous_id: Optional[str] = None,
    ) -> str:
        return await block_tools.insert_block(data, parent_id, ctx, cache, client, data_type, previous_id)

    @mcp.tool(
        name="update_block",
        description="Replace the content of a block. Pass `parent_id` when known so the parent's "
                    "children listing is refreshed as well.",
        tags=["update", "siyuan", "blocks"]
    )
    async def update_block(
        block_id: str,
        data: str,
        ctx: Context,
        data_type: str = "markdown",
        parent_id: Optional[str] = None,
    ) -> str:
        return await block_tools.update_block(block_id, data, ctx, cache, client, data_type, parent_id)

    @mcp.tool(
        name="delete_block",
        description="Delete a block and all of its children.",
        tags=["delete", "siyuan", "blocks"]
    )
    async def delete_block(block_id: str, ctx: Context, parent_id: Optional[str] = None) -> str:
        return await block_tools.delete_block(block_id, ctx, cache, client, parent_id)

    @mcp.tool(
        name="move_block",
        description="Move a block under a new parent, after `previous_id` when given. Pass the "
                    "current parent as `from_parent_id` when known.",
        tags=["update", "siyuan", "blocks"]
    )
    async def move_block(
        block_id: str,
        parent_id: str,
        ctx: Context,
        previous_id: Optional[str] = None,
        from_parent_id: Optional[str] = None,
    ) -> str:
        return await block_tools.move_block(block_id, parent_id, ctx, cache, client, previous_id, from_parent_id)

    @mcp.tool(
        name="get_block_info",
        description="Get the Kramdown content and attributes of a block.",
        tags=["read", "siyuan", "blocks"]
    )
    async def get_block_info(block_id: str, ctx: Context) -> str:
        return await block_tools.get_block_info(block_id, ctx, cache, client)

    # Notebook tools

    @mcp.tool(name="create_notebook", description="Create a notebook.", tags=["create", "siyuan", "notebooks"])
    async def create_notebook(name: str, ctx: Context) -> str:
        return await notebook_tools.create_notebook(name, ctx, cache, client)

    @mcp.tool(name="rename_notebook", description="Rename a notebook.", tags=["update", "siyuan", "notebooks"])
    async def rename_notebook(notebook: str, name: str, ctx: Context) -> str:
        return await notebook_tools.rename_notebook(notebook, name, ctx, cache, client)

    @mcp.tool(name="list_notebooks", description="List every notebook.", tags=["read", "siyuan", "notebooks"])
    async def list_notebooks(ctx: Context) -> str:
        return await notebook_tools.list_notebooks(ctx, cache, client)

    # Search tools

    @mcp.tool(
        name="search_content",
        description="""Full-text search over block content.

Search methods:
- 0: keyword
- 1: query syntax
- 2: SQL
- 3: regular expression

Pass `notebooks` to restrict results to specific notebook IDs.""",
        tags=["search", "siyuan"]
    )
    async def search_content(
        query: str,
        ctx: Context,
        method: int = 0,
        limit: int = DEFAULT_SEARCH_LIMIT,
        notebooks: Optional[List[str]] = None,
    ) -> str:
        return await search_tools.search_content(query, ctx, cache, client, method, limit, notebooks)

    @mcp.tool(
        name="sql_query",
        description="Run a read-only SELECT against SiYuan's `blocks` table, e.g. "
                    "SELECT * FROM blocks WHERE type = 'd' AND content LIKE '%plan%'.",
        tags=["search", "siyuan", "sql"]
    )
    async def sql_query(sql: str, ctx: Context, limit: int = search_tools.DEFAULT_SQL_LIMIT) -> str:
        return await search_tools.sql_query(sql, ctx, client, limit)

    # Resources

    @mcp.resource(uri="siyuan://notebooks", tags=NOTEBOOK_RESOURCE_TAGS)
    async def notebooks(ctx: Context) -> str:
        """List every notebook in the workspace."""
        return await notebooks_resource(ctx=ctx, cache=cache, client=client)

    @mcp.resource(uri="siyuan://notebook/{notebook_id}", tags=NOTEBOOK_RESOURCE_TAGS)
    async def notebook(notebook_id: str, ctx: Context) -> str:
        """Notebook configuration and top-level documents."""
        return await notebook_resource(notebook_id, ctx, cache, client)

    @mcp.resource(uri="siyuan://document/{document_id}", tags=DOCUMENT_RESOURCE_TAGS)
    async def document(document_id: str, ctx: Context) -> str:
        """Document content as Kramdown, with title and attributes."""
        return await document_resource(document_id, ctx, cache, client)

    @mcp.resource(uri="siyuan://block/{block_id}", tags=BLOCK_RESOURCE_TAGS)
    async def block(block_id: str, ctx: Context) -> str:
        """Block content as Kramdown, with attributes."""
        return await block_resource(block_id, ctx, cache, client)

    @mcp.resource(uri="siyuan://block/{block_id}/children", tags=BLOCK_RESOURCE_TAGS)
    async def block_children(block_id: str, ctx: Context) -> str:
        """Direct children of a block."""
        return await block_children_resource(block_id, ctx, cache, client)

    @mcp.resource(uri="siyuan://search/{query}", tags=SEARCH_RESOURCE_TAGS)
    async def search(query: str, ctx: Context) -> str:
        """Keyword search results, up to 20 blocks."""
        return await search_resource(query, ctx, cache, client)

    @mcp.resource(uri="siyuan://search/{query}/{method}/{limit}", tags=SEARCH_RESOURCE_TAGS)
    async def search_with_options(query: str, method: str, limit: str, ctx: Context) -> str:
        """
        Full-text search results.

        Args:
            query: Search text
            method: 0 keyword, 1 query syntax, 2 SQL, 3 regex
            limit: Maximum number of blocks
        """
        return await search_resource(query, ctx, cache, client, method, limit)

    @mcp.resource(uri="siyuan://workspace", tags=["workspace", "siyuan", "system"])
    async def workspace(ctx: Context) -> str:
        """Kernel version, configuration and notebooks."""
        return await workspace_resource(ctx=ctx, cache=cache, client=client)

    # Prompts

    @mcp.prompt(name="analyze_document", tags=["analysis", "siyuan"])
    async def analyze_document(document_id: str, analysis_type: str = "summary") -> str:
        """Analyze a document: summary, structure, keywords or quality."""
        return await prompts.analyze_document(document_id, cache, client, analysis_type)

    @mcp.prompt(name="generate_summary", tags=["writing", "siyuan"])
    async def generate_summary(content_id: str, length: str = "detailed", format: str = "paragraph") -> str:
        """Summarize a document or block."""
        return await prompts.generate_summary(content_id, cache, client, length, format)

    @mcp.prompt(name="generate_outline", tags=["writing", "siyuan"])
    async def generate_outline(document_id: str, depth: int = 3) -> str:
        """Outline a document."""
        return await prompts.generate_outline(document_id, cache, client, depth)

    @mcp.prompt(name="smart_search", tags=["search", "siyuan"])
    async def smart_search(query: str, scope: str = "workspace", scope_id: str = "") -> str:
        """Search the workspace and ask for the results that answer a question."""
        return await prompts.smart_search(query, cache, client, scope, scope_id)

    return mcp


async def run_stdio(settings: Settings) -> None:
    """Serve a single client over stdin/stdout."""
    cache = CacheManager(settings.cache_config())
    client = SiYuanClient(settings.api_url, settings.api_token, settings.request_timeout)
    cache.initialize()
    try:
        await build_server(cache, client).run_async(transport="stdio")
    finally:
        await cache.destroy()
        client.close()


def main():
    """Main entry point for the SiYuan MCP server."""
    settings = Settings.from_env()
    configure_logging(settings.debug)

    if settings.transport == "stdio":
        logger.info("Starting SiYuan MCP server on stdio (SiYuan API %s)", settings.api_url)
        asyncio.run(run_stdio(settings))
        return

    import uvicorn

    from .app import create_app

    logger.info(
        "Starting SiYuan MCP server on http://%s:%d/mcp (SiYuan API %s)",
        settings.host,
        settings.port,
        settings.api_url,
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
