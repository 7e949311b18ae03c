"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Tools package for the SiYuan MCP server.
"""

from .blocks import delete_block, get_block_info, insert_block, move_block, update_block
from .documents import create_document, delete_document, export_document, list_recent_docs, update_document
from .notebooks import create_notebook, list_notebooks, rename_notebook
from .search import search_content, sql_query

__all__ = [
    "create_document",
    "update_document",
    "delete_document",
    "list_recent_docs",
    "export_document",
    "insert_block",
    "update_block",
    "delete_block",
    "move_block",
    "get_block_info",
    "create_notebook",
    "rename_notebook",
    "list_notebooks",
    "search_content",
    "sql_query",
]
