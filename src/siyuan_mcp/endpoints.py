"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan API Endpoints Constants

This module defines the SiYuan kernel API paths used throughout the application.
Centralizing these constants prevents typos and makes API changes easier to manage.
"""


class SiYuanEndpoints:
    """SiYuan API endpoint constants for consistent usage across the application."""

    # Notebooks
    NOTEBOOK_CREATE = "/api/notebook/createNotebook"
    NOTEBOOK_REMOVE = "/api/notebook/removeNotebook"
    NOTEBOOK_LIST = "/api/notebook/lsNotebooks"
    NOTEBOOK_OPEN = "/api/notebook/openNotebook"
    NOTEBOOK_CLOSE = "/api/notebook/closeNotebook"
    NOTEBOOK_RENAME = "/api/notebook/renameNotebook"
    NOTEBOOK_GET_CONF = "/api/notebook/getNotebookConf"
    NOTEBOOK_SET_CONF = "/api/notebook/setNotebookConf"

    # Documents (file tree)
    DOCS_LIST_BY_PATH = "/api/filetree/listDocsByPath"
    DOC_CREATE_WITH_MD = "/api/filetree/createDocWithMd"
    DOC_RENAME = "/api/filetree/renameDoc"
    DOC_REMOVE = "/api/filetree/removeDoc"
    DOC_MOVE = "/api/filetree/moveDocs"
    DOC_GET = "/api/filetree/getDoc"
    DOCS_SEARCH = "/api/filetree/searchDocs"

    # Blocks
    BLOCK_INSERT = "/api/block/insertBlock"
    BLOCK_PREPEND = "/api/block/prependBlock"
    BLOCK_APPEND = "/api/block/appendBlock"
    BLOCK_UPDATE = "/api/block/updateBlock"
    BLOCK_DELETE = "/api/block/deleteBlock"
    BLOCK_GET_KRAMDOWN = "/api/block/getBlockKramdown"
    BLOCK_GET_BREADCRUMB = "/api/block/getBlockBreadcrumb"
    BLOCK_GET_CHILDREN = "/api/block/getChildBlocks"
    BLOCK_MOVE = "/api/block/moveBlock"
    BLOCK_FOLD = "/api/block/foldBlock"
    BLOCK_TREE_STAT = "/api/block/getBlockTreeStat"
    BLOCK_GET_ATTRS = "/api/attr/getBlockAttrs"

    # Assets
    ASSET_UPLOAD = "/api/asset/upload"

    # Search and query
    SEARCH_FULLTEXT = "/api/search/fullTextSearchBlock"
    QUERY_SQL = "/api/query/sql"

    # Files
    FILE_READ_DIR = "/api/file/readDir"
    FILE_GET = "/api/file/getFile"
    FILE_PUT = "/api/file/putFile"
    FILE_REMOVE = "/api/file/removeFile"

    # Export
    EXPORT_MD_CONTENT = "/api/export/exportMdContent"
    EXPORT_HTML = "/api/export/exportHTML"
    EXPORT_DOCX = "/api/export/exportDocx"
    EXPORT_PDF = "/api/export/exportPDF"

    # System
    SYSTEM_GET_CONF = "/api/system/getConf"
    SYSTEM_SET_CONF = "/api/system/setConf"
    SYSTEM_CHANGELOG = "/api/system/getChangelog"
    SYSTEM_VERSION = "/api/system/version"
    SYSTEM_CURRENT_TIME = "/api/system/currentTime"


# Convenience exports for simpler imports
NOTEBOOK_CREATE = SiYuanEndpoints.NOTEBOOK_CREATE
NOTEBOOK_LIST = SiYuanEndpoints.NOTEBOOK_LIST
NOTEBOOK_RENAME = SiYuanEndpoints.NOTEBOOK_RENAME
NOTEBOOK_REMOVE = SiYuanEndpoints.NOTEBOOK_REMOVE
NOTEBOOK_GET_CONF = SiYuanEndpoints.NOTEBOOK_GET_CONF
DOC_CREATE_WITH_MD = SiYuanEndpoints.DOC_CREATE_WITH_MD
DOC_REMOVE = SiYuanEndpoints.DOC_REMOVE
DOC_GET = SiYuanEndpoints.DOC_GET
DOCS_LIST_BY_PATH = SiYuanEndpoints.DOCS_LIST_BY_PATH
BLOCK_APPEND = SiYuanEndpoints.BLOCK_APPEND
BLOCK_INSERT = SiYuanEndpoints.BLOCK_INSERT
BLOCK_UPDATE = SiYuanEndpoints.BLOCK_UPDATE
BLOCK_DELETE = SiYuanEndpoints.BLOCK_DELETE
BLOCK_MOVE = SiYuanEndpoints.BLOCK_MOVE
BLOCK_GET_KRAMDOWN = SiYuanEndpoints.BLOCK_GET_KRAMDOWN
BLOCK_GET_CHILDREN = SiYuanEndpoints.BLOCK_GET_CHILDREN
BLOCK_GET_ATTRS = SiYuanEndpoints.BLOCK_GET_ATTRS
SEARCH_FULLTEXT = SiYuanEndpoints.SEARCH_FULLTEXT
QUERY_SQL = SiYuanEndpoints.QUERY_SQL
EXPORT_MD_CONTENT = SiYuanEndpoints.EXPORT_MD_CONTENT
EXPORT_HTML = SiYuanEndpoints.EXPORT_HTML
SYSTEM_GET_CONF = SiYuanEndpoints.SYSTEM_GET_CONF
SYSTEM_VERSION = SiYuanEndpoints.SYSTEM_VERSION
