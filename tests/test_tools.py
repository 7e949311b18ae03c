"""Tests for the SiYuan tools, focused on upstream calls and cache invalidation."""

import json

import pytest
from fastmcp.exceptions import ToolError

from siyuan_mcp.cache import (
    NOTEBOOKS_LIST_KEY,
    block_children_key,
    block_key,
    document_key,
    notebook_key,
    search_key,
)
from siyuan_mcp.endpoints import SiYuanEndpoints
from siyuan_mcp.error_handler import SiYuanAPIError, UpstreamError
from siyuan_mcp.resources.document import fetch_document
from siyuan_mcp.tools.blocks import delete_block, get_block_info, insert_block, move_block, update_block
from siyuan_mcp.tools.documents import (
    create_document,
    delete_document,
    export_document,
    list_recent_docs,
    update_document,
)
from siyuan_mcp.tools.notebooks import create_notebook, list_notebooks, rename_notebook
from siyuan_mcp.tools.search import search_content, sql_query

BLOCK_ID = "20240101120000-abcdefg"
PARENT_ID = "20240101115959-parent0"
OLD_PARENT_ID = "20240101115958-oldpare"
DOC_ID = "20240101115900-document"


@pytest.fixture
def block_client(fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_GET_KRAMDOWN] = {"id": BLOCK_ID, "kramdown": "old text"}
    fake_client.responses[SiYuanEndpoints.BLOCK_GET_ATTRS] = {"id": BLOCK_ID, "updated": "20240101120000"}
    fake_client.responses[SiYuanEndpoints.BLOCK_UPDATE] = [{"doOperations": [{"action": "update"}]}]
    return fake_client


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_block_forces_fresh_fetch(ctx, cache, block_client):
    first = json.loads(await get_block_info(BLOCK_ID, ctx, cache, block_client))
    await get_block_info(BLOCK_ID, ctx, cache, block_client)
    assert first["content"] == "old text"
    assert block_client.count(SiYuanEndpoints.BLOCK_GET_KRAMDOWN) == 1

    cache.set(block_children_key(PARENT_ID), {"children": [BLOCK_ID]})
    await update_block(BLOCK_ID, "new text", ctx, cache, block_client, parent_id=PARENT_ID)

    assert not cache.has(block_key(BLOCK_ID))
    assert not cache.has(block_children_key(PARENT_ID))

    block_client.responses[SiYuanEndpoints.BLOCK_GET_KRAMDOWN] = {"id": BLOCK_ID, "kramdown": "new text"}
    refreshed = json.loads(await get_block_info(BLOCK_ID, ctx, cache, block_client))

    assert block_client.count(SiYuanEndpoints.BLOCK_GET_KRAMDOWN) == 2
    assert refreshed["content"] == "new text"


@pytest.mark.asyncio
async def test_update_block_sends_payload(ctx, cache, block_client):
    result = json.loads(await update_block(BLOCK_ID, "**bold**", ctx, cache, block_client))

    assert result["success"] is True
    assert block_client.calls[-1] == (
        SiYuanEndpoints.BLOCK_UPDATE,
        {"dataType": "markdown", "data": "**bold**", "id": BLOCK_ID},
    )
    assert ("info", f"Updating block {BLOCK_ID}") in ctx.messages


@pytest.mark.asyncio
async def test_update_block_drops_search_results(ctx, cache, block_client):
    cache.set(search_key("text", 0, 20), {"results": []})
    cache.set(notebook_key("nb"), {"id": "nb"})

    await update_block(BLOCK_ID, "x", ctx, cache, block_client)

    assert not cache.has(search_key("text", 0, 20))
    assert cache.has(notebook_key("nb"))


@pytest.mark.asyncio
async def test_failed_write_leaves_cache_untouched(ctx, cache, fake_client):
    cached = {"id": BLOCK_ID, "content": "cached"}
    cache.set(block_key(BLOCK_ID), cached)
    fake_client.responses[SiYuanEndpoints.BLOCK_UPDATE] = SiYuanAPIError(
        SiYuanEndpoints.BLOCK_UPDATE, -1, "block not found"
    )

    with pytest.raises(ToolError) as excinfo:
        await update_block(BLOCK_ID, "x", ctx, cache, fake_client)

    assert "block not found" in str(excinfo.value)
    assert cache.get(block_key(BLOCK_ID)) == cached
    assert "error" in ctx.levels()


@pytest.mark.asyncio
async def test_failed_read_is_not_cached(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_GET_KRAMDOWN] = UpstreamError(
        SiYuanEndpoints.BLOCK_GET_KRAMDOWN, "timed out after 30.0s"
    )

    with pytest.raises(ToolError):
        await get_block_info(BLOCK_ID, ctx, cache, fake_client)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_invalid_data_type_is_rejected(ctx, cache, block_client):
    with pytest.raises(ToolError) as excinfo:
        await update_block(BLOCK_ID, "x", ctx, cache, block_client, data_type="html")

    assert "Invalid arguments for update_block" in str(excinfo.value)
    assert block_client.calls == []


@pytest.mark.asyncio
async def test_insert_block_invalidates_parent(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_INSERT] = [{"doOperations": []}]
    cache.set(block_key(PARENT_ID), {"id": PARENT_ID})
    cache.set(block_children_key(PARENT_ID), {"children": []})

    await insert_block("- item", PARENT_ID, ctx, cache, fake_client, previous_id="prev")

    assert fake_client.calls[-1][1] == {
        "dataType": "markdown",
        "data": "- item",
        "parentID": PARENT_ID,
        "previousID": "prev",
    }
    assert not cache.has(block_key(PARENT_ID))
    assert not cache.has(block_children_key(PARENT_ID))


@pytest.mark.asyncio
async def test_delete_block_invalidates_block_and_parent(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_DELETE] = [{"doOperations": []}]
    cache.set(block_key(BLOCK_ID), {"id": BLOCK_ID})
    cache.set(block_children_key(PARENT_ID), {"children": [BLOCK_ID]})

    await delete_block(BLOCK_ID, ctx, cache, fake_client, parent_id=PARENT_ID)

    assert not cache.has(block_key(BLOCK_ID))
    assert not cache.has(block_children_key(PARENT_ID))


@pytest.mark.asyncio
async def test_move_block_invalidates_both_parents(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_MOVE] = [{"doOperations": []}]
    cache.set(block_key(BLOCK_ID), {"id": BLOCK_ID})
    cache.set(block_children_key(PARENT_ID), {"children": []})
    cache.set(block_children_key(OLD_PARENT_ID), {"children": [BLOCK_ID]})
    cache.set(block_children_key("unrelated"), {"children": []})
    cache.set(document_key(DOC_ID), {"content": "old"})
    cache.set(search_key("q", 0, 20), {"results": []})

    result = json.loads(await move_block(
        BLOCK_ID, PARENT_ID, ctx, cache, fake_client, from_parent_id=OLD_PARENT_ID
    ))

    assert result["parent_id"] == PARENT_ID
    assert fake_client.calls[-1][1] == {"id": BLOCK_ID, "parentID": PARENT_ID}
    assert not cache.has(block_key(BLOCK_ID))
    assert not cache.has(block_children_key(PARENT_ID))
    assert not cache.has(block_children_key(OLD_PARENT_ID))
    assert not cache.has(document_key(DOC_ID))
    assert not cache.has(search_key("q", 0, 20))
    assert cache.has(block_children_key("unrelated"))


@pytest.mark.asyncio
async def test_move_block_without_old_parent_drops_all_children_listings(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_MOVE] = [{"doOperations": []}]
    cache.set(block_children_key(OLD_PARENT_ID), {"children": [BLOCK_ID]})
    cache.set(block_children_key("unrelated"), {"children": []})

    await move_block(BLOCK_ID, PARENT_ID, ctx, cache, fake_client)

    assert not cache.has(block_children_key(OLD_PARENT_ID))
    assert not cache.has(block_children_key("unrelated"))


@pytest.mark.asyncio
async def test_block_writes_refresh_cached_documents(ctx, cache, block_client):
    block_client.responses[SiYuanEndpoints.BLOCK_INSERT] = [{"doOperations": []}]
    block_client.responses[SiYuanEndpoints.BLOCK_DELETE] = [{"doOperations": []}]

    await fetch_document(DOC_ID, cache, block_client)
    await insert_block("new para", DOC_ID, ctx, cache, block_client)
    assert not cache.has(document_key(DOC_ID))

    await fetch_document(DOC_ID, cache, block_client)
    await update_block(BLOCK_ID, "new text", ctx, cache, block_client, parent_id=DOC_ID)
    assert not cache.has(document_key(DOC_ID))

    # Blocks nested below the document root still refresh it
    await fetch_document(DOC_ID, cache, block_client)
    await delete_block(BLOCK_ID, ctx, cache, block_client, parent_id=PARENT_ID)
    assert not cache.has(document_key(DOC_ID))

    block_client.responses[SiYuanEndpoints.BLOCK_GET_KRAMDOWN] = {"id": DOC_ID, "kramdown": "v2"}
    refreshed = await fetch_document(DOC_ID, cache, block_client)

    assert refreshed["content"] == "v2"
    assert block_client.count(SiYuanEndpoints.BLOCK_GET_KRAMDOWN) == 4

@pytest.mark.asyncio
async def test_missing_block_id_is_rejected(ctx, cache, fake_client):
    with pytest.raises(ToolError):
        await delete_block("  ", ctx, cache, fake_client)
    assert fake_client.calls == []


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_document_invalidates_notebook(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.DOC_CREATE_WITH_MD] = "20240102000000-newdoc1"
    cache.set(notebook_key("nb1"), {"id": "nb1"})
    cache.set(NOTEBOOKS_LIST_KEY, {"notebooks": []})

    result = json.loads(await create_document("nb1", "/Projects", "Plan", "# Plan", ctx, cache, fake_client))

    assert result["document_id"] == "20240102000000-newdoc1"
    assert fake_client.calls[-1][1] == {"notebook": "nb1", "path": "/Projects/Plan", "markdown": "# Plan"}
    assert not cache.has(notebook_key("nb1"))
    assert not cache.has(NOTEBOOKS_LIST_KEY)


@pytest.mark.asyncio
async def test_create_document_at_notebook_root(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.DOC_CREATE_WITH_MD] = "id"

    await create_document("nb1", "/", "Inbox", "", ctx, cache, fake_client)

    assert fake_client.calls[-1][1]["path"] == "/Inbox"


@pytest.mark.asyncio
async def test_update_document_replace_and_append(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.BLOCK_UPDATE] = []
    fake_client.responses[SiYuanEndpoints.BLOCK_APPEND] = []
    cache.set(document_key("doc"), {"content": "old"})
    cache.set(block_key("doc"), {"content": "old"})

    replaced = json.loads(await update_document("doc", "new", ctx, cache, fake_client))
    appended = json.loads(await update_document("doc", "more", ctx, cache, fake_client, mode=1))

    assert replaced["mode"] == "replace"
    assert appended["mode"] == "append"
    assert fake_client.calls[0][0] == SiYuanEndpoints.BLOCK_UPDATE
    assert fake_client.calls[1] == (
        SiYuanEndpoints.BLOCK_APPEND,
        {"dataType": "markdown", "data": "more", "parentID": "doc"},
    )
    assert not cache.has(document_key("doc"))
    assert not cache.has(block_key("doc"))


@pytest.mark.asyncio
async def test_update_document_rejects_unknown_mode(ctx, cache, fake_client):
    with pytest.raises(ToolError):
        await update_document("doc", "x", ctx, cache, fake_client, mode=7)


@pytest.mark.asyncio
async def test_delete_document_invalidates_notebook(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.DOC_REMOVE] = None
    cache.set(notebook_key("nb1"), {"id": "nb1"})
    cache.set(document_key("doc"), {"content": "x"})

    await delete_document("nb1", "/doc.sy", ctx, cache, fake_client, document_id="doc")

    assert fake_client.calls[-1] == (SiYuanEndpoints.DOC_REMOVE, {"notebook": "nb1", "path": "/doc.sy"})
    assert not cache.has(notebook_key("nb1"))
    assert not cache.has(document_key("doc"))


@pytest.mark.asyncio
async def test_list_recent_docs(ctx, fake_client):
    fake_client.responses[SiYuanEndpoints.QUERY_SQL] = [
        {"id": "d1", "box": "nb", "hpath": "/A", "content": "A", "updated": "20240102"},
    ]

    result = json.loads(await list_recent_docs(ctx, fake_client, limit=5))

    assert result["count"] == 1
    assert result["documents"][0] == {
        "id": "d1",
        "notebook": "nb",
        "path": "/A",
        "title": "A",
        "updated": "20240102",
    }
    assert "LIMIT 5" in fake_client.calls[-1][1]["stmt"]


@pytest.mark.asyncio
async def test_export_document(ctx, fake_client):
    fake_client.responses[SiYuanEndpoints.EXPORT_MD_CONTENT] = {"hPath": "/A", "content": "# A"}

    result = json.loads(await export_document("d1", ctx, fake_client))

    assert result == {"document_id": "d1", "format": "markdown", "path": "/A", "content": "# A"}

    with pytest.raises(ToolError):
        await export_document("d1", ctx, fake_client, format="pdf")


# ---------------------------------------------------------------------------
# Notebooks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_notebook_writes_invalidate_listing(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.NOTEBOOK_CREATE] = {"notebook": {"id": "nb2", "name": "New"}}
    fake_client.responses[SiYuanEndpoints.NOTEBOOK_RENAME] = None
    fake_client.responses[SiYuanEndpoints.NOTEBOOK_LIST] = {"notebooks": [{"id": "nb1"}]}

    await list_notebooks(ctx, cache, fake_client)
    assert cache.has(NOTEBOOKS_LIST_KEY)

    created = json.loads(await create_notebook("New", ctx, cache, fake_client))
    assert created["notebook"]["id"] == "nb2"
    assert not cache.has(NOTEBOOKS_LIST_KEY)

    await list_notebooks(ctx, cache, fake_client)
    cache.set(notebook_key("nb1"), {"id": "nb1"})
    await rename_notebook("nb1", "Renamed", ctx, cache, fake_client)
    assert not cache.has(NOTEBOOKS_LIST_KEY)
    assert not cache.has(notebook_key("nb1"))
    assert fake_client.count(SiYuanEndpoints.NOTEBOOK_LIST) == 2


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_content_is_cached_and_filtered(ctx, cache, fake_client):
    fake_client.responses[SiYuanEndpoints.SEARCH_FULLTEXT] = {
        "blocks": [{"id": "b1", "box": "nb1"}, {"id": "b2", "box": "nb2"}],
        "matchedBlockCount": 2,
        "matchedRootCount": 2,
    }

    everything = json.loads(await search_content("plan", ctx, cache, fake_client))
    filtered = json.loads(await search_content("plan", ctx, cache, fake_client, notebooks=["nb2"]))

    assert everything["count"] == 2
    assert [block["id"] for block in filtered["results"]] == ["b2"]
    assert fake_client.count(SiYuanEndpoints.SEARCH_FULLTEXT) == 1
    assert cache.has(search_key("plan", 0, 20))


@pytest.mark.asyncio
async def test_search_content_rejects_empty_query(ctx, cache, fake_client):
    with pytest.raises(ToolError):
        await search_content("  ", ctx, cache, fake_client)


@pytest.mark.asyncio
async def test_sql_query_limits_rows(ctx, fake_client):
    fake_client.responses[SiYuanEndpoints.QUERY_SQL] = [{"id": str(i)} for i in range(5)]

    result = json.loads(await sql_query("SELECT id FROM blocks", ctx, fake_client, limit=3))

    assert result["count"] == 5
    assert result["truncated"] is True
    assert len(result["rows"]) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("statement", ["DELETE FROM blocks", "SELECT 1; DROP TABLE blocks", ""])
async def test_sql_query_only_allows_select(ctx, fake_client, statement):
    with pytest.raises(ToolError):
        await sql_query(statement, ctx, fake_client)
    assert fake_client.calls == []
