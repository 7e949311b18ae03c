"""Tests for error translation in tool and resource handlers."""

import json

import pytest
from fastmcp.exceptions import ToolError

from siyuan_mcp.error_handler import (
    BadRequestError,
    ResourceNotFoundError,
    SessionCreationError,
    SessionNotFoundError,
    create_error_response,
    jsonrpc_error,
    resource_error_handler,
    tool_error_handler,
    validate_resource_id,
)


def test_jsonrpc_error_envelope():
    assert jsonrpc_error(-32000, "Bad Request") == {
        "jsonrpc": "2.0",
        "error": {"code": -32000, "message": "Bad Request"},
        "id": None,
    }
    assert jsonrpc_error(-32603, "boom", request_id=7, data={"x": 1})["error"]["data"] == {"x": 1}


def test_session_error_codes():
    assert (BadRequestError().status_code, BadRequestError().rpc_code) == (400, -32000)
    assert (SessionNotFoundError("s").status_code, SessionNotFoundError("s").rpc_code) == (400, -32000)
    assert (SessionCreationError("x").status_code, SessionCreationError("x").rpc_code) == (500, -32603)


def test_create_error_response():
    body = json.loads(create_error_response(ResourceNotFoundError("block", "b1"), "block", "b1"))

    assert body["error"] is True
    assert body["error_code"] == "RESOURCE_NOT_FOUND"
    assert body["message"] == "block b1 not found"


@pytest.mark.asyncio
async def test_tool_handler_wraps_unexpected_errors(ctx, monkeypatch):
    monkeypatch.delenv("SIYUAN_MCP_DEBUG", raising=False)

    @tool_error_handler("explode")
    async def explode(ctx):
        raise KeyError("missing")

    with pytest.raises(ToolError) as excinfo:
        await explode(ctx)

    assert str(excinfo.value) == "Tool explode failed: 'missing'"
    assert ctx.levels() == ["error"]


@pytest.mark.asyncio
async def test_tool_handler_adds_type_in_debug_mode(ctx, monkeypatch):
    monkeypatch.setenv("SIYUAN_MCP_DEBUG", "1")

    @tool_error_handler("explode")
    async def explode(ctx):
        raise KeyError("missing")

    with pytest.raises(ToolError) as excinfo:
        await explode(ctx=ctx)

    assert "(KeyError)" in str(excinfo.value)


@pytest.mark.asyncio
async def test_tool_handler_passes_results_through(ctx):
    @tool_error_handler("ok")
    async def ok(ctx):
        return "fine"

    assert await ok(ctx) == "fine"


@pytest.mark.asyncio
async def test_resource_handler_reports_unexpected_errors(ctx):
    @resource_error_handler("block")
    async def broken(block_id, ctx):
        raise RuntimeError("nope")

    body = json.loads(await broken("b1", ctx))

    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["resource_id"] == "b1"


def test_validate_resource_id():
    assert validate_resource_id("  b1 ", "block") == "b1"
    with pytest.raises(ResourceNotFoundError):
        validate_resource_id("   ", "block")
