"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan MCP Error Handler

Provides the exception taxonomy and standardized error handling for resources,
tools and the HTTP session layer.
"""

import json
import logging
import os
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from fastmcp.exceptions import ToolError

logger = logging.getLogger(__name__)

# JSON-RPC error codes used on the wire
PARSE_ERROR = -32700
INVALID_REQUEST = -32000
AUTHENTICATION_REQUIRED = -32001
INTERNAL_ERROR = -32603


class SiYuanMCPError(Exception):
    """Base exception for SiYuan MCP errors."""
    def __init__(self, message: str, error_code: str = "UNKNOWN", details: Optional[Dict] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(SiYuanMCPError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict] = None):
        message = f"{resource_type} {resource_id} not found"
        super().__init__(message, "RESOURCE_NOT_FOUND", details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class APIError(SiYuanMCPError):
    """Raised when the SiYuan API answers with a non-200 HTTP status."""
    def __init__(self, endpoint: str, status_code: int, response_text: str):
        message = f"SiYuan API error on {endpoint}: HTTP {status_code}"
        details = {"status_code": status_code, "response": response_text}
        super().__init__(message, "API_ERROR", details)
        self.endpoint = endpoint
        self.status_code = status_code


class SiYuanAPIError(SiYuanMCPError):
    """Raised when the SiYuan API envelope carries a non-zero code."""
    def __init__(self, endpoint: str, code: int, msg: str):
        message = f"SiYuan API error on {endpoint}: {msg or 'unknown error'} (code {code})"
        super().__init__(message, "SIYUAN_ERROR", {"code": code, "msg": msg})
        self.endpoint = endpoint
        self.code = code


class UpstreamError(SiYuanMCPError):
    """Raised when the SiYuan API cannot be reached or times out."""
    def __init__(self, endpoint: str, cause: str):
        super().__init__(f"SiYuan API request failed for endpoint '{endpoint}': {cause}", "UPSTREAM_ERROR")
        self.endpoint = endpoint


class SessionError(SiYuanMCPError):
    """Errors of the HTTP session layer, mapped to an HTTP status and JSON-RPC code."""
    status_code = 400
    rpc_code = INVALID_REQUEST

    def __init__(self, message: str, error_code: str = "SESSION_ERROR", details: Optional[Dict] = None):
        super().__init__(message, error_code, details)


class BadRequestError(SessionError):
    """No usable session id and not an initialization request."""
    def __init__(self, message: str = "Bad Request: No valid session ID provided or not an initialization request"):
        super().__init__(message, "BAD_REQUEST")


class SessionNotFoundError(SessionError):
    """The session id is unknown or has expired."""
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found", "SESSION_NOT_FOUND", {"session_id": session_id})
        self.session_id = session_id


class SessionCreationError(SessionError):
    """The per-session server or transport could not be created."""
    status_code = 500
    rpc_code = INTERNAL_ERROR

    def __init__(self, cause: str):
        super().__init__(f"Failed to create session: {cause}", "SESSION_CREATION_FAILED")


def jsonrpc_error(code: int, message: str, request_id: Any = None, data: Any = None) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 error envelope."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": request_id}


def create_error_response(
    error: Exception,
    resource_type: str = "resource",
    resource_id: str = "",
    additional_data: Optional[Dict] = None
) -> str:
    """
    Create a standardized JSON error response.

    Args:
        error: The exception that occurred
        resource_type: Type of resource (notebook, block, etc.)
        resource_id: ID of the resource that failed
        additional_data: Additional data to include in error response

    Returns:
        JSON string containing error information
    """
    error_data = {
        "error": True,
        "error_type": type(error).__name__,
        "message": str(error),
        "resource_type": resource_type,
        "resource_id": resource_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # Add specific error details for known error types
    if isinstance(error, SiYuanMCPError):
        error_data["error_code"] = error.error_code
        error_data["details"] = error.details

    if isinstance(error, (APIError, SiYuanAPIError)):
        error_data["api_endpoint"] = error.endpoint
    if isinstance(error, APIError):
        error_data["http_status"] = error.status_code

    if additional_data:
        error_data.update(additional_data)

    return json.dumps(error_data, indent=2)


def _find_context(args, kwargs):
    ctx = kwargs.get("ctx")
    if ctx is not None:
        return ctx
    for arg in args:
        if hasattr(arg, "info") and hasattr(arg, "error"):
            return arg
    return None


def _debug_enabled() -> bool:
    return os.environ.get("SIYUAN_MCP_DEBUG") == "1"


def resource_error_handler(resource_type: str):
    """
    Decorator for resource handlers that provides standardized error handling.

    Failures are returned as a JSON error document instead of being raised.

    Args:
        resource_type: The type of resource (e.g., "notebook", "block")
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            resource_id = args[0] if args else "unknown"
            ctx = _find_context(args, kwargs)

            try:
                return await func(*args, **kwargs)

            except SiYuanMCPError as e:
                if ctx:
                    await ctx.error(f"{resource_type} error: {e.message}")
                return create_error_response(e, resource_type, str(resource_id))

            except Exception as e:
                logger.exception("Unexpected error in %s %s", resource_type, resource_id)
                if ctx:
                    await ctx.error(f"Unexpected error in {resource_type} {resource_id}: {str(e)}")

                mcp_error = SiYuanMCPError(
                    f"Unexpected error: {str(e)}",
                    "INTERNAL_ERROR",
                    details={"original_exception": type(e).__name__, "cause": str(e)}
                )
                return create_error_response(mcp_error, resource_type, str(resource_id))

        return wrapper
    return decorator


def tool_error_handler(tool_name: str):
    """
    Decorator for tool handlers that provides standardized error handling.

    Every failure surfaces as a ToolError, which the client receives as a tool
    result flagged isError with the message as text.

    Args:
        tool_name: The name of the tool
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            ctx = _find_context(args, kwargs)

            try:
                return await func(*args, **kwargs)

            except ToolError:
                raise

            except SiYuanMCPError as e:
                if ctx:
                    await ctx.error(f"{tool_name} error: {e.message}")
                raise ToolError(f"Error in {tool_name}: {e.message}") from e

            except ValueError as e:
                if ctx:
                    await ctx.error(f"Invalid arguments for {tool_name}: {str(e)}")
                raise ToolError(f"Invalid arguments for {tool_name}: {str(e)}") from e

            except Exception as e:
                logger.exception("Unexpected error in tool %s", tool_name)
                if ctx:
                    await ctx.error(f"Unexpected error in {tool_name}: {str(e)}")
                message = f"Tool {tool_name} failed: {str(e)}"
                if _debug_enabled():
                    message = f"{message} ({type(e).__name__})"
                raise ToolError(message) from e

        return wrapper
    return decorator


def validate_resource_id(resource_id: str, resource_type: str) -> str:
    """
    Validate and normalize resource IDs.

    Raises:
        ResourceNotFoundError: If resource ID is invalid
    """
    if not resource_id or not isinstance(resource_id, str):
        raise ResourceNotFoundError(
            resource_type,
            str(resource_id),
            {"reason": "Invalid or empty resource ID"}
        )

    resource_id = resource_id.strip()
    if not resource_id:
        raise ResourceNotFoundError(
            resource_type,
            resource_id,
            {"reason": "Empty resource ID after normalization"}
        )

    return resource_id
