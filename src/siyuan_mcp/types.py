"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan MCP Server Type Definitions

Contains enums, constants, and dataclasses shared by the session layer,
the SSE channel and the SiYuan tools.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class SessionState(Enum):
    """
    Lifecycle states of an MCP session.

    A session that is not in the registry is absent; it never goes back from
    TERMINATED to any other state.
    """
    INITIALIZING = "initializing"
    ACTIVE = "active"
    TERMINATED = "terminated"


class SSEMessageType(Enum):
    """Kinds of messages carried on the legacy SSE channel."""
    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    ERROR = "error"


class DataType(Enum):
    """
    Content formats accepted by SiYuan block and document writes.

    - MARKDOWN: Markdown source, converted to blocks by SiYuan
    - DOM: SiYuan's protyle DOM representation
    """
    MARKDOWN = "markdown"
    DOM = "dom"

    @classmethod
    def validate(cls, data_type: str) -> str:
        """Return the normalized data type or raise ValueError."""
        normalized = (data_type or "").strip().lower()
        if normalized not in [member.value for member in cls]:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(f"Invalid data type: {data_type}. Valid options: {valid}")
        return normalized


class SearchMethod(Enum):
    """Full-text search methods understood by /api/search/fullTextSearchBlock."""
    KEYWORD = 0
    QUERY_SYNTAX = 1
    SQL = 2
    REGEX = 3

    @classmethod
    def get_description(cls, method: int) -> str:
        descriptions = {
            cls.KEYWORD.value: "Keyword search",
            cls.QUERY_SYNTAX.value: "Query syntax search",
            cls.SQL.value: "SQL search",
            cls.REGEX.value: "Regular expression search",
        }
        return descriptions.get(method, f"Unknown search method: {method}")


class ExportFormat(Enum):
    """Formats supported by the export_document tool."""
    MARKDOWN = "markdown"
    HTML = "html"


# Cache lifetimes in seconds per resource kind
class ResourceTTL:
    NOTEBOOKS = 120.0
    NOTEBOOK = 300.0
    DOCUMENT = 60.0
    BLOCK = 30.0
    BLOCK_CHILDREN = 30.0
    SEARCH = 30.0
    WORKSPACE = 300.0


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SSEMessage:
    """A message sent over, or received from, the legacy SSE channel."""
    type: SSEMessageType
    data: Any
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: int = field(default_factory=_now_ms)
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        message = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "data": self.data,
        }
        if self.correlation_id is not None:
            message["correlationId"] = self.correlation_id
        return message

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SSEMessage":
        """
        Parse the wire form of a message.

        Raises:
            ValueError: If the payload is not an object or has an unknown type
        """
        if not isinstance(payload, dict):
            raise ValueError("SSE message must be a JSON object")
        try:
            message_type = SSEMessageType(payload.get("type"))
        except ValueError as e:
            raise ValueError(f"Unknown SSE message type: {payload.get('type')!r}") from e

        message = cls(type=message_type, data=payload.get("data"))
        if payload.get("id"):
            message.id = str(payload["id"])
        if isinstance(payload.get("timestamp"), (int, float)):
            message.timestamp = int(payload["timestamp"])
        message.correlation_id = payload.get("correlationId")
        return message


@dataclass
class SSEConnection:
    """Bookkeeping for one legacy SSE connection."""
    id: str
    client_address: str
    connected_at: float
    last_activity: float
    authenticated: bool = False
    session_token: Optional[str] = None
