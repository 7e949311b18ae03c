"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

This module provides the client for making authenticated requests to the SiYuan kernel API.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from .config import DEFAULT_API_URL, DEFAULT_REQUEST_TIMEOUT
from .error_handler import APIError, SiYuanAPIError, UpstreamError

logger = logging.getLogger(__name__)


class SiYuanClient:
    """
    Client for the SiYuan kernel HTTP API.

    Every SiYuan endpoint is a JSON POST that answers with the envelope
    {"code": 0, "msg": "", "data": ...}. The client unwraps the envelope and
    raises on any failure. Requests are never retried.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        api_token: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        """Get or create the requests session used for connection pooling."""
        if self._session is None:
            self._session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=10,
                pool_maxsize=20,
                max_retries=0
            )
            self._session.mount('https://', adapter)
            self._session.mount('http://', adapter)
        return self._session

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Token {self.api_token}"
        return headers

    def make_siyuan_request(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        """
        Make an authenticated, blocking request to the SiYuan API.

        Args:
            endpoint: The API endpoint path (use constants from endpoints.py)
            payload: The JSON payload to send

        Returns:
            The "data" member of the SiYuan response envelope

        Raises:
            UpstreamError: If the HTTP request fails or times out
            APIError: If the HTTP status is not 200
            SiYuanAPIError: If the envelope reports a non-zero code
        """
        try:
            response = self._get_session().post(
                f"{self.api_url}{endpoint}",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout
            )
        except requests.Timeout as e:
            raise UpstreamError(endpoint, f"timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise UpstreamError(endpoint, str(e)) from e

        if response.status_code != 200:
            raise APIError(endpoint, response.status_code, response.text)

        try:
            envelope = response.json()
        except ValueError as e:
            raise UpstreamError(endpoint, f"invalid JSON response: {e}") from e

        if not isinstance(envelope, dict):
            return envelope

        code = envelope.get("code", 0)
        if code != 0:
            raise SiYuanAPIError(endpoint, code, envelope.get("msg", ""))

        return envelope.get("data")

    async def call(self, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Call a SiYuan endpoint without blocking the event loop."""
        payload = payload or {}
        logger.debug("SiYuan API call %s %s", endpoint, json.dumps(payload, default=str)[:200])
        try:
            return await asyncio.to_thread(self.make_siyuan_request, endpoint, payload)
        except (UpstreamError, APIError, SiYuanAPIError) as e:
            logger.warning("SiYuan API call %s failed: %s", endpoint, e.message)
            raise

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
