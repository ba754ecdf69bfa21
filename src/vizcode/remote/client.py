from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from pydantic import ValidationError

from ..graph.types import Graph
from .schema import ParseResponse

logger = logging.getLogger(__name__)

PARSE_PATH = "/api/parse"
LAST_PROMPT_PATH = "/api/last-prompt"


class ParseServiceError(RuntimeError):
    """The remote parse service was unreachable or answered with something unusable."""


def parse_response(data: Any) -> Graph:
    """Validate a service response body and convert it to a graph.

    Raises:
        ParseServiceError: if any of the three arrays is missing or malformed
    """
    if not isinstance(data, dict):
        raise ParseServiceError(f"Parse service returned {type(data).__name__}, expected an object")
    try:
        return ParseResponse.model_validate(data).to_graph()
    except ValidationError as exc:
        raise ParseServiceError(f"Malformed parse service response: {exc.error_count()} error(s)") from exc


class ParseServiceClient:
    """Very thin client for the remote parse service."""

    def __init__(self, base_url: str = "http://localhost:5001", timeout: float = 10.0):
        """Initialize the client.

        Args:
            base_url: Service root, e.g. "http://localhost:5001"
            timeout: Seconds to wait for each request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def parse(self, text: str) -> Graph:
        """Send DSL text to the service and return its raw graph.

        Raises:
            ParseServiceError: on transport errors, HTTP errors or malformed bodies
        """
        try:
            response = requests.post(
                f"{self.base_url}{PARSE_PATH}",
                json={"prompt": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise ParseServiceError(f"Parse service call failed: {exc}") from exc
        except ValueError as exc:
            raise ParseServiceError(f"Parse service returned a non-JSON body: {exc}") from exc

        return parse_response(data)

    def last_prompt(self) -> Optional[str]:
        """Prompt most recently received by the service, if any."""
        try:
            response = requests.get(f"{self.base_url}{LAST_PROMPT_PATH}", timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ParseServiceError(f"Parse service call failed: {exc}") from exc
        return data.get("prompt") if isinstance(data, dict) else None
