"""
StreamShortcut MCP Server - Shortcut API client.

Thin wrapper over the Shortcut REST API v3 plus a per-invocation cache of
reference data (workflows, members) used by name resolution.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

import config
from models import Epic, Member, Story, Workflow
from resolution import (
    all_state_names,
    default_state_id,
    normalize_search_results,
    resolve_member,
    resolve_state,
    state_name,
)

logger = logging.getLogger(__name__)


class ShortcutAPIError(Exception):
    """
    Raised for any failed Shortcut API call.

    `details` carries diagnostics in the shape:
        {
            "error": "error message",
            "error_type": "HTTPError" | "RateLimit" | "ConnectionError" | "Timeout" | ...,
            "status_code": 404,           # HTTP errors only
            "method": "GET",
            "endpoint": "/stories/704",
            "response_text": "..."        # HTTP errors only, truncated
        }
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}

    @property
    def status_code(self) -> Optional[int]:
        return self.details.get("status_code")


# ============================================================================
# CORE API HELPER FUNCTION
# ============================================================================

def make_api_request(method: str, endpoint: str, token: str, json_body: Optional[dict] = None) -> Any:
    """
    Make an authenticated HTTP request to the Shortcut API.

    This is the central function for all API communication. It handles:
    - URL construction
    - Authentication via the Shortcut-Token header
    - Error mapping to ShortcutAPIError with diagnostics
    - Response parsing

    Args:
        method: HTTP method (GET, POST, PUT, DELETE)
        endpoint: API endpoint path (e.g., '/stories/704')
        token: Shortcut API token
        json_body: Optional JSON request body

    Returns:
        Parsed JSON on success, None for an empty body, or the raw text when
        the body is not JSON.

    Raises:
        ShortcutAPIError: On rate limiting, HTTP errors, connection failures
        and timeouts
    """
    # Construct full API URL by combining base URL with endpoint
    url = f"{config.SHORTCUT_API_BASE}{endpoint}"
    method = method.upper()

    # SECURITY: Never log the full token, only a hint for debugging
    token_hint = f"{token[:8]}..." if token and len(token) > 8 else "***"
    logger.info(f"API Request: {method} {endpoint}")
    logger.debug(f"API token hint: {token_hint}")

    headers = {
        "Content-Type": "application/json",
        "Shortcut-Token": token,
    }

    if json_body:
        logger.debug(f"JSON body: {len(json_body)} fields")

    try:
        response = requests.request(
            method,
            url,
            headers=headers,
            json=json_body,
            timeout=config.SHORTCUT_TIMEOUT,
        )
    except requests.exceptions.ConnectionError as e:
        # Network connection error (DNS failure, refused connection, etc.)
        logger.error(f"Connection Error: {method} {endpoint} - Cannot reach {config.SHORTCUT_API_BASE}: {str(e)}")
        raise ShortcutAPIError(
            "Failed to connect to Shortcut API. Check network connectivity and SHORTCUT_API_BASE configuration.",
            {"error": str(e), "error_type": "ConnectionError", "method": method, "endpoint": endpoint},
        ) from e
    except requests.exceptions.Timeout as e:
        logger.error(f"Timeout Error: {method} {endpoint} - Request timed out: {str(e)}")
        raise ShortcutAPIError(
            "Request to Shortcut API timed out. The server may be slow or unresponsive.",
            {"error": str(e), "error_type": "Timeout", "method": method, "endpoint": endpoint},
        ) from e
    except requests.exceptions.RequestException as e:
        # Catch-all for other request errors
        logger.error(f"Request Exception: {method} {endpoint} - {type(e).__name__}: {str(e)}")
        raise ShortcutAPIError(
            f"Unexpected error while calling Shortcut API: {str(e)}",
            {"error": str(e), "error_type": type(e).__name__, "method": method, "endpoint": endpoint},
        ) from e

    logger.info(f"API Response: {method} {endpoint} - Status {response.status_code}")

    if response.status_code == 429:
        logger.warning(f"Rate limited: {method} {endpoint}")
        raise ShortcutAPIError(
            "Rate limit exceeded. Please try again later.",
            {"error": "rate limited", "error_type": "RateLimit", "status_code": 429,
             "method": method, "endpoint": endpoint},
        )

    if not response.ok:
        # HTTP error (4xx or 5xx status code)
        error_text = response.text[:500]  # Limit to 500 chars
        logger.error(f"HTTP Error: {method} {endpoint} - Status {response.status_code}: {error_text[:200]}")
        raise ShortcutAPIError(
            f"API error ({response.status_code}): {error_text}",
            {"error": error_text, "error_type": "HTTPError", "status_code": response.status_code,
             "method": method, "endpoint": endpoint, "response_text": error_text},
        )

    text = response.text
    if not text:
        return None

    try:
        return response.json()
    except ValueError:
        logger.warning(f"API returned non-JSON body for {method} {endpoint}")
        return text


# ============================================================================
# SHORTCUT CLIENT
# ============================================================================

class ShortcutClient:
    """Typed access to the Shortcut endpoints the `shortcut` tool uses."""

    def __init__(self, token: str):
        self.token = token

    def request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        return make_api_request(method, path, self.token, json_body=body)

    # Workflow methods
    def get_workflows(self) -> List[Workflow]:
        data = self.request("GET", "/workflows") or []
        return [Workflow.model_validate(item) for item in data]

    # Member methods
    def get_members(self) -> List[Member]:
        data = self.request("GET", "/members") or []
        return [Member.model_validate(item) for item in data]

    def get_current_member(self) -> Member:
        return Member.model_validate(self.request("GET", "/member"))

    # Story methods
    def get_story(self, story_id: int) -> Optional[Story]:
        data = self.request("GET", f"/stories/{story_id}")
        return Story.model_validate(data) if data else None

    def create_story(self, data: Dict[str, Any]) -> Story:
        return Story.model_validate(self.request("POST", "/stories", data))

    def update_story(self, story_id: int, data: Dict[str, Any]) -> Story:
        return Story.model_validate(self.request("PUT", f"/stories/{story_id}", data))

    def search_stories(self, params: Dict[str, Any]) -> List[dict]:
        response = self.request("POST", "/stories/search", params)
        return normalize_search_results(response)

    def add_comment(self, story_id: int, text: str) -> None:
        self.request("POST", f"/stories/{story_id}/comments", {"text": text})

    # Epic methods
    def get_epic(self, epic_id: int) -> Optional[Epic]:
        data = self.request("GET", f"/epics/{epic_id}")
        return Epic.model_validate(data) if data else None


# ============================================================================
# REFERENCE DATA
# ============================================================================

class ReferenceData:
    """
    Reference data for one tool invocation.

    Workflows, members and the current member are fetched at most once per
    instance. Create a new instance per action; never share one across
    invocations, so resolution always sees fresh data.
    """

    def __init__(self, client: ShortcutClient):
        self.client = client
        self._workflows: Optional[List[Workflow]] = None
        self._members: Optional[List[Member]] = None
        self._current_member: Optional[Member] = None

    def workflows(self) -> List[Workflow]:
        if self._workflows is None:
            self._workflows = self.client.get_workflows()
            logger.debug(f"ReferenceData: Loaded {len(self._workflows)} workflows")
        return self._workflows

    def members(self) -> List[Member]:
        if self._members is None:
            self._members = self.client.get_members()
            logger.debug(f"ReferenceData: Loaded {len(self._members)} members")
        return self._members

    def current_member(self) -> Member:
        if self._current_member is None:
            self._current_member = self.client.get_current_member()
        return self._current_member

    def resolve_state(self, name: str) -> Optional[int]:
        return resolve_state(name, self.workflows())

    def resolve_member(self, value: str) -> Optional[str]:
        return resolve_member(value, self.current_member, self.members)

    def state_name(self, state_id: Optional[int]) -> str:
        return state_name(state_id, self.workflows())

    def all_state_names(self) -> List[str]:
        return all_state_names(self.workflows())

    def default_state_id(self) -> Optional[int]:
        return default_state_id(self.workflows())
