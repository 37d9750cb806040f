"""
StreamShortcut MCP Server - Identifier parsing and name resolution.

Turns the human-friendly values an assistant passes to the `shortcut` tool
into the IDs the Shortcut API expects:

- Story/epic references: "704", "sc-704", or a full app.shortcut.com URL
- Workflow states: free text such as "done", "In Progress", "wip"
- Members: display name, mention handle, or the literal "me"

Everything here is stateless. Reference data (workflows, members) is passed
in by the caller, so nothing is cached between tool invocations.
"""

import re
import logging
from types import MappingProxyType
from typing import Any, Callable, Iterable, List, Optional, Sequence

from models import Member, Workflow, WorkflowState

logger = logging.getLogger(__name__)


# ============================================================================
# IDENTIFIER PARSER
# ============================================================================
# URL patterns are checked before the bare-digit fallback because a URL can
# carry other digits (org slug, query string) ahead of or after the real ID.

STORY_URL_PATTERN = re.compile(r"/story/(\d+)", re.IGNORECASE)
EPIC_URL_PATTERN = re.compile(r"/epic/(\d+)", re.IGNORECASE)
DIGITS_PATTERN = re.compile(r"[0-9]+")

ID_PATTERNS = (STORY_URL_PATTERN, EPIC_URL_PATTERN, DIGITS_PATTERN)


class InvalidIdentifier(ValueError):
    """Raised when no numeric ID can be extracted from the input."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid ID: {value}")


def parse_identifier(value: Any) -> int:
    """
    Extract a canonical numeric ID from a story/epic reference.

    Accepted forms (first match wins):
        https://app.shortcut.com/org/story/9001/some-title  -> 9001
        https://app.shortcut.com/org/epic/308               -> 308
        sc-704, #704, 704                                    -> 704

    Raises:
        InvalidIdentifier: If the input contains no digits at all
    """
    text = "" if value is None else str(value)

    for pattern in ID_PATTERNS:
        match = pattern.search(text)
        if match:
            # DIGITS_PATTERN has no group, the URL patterns capture the ID
            digits = match.group(match.lastindex or 0)
            return int(digits)

    raise InvalidIdentifier(value)


# ============================================================================
# STATE RESOLUTION
# ============================================================================

# Canonical category label -> synonyms users type for it.
# Matching is bidirectional containment. The labels of all matching families
# are looked up in tenant state names first, then their synonyms.
STATE_ALIASES = MappingProxyType({
    "done": ("done", "complete", "completed", "finished", "deployed"),
    "in progress": ("in progress", "started", "doing", "wip", "in prog"),
    "ready": ("ready", "todo", "to do", "backlog", "open"),
})


def _iter_states(workflows: Iterable[Workflow]) -> Iterable[WorkflowState]:
    for workflow in workflows:
        for state in workflow.states:
            yield state


def _first_state(workflows: Sequence[Workflow], predicate: Callable[[str], bool]) -> Optional[WorkflowState]:
    for state in _iter_states(workflows):
        if predicate(state.name.lower()):
            return state
    return None


def _exact_tier(needle: str, workflows: Sequence[Workflow]) -> Optional[WorkflowState]:
    return _first_state(workflows, lambda name: name == needle)


def _substring_tier(needle: str, workflows: Sequence[Workflow]) -> Optional[WorkflowState]:
    return _first_state(workflows, lambda name: needle in name)


def _alias_tier(needle: str, workflows: Sequence[Workflow]) -> Optional[WorkflowState]:
    families = [
        (canonical, synonyms) for canonical, synonyms in STATE_ALIASES.items()
        if any(synonym in needle or needle in synonym for synonym in synonyms)
    ]

    # Every matching family's label is tried before any family's synonyms
    for canonical, _ in families:
        state = _first_state(workflows, lambda name: canonical in name)
        if state is not None:
            return state

    for _, synonyms in families:
        for synonym in synonyms:
            state = _first_state(workflows, lambda name: synonym in name)
            if state is not None:
                return state
    return None


# Tried in order; each tier scans every workflow before the next one runs
STATE_TIERS = (
    ("exact", _exact_tier),
    ("substring", _substring_tier),
    ("alias", _alias_tier),
)


def resolve_state(name: str, workflows: Sequence[Workflow]) -> Optional[int]:
    """
    Resolve a free-text workflow state name to a workflow_state_id.

    Tiers (each scans all workflows in order, states in listed order):
        1. exact      - case-insensitive equality
        2. substring  - state name contains the input
        3. alias      - synonym table, e.g. "wip" -> a state containing "in progress"

    State names are only unique per workflow, so the first hit in workflow
    order wins.

    Returns:
        The state ID, or None when no tier matches. Callers should offer
        all_state_names() to the user in that case.
    """
    needle = (name or "").strip().lower()
    if not needle:
        return None

    for tier_name, tier in STATE_TIERS:
        state = tier(needle, workflows)
        if state is not None:
            logger.debug(f"resolve_state: '{name}' matched '{state.name}' (id={state.id}) via {tier_name} tier")
            return state.id

    logger.info(f"resolve_state: No workflow state matches '{name}'")
    return None


def state_name(state_id: Optional[int], workflows: Sequence[Workflow]) -> str:
    """Name of a workflow state by ID, or the ID itself when unknown."""
    for state in _iter_states(workflows):
        if state.id == state_id:
            return state.name
    return str(state_id)


def all_state_names(workflows: Sequence[Workflow]) -> List[str]:
    """Every state name across all workflows, in workflow order."""
    return [state.name for state in _iter_states(workflows)]


def default_state_id(workflows: Sequence[Workflow]) -> Optional[int]:
    """First 'unstarted' state of the first workflow, used for new stories."""
    if not workflows:
        return None
    for state in workflows[0].states:
        if state.type == "unstarted":
            return state.id
    return None


# ============================================================================
# MEMBER RESOLUTION
# ============================================================================

CURRENT_MEMBER = "me"


def resolve_member(
    value: str,
    current_member: Callable[[], Member],
    members: Callable[[], Sequence[Member]],
) -> Optional[str]:
    """
    Resolve a member reference to a Shortcut member ID.

    "me" is answered by current_member() alone; the member list is never
    fetched for it. Any other input is a case-insensitive substring match
    against display name or mention handle, first member in list order wins.
    There is deliberately no exact-match tier here.

    Args:
        value: "me", a (partial) display name, or a (partial) mention handle
        current_member: Returns the authenticated member
        members: Returns all members of the workspace

    Returns:
        The member ID, or None when nobody matches
    """
    if value == CURRENT_MEMBER:
        member = current_member()
        logger.debug(f"resolve_member: 'me' resolved to {member.id}")
        return member.id

    needle = (value or "").strip().lower()
    if not needle:
        return None

    for member in members():
        if needle in member.display_name.lower() or needle in member.mention_handle.lower():
            logger.debug(f"resolve_member: '{value}' matched {member.display_name} (@{member.mention_handle})")
            return member.id

    logger.info(f"resolve_member: No member matches '{value}'")
    return None


# ============================================================================
# RESPONSE NORMALIZATION
# ============================================================================

def normalize_search_results(payload: Any) -> list:
    """
    Normalize a story search payload to a plain list of story dicts.

    /stories/search has answered both with a bare list and with
    {"data": [...], "next": ..., "total": ...}. Anything else (None, error
    text, unexpected objects) becomes an empty list; search treats that as
    "no stories found".
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    if payload is not None:
        logger.warning(f"normalize_search_results: Unexpected payload type {type(payload).__name__}, treating as empty")
    return []
