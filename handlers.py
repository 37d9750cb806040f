"""
StreamShortcut MCP Server - Action handlers.

One MCP tool, eight actions. Each handler translates the loosely-typed tool
parameters into a Shortcut API request (parsing IDs, resolving state and
member names) and renders the response as compact Markdown.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from formatters import format_comments, format_epic, format_story, format_story_list
from models import ShortcutParams
from resolution import InvalidIdentifier, parse_identifier
from shortcut_client import ReferenceData, ShortcutAPIError, ShortcutClient

logger = logging.getLogger(__name__)

# Number of stories listed under an epic
EPIC_STORY_LIMIT = 25

# Owner values that clear a story's owners on update
CLEAR_OWNER_VALUES = ("", "none")


class ActionError(Exception):
    """A tool call that cannot proceed, e.g. a missing required parameter."""


@dataclass
class ActionResult:
    text: str
    is_error: bool = False


def run_action(params: ShortcutParams, client: ShortcutClient) -> ActionResult:
    """
    Dispatch an action and turn every failure into an error result.

    Errors are reported to the MCP client as "Error: <message>" text rather
    than propagated, so the assistant can read and react to them.
    """
    try:
        return ActionResult(handle_action(params, client))
    except (ActionError, InvalidIdentifier, ShortcutAPIError, ValidationError) as e:
        logger.warning(f"run_action: {params.action} failed - {type(e).__name__}: {str(e)}")
        return ActionResult(f"Error: {str(e)}", is_error=True)
    except Exception as e:
        logger.critical(f"run_action: Unexpected error in {params.action} - {type(e).__name__}: {str(e)}", exc_info=True)
        return ActionResult(f"Error: {str(e)}", is_error=True)


def handle_action(params: ShortcutParams, client: ShortcutClient) -> str:
    """
    Main action dispatcher.

    A fresh ReferenceData is created per call, so workflows and members are
    fetched at most once per action and never reused across actions.
    """
    refs = ReferenceData(client)
    action = params.action
    logger.info(f"handle_action: {action}")

    if action == "search":
        return handle_search(refs, params.query)

    if action == "get":
        _require(params, "id")
        return handle_get(refs, params.id)

    if action == "update":
        _require(params, "id")
        return handle_update(refs, params)

    if action == "comment":
        _require(params, "id", "body")
        return handle_comment(refs, params.id, params.body)

    if action == "create":
        _require(params, "name")
        return handle_create(refs, params)

    if action == "epic":
        _require(params, "id")
        return handle_epic(refs, params.id)

    if action == "api":
        _require(params, "method", "path")
        body = params.query if isinstance(params.query, dict) else None
        return handle_api(refs, params.method, params.path, body)

    if action == "help":
        return handle_help()

    raise ActionError(f"Unknown action: {action}")


def _require(params: ShortcutParams, *fields: str) -> None:
    if all(getattr(params, field) not in (None, "") for field in fields):
        return
    raise ActionError(f"{' and '.join(fields)} required")


# ============================================================================
# SEARCH
# ============================================================================

def handle_search(refs: ReferenceData, query: Optional[Union[str, Dict[str, Any]]]) -> str:
    """
    Search stories.

    - No query (None or ""): the current member's active (unarchived) stories
    - String: Shortcut full-text search
    - Object: structured filters, e.g. {"owner": "me", "state": "wip", "epic": 308};
      an empty object searches with no filters
      Unresolvable owner/state filters are skipped rather than failing.
    """
    if query is None or query == "":
        search_params = {"owner_ids": [refs.current_member().id], "archived": False}
    elif isinstance(query, str):
        search_params = {"query": query}
    else:
        search_params = _structured_search_params(refs, query)

    logger.debug(f"handle_search: params={search_params}")
    stories = refs.client.search_stories(search_params)
    return format_story_list(stories)


def _structured_search_params(refs: ReferenceData, query: Dict[str, Any]) -> Dict[str, Any]:
    search_params: Dict[str, Any] = {}

    owner = query.get("owner")
    if owner:
        member_id = refs.resolve_member(str(owner))
        if member_id:
            search_params["owner_ids"] = [member_id]
        else:
            logger.warning(f"handle_search: Ignoring unknown owner '{owner}'")

    state = query.get("state")
    if state:
        state_id = refs.resolve_state(str(state))
        if state_id is not None:
            search_params["workflow_state_id"] = state_id
        else:
            logger.warning(f"handle_search: Ignoring unknown state '{state}'")

    if query.get("epic"):
        search_params["epic_ids"] = [query["epic"]]
    if query.get("iteration"):
        search_params["iteration_ids"] = [query["iteration"]]
    if query.get("type"):
        search_params["story_type"] = query["type"]
    if query.get("archived") is not None:
        search_params["archived"] = query["archived"]

    return search_params


# ============================================================================
# STORY ACTIONS
# ============================================================================

def handle_get(refs: ReferenceData, raw_id: Union[int, str]) -> str:
    story_id = parse_identifier(raw_id)
    story = refs.client.get_story(story_id)
    if story is None:
        return f"Story sc-{story_id} not found"

    current_state = None
    if story.workflow_state_id is not None:
        current_state = refs.state_name(story.workflow_state_id)

    result = format_story(story, current_state)
    result += format_comments(story.comments)
    return result


def handle_update(refs: ReferenceData, params: ShortcutParams) -> str:
    """
    Update state, estimate, owner, type or name of a story.

    An unknown state or owner aborts the update: state failures list every
    valid state name, owner failures name the unmatched input.
    """
    story_id = parse_identifier(params.id)
    updates: Dict[str, Any] = {}

    if params.state:
        state_id = refs.resolve_state(params.state)
        if state_id is None:
            valid = ", ".join(refs.all_state_names())
            return f'State "{params.state}" not found. Valid: {valid}'
        updates["workflow_state_id"] = state_id

    if params.estimate is not None:
        updates["estimate"] = params.estimate
    if params.name:
        updates["name"] = params.name
    if params.type:
        updates["story_type"] = params.type

    if "owner" in params.model_fields_set:
        owner = params.owner
        if owner is None or owner.strip().lower() in CLEAR_OWNER_VALUES:
            updates["owner_ids"] = []
        else:
            member_id = refs.resolve_member(owner)
            if not member_id:
                return f'Could not find member "{owner}"'
            updates["owner_ids"] = [member_id]

    if not updates:
        return "No updates provided"

    story = refs.client.update_story(story_id, updates)
    return f"Updated sc-{story.id}: {story.app_url}"


def handle_comment(refs: ReferenceData, raw_id: Union[int, str], body: str) -> str:
    story_id = parse_identifier(raw_id)
    refs.client.add_comment(story_id, body)
    return f"Added comment to sc-{story_id}"


def handle_create(refs: ReferenceData, params: ShortcutParams) -> str:
    """
    Create a story.

    Without a state the story lands in the first unstarted state of the first
    workflow. Unknown state or owner values are dropped, not fatal.
    """
    story_input: Dict[str, Any] = {"name": params.name}

    if params.state:
        state_id = refs.resolve_state(params.state)
        if state_id is not None:
            story_input["workflow_state_id"] = state_id
        else:
            logger.warning(f"handle_create: Ignoring unknown state '{params.state}'")
    else:
        state_id = refs.default_state_id()
        if state_id is not None:
            story_input["workflow_state_id"] = state_id

    if params.type:
        story_input["story_type"] = params.type
    if params.estimate is not None:
        story_input["estimate"] = params.estimate
    if params.epic:
        story_input["epic_id"] = params.epic

    if params.owner:
        member_id = refs.resolve_member(params.owner)
        if member_id:
            story_input["owner_ids"] = [member_id]
        else:
            logger.warning(f"handle_create: Ignoring unknown owner '{params.owner}'")

    story = refs.client.create_story(story_input)
    return f"Created sc-{story.id}: {story.name}\n{story.app_url}"


# ============================================================================
# EPIC, RAW API AND HELP
# ============================================================================

def handle_epic(refs: ReferenceData, raw_id: Union[int, str]) -> str:
    epic_id = parse_identifier(raw_id)
    epic = refs.client.get_epic(epic_id)
    if epic is None:
        return f"Epic {epic_id} not found"

    result = format_epic(epic)

    stories = refs.client.search_stories({"epic_ids": [epic_id]})
    if stories:
        result += "\n\n## Stories\n" + format_story_list(stories[:EPIC_STORY_LIMIT])

    return result


def handle_api(refs: ReferenceData, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> str:
    """Raw passthrough to any Shortcut REST endpoint."""
    if not path.startswith("/"):
        raise ActionError("Path must start with /")
    result = refs.client.request(method.upper(), path, body)
    return json.dumps(result, indent=2)


HELP_TEXT = """# StreamShortcut

## Actions

**search** - Find stories
  {"action": "search"} -> your active stories
  {"action": "search", "query": "auth bug"} -> text search
  {"action": "search", "query": {"owner": "me", "state": "in progress"}} -> filtered

**get** - Story details
  {"action": "get", "id": "704"}

**update** - Change state, estimate, owner
  {"action": "update", "id": "704", "state": "Done"}

**comment** - Add comment
  {"action": "comment", "id": "704", "body": "Fixed!"}

**create** - Create story
  {"action": "create", "name": "Bug title", "type": "bug"}

**epic** - Get epic with stories
  {"action": "epic", "id": "308"}

**api** - Raw REST API
  {"action": "api", "method": "GET", "path": "/workflows"}

**help** - This documentation

IDs accept 704, sc-704 or a full story/epic URL. Owners accept a name,
mention handle or "me". On update, owner "none" clears the owners, so a
member literally named "none" can only be assigned by another part of
their name or handle."""


def handle_help() -> str:
    return HELP_TEXT
