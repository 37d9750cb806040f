"""
StreamShortcut MCP Server - Shortcut API models and tool parameters.

The API returns many more fields than are modelled here; extra fields are
ignored so that new API fields never break parsing.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


ACTIONS = ("search", "get", "update", "comment", "create", "epic", "api", "help")


class ShortcutModel(BaseModel):
    """Base for API payloads: tolerate unknown fields."""
    model_config = ConfigDict(extra="ignore")


# ============================================================================
# REFERENCE DATA
# ============================================================================

class WorkflowState(ShortcutModel):
    id: int
    name: str
    # unstarted, started, done; other values (e.g. backlog) are kept as-is
    type: Optional[str] = None
    position: float = 0


class Workflow(ShortcutModel):
    id: int
    name: str = ""
    states: List[WorkflowState] = Field(default_factory=list)


class MemberProfile(ShortcutModel):
    name: str = ""
    mention_name: str = ""
    email_address: Optional[str] = None


class Member(ShortcutModel):
    # Shortcut member IDs are UUID strings, not integers
    id: str
    profile: MemberProfile = Field(default_factory=MemberProfile)
    role: str = ""

    @property
    def display_name(self) -> str:
        return self.profile.name or ""

    @property
    def mention_handle(self) -> str:
        return self.profile.mention_name or ""


# ============================================================================
# STORIES AND EPICS
# ============================================================================

class Label(ShortcutModel):
    id: Optional[int] = None
    name: str = ""
    color: Optional[str] = None


class Comment(ShortcutModel):
    id: Optional[int] = None
    text: Optional[str] = ""
    author_id: Optional[str] = None
    created_at: Optional[str] = None


class Story(ShortcutModel):
    id: int
    name: Optional[str] = None
    story_type: Optional[str] = None
    workflow_state_id: Optional[int] = None
    estimate: Optional[float] = None
    epic_id: Optional[int] = None
    iteration_id: Optional[int] = None
    owner_ids: List[str] = Field(default_factory=list)
    labels: List[Label] = Field(default_factory=list)
    description: Optional[str] = None
    app_url: Optional[str] = None
    started: bool = False
    completed: bool = False
    comments: List[Comment] = Field(default_factory=list)


class EpicStats(ShortcutModel):
    num_stories_total: int = 0
    num_stories_done: int = 0
    num_stories_started: int = 0
    num_stories_unstarted: int = 0


class Epic(ShortcutModel):
    id: int
    name: Optional[str] = None
    state: Optional[str] = None
    app_url: Optional[str] = None
    stats: Optional[EpicStats] = None


# ============================================================================
# TOOL PARAMETERS
# ============================================================================

class ShortcutParams(BaseModel):
    """
    Parameters of the single `shortcut` tool.

    Only `action` is always required; each action checks the fields it needs.
    `owner` distinguishes "not given" from an explicit null through
    `model_fields_set`, so an explicit null clears the owners on update.
    """
    model_config = ConfigDict(extra="forbid")

    action: Literal["search", "get", "update", "comment", "create", "epic", "api", "help"]
    query: Optional[Union[str, Dict[str, Any]]] = None
    id: Optional[Union[int, str]] = None
    state: Optional[str] = None
    estimate: Optional[int] = None
    owner: Optional[str] = None
    type: Optional[Literal["feature", "bug", "chore"]] = None
    name: Optional[str] = None
    body: Optional[str] = None
    epic: Optional[int] = None
    method: Optional[str] = None
    path: Optional[str] = None
