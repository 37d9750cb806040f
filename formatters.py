"""
StreamShortcut MCP Server - Output formatters.

Compact Markdown renderings of stories and epics for MCP clients.
"""

from typing import Iterable, List, Optional

from models import Comment, Epic, Story


def _points(estimate: Optional[float]) -> str:
    if estimate is None:
        return "?"
    if isinstance(estimate, float) and estimate.is_integer():
        return str(int(estimate))
    return str(estimate)


def format_story(story: Story, state_name: Optional[str] = None) -> str:
    """Format a single story for detailed display."""
    labels = ", ".join(label.name for label in story.labels)

    lines = [
        f"**sc-{story.id}**: {story.name or 'Untitled'}",
        f"Type: {story.story_type or '?'} | State: {state_name or story.workflow_state_id or '?'} | Est: {_points(story.estimate)}pts",
        f"Epic: {story.epic_id or 'none'} | Iteration: {story.iteration_id or 'none'}",
    ]

    if labels:
        lines.append(f"Labels: {labels}")
    if story.app_url:
        lines.append(f"Link: {story.app_url}")
    if story.description:
        lines.extend(["", story.description])

    return "\n".join(lines)


def format_story_list(stories: List[dict]) -> str:
    """
    Format search results, one line per story.

    Takes raw story dicts: search payloads are only normalized, not
    validated, so missing fields fall back to placeholders.
    """
    if not stories:
        return "No stories found."

    lines = []
    for story in stories:
        if story.get("completed"):
            state = "done"
        elif story.get("started"):
            state = "started"
        else:
            state = "unstarted"
        lines.append(
            f"- **sc-{story.get('id')}** [{state}] {story.get('name') or 'Untitled'} "
            f"({story.get('story_type') or '?'}, {_points(story.get('estimate'))}pts)"
        )
    return "\n".join(lines)


def format_epic(epic: Epic) -> str:
    stats = epic.stats
    total = stats.num_stories_total if stats else 0
    done = stats.num_stories_done if stats else 0
    return (
        f"**Epic {epic.id}**: {epic.name or 'Untitled'}\n"
        f"State: {epic.state or '?'} | Stories: {total} ({done} done)\n"
        f"Link: {epic.app_url or 'N/A'}"
    )


def format_comments(comments: Iterable[Comment], limit: int = 5) -> str:
    """Recent comments section, appended to format_story output."""
    comments = list(comments or [])[:limit]
    if not comments:
        return ""

    blocks = [f"**{c.author_id or 'Unknown'}**:\n{c.text or ''}" for c in comments]
    return "\n\n## Recent Comments\n" + "\n\n".join(blocks)
