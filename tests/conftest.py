"""Shared fixtures: canned Shortcut payloads and an in-memory API client."""

import pytest

from models import Member, Workflow
from shortcut_client import ShortcutClient


WORKFLOWS = [
    {
        "id": 500,
        "name": "Engineering",
        "states": [
            {"id": 5001, "name": "Backlog", "type": "unstarted", "position": 1},
            {"id": 5002, "name": "In Development", "type": "started", "position": 2},
            {"id": 5003, "name": "Ready for Review", "type": "started", "position": 3},
            {"id": 5004, "name": "Completed", "type": "done", "position": 4},
        ],
    },
    {
        "id": 600,
        "name": "Support",
        "states": [
            {"id": 6001, "name": "Unscheduled", "type": "unstarted", "position": 1},
            {"id": 6002, "name": "In Progress", "type": "started", "position": 2},
            {"id": 6003, "name": "Done", "type": "done", "position": 3},
        ],
    },
]

MEMBERS = [
    {"id": "uuid-ada", "role": "owner",
     "profile": {"name": "Ada Lovelace", "mention_name": "ada", "email_address": "ada@example.com"}},
    {"id": "uuid-grace", "role": "member",
     "profile": {"name": "Grace Hopper", "mention_name": "amazing.grace"}},
    {"id": "uuid-alan", "role": "member",
     "profile": {"name": "Alan Turing", "mention_name": "enigma"}},
]

CURRENT_MEMBER = {"id": "uuid-me", "profile": {"name": "Current User", "mention_name": "current"}}


class FakeShortcutClient(ShortcutClient):
    """
    ShortcutClient backed by canned responses instead of HTTP.

    `responses` maps (METHOD, path) to a payload or a callable taking the body.
    Every request is recorded in `calls`.
    """

    def __init__(self, responses=None):
        super().__init__("test-token-123456")
        self.responses = {
            ("GET", "/workflows"): WORKFLOWS,
            ("GET", "/members"): MEMBERS,
            ("GET", "/member"): CURRENT_MEMBER,
        }
        self.responses.update(responses or {})
        self.calls = []

    def request(self, method, path, body=None):
        self.calls.append((method, path, body))
        response = self.responses.get((method, path))
        if callable(response):
            return response(body)
        return response

    def count(self, method, path):
        return sum(1 for m, p, _ in self.calls if (m, p) == (method, path))


@pytest.fixture
def fake_client():
    return FakeShortcutClient()


@pytest.fixture
def workflows():
    return [Workflow.model_validate(w) for w in WORKFLOWS]


@pytest.fixture
def members():
    return [Member.model_validate(m) for m in MEMBERS]
