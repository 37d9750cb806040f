"""Tests for identifier parsing, state/member resolution and search normalization."""

import pytest

from models import Member, Workflow
from resolution import (
    STATE_ALIASES,
    InvalidIdentifier,
    all_state_names,
    default_state_id,
    normalize_search_results,
    parse_identifier,
    resolve_member,
    resolve_state,
    state_name,
)


def _workflows(*state_name_lists):
    """Build workflows with sequential IDs from lists of state names."""
    result = []
    next_id = 1
    for index, names in enumerate(state_name_lists):
        states = []
        for name in names:
            states.append({"id": next_id, "name": name, "type": "unstarted", "position": next_id})
            next_id += 1
        result.append(Workflow.model_validate({"id": 100 + index, "name": f"wf{index}", "states": states}))
    return result


class TestParseIdentifier:
    """Tests for parse_identifier."""

    def test_bare_number(self):
        assert parse_identifier("704") == 704

    def test_integer_input(self):
        assert parse_identifier(704) == 704

    def test_prefixed_code(self):
        """sc- prefixes carry no digits, so the digit fallback handles them."""
        assert parse_identifier("sc-704") == 704
        assert parse_identifier("SC-704") == 704
        assert parse_identifier("#88") == 88

    def test_story_url_ignores_query_string_digits(self):
        assert parse_identifier("https://app.shortcut.com/org/story/9001?x=5") == 9001

    def test_story_url_ignores_digits_before_path(self):
        """Digits in the host or org slug must not be mistaken for the ID."""
        assert parse_identifier("https://app2.shortcut.com/acme42/story/123/fix-login-bug") == 123

    def test_epic_url(self):
        assert parse_identifier("https://app.shortcut.com/acme42/epic/308") == 308

    def test_url_matching_is_case_insensitive(self):
        assert parse_identifier("HTTPS://APP.SHORTCUT.COM/ORG/STORY/42") == 42

    def test_story_path_wins_over_epic_path(self):
        assert parse_identifier("https://app.shortcut.com/org/epic/5/story/17") == 17

    def test_no_digits_raises(self):
        with pytest.raises(InvalidIdentifier):
            parse_identifier("no digits here")

    def test_empty_and_none_raise(self):
        with pytest.raises(InvalidIdentifier):
            parse_identifier("")
        with pytest.raises(InvalidIdentifier):
            parse_identifier(None)

    def test_invalid_identifier_is_value_error_with_message(self):
        with pytest.raises(ValueError, match="Invalid ID: abc"):
            parse_identifier("abc")


class TestResolveState:
    """Tests for resolve_state tiers."""

    def test_exact_match_is_case_insensitive(self):
        workflows = _workflows(["Done"], ["In Progress"])
        assert resolve_state("done", workflows) == 1

    def test_exact_tier_scans_all_workflows_before_substring(self):
        """An exact hit in a later workflow beats a substring hit in an earlier one."""
        workflows = _workflows(["Done Pending QA"], ["Done"])
        assert resolve_state("done", workflows) == 2

    def test_first_workflow_wins_on_duplicate_names(self):
        workflows = _workflows(["Backlog", "Done"], ["Done"])
        assert resolve_state("Done", workflows) == 2

    def test_substring_tier(self, workflows):
        assert resolve_state("review", workflows) == 5003
        assert resolve_state("DEV", workflows) == 5002

    def test_alias_tier_wip(self, workflows):
        """'wip' is an in-progress synonym and resolves to the 'In Progress' state."""
        assert resolve_state("wip", workflows) == 6002

    def test_alias_tier_deployed(self, workflows):
        assert resolve_state("deployed", workflows) == 6003

    def test_alias_tier_ready_falls_back_to_family_synonym(self):
        """No state contains 'ready', so the 'backlog' synonym picks Backlog."""
        workflows = _workflows(["Backlog", "Started", "Finished"])
        assert resolve_state("ready", workflows) == 1

    def test_alias_input_containing_synonym(self):
        """Containment works both ways: the input may contain the synonym."""
        workflows = _workflows(["To Review", "In Progress"])
        assert resolve_state("wip - blocked", workflows) == 2

    def test_alias_label_of_later_family_beats_synonym_of_earlier(self):
        """'do' hits both the done and in-progress families; a label match wins."""
        workflows = _workflows(["Completed", "In Progress"])
        assert resolve_state("do", workflows) == 2

    def test_exact_and_substring_beat_alias(self, workflows):
        # "Ready for Review" contains "ready", no alias lookup needed
        assert resolve_state("ready", workflows) == 5003

    def test_not_found(self, workflows):
        assert resolve_state("zzz", workflows) is None

    def test_blank_name_not_found(self, workflows):
        assert resolve_state("", workflows) is None
        assert resolve_state("   ", workflows) is None

    def test_no_workflows(self):
        assert resolve_state("done", []) is None

    def test_alias_table_is_immutable(self):
        with pytest.raises(TypeError):
            STATE_ALIASES["shipped"] = ("shipped",)


class TestStateHelpers:
    """Tests for state name lookups used by the handlers."""

    def test_state_name(self, workflows):
        assert state_name(5002, workflows) == "In Development"

    def test_state_name_unknown_id(self, workflows):
        assert state_name(999, workflows) == "999"

    def test_all_state_names_in_workflow_order(self, workflows):
        assert all_state_names(workflows) == [
            "Backlog", "In Development", "Ready for Review", "Completed",
            "Unscheduled", "In Progress", "Done",
        ]

    def test_default_state_id(self, workflows):
        assert default_state_id(workflows) == 5001

    def test_default_state_id_without_workflows(self):
        assert default_state_id([]) is None

    def test_unrecognized_state_type_is_accepted(self):
        workflow = Workflow.model_validate({
            "id": 1,
            "name": "Product",
            "states": [
                {"id": 10, "name": "Icebox", "type": "backlog"},
                {"id": 11, "name": "Todo", "type": "unstarted"},
            ],
        })

        assert workflow.states[0].type == "backlog"
        assert default_state_id([workflow]) == 11
        assert resolve_state("icebox", [workflow]) == 10


class TestResolveMember:
    """Tests for resolve_member."""

    @staticmethod
    def _current():
        return Member.model_validate({"id": "uuid-me", "profile": {"name": "Me Myself", "mention_name": "me"}})

    def test_me_uses_current_identity_only(self):
        def members():
            raise AssertionError("member list must not be fetched for 'me'")

        assert resolve_member("me", self._current, members) == "uuid-me"

    def test_me_with_empty_member_list(self):
        assert resolve_member("me", self._current, lambda: []) == "uuid-me"

    def test_display_name_substring(self, members):
        assert resolve_member("hopper", self._current, lambda: members) == "uuid-grace"

    def test_mention_handle_substring(self, members):
        assert resolve_member("ENIGMA", self._current, lambda: members) == "uuid-alan"

    def test_first_member_in_list_order_wins(self, members):
        # every member's name contains "a"
        assert resolve_member("a", self._current, lambda: members) == "uuid-ada"

    def test_not_found(self, members):
        assert resolve_member("nobody", self._current, lambda: members) is None

    def test_blank_input_not_found(self, members):
        assert resolve_member("  ", self._current, lambda: members) is None


class TestNormalizeSearchResults:
    """Tests for normalize_search_results."""

    def test_bare_list_unchanged(self):
        payload = [{"id": 1}]
        assert normalize_search_results(payload) is payload

    def test_wrapped_data_field(self):
        assert normalize_search_results({"data": [{"id": 1}], "next": None, "total": 1}) == [{"id": 1}]

    @pytest.mark.parametrize("payload", [{}, None, "oops", 42, {"data": "nope"}, {"data": None}])
    def test_unknown_shapes_become_empty(self, payload):
        assert normalize_search_results(payload) == []
