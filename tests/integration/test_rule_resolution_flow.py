"""
End-to-end tests: rule text and XML models resolved through a rule context.
"""

import pytest
from structlog.testing import capture_logs

from shared.errors import CyclicRuleReferenceError
from shared.test_helpers import RuleDataFactory
from rule_engine import (
    Assignment, CompoundAction, RuleContext, RuleModel, RuleModelLoader, RuleParser, RulePriority
)
from rule_engine.rules.parser import parse_priority


def _model_from_lines(lines):
    return RuleModel(RuleParser().parse_rules(lines))


class TestTextRuleFlow:
    """Rules written in the textual grammar."""

    def test_page_color_follows_page_name(self):
        """Test that the page specific rule beats the constant fallback."""
        context = RuleContext(_model_from_lines(RuleDataFactory.create_color_rules()))

        context.take_stored_value_for_key("Main", "pageName")
        assert context.value_for_key("color") == "green"

        context.take_stored_value_for_key("Other", "pageName")
        assert context.value_for_key("color") == "yellow"

    def test_banner_color_from_keypath(self):
        """Test a keypath rule resolved against a stored value."""
        context = RuleContext(_model_from_lines(["*true* => bannerColor = defaultColor"]))
        context.take_stored_value_for_key("red", "defaultColor")

        assert context.value_for_key("bannerColor") == "red"

    def test_priority_text(self):
        """Test named and numeric priorities, with a warning for unknown names."""
        assert parse_priority("fallback") == 0
        assert parse_priority("high") == 150
        assert parse_priority("7") == 7

        with capture_logs() as logs:
            assert parse_priority("whenever") == 100
        assert any(log["log_level"] == "warning" for log in logs)

    def test_compound_action(self):
        """Test firing and candidacy of a compound action."""
        compound = CompoundAction([Assignment("title", "Edit"), Assignment("color", "red")])

        assert compound.fire_in_context(RuleContext()) == "red"
        assert compound.is_candidate_for_key("title")
        assert compound.is_candidate_for_key("color")

    def test_cyclic_keypaths_raise(self):
        """Test that mutually referencing keypath rules are reported."""
        context = RuleContext(_model_from_lines(["*true* => A = B", "*true* => B = A"]))

        with pytest.raises(CyclicRuleReferenceError) as exc_info:
            context.value_for_key("A")

        assert exc_info.value.chain == ["A", "B", "A"]

    def test_rule_file_with_user_context(self):
        """Test a parsed rule file against nested user data."""
        context = RuleContext(_model_from_lines(RuleDataFactory.create_rule_lines()))

        assert context.value_for_key("firstPageName") == "MyMain"
        assert context.value_for_key("showAdminMenu") is None

        context.take_stored_value_for_key({"role": "Manager"}, "user")
        context.take_stored_value_for_key("edit", "task")
        assert context.value_for_key("showAdminMenu") is True
        assert context.all_possible_values_for_key("firstPageName") == ["MyMain", "Main"]


class TestXmlModelFlow:
    """Rules loaded from an XML model document."""

    @pytest.fixture
    def context(self):
        loader = RuleModelLoader()
        model = loader.load_model_from_string(RuleDataFactory.create_sample_model_xml())
        assert loader.last_exception is None
        return RuleContext(model)

    def test_fallback_values(self, context):
        """Test the values inferred for an empty context."""
        assert context.value_for_key("allowCollapsing") is False
        assert context.value_for_key("color") is None
        assert context.value_for_key("showSaveButton") is None

    def test_task_specific_values(self, context):
        """Test that task dependent rules win when they match."""
        context.take_stored_value_for_key("error", "task")
        assert context.value_for_key("allowCollapsing") is True

        context.take_stored_value_for_key("edit", "task")
        assert context.value_for_key("color") == "red"
        assert context.value_for_key("showSaveButton") is True

        context.take_stored_value_for_key("new", "task")
        assert context.value_for_key("showSaveButton") is True

    def test_color_from_background_color(self, context):
        """Test keypath rules at normal and low priority."""
        context.take_stored_value_for_key("blue", "backgroundColor")

        assert context.value_for_key("color") == "blue"
        assert context.all_possible_values_for_key("color") == ["blue", "blue"]

    def test_stored_value_shadows_important_rule(self, context):
        context.take_stored_value_for_key("edit", "task")
        context.take_stored_value_for_key("purple", "color")

        assert context.value_for_key("color") == "purple"
        assert context.model.candidate_rules_for_key("color")[0].priority == RulePriority.IMPORTANT
