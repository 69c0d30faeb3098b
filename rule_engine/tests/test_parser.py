"""
Unit tests for the textual rule parser.
"""

import pytest
from structlog.testing import capture_logs

from shared.test_helpers import RuleDataFactory
from rule_engine.qualifiers import (
    TRUE_QUALIFIER, FALSE_QUALIFIER, KeyValueQualifier, KeyComparisonQualifier, AndQualifier
)
from rule_engine.rules.models import Assignment, KeyAssignment, Rule, RulePriority
from rule_engine.rules.parser import (
    RuleParser, index_skipping_quotes, parse_priority, parse_rule, priority_separator_index
)


class TestIndexSkippingQuotes:
    """Test cases for the quote aware scanner."""

    def test_finds_unquoted_token(self):
        assert index_skipping_quotes("a = 'x' => b", "=>") == 8

    def test_skips_quoted_token(self):
        assert index_skipping_quotes("a = '=>' => b", "=>") == 9
        assert index_skipping_quotes('a = "x;y" ; high', ";") == 10

    def test_escape_skips_next_char(self):
        assert index_skipping_quotes("a = 'it\\'s' ; 5", ";") == 12

    def test_not_found(self):
        assert index_skipping_quotes("a = 'x;y'", ";") == -1

    def test_nested_groups_are_skipped(self):
        """Test that separators inside property lists are ignored when nesting."""
        text = "style = { a = 1; b = (x; y); } ; high"

        assert index_skipping_quotes(text, ";") == 15
        assert index_skipping_quotes(text, ";", nested=True) == 31


class TestPrioritySeparator:
    """Test cases for splitting an action from its priority."""

    @pytest.mark.parametrize("text,expected", [
        ("x = 1 ; high", 6),
        ("x = { a = 1; }", -1),
        ("x = { a = 1; } ; high", 15),
        ("x = 'a;b'", -1),
    ])
    def test_separator_index(self, text, expected):
        assert priority_separator_index(text) == expected

    def test_unclosed_bracket_falls_back_to_first_separator(self):
        """Test that an unbalanced bracket does not swallow the priority."""
        with capture_logs() as logs:
            assert priority_separator_index("x = sad( ; high") == 9

        assert any(log["log_level"] == "warning" for log in logs)


class TestParsePriority:
    """Test cases for priority text."""

    @pytest.mark.parametrize("text,expected", [
        ("important", 1000),
        ("very high", 200),
        ("high", 150),
        ("normal", 100),
        ("default", 100),
        ("low", 50),
        ("very low", 5),
        ("fallback", 0),
        ("7", 7),
        ("-3", -3),
        ("  high ", 150),
        ("", 100),
        (None, 100),
    ])
    def test_known_priorities(self, text, expected):
        """Test numeric and named priorities."""
        assert parse_priority(text) == expected

    def test_unknown_priority_warns(self):
        """Test that unknown names fall back to normal with a warning."""
        with capture_logs() as logs:
            priority = parse_priority("urgent")

        assert priority == RulePriority.NORMAL
        assert any(log["log_level"] == "warning" and log.get("priority") == "urgent" for log in logs)

    def test_names_are_case_sensitive(self):
        """Test that capitalized names are not recognized."""
        assert parse_priority("High") == RulePriority.NORMAL


class TestRuleParser:
    """Test cases for RuleParser."""

    @pytest.fixture
    def parser(self):
        return RuleParser()

    def test_simple_const_rule(self, parser):
        """Test a rule with a quoted constant value."""
        rule = parser.parse_rule("status = \"edited\" => color = 'green'; high")

        assert isinstance(rule, Rule)
        assert isinstance(rule.qualifier, KeyValueQualifier)
        assert rule.qualifier.value == "edited"
        assert type(rule.action) is Assignment
        assert rule.action.key_path == "color"
        assert rule.action.value == "green"
        assert rule.priority == 150

    def test_simple_keypath_rule(self, parser):
        """Test a rule with a keypath value and a key comparison qualifier."""
        rule = parser.parse_rule("status = pageStatus => color = pageColor; low")

        assert isinstance(rule.qualifier, KeyComparisonQualifier)
        assert type(rule.action) is KeyAssignment
        assert rule.action.value == "pageColor"
        assert rule.priority == 50

    def test_boolean_constant_qualifiers(self, parser):
        """Test the *true* and *false* qualifiers."""
        assert parser.parse_rule("*true* => a = 1").qualifier is TRUE_QUALIFIER
        assert parser.parse_rule("*false* => a = 1").qualifier is FALSE_QUALIFIER

    def test_missing_priority_is_normal(self, parser):
        """Test the default priority."""
        assert parser.parse_rule("*true* => a = 1").priority == RulePriority.NORMAL

    def test_compound_qualifier(self, parser):
        """Test AND qualifiers in rules."""
        rule = parser.parse_rule("user.role = 'Manager' AND task = 'edit' => showMenu = YES")

        assert isinstance(rule.qualifier, AndQualifier)
        assert rule.qualifier.specificity() == 2
        assert rule.action.value is True

    @pytest.mark.parametrize("text,expected", [
        ("5", 5),
        ("-12", -12),
        ("2.5", 2.5),
        ("true", True),
        ("YES", True),
        ("false", False),
        ("NO", False),
        ("null", None),
        ("nil", None),
        ("'quoted'", "quoted"),
        ('"double"', "double"),
        ("'a;b=>c'", "a;b=>c"),
        ("'it\\'s'", "it's"),
        ('"a\\\\b"', "a\\b"),
        ('"say \\"hi\\""', 'say "hi"'),
    ])
    def test_constant_values(self, parser, text, expected):
        """Test classification of constant values."""
        rule = parser.parse_rule(f"*true* => key = {text}")

        assert type(rule.action) is Assignment
        assert rule.action.value == expected

    def test_property_list_values(self, parser):
        """Test structured literal values."""
        rule = parser.parse_rule("*true* => columns = (name, 'last name', 5)")
        assert rule.action.value == ["name", "last name", 5]

        rule = parser.parse_rule("*true* => style = { color = red; size = 2; }")
        assert rule.action.value == {"color": "red", "size": 2}

    def test_bad_property_list_fails(self, parser):
        """Test that a malformed structured literal fails the rule."""
        assert parser.parse_rule("*true* => style = { color = red") is None

    def test_unterminated_quote_recovers(self, parser):
        """Test that a missing closing quote keeps the rest of the text."""
        with capture_logs() as logs:
            rule = parser.parse_rule("*true* => title = 'Welcome")

        assert rule.action.value == "Welcome"
        assert any(log["log_level"] == "error" for log in logs)

    def test_type_cast_forces_action_class(self, parser):
        """Test the (ClassName) action prefix."""
        rule = parser.parse_rule("*true* => (Assignment) title = Welcome")
        assert type(rule.action) is Assignment
        assert rule.action.key_path == "title"
        assert rule.action.value == "Welcome"

        rule = parser.parse_rule("*true* => (KeyAssignment) title = 'x'")
        assert type(rule.action) is KeyAssignment
        assert rule.action.value == "'x'"

    def test_custom_action_class(self):
        """Test registering additional action classes."""
        class UpperAssignment(Assignment):
            def fire_in_context(self, context):
                return str(self.value).upper()

        parser = RuleParser(action_classes={"Upper": UpperAssignment})
        rule = parser.parse_rule("*true* => (Upper) title = hello")

        assert rule.fire_in_context(None) == "HELLO"

    def test_unclosed_bracket_keeps_priority(self, parser):
        """Test that an unbalanced bracket in a raw value keeps the priority."""
        rule = parser.parse_rule("*true* => (Assignment) title = sad( ; high")

        assert rule.action.value == "sad("
        assert rule.priority == 150

    def test_unknown_action_class_fails(self, parser):
        assert parser.parse_rule("*true* => (Nope) title = hello") is None

    @pytest.mark.parametrize("text", [
        "",
        "no arrow here",
        "=> a = 1",
        "*true* =>",
        "*true* => just_a_key",
        "*true* => = 5",
        "a = = => b = 1",
        "*true* => a = -",
    ])
    def test_malformed_rules_return_none(self, parser, text):
        """Test that malformed rules are reported as None, not raised."""
        with capture_logs() as logs:
            assert parser.parse_rule(text) is None
        assert logs

    def test_parse_rules_skips_comments_and_failures(self, parser):
        """Test parsing a whole rule file."""
        rules = parser.parse_rules(RuleDataFactory.create_rule_lines())

        assert [r.action.key_path for r in rules] == [
            "firstPageName", "firstPageName", "bannerColor", "showAdminMenu"
        ]
        assert [r.priority for r in rules] == [0, 100, 100, 150]

    def test_parse_rule_round_trip(self):
        """Test that the canonical text parses back to an equivalent rule."""
        rule = parse_rule("pageName = 'Main' => color = 'green' ; high")
        again = parse_rule(str(rule))

        assert str(again) == str(rule)
        assert again.priority == 150

    @pytest.mark.parametrize("value", [
        'say "hi"',
        "back\\slash",
        "ends with\\",
        "it's; done => ok",
        ["a", "b"],
        [],
        {"k": "v", "n": 2},
        ["Edit Page", 5, {"x": "y z", "tab": "a\tb"}],
    ])
    def test_value_round_trip(self, value):
        """Test that written values read back unchanged, without extra escapes."""
        rule = Rule(TRUE_QUALIFIER, Assignment("title", value), RulePriority.LOW)

        again = parse_rule(str(rule))

        assert type(again.action) is Assignment
        assert again.action.value == value
        assert again.priority == 50
        assert str(again) == str(rule)
