"""
Unit tests for keypath access.
"""

from rule_engine.keypath import (
    take_value_for_key, take_value_for_key_path, value_for_key, value_for_key_path
)


class Page:
    def __init__(self, name=None, owner=None):
        self.name = name
        self.owner = owner


class Recorder:
    """Object with its own key value methods."""

    def __init__(self):
        self.taken = {}

    def value_for_key(self, key):
        return f"computed:{key}"

    def take_value_for_key(self, value, key):
        self.taken[key] = value


class TestValueForKeyPath:
    """Test cases for reading keypaths."""

    def test_mapping_and_attribute_lookup(self):
        assert value_for_key({"a": 1}, "a") == 1
        assert value_for_key(Page(name="Main"), "name") == "Main"
        assert value_for_key(Page(), "missing") is None

    def test_own_lookup_wins(self):
        """Test that objects with value_for_key are asked directly."""
        assert value_for_key(Recorder(), "x") == "computed:x"

    def test_dotted_path(self):
        """Test chained lookups across mappings and objects."""
        page = Page(name="Main", owner={"profile": {"color": "blue"}})

        assert value_for_key_path(page, "owner.profile.color") == "blue"

    def test_stops_at_none(self):
        """Test that a missing intermediate value yields None."""
        assert value_for_key_path({"a": None}, "a.b.c") is None
        assert value_for_key_path(None, "a") is None
        assert value_for_key_path({"a": 1}, "") is None


class TestTakeValueForKeyPath:
    """Test cases for writing keypaths."""

    def test_take_on_mapping_and_object(self):
        data = {}
        page = Page()

        take_value_for_key(data, 1, "a")
        take_value_for_key(page, "Main", "name")

        assert data == {"a": 1}
        assert page.name == "Main"

    def test_own_setter_wins(self):
        recorder = Recorder()

        take_value_for_key(recorder, 5, "size")

        assert recorder.taken == {"size": 5}

    def test_dotted_path_writes_last_segment(self):
        """Test that the prefix is resolved and the last key is set."""
        page = Page(owner={"profile": {}})

        take_value_for_key_path(page, "red", "owner.profile.color")

        assert page.owner == {"profile": {"color": "red"}}

    def test_missing_target_is_ignored(self):
        data = {}

        take_value_for_key_path(data, 1, "missing.key")

        assert data == {}
