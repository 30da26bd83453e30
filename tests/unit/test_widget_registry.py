"""
Unit tests for the widget registry.

Tests cover:
- Registration, replacement and kind lookup
- Rule order and first-match-wins selection
- Fallback to the first compatible widget
- Freezing
- The default population and its heuristics
"""

import pytest

from schemagraph.errors import RegistryFrozenError, UnknownWidgetError
from schemagraph.graph.types import ArrayAttrs, EnumAttrs, Node, NodeKind
from schemagraph.widgets.registry import (
    WidgetCategory,
    WidgetDescriptor,
    WidgetRegistry,
    create_default_registry,
    is_image_array,
    is_yes_no_enum,
)


def widget(widget_id, *kinds, **kwargs):
    return WidgetDescriptor(
        id=widget_id, display_name=widget_id.title(), compatible_kinds=kinds, **kwargs
    )


def node(kind, key="field", **kwargs):
    return Node(id=f"{key}-id", key=key, kind=kind, **kwargs)


class TestRegistration:
    """Tests for register_widget and lookups."""

    def test_register_and_get(self):
        """Registered widgets can be looked up by id and kind."""
        registry = WidgetRegistry()
        registry.register_widget(widget("text", NodeKind.STRING))
        assert registry.get_widget("text").display_name == "Text"
        assert [w.id for w in registry.compatible_widgets(NodeKind.STRING)] == ["text"]
        assert registry.compatible_widgets(NodeKind.NUMBER) == []

    def test_last_registration_wins(self):
        """Registering the same id again replaces it in place."""
        registry = WidgetRegistry()
        registry.register_widget(widget("text", NodeKind.STRING))
        registry.register_widget(widget("area", NodeKind.STRING))
        registry.register_widget(widget("text", NodeKind.STRING, NodeKind.ENUM, description="v2"))

        assert registry.get_widget("text").description == "v2"
        assert [w.id for w in registry.compatible_widgets(NodeKind.STRING)] == ["text", "area"]
        assert [w.id for w in registry.compatible_widgets(NodeKind.ENUM)] == ["text"]
        assert len(list(registry.widgets())) == 2

    def test_replacement_drops_old_kinds(self):
        """Kinds a replacement no longer lists are dropped."""
        registry = WidgetRegistry()
        registry.register_widget(widget("picker", NodeKind.STRING, NodeKind.ENUM))
        registry.register_widget(widget("picker", NodeKind.ENUM))
        assert registry.compatible_widgets(NodeKind.STRING) == []

    def test_require_widget(self):
        """require_widget raises for unknown ids."""
        with pytest.raises(UnknownWidgetError):
            WidgetRegistry().require_widget("missing")

    def test_by_category(self):
        """Widgets are grouped by category."""
        registry = create_default_registry()
        specialized = {w.id for w in registry.widgets_by_category(WidgetCategory.SPECIALIZED)}
        assert specialized == {"yesno", "photo-gallery"}

    def test_descriptor_to_dict(self):
        """Descriptors serialize with kind values."""
        d = widget("number", NodeKind.NUMBER).to_dict()
        assert d["compatible_kinds"] == ["number"]
        assert d["category"] == "standard"


class TestSelection:
    """Tests for get_widget_for_field."""

    def test_first_matching_rule_wins(self):
        """Rules are consulted in insertion order."""
        registry = WidgetRegistry()
        registry.register_widget(widget("text", NodeKind.STRING))
        registry.register_widget(widget("email", NodeKind.STRING))
        registry.register_widget(widget("long", NodeKind.STRING))
        registry.add_rule(lambda n: "mail" in n.key, "email")
        registry.add_rule(lambda n: n.kind is NodeKind.STRING, "long")

        assert registry.get_widget_for_field(node(NodeKind.STRING, "email")).id == "email"
        assert registry.get_widget_for_field(node(NodeKind.STRING, "name")).id == "long"

    def test_fallback_to_first_compatible(self):
        """Without a matching rule the first compatible widget is used."""
        registry = WidgetRegistry()
        registry.register_widget(widget("text", NodeKind.STRING))
        registry.register_widget(widget("area", NodeKind.STRING))
        assert registry.get_widget_for_field(node(NodeKind.STRING)).id == "text"

    def test_no_widget_for_kind(self):
        """Kinds without widgets get None."""
        registry = create_default_registry()
        assert registry.get_widget_for_field(node(NodeKind.OBJECT)) is None

    def test_rule_needs_registered_widget(self):
        """Rules must name a registered widget."""
        with pytest.raises(UnknownWidgetError):
            WidgetRegistry().add_rule(lambda n: True, "ghost")


class TestFreeze:
    """Tests for freezing."""

    def test_frozen_registry_rejects_registration(self):
        """A frozen registry rejects widgets and rules."""
        registry = create_default_registry(freeze=True)
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register_widget(widget("late", NodeKind.STRING))
        with pytest.raises(RegistryFrozenError):
            registry.add_rule(lambda n: True, "text")

    def test_frozen_registry_still_selects(self):
        """Lookups keep working after freezing."""
        registry = create_default_registry(freeze=True)
        assert registry.get_widget_for_field(node(NodeKind.BOOLEAN)).id == "checkbox"


class TestDefaults:
    """Tests for the default population."""

    @pytest.fixture
    def registry(self):
        return create_default_registry()

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (NodeKind.STRING, "text"),
            (NodeKind.NUMBER, "number"),
            (NodeKind.BOOLEAN, "checkbox"),
            (NodeKind.ENUM, "select"),
        ],
    )
    def test_kind_defaults(self, registry, kind, expected):
        """Each field kind has a default widget."""
        assert registry.get_widget_for_field(node(kind)).id == expected

    def test_yes_no_enum(self, registry):
        """A yes/no enum gets the yesno widget."""
        answer = node(NodeKind.ENUM, attrs=EnumAttrs(values=("yes", "no")))
        assert is_yes_no_enum(answer)
        assert registry.get_widget_for_field(answer).id == "yesno"

    def test_other_enum_uses_select(self, registry):
        """Other enums fall back to select."""
        color = node(NodeKind.ENUM, attrs=EnumAttrs(values=("yes", "no", "maybe")))
        assert not is_yes_no_enum(color)
        assert registry.get_widget_for_field(color).id == "select"

    @pytest.mark.parametrize("key", ["photos", "profile_image", "gallery"])
    def test_image_array_by_key(self, registry, key):
        """Arrays named like image collections get the photo gallery."""
        photos = node(NodeKind.ARRAY, key=key, attrs=ArrayAttrs())
        assert is_image_array(photos)
        assert registry.get_widget_for_field(photos).id == "photo-gallery"

    def test_image_array_by_format(self):
        """Arrays declaring the image format are image arrays."""
        uploads = node(NodeKind.ARRAY, key="uploads", extras={"format": "image"})
        assert is_image_array(uploads)

    def test_image_rule_only_for_arrays(self):
        """A string named like a photo is not an image array."""
        assert not is_image_array(node(NodeKind.STRING, key="photo_caption"))

    def test_yesno_default_options(self, registry):
        """The yesno widget ships Yes/No labels."""
        options = registry.get_widget("yesno").default_config["enumOptions"]
        assert options == [{"value": "yes", "label": "Yes"}, {"value": "no", "label": "No"}]
