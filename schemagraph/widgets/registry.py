"""
Widget registry.

Maps node kinds to the widgets that can render them, plus an ordered
list of auto-selection rules. The registry is an explicit object: the
component that composes the engine builds one (usually with
create_default_registry()) and passes it where it is needed.

Invariants:
    - Registering an id twice replaces the first registration in place
    - Rules are consulted in insertion order; the first match wins
    - Without a matching rule, the first compatible widget is selected
    - A frozen registry rejects every registration

How to change safely:
    - Appending a default rule changes selection only for nodes no
      earlier rule matched; inserting one can change existing UI
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..errors import RegistryFrozenError, UnknownWidgetError
from ..graph.types import Node, NodeKind

logger = logging.getLogger(__name__)


class WidgetCategory(Enum):
    STANDARD = "standard"
    CUSTOM = "custom"
    SPECIALIZED = "specialized"

    @classmethod
    def from_str(cls, value: str) -> WidgetCategory:
        for category in cls:
            if category.value == value:
                return category
        valid = [c.value for c in cls]
        raise ValueError(f"Invalid widget category '{value}'. Valid categories: {valid}")


@dataclass(frozen=True)
class WidgetDescriptor:
    """A widget the UI can render a field with.

    Attributes:
        id: Widget id written to ``ui:widget``
        display_name: Human-readable name
        compatible_kinds: Node kinds this widget can render, in preference order
        category: Grouping shown by the building UI
        default_config: Default ``ui:options``
        description: Optional help text
    """

    id: str
    display_name: str
    compatible_kinds: tuple[NodeKind, ...]
    category: WidgetCategory = WidgetCategory.STANDARD
    default_config: Mapping[str, Any] = field(default_factory=dict)
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_config", MappingProxyType(dict(self.default_config)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "compatible_kinds": [k.value for k in self.compatible_kinds],
            "category": self.category.value,
            "default_config": dict(self.default_config),
            "description": self.description,
        }


WidgetPredicate = Callable[[Node], bool]


@dataclass(frozen=True)
class WidgetRule:
    """Auto-selection rule: widget_id is chosen when predicate(node) holds."""

    predicate: WidgetPredicate
    widget_id: str
    name: str | None = None


class WidgetRegistry:
    """Widgets by id and kind, plus ordered auto-selection rules.

    Example:
        >>> registry = create_default_registry()
        >>> registry.get_widget_for_field(node).id
        'yesno'
    """

    def __init__(self) -> None:
        self._widgets: dict[str, WidgetDescriptor] = {}
        self._by_kind: dict[NodeKind, list[str]] = {}
        self._rules: list[WidgetRule] = []
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register_widget(self, widget: WidgetDescriptor) -> None:
        """Register a widget; a second registration of the same id wins.

        Raises:
            RegistryFrozenError: If the registry is frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"widget '{widget.id}'")
            previous = self._widgets.get(widget.id)
            if previous is not None:
                for kind in previous.compatible_kinds:
                    if kind not in widget.compatible_kinds:
                        self._by_kind[kind].remove(widget.id)
            self._widgets[widget.id] = widget
            for kind in widget.compatible_kinds:
                ids = self._by_kind.setdefault(kind, [])
                if widget.id not in ids:
                    ids.append(widget.id)

    def add_rule(
        self, predicate: WidgetPredicate, widget_id: str, name: str | None = None
    ) -> None:
        """Append an auto-selection rule.

        Raises:
            UnknownWidgetError: If widget_id is not registered
            RegistryFrozenError: If the registry is frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"rule for '{widget_id}'")
            if widget_id not in self._widgets:
                raise UnknownWidgetError(widget_id)
            self._rules.append(WidgetRule(predicate=predicate, widget_id=widget_id, name=name))

    def freeze(self) -> None:
        """Reject all further registrations."""
        with self._lock:
            self._frozen = True
        logger.info(
            f"Widget registry frozen with {len(self._widgets)} widgets and {len(self._rules)} rules"
        )

    def get_widget(self, widget_id: str) -> WidgetDescriptor | None:
        return self._widgets.get(widget_id)

    def require_widget(self, widget_id: str) -> WidgetDescriptor:
        """Look up a widget.

        Raises:
            UnknownWidgetError: If the id is not registered
        """
        widget = self._widgets.get(widget_id)
        if widget is None:
            raise UnknownWidgetError(widget_id)
        return widget

    def compatible_widgets(self, kind: NodeKind) -> list[WidgetDescriptor]:
        return [self._widgets[i] for i in self._by_kind.get(kind, ())]

    def widgets_by_category(self, category: WidgetCategory) -> list[WidgetDescriptor]:
        return [w for w in self._widgets.values() if w.category is category]

    def widgets(self) -> Iterator[WidgetDescriptor]:
        yield from self._widgets.values()

    def rules(self) -> list[WidgetRule]:
        return list(self._rules)

    def get_widget_for_field(self, node: Node) -> WidgetDescriptor | None:
        """Select a widget for ``node``.

        The first rule whose predicate matches wins; otherwise the first
        widget compatible with the node's kind; otherwise None.
        """
        for rule in self._rules:
            if rule.predicate(node):
                return self._widgets.get(rule.widget_id)
        compatible = self._by_kind.get(node.kind)
        if compatible:
            return self._widgets[compatible[0]]
        return None


# =============================================================================
# Default population
# =============================================================================

_IMAGE_KEY_MARKERS = ("photo", "image", "gallery")


def is_yes_no_enum(node: Node) -> bool:
    """Enum whose values are exactly yes and no."""
    if node.kind is not NodeKind.ENUM:
        return False
    values = node.attrs.values
    return len(values) == 2 and set(values) == {"yes", "no"}


def is_image_array(node: Node) -> bool:
    """Array declared as images, or named like a photo collection."""
    if node.kind is not NodeKind.ARRAY:
        return False
    if node.extras.get("format") == "image":
        return True
    key = node.key.lower()
    return any(marker in key for marker in _IMAGE_KEY_MARKERS)


DEFAULT_WIDGETS: tuple[WidgetDescriptor, ...] = (
    WidgetDescriptor(
        id="text",
        display_name="Text Input",
        compatible_kinds=(NodeKind.STRING,),
        description="Standard single-line text input",
    ),
    WidgetDescriptor(
        id="textarea",
        display_name="Textarea",
        compatible_kinds=(NodeKind.STRING,),
        description="Multi-line text input",
    ),
    WidgetDescriptor(
        id="select",
        display_name="Select Dropdown",
        compatible_kinds=(NodeKind.STRING, NodeKind.ENUM),
        description="Dropdown select menu",
    ),
    WidgetDescriptor(
        id="checkbox",
        display_name="Checkbox",
        compatible_kinds=(NodeKind.BOOLEAN,),
        description="Single checkbox input",
    ),
    WidgetDescriptor(
        id="number",
        display_name="Number Input",
        compatible_kinds=(NodeKind.NUMBER,),
        description="Number input field",
    ),
    WidgetDescriptor(
        id="yesno",
        display_name="Yes/No Select",
        compatible_kinds=(NodeKind.ENUM, NodeKind.STRING),
        category=WidgetCategory.SPECIALIZED,
        default_config={
            "enumOptions": [
                {"value": "yes", "label": "Yes"},
                {"value": "no", "label": "No"},
            ]
        },
        description="Yes/No selection widget for enum fields",
    ),
    WidgetDescriptor(
        id="photo-gallery",
        display_name="Photo Gallery",
        compatible_kinds=(NodeKind.ARRAY,),
        category=WidgetCategory.SPECIALIZED,
        default_config={"addable": True, "orderable": True, "removable": True},
        description="Image upload with gallery view for array fields",
    ),
)


def create_default_registry(freeze: bool = False) -> WidgetRegistry:
    """Registry with the standard widgets and the default rules.

    Args:
        freeze: Freeze the registry before returning it
    """
    registry = WidgetRegistry()
    for widget in DEFAULT_WIDGETS:
        registry.register_widget(widget)
    registry.add_rule(is_yes_no_enum, "yesno", name="yes-no enum")
    registry.add_rule(is_image_array, "photo-gallery", name="image array")
    if freeze:
        registry.freeze()
    return registry
