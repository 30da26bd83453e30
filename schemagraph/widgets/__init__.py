"""
Widget registry: node kinds and heuristics to UI widget ids.
"""

from .registry import (
    DEFAULT_WIDGETS,
    WidgetCategory,
    WidgetDescriptor,
    WidgetRegistry,
    WidgetRule,
    create_default_registry,
    is_image_array,
    is_yes_no_enum,
)

__all__ = [
    "DEFAULT_WIDGETS",
    "WidgetCategory",
    "WidgetDescriptor",
    "WidgetRegistry",
    "WidgetRule",
    "create_default_registry",
    "is_image_array",
    "is_yes_no_enum",
]
