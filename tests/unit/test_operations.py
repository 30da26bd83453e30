"""
Unit tests for graph store operations.

Tests cover:
- add_node key derivation, parent checks and array homogeneity
- update_node merges and key collisions
- remove_node subtree deletion
- move_node cycle detection and key renaming
- reorder_node clamping
- Immutability of input graphs
- GraphStore commit behaviour
"""

import pytest

from schemagraph.errors import (
    CycleDetectedError,
    DuplicateKeyError,
    IncompatibleParentError,
    InvalidKeyError,
    InvalidOperationError,
    InvalidParentError,
    NodeNotFoundError,
)
from schemagraph.graph.model import ROOT_ID, create_empty_graph
from schemagraph.graph.operations import (
    add_node,
    move_node,
    remove_node,
    reorder_node,
    update_node,
)
from schemagraph.graph.store import GraphStore
from schemagraph.graph.types import EdgeKind, NodeKind, draft
from schemagraph.graph.validator import check_graph


@pytest.fixture
def person():
    """Root with name, age and an address object holding street and city."""
    graph = create_empty_graph(title="Person")
    graph, name_id = add_node(graph, draft("string", "Name", required=True), ROOT_ID)
    graph, age_id = add_node(graph, draft("number", "Age", minimum=0), ROOT_ID)
    graph, address_id = add_node(graph, draft("object", "Address"), ROOT_ID)
    graph, street_id = add_node(graph, draft("string", "Street"), address_id)
    graph, city_id = add_node(graph, draft("string", "City"), address_id)
    return graph, {
        "name": name_id,
        "age": age_id,
        "address": address_id,
        "street": street_id,
        "city": city_id,
    }


class TestAddNode:
    """Tests for add_node."""

    def test_key_derived_from_title(self, person):
        """Nodes without a key get one from their title."""
        graph, ids = person
        assert graph.get(ids["name"]).key == "name"
        assert graph.get(ids["street"]).key == "street"

    def test_child_order_follows_insertion(self, person):
        """Children are kept in the order they were added."""
        graph, ids = person
        assert graph.child_ids(ROOT_ID) == [ids["name"], ids["age"], ids["address"]]

    def test_index_inserts_at_position(self, person):
        """An explicit index positions the new child."""
        graph, ids = person
        graph, email_id = add_node(graph, draft("string", "Email"), ROOT_ID, index=1)
        assert graph.child_ids(ROOT_ID)[1] == email_id

    def test_same_title_gets_unique_key(self, person):
        """Adding a second 'Name' produces name_2."""
        graph, _ = person
        graph, second = add_node(graph, draft("string", "Name"), ROOT_ID)
        assert graph.get(second).key == "name_2"

    def test_explicit_key_is_used(self):
        """An explicit key wins over the title."""
        graph, node_id = add_node(
            create_empty_graph(), draft("string", "E-mail", key="email"), ROOT_ID
        )
        assert graph.get(node_id).key == "email"

    def test_explicit_duplicate_key_raises(self, person):
        """An explicit key already used by a sibling raises DuplicateKeyError."""
        graph, _ = person
        with pytest.raises(DuplicateKeyError):
            add_node(graph, draft("string", key="name"), ROOT_ID)

    def test_explicit_invalid_key_raises(self):
        """An explicit key that is not an identifier raises."""
        with pytest.raises(InvalidKeyError):
            add_node(create_empty_graph(), draft("string", key="first name"), ROOT_ID)

    def test_unknown_parent_raises(self):
        """A missing parent raises InvalidParentError."""
        with pytest.raises(InvalidParentError, match="does not exist"):
            add_node(create_empty_graph(), draft("string", "X"), "missing")

    def test_leaf_parent_raises(self, person):
        """Leaves cannot hold children."""
        graph, ids = person
        with pytest.raises(InvalidParentError) as exc_info:
            add_node(graph, draft("string", "X"), ids["name"])
        assert not isinstance(exc_info.value, IncompatibleParentError)

    def test_array_same_kind_item_succeeds(self):
        """An array takes an item of the same kind as its existing item."""
        graph, tags = add_node(create_empty_graph(), draft("array", "Tags"), ROOT_ID)
        graph, _ = add_node(graph, draft("string", "Tag"), tags)
        graph, second = add_node(graph, draft("string", "Other"), tags)
        assert second in graph.child_ids(tags)

    def test_array_different_kind_item_raises(self):
        """An array rejects an item of a different kind."""
        graph, tags = add_node(create_empty_graph(), draft("array", "Tags"), ROOT_ID)
        graph, _ = add_node(graph, draft("string", "Tag"), tags)
        with pytest.raises(IncompatibleParentError):
            add_node(graph, draft("number", "Count"), tags)

    def test_branch_edge_on_object_raises(self, person):
        """Only conditional nodes accept then/else edges."""
        graph, ids = person
        with pytest.raises(IncompatibleParentError):
            add_node(graph, draft("string", "X"), ids["address"], EdgeKind.THEN)

    def test_definition_kind_raises(self):
        """Definition nodes are not created through add_node."""
        with pytest.raises(InvalidParentError):
            add_node(create_empty_graph(), draft("definition", "Def"), ROOT_ID)

    def test_input_graph_unchanged(self):
        """The input graph is never mutated."""
        graph = create_empty_graph()
        new_graph, _ = add_node(graph, draft("string", "Name"), ROOT_ID)
        assert len(graph) == 1
        assert graph.child_ids(ROOT_ID) == []
        assert len(new_graph) == 2
        assert new_graph.version == graph.version + 1

    def test_result_passes_check(self, person):
        """The fixture graph satisfies every invariant."""
        graph, _ = person
        assert check_graph(graph) == []


class TestUpdateNode:
    """Tests for update_node."""

    def test_update_title(self, person):
        """Value fields are replaced."""
        graph, ids = person
        graph = update_node(graph, ids["name"], {"title": "Full name", "required": False})
        node = graph.get(ids["name"])
        assert node.title == "Full name"
        assert node.required is False
        assert node.key == "name"

    def test_attribute_merge(self, person):
        """Attribute names merge into the attribute variant."""
        graph, ids = person
        graph = update_node(graph, ids["age"], {"maximum": 120})
        attrs = graph.get(ids["age"]).attrs
        assert attrs.minimum == 0
        assert attrs.maximum == 120

    def test_attrs_mapping_merge(self, person):
        """An attrs mapping merges the same way."""
        graph, ids = person
        graph = update_node(graph, ids["name"], {"attrs": {"max_length": 80}})
        assert graph.get(ids["name"]).attrs.max_length == 80

    def test_key_rename(self, person):
        """A free key can be taken."""
        graph, ids = person
        graph = update_node(graph, ids["name"], {"key": "full_name"})
        assert graph.get(ids["name"]).key == "full_name"

    def test_key_collision_raises(self, person):
        """A key used by a sibling raises DuplicateKeyError."""
        graph, ids = person
        with pytest.raises(DuplicateKeyError):
            update_node(graph, ids["name"], {"key": "age"})

    def test_same_key_in_other_object_is_fine(self, person):
        """Keys only need to be unique among siblings."""
        graph, ids = person
        graph = update_node(graph, ids["street"], {"key": "name"})
        assert graph.get(ids["street"]).key == "name"

    def test_invalid_key_raises(self, person):
        """A new key must be an identifier."""
        graph, ids = person
        with pytest.raises(InvalidKeyError):
            update_node(graph, ids["name"], {"key": "9lives"})

    @pytest.mark.parametrize("field", ["id", "kind", "parent_id", "edge"])
    def test_fixed_fields_raise(self, person, field):
        """id, kind and parentage never change through update."""
        graph, ids = person
        with pytest.raises(InvalidOperationError, match="Cannot change"):
            update_node(graph, ids["name"], {field: "x"})

    def test_unknown_attribute_raises(self, person):
        """Attributes of another kind are rejected."""
        graph, ids = person
        with pytest.raises(InvalidOperationError, match="Unknown attribute"):
            update_node(graph, ids["name"], {"minimum": 3})

    def test_unknown_node_raises(self):
        """Updating a missing node raises NodeNotFoundError."""
        with pytest.raises(NodeNotFoundError):
            update_node(create_empty_graph(), "missing", {"title": "x"})

    def test_input_graph_unchanged(self, person):
        """The input graph keeps the old node."""
        graph, ids = person
        update_node(graph, ids["name"], {"title": "Changed"})
        assert graph.get(ids["name"]).title == "Name"


class TestRemoveNode:
    """Tests for remove_node."""

    def test_removes_subtree(self, person):
        """Removing an object removes everything below it."""
        graph, ids = person
        graph = remove_node(graph, ids["address"])
        for key in ("address", "street", "city"):
            assert ids[key] not in graph
        assert graph.child_ids(ROOT_ID) == [ids["name"], ids["age"]]
        assert check_graph(graph) == []

    def test_root_cannot_be_removed(self, person):
        """Removing the root raises NodeNotFoundError."""
        graph, _ = person
        with pytest.raises(NodeNotFoundError):
            remove_node(graph, ROOT_ID)

    def test_unknown_node_raises(self, person):
        """Removing a missing node raises NodeNotFoundError."""
        graph, _ = person
        with pytest.raises(NodeNotFoundError):
            remove_node(graph, "missing")


class TestMoveNode:
    """Tests for move_node."""

    def test_move_into_object(self, person):
        """A node moves between containers."""
        graph, ids = person
        graph = move_node(graph, ids["age"], ids["address"])
        assert graph.parent_id(ids["age"]) == ids["address"]
        assert ids["age"] not in graph.child_ids(ROOT_ID)
        assert graph.child_ids(ids["address"])[-1] == ids["age"]

    def test_move_under_itself_raises(self, person):
        """Moving a node under itself is a cycle."""
        graph, ids = person
        with pytest.raises(CycleDetectedError):
            move_node(graph, ids["address"], ids["address"])

    def test_move_under_descendant_raises(self, person):
        """Moving a node under its own descendant is a cycle."""
        graph, ids = person
        graph, inner = add_node(graph, draft("object", "Inner"), ids["address"])
        with pytest.raises(CycleDetectedError):
            move_node(graph, ids["address"], inner)

    def test_move_under_leaf_raises(self, person):
        """Leaves reject moved nodes."""
        graph, ids = person
        with pytest.raises(IncompatibleParentError):
            move_node(graph, ids["age"], ids["name"])

    def test_move_renames_colliding_key(self, person):
        """A key already used at the destination gets a suffix."""
        graph, ids = person
        graph, nested_name = add_node(graph, draft("string", "Name"), ids["address"])
        graph = move_node(graph, nested_name, ROOT_ID)
        assert graph.get(nested_name).key == "name_2"
        assert check_graph(graph) == []

    def test_move_root_raises(self, person):
        """The root cannot be moved."""
        graph, ids = person
        with pytest.raises(NodeNotFoundError):
            move_node(graph, ROOT_ID, ids["address"])

    def test_move_into_array_checks_homogeneity(self, person):
        """Moving into an array follows the array rules."""
        graph, ids = person
        graph, tags = add_node(graph, draft("array", "Tags"), ROOT_ID)
        graph, _ = add_node(graph, draft("string", "Tag"), tags)
        with pytest.raises(IncompatibleParentError):
            move_node(graph, ids["age"], tags)

    def test_move_at_index(self, person):
        """An index positions the moved node."""
        graph, ids = person
        graph = move_node(graph, ids["city"], ROOT_ID, index=0)
        assert graph.child_ids(ROOT_ID)[0] == ids["city"]


class TestReorderNode:
    """Tests for reorder_node."""

    def test_reorder(self, person):
        """A child moves to the given index."""
        graph, ids = person
        graph = reorder_node(graph, ids["address"], 0)
        assert graph.child_ids(ROOT_ID) == [ids["address"], ids["name"], ids["age"]]

    def test_index_past_end_clamps(self, person):
        """Too large an index clamps to the last position."""
        graph, ids = person
        graph = reorder_node(graph, ids["name"], 99)
        assert graph.child_ids(ROOT_ID)[-1] == ids["name"]

    def test_negative_index_clamps(self, person):
        """A negative index clamps to the first position."""
        graph, ids = person
        graph = reorder_node(graph, ids["address"], -5)
        assert graph.child_ids(ROOT_ID)[0] == ids["address"]

    def test_same_position_returns_input(self, person):
        """Reordering to the current position changes nothing."""
        graph, ids = person
        assert reorder_node(graph, ids["name"], 0) is graph


class TestGraphStore:
    """Tests for GraphStore."""

    def test_operations_commit(self):
        """Store operations update the current graph."""
        store = GraphStore()
        name_id = store.add_node(draft("string", "Name"), store.graph.root_id)
        assert store.graph.get(name_id).key == "name"
        store.update_node(name_id, {"title": "Full name"})
        assert store.graph.get(name_id).title == "Full name"
        assert store.version == 2

    def test_failed_operation_keeps_graph(self):
        """A failing operation leaves the current graph untouched."""
        store = GraphStore()
        before = store.graph
        with pytest.raises(InvalidParentError):
            store.add_node(draft("string", "Name"), "missing")
        assert store.graph is before

    def test_reset(self):
        """reset starts over from an empty graph."""
        store = GraphStore()
        store.add_node(draft("string", "Name"), ROOT_ID)
        store.reset(title="Fresh")
        assert len(store.graph) == 1
        assert store.graph.root.title == "Fresh"
        assert store.graph.root.kind is NodeKind.OBJECT
