"""Tests for the assembly arena: structure, transforms, traversal, lifecycle."""

import dataclasses

import numpy as np
import pytest

from cadimport import (
    ROOT,
    AssemblyArena,
    FrozenArena,
    InvalidParent,
    KeyNotFound,
    LengthUnit,
    Node,
    NodeId,
    Primitive,
    RemovalPolicy,
    ResourceKind,
    Transform,
    TraversalOrder,
    UnknownNode,
    UnknownPrimitive,
    UnknownResource,
)
from cadimport.metadata import Integer, Real, Text


def build_tree() -> tuple[AssemblyArena, dict[str, NodeId]]:
    """root -> (a -> (c, d), b)"""
    arena = AssemblyArena()
    ids = {"root": arena.create_node(ROOT, "root")}
    ids["a"] = arena.create_node(ids["root"], "a")
    ids["b"] = arena.create_node(ids["root"], "b")
    ids["c"] = arena.create_node(ids["a"], "c")
    ids["d"] = arena.create_node(ids["a"], "d")
    return arena, ids


def test_create_root_and_children():
    """Children are kept in insertion order and agree with their parent."""
    arena, ids = build_tree()

    assert arena.root == ids["root"]
    assert arena.children(ids["root"]) == (ids["a"], ids["b"])
    assert arena.parent(ids["c"]) == ids["a"]
    assert arena.parent(ids["root"]) is None
    assert len(arena) == 5
    assert arena.validate() == []


def test_second_root_is_rejected():
    arena, _ = build_tree()
    with pytest.raises(InvalidParent):
        arena.create_node(ROOT, "another root")


def test_missing_parent_is_rejected():
    arena, _ = build_tree()
    with pytest.raises(InvalidParent):
        arena.create_node(NodeId(999), "orphan")


def test_ids_are_never_reused():
    """A removed id stays dead; new nodes get fresh ids."""
    arena, ids = build_tree()
    removed = arena.remove_subtree(ids["a"])
    new_id = arena.create_node(ids["root"], "e")

    assert new_id not in removed
    assert new_id > max(ids.values())
    for stale in removed:
        assert stale not in arena


@pytest.mark.parametrize("seed", range(5))
def test_random_mutations_keep_tree_consistent(seed):
    """Random create/remove/move sequences never break the structural invariants."""
    rng = np.random.default_rng(seed)
    arena = AssemblyArena()
    allocated = [arena.create_node(ROOT, "root")]

    for step in range(200):
        live = arena.nodes()
        action = rng.integers(4)
        if action <= 1 or len(live) < 3:
            parent = live[rng.integers(len(live))]
            allocated.append(arena.create_node(parent, f"n{step}"))
        else:
            non_root = [n for n in live if n != arena.root]
            target = non_root[rng.integers(len(non_root))]
            if action == 2:
                policy = RemovalPolicy.CASCADE if rng.random() < 0.5 else RemovalPolicy.PROMOTE
                arena.remove_node(target, policy)
            else:
                subtree = set(arena.traverse(start=target))
                candidates = [n for n in live if n not in subtree]
                arena.move_node(target, candidates[rng.integers(len(candidates))])

        assert arena.validate() == []

    assert allocated == sorted(set(allocated))
    assert set(arena.nodes()) <= set(allocated)


@pytest.mark.parametrize("operation", [
    lambda arena, node: arena.set_transform(node, Transform()),
    lambda arena, node: arena.attach_geometry(node, Primitive.non_indexed([[0, 0, 0]] * 3)),
    lambda arena, node: arena.set_metadata(node, "k", 1),
    lambda arena, node: arena.world_transform(node),
    lambda arena, node: arena.node(node),
    lambda arena, node: arena.remove_subtree(node),
])
def test_stale_id_raises_unknown_node(operation):
    arena, ids = build_tree()
    arena.remove_subtree(ids["c"])
    with pytest.raises(UnknownNode):
        operation(arena, ids["c"])


def test_world_transform_composes_from_root():
    arena, ids = build_tree()
    root_t = Transform(translation=[1, 0, 0], rotation=[0, 0, np.pi / 2])
    a_t = Transform(translation=[0, 2, 0], scale=[2, 2, 2])
    c_t = Transform(translation=[0, 0, 3])
    arena.set_transform(ids["root"], root_t)
    arena.set_transform(ids["a"], a_t)
    arena.set_transform(ids["c"], c_t)

    expected = root_t.to_matrix() @ a_t.to_matrix() @ c_t.to_matrix()
    np.testing.assert_allclose(arena.world_transform(ids["c"]), expected, atol=1e-12)


def test_world_transform_is_idempotent():
    arena, ids = build_tree()
    arena.set_transform(ids["a"], Transform(translation=[1, 2, 3]))
    first = arena.world_transform(ids["d"])
    second = arena.world_transform(ids["d"])

    np.testing.assert_array_equal(first, second)
    first[0, 3] = 100.0  # callers get a copy
    np.testing.assert_array_equal(arena.world_transform(ids["d"]), second)


@pytest.mark.parametrize("seed", range(3))
def test_ancestor_transform_change_reaches_descendants(seed):
    """Changing an ancestor's transform is visible in every cached descendant."""
    rng = np.random.default_rng(seed)
    arena, ids = build_tree()
    for name in ("c", "d", "b"):
        arena.world_transform(ids[name])  # populate the cache

    new_t = Transform(translation=rng.normal(size=3), rotation=rng.uniform(-1, 1, size=3))
    arena.set_transform(ids["root"], new_t)

    for name in ("a", "b", "c", "d"):
        np.testing.assert_allclose(arena.world_transform(ids[name]), new_t.to_matrix(), atol=1e-12)


def test_world_transform_in_other_unit():
    """5 mm in a millimeter arena is 0.005 m."""
    arena = AssemblyArena(length_unit=LengthUnit.MILLIMETER)
    root = arena.create_node(ROOT)
    child = arena.create_node(root)
    arena.set_transform(child, Transform(translation=[5, 0, 0]))

    world = arena.world_transform(child, unit=LengthUnit.METER)
    assert world[0, 3] == pytest.approx(0.005)
    assert arena.world_transform(child)[0, 3] == pytest.approx(5.0)


def test_traversal_orders():
    arena, ids = build_tree()
    pre = list(arena.traverse(TraversalOrder.PRE_ORDER))
    post = list(arena.traverse(TraversalOrder.POST_ORDER))

    assert pre == [ids[n] for n in ("root", "a", "c", "d", "b")]
    assert post == [ids[n] for n in ("c", "d", "a", "b", "root")]
    assert list(arena.traverse(start=ids["a"])) == [ids["a"], ids["c"], ids["d"]]


def test_traversal_is_a_restartable_snapshot():
    """A traversal reflects the structure at the time it was created."""
    arena, ids = build_tree()
    traversal = arena.traverse()
    arena.create_node(ids["b"], "late")
    arena.remove_subtree(ids["c"])

    visited = list(traversal)
    assert visited == [ids[n] for n in ("root", "a", "c", "d", "b")]
    assert list(traversal) == visited


def test_traversal_of_empty_arena():
    assert list(AssemblyArena().traverse()) == []


def test_remove_subtree_cascades():
    arena, ids = build_tree()
    removed = arena.remove_subtree(ids["a"])

    assert removed == [ids["a"], ids["c"], ids["d"]]
    assert arena.children(ids["root"]) == (ids["b"],)
    assert len(arena) == 2
    assert arena.remove_node(ids["b"], RemovalPolicy.CASCADE) == [ids["b"]]


def test_remove_root_empties_arena():
    arena, ids = build_tree()
    arena.remove_subtree(ids["root"])
    assert len(arena) == 0
    assert arena.root is None
    assert arena.validate() == []
    assert arena.create_node(ROOT, "new root") > ids["d"]


def test_promote_splices_children_and_keeps_world_transforms():
    """Promoted children take the removed node's place and stay where they were."""
    arena = AssemblyArena()
    root = arena.create_node(ROOT, "root")
    before = arena.create_node(root, "before")
    middle = arena.create_node(root, "middle")
    after = arena.create_node(root, "after")
    c1 = arena.create_node(middle, "c1")
    c2 = arena.create_node(middle, "c2")

    arena.set_transform(root, Transform(translation=[0, 0, 1]))
    arena.set_transform(middle, Transform(translation=[1, 2, 3], rotation=[0.3, 0.2, 0.1], scale=[2, 2, 2]))
    arena.set_transform(c1, Transform(translation=[0.5, 0, 0], rotation=[0.1, 0.0, 0.4]))
    arena.set_transform(c2, Transform(translation=[0, -1, 0]))
    worlds = {c: arena.world_transform(c) for c in (c1, c2)}

    assert arena.remove_node(middle, RemovalPolicy.PROMOTE) == [middle]

    assert arena.children(root) == (before, c1, c2, after)
    assert arena.parent(c1) == root
    for c, world in worlds.items():
        np.testing.assert_allclose(arena.world_transform(c), world, atol=1e-9)
    assert arena.validate() == []


def test_promote_root_with_single_child():
    arena = AssemblyArena()
    root = arena.create_node(ROOT)
    child = arena.create_node(root)
    arena.set_transform(root, Transform(translation=[1, 1, 1]))

    arena.remove_node(root, RemovalPolicy.PROMOTE)

    assert arena.root == child
    np.testing.assert_allclose(arena.world_transform(child)[:3, 3], [1, 1, 1])


def test_promote_root_with_several_children_is_rejected():
    arena, ids = build_tree()
    with pytest.raises(InvalidParent):
        arena.remove_node(ids["root"], RemovalPolicy.PROMOTE)
    assert len(arena) == 5


def test_move_node_rejects_cycles():
    arena, ids = build_tree()
    with pytest.raises(InvalidParent):
        arena.move_node(ids["a"], ids["c"])
    with pytest.raises(InvalidParent):
        arena.move_node(ids["a"], ids["a"])

    arena.move_node(ids["c"], ids["b"])
    assert arena.children(ids["b"]) == (ids["c"],)
    assert arena.children(ids["a"]) == (ids["d"],)


def test_shared_primitive_lives_until_last_reference(triangle):
    arena, ids = build_tree()
    pid = arena.attach_geometry(ids["c"], triangle)
    assert arena.attach_geometry(ids["d"], pid) == pid
    assert arena.primitive_count == 1

    arena.remove_subtree(ids["c"])
    assert arena.primitive(pid) is triangle

    arena.remove_subtree(ids["d"])
    with pytest.raises(UnknownPrimitive):
        arena.primitive(pid)
    assert arena.validate() == []


def test_attach_unknown_primitive_id(triangle):
    arena, ids = build_tree()
    with pytest.raises(UnknownPrimitive):
        arena.attach_geometry(ids["a"], 42)


def test_detach_geometry(triangle):
    arena, ids = build_tree()
    pid = arena.attach_geometry(ids["a"], triangle)
    arena.detach_geometry(ids["a"], pid)
    assert arena.primitives(ids["a"]) == []
    assert arena.primitive_count == 0


def test_metadata_last_write_wins():
    arena, ids = build_tree()
    arena.set_metadata(ids["a"], "part_number", 17)
    assert arena.get_metadata(ids["a"], "part_number") == Integer(17)

    arena.set_metadata(ids["a"], "part_number", "17-B")
    assert arena.get_metadata(ids["a"], "part_number") == Text("17-B")


def test_missing_metadata_key():
    arena, ids = build_tree()
    with pytest.raises(KeyNotFound):
        arena.get_metadata(ids["a"], "missing")
    with pytest.raises(KeyError):
        arena.remove_metadata(ids["a"], "missing")


def test_unsupported_metadata_value():
    arena, ids = build_tree()
    with pytest.raises(TypeError):
        arena.set_metadata(ids["a"], "k", object())


def test_inherited_metadata_prefers_nearest_node():
    arena, ids = build_tree()
    arena.set_metadata(ids["root"], "material", "steel")
    arena.set_metadata(ids["root"], "mass", 2.5)
    arena.set_metadata(ids["a"], "material", "aluminium")

    inherited = arena.inherited_metadata(ids["c"])
    assert inherited == {"material": Text("aluminium"), "mass": Real(2.5)}
    assert dict(arena.metadata(ids["c"])) == {}


def test_node_records_are_immutable_snapshots():
    arena, ids = build_tree()
    record = arena.node(ids["a"])
    arena.set_metadata(ids["a"], "k", 1)
    arena.create_node(ids["a"], "e")

    assert dict(record.metadata) == {}
    assert len(record.children) == 2
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.name = "renamed"


def test_find_depth_and_ancestors():
    arena, ids = build_tree()
    dup = arena.create_node(ids["b"], "c")

    assert arena.find("c") == ids["c"]
    assert arena.find_all("c") == [ids["c"], dup]
    assert arena.find("nope") is None
    assert arena.depth(ids["root"]) == 0
    assert arena.depth(ids["d"]) == 2
    assert arena.ancestors(ids["d"]) == [ids["a"], ids["root"]]


def test_frozen_arena_rejects_mutation():
    arena, ids = build_tree()
    arena.freeze()

    with pytest.raises(FrozenArena):
        arena.create_node(ids["a"], "x")
    with pytest.raises(FrozenArena):
        arena.set_metadata(ids["a"], "k", 1)
    with pytest.raises(FrozenArena):
        arena.remove_subtree(ids["a"])

    # Reading still works
    assert arena.world_transform(ids["c"]).shape == (4, 4)

    arena.unfreeze()
    arena.create_node(ids["a"], "x")
    assert len(arena) == 6


def test_discard_empties_and_freezes(triangle):
    arena, ids = build_tree()
    arena.attach_geometry(ids["a"], triangle)
    arena.add_resource(ResourceKind.BUFFER, b"data")

    arena.discard()

    assert len(arena) == 0
    assert arena.root is None
    assert arena.primitive_count == 0
    assert arena.resources() == []
    assert arena.frozen


def test_resource_table():
    arena = AssemblyArena()
    rid = arena.add_resource(ResourceKind.BUFFER, b"\x01\x02", locator="a.bin")
    resource = arena.resource(rid)
    assert resource.data == b"\x01\x02"
    assert resource.size == 2
    assert resource.locator == "a.bin"

    arena.evict_resource(rid)
    with pytest.raises(UnknownResource):
        arena.resource(rid)
    with pytest.raises(UnknownResource):
        arena.evict_resource(rid)
    assert arena.add_resource(ResourceKind.BUFFER, b"") != rid


def test_rescale_to_changes_world_units():
    arena = AssemblyArena(length_unit=LengthUnit.MILLIMETER)
    root = arena.create_node(ROOT)
    child = arena.create_node(root)
    arena.set_transform(child, Transform(translation=[250, 0, 0]))
    arena.world_transform(child)

    arena.rescale_to(LengthUnit.METER)

    assert arena.length_unit is LengthUnit.METER
    world = arena.world_transform(child)
    assert world[0, 3] == pytest.approx(0.25)
    np.testing.assert_allclose(np.diag(world)[:3], [0.001] * 3)


def test_iter_geometry_and_flatten(triangle):
    arena, ids = build_tree()
    arena.set_transform(ids["a"], Transform(translation=[10, 0, 0]))
    arena.set_transform(ids["b"], Transform(translation=[0, 10, 0]))
    arena.attach_geometry(ids["c"], triangle)
    arena.attach_geometry(ids["b"], triangle)
    arena.attach_geometry(ids["b"], Primitive.non_indexed([[0, 0, 0]], primitive_type=0))

    found = [(node, primitive) for node, primitive, _ in arena.iter_geometry()]
    assert [node for node, _ in found] == [ids["c"], ids["b"], ids["b"]]

    merged = arena.flatten()
    assert merged.num_primitives == 2
    np.testing.assert_allclose(merged.vertices.positions[:3], triangle.vertices.positions + [10, 0, 0])
    np.testing.assert_allclose(merged.vertices.positions[3:], triangle.vertices.positions + [0, 10, 0])


def test_set_transform_accepts_matrix():
    arena, ids = build_tree()
    matrix = Transform(translation=[1, 2, 3], rotation=[0.1, 0.2, 0.3]).to_matrix()
    arena.set_transform(ids["a"], matrix)
    np.testing.assert_allclose(arena.local_transform(ids["a"]).to_matrix(), matrix, atol=1e-12)


def test_set_transform_rejects_sheared_matrix():
    arena, ids = build_tree()
    arena.set_transform(ids["a"], Transform(translation=[1, 0, 0]))
    sheared = np.eye(4)
    sheared[0, 1] = 0.5

    with pytest.raises(ValueError):
        arena.set_transform(ids["a"], sheared)
    np.testing.assert_allclose(arena.local_transform(ids["a"]).translation, [1, 0, 0])


def test_promote_that_would_need_shear_is_rejected():
    """Non-uniform scale over a rotated child cannot be folded into the child."""
    arena = AssemblyArena()
    root = arena.create_node(ROOT, "root")
    middle = arena.create_node(root, "middle")
    leaf = arena.create_node(middle, "leaf")
    arena.set_transform(middle, Transform(scale=[1, 3, 1]))
    arena.set_transform(leaf, Transform(rotation=[0, 0, np.pi / 4]))
    world = arena.world_transform(leaf)

    with pytest.raises(InvalidParent):
        arena.remove_node(middle, RemovalPolicy.PROMOTE)

    assert middle in arena
    assert arena.parent(leaf) == middle
    np.testing.assert_allclose(arena.world_transform(leaf), world)
    assert arena.validate() == []


def test_node_default_metadata_is_empty_and_read_only():
    node = Node(NodeId(0), "part", None)
    assert dict(node.metadata) == {}
    assert node.is_root and node.is_leaf
    with pytest.raises(TypeError):
        node.metadata["k"] = Text("v")
