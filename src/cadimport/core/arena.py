"""AssemblyArena: the id-addressed node tree of an imported scene.

The arena owns every node, primitive and resource of one imported scene.
Everything outside the arena refers to these by id; ids are allocated
monotonically and never reused, so a stale id always fails loudly instead of
silently addressing a newer node.

Node records are immutable. A mutation builds new records and swaps them in
under the arena lock, so a reader never observes a parent whose children list
disagrees with a child's parent field.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Final, Iterator, Mapping

import numpy as np
from numpy.typing import NDArray

from ..errors import (
    FrozenArena,
    InvalidParent,
    KeyNotFound,
    UnknownNode,
    UnknownPrimitive,
    UnknownResource,
)
from ..metadata.units import LengthUnit
from ..metadata.values import MetadataValue, metadata_value
from ..resources.resource import Resource, ResourceKind
from .ids import IdCounter, NodeId, PrimitiveId, ResourceId
from .primitive import Primitive
from .transform import Transform

logger = logging.getLogger(__name__)

ROOT: Final = NodeId(-1)
"""Parent sentinel for create_node() that requests the root node."""

_EMPTY_METADATA: Mapping[str, MetadataValue] = MappingProxyType({})


class RemovalPolicy(Enum):
    """What happens to the children of a removed node."""

    CASCADE = "cascade"
    PROMOTE = "promote"


class TraversalOrder(Enum):
    PRE_ORDER = "pre_order"
    POST_ORDER = "post_order"


@dataclass(frozen=True, eq=False)
class Node:
    """Immutable snapshot of one node in the assembly structure.

    Attributes:
        id: Stable node id
        name: Label from the source data (may be empty)
        parent: Parent id, or None for the root
        children: Child ids in source order
        transform: Local transform relative to the parent (treat as read-only)
        primitives: Ids of attached primitives, owned by the arena
        metadata: Read-only key/value annotations
    """

    id: NodeId
    name: str
    parent: NodeId | None
    children: tuple[NodeId, ...] = ()
    transform: Transform = field(default_factory=Transform)
    primitives: tuple[PrimitiveId, ...] = ()
    metadata: Mapping[str, MetadataValue] = field(default_factory=lambda: _EMPTY_METADATA)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __repr__(self) -> str:
        prims_str = f", primitives={len(self.primitives)}" if self.primitives else ""
        children_str = f", children={len(self.children)}" if self.children else ""
        return f"Node({self.id}, {self.name!r}{prims_str}{children_str})"


class Traversal:
    """A restartable iteration over node ids.

    The structure is captured when the traversal is created; later mutation of
    the arena does not affect it. Each call to iter() starts from the
    beginning and walks lazily.
    """

    def __init__(
        self,
        nodes: Mapping[NodeId, Node],
        start: NodeId | None,
        order: TraversalOrder,
    ) -> None:
        self._nodes = nodes
        self._start = start
        self.order = order

    def __iter__(self) -> Iterator[NodeId]:
        if self._start is None:
            return iter(())
        if self.order is TraversalOrder.PRE_ORDER:
            return self._pre_order(self._start)
        return self._post_order(self._start)

    def _pre_order(self, start: NodeId) -> Iterator[NodeId]:
        stack = [start]
        while stack:
            node_id = stack.pop()
            yield node_id
            stack.extend(reversed(self._nodes[node_id].children))

    def _post_order(self, start: NodeId) -> Iterator[NodeId]:
        stack: list[tuple[NodeId, bool]] = [(start, False)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                yield node_id
                continue
            stack.append((node_id, True))
            for child in reversed(self._nodes[node_id].children):
                stack.append((child, False))


class AssemblyArena:
    """Owner of all nodes, primitives and resources of one scene.

    Example:
        arena = AssemblyArena(length_unit=LengthUnit.MILLIMETER)
        root = arena.create_node(ROOT, "plant")
        pipe = arena.create_node(root, "pipe")
        arena.set_transform(pipe, Transform(translation=[0, 0, 250]))
        arena.attach_geometry(pipe, primitive)
        arena.world_transform(pipe, unit=LengthUnit.METER)
    """

    def __init__(self, length_unit: LengthUnit = LengthUnit.METER) -> None:
        """Create an empty arena.

        Args:
            length_unit: Unit of positions and translations in this arena
        """
        self._length_unit = length_unit

        self._lock = threading.RLock()
        self._node_ids = IdCounter()
        self._primitive_ids = IdCounter()
        self._resource_ids = IdCounter()

        self._nodes: dict[NodeId, Node] = {}
        self._root: NodeId | None = None
        self._primitives: dict[PrimitiveId, Primitive] = {}
        self._primitive_refs: dict[PrimitiveId, int] = {}
        self._resources: dict[ResourceId, Resource] = {}
        self._world_cache: dict[NodeId, NDArray[np.float64]] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Freezing

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject all further mutation until unfreeze() is called."""
        with self._lock:
            self._frozen = True

    def unfreeze(self) -> None:
        """Allow mutation of a loaded arena again."""
        with self._lock:
            self._frozen = False

    def discard(self) -> None:
        """Drop all content and freeze; used for arenas of failed loads."""
        with self._lock:
            self._nodes.clear()
            self._root = None
            self._primitives.clear()
            self._primitive_refs.clear()
            self._resources.clear()
            self._world_cache.clear()
            self._frozen = True

    def _check_writable(self) -> None:
        if self._frozen:
            raise FrozenArena("Arena is frozen; call unfreeze() before mutating it")

    def _require(self, node_id: NodeId) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise UnknownNode(node_id)
        return node

    # ------------------------------------------------------------------
    # Structure

    def create_node(
        self,
        parent: NodeId = ROOT,
        name: str = "",
        transform: Transform | None = None,
    ) -> NodeId:
        """Allocate a new node as the last child of ``parent``.

        Args:
            parent: Parent id, or ROOT to create the root node
            name: Optional label
            transform: Optional local transform (identity if omitted)

        Returns:
            The new node's id

        Raises:
            InvalidParent: If ``parent`` does not exist, or ROOT is requested
                while a root already exists
        """
        with self._lock:
            self._check_writable()

            if parent == ROOT:
                if self._root is not None:
                    raise InvalidParent(
                        f"Arena already has root node {self._root}; a second root is not allowed"
                    )
            elif parent not in self._nodes:
                raise InvalidParent(f"Parent node {parent} does not exist")

            node_id = NodeId(self._node_ids.next())
            node = Node(
                id=node_id,
                name=name,
                parent=None if parent == ROOT else parent,
                transform=transform.copy() if transform is not None else Transform(),
            )

            if parent == ROOT:
                self._root = node_id
            else:
                parent_node = self._nodes[parent]
                self._nodes[parent] = replace(
                    parent_node, children=parent_node.children + (node_id,)
                )
            self._nodes[node_id] = node
            return node_id

    def remove_subtree(self, node_id: NodeId) -> list[NodeId]:
        """Detach and deallocate a node and all of its descendants.

        Returns:
            The removed ids in pre-order

        Raises:
            UnknownNode: If ``node_id`` is absent
        """
        with self._lock:
            self._check_writable()
            node = self._require(node_id)

            removed = list(Traversal(self._nodes, node_id, TraversalOrder.PRE_ORDER))

            if node.parent is None:
                self._root = None
            else:
                parent_node = self._nodes[node.parent]
                self._nodes[node.parent] = replace(
                    parent_node,
                    children=tuple(c for c in parent_node.children if c != node_id),
                )

            for removed_id in removed:
                removed_node = self._nodes.pop(removed_id)
                for primitive_id in removed_node.primitives:
                    self._release_primitive(primitive_id)
                self._world_cache.pop(removed_id, None)

            logger.debug("Removed subtree of node %s (%d nodes)", node_id, len(removed))
            return removed

    def remove_node(self, node_id: NodeId, policy: RemovalPolicy) -> list[NodeId]:
        """Remove a node, choosing explicitly what happens to its children.

        CASCADE removes the whole subtree. PROMOTE splices the children into
        the parent's child list where the removed node was, folding the removed
        node's local transform into each child so their world transforms stay
        the same.

        Returns:
            The removed ids

        Raises:
            UnknownNode: If ``node_id`` is absent
            InvalidParent: If promoting the root would leave zero or several
                roots, or if a combined child transform would need shear
        """
        if policy is RemovalPolicy.CASCADE:
            return self.remove_subtree(node_id)

        with self._lock:
            self._check_writable()
            node = self._require(node_id)

            if node.parent is None and len(node.children) != 1:
                raise InvalidParent(
                    f"Cannot promote the {len(node.children)} children of root node {node_id}; "
                    "exactly one child is required to become the new root"
                )

            local = node.transform.to_matrix()
            combined: dict[NodeId, Transform] = {}
            for child_id in node.children:
                try:
                    combined[child_id] = Transform.from_matrix(
                        local @ self._nodes[child_id].transform.to_matrix(), exact=True
                    )
                except ValueError as e:
                    raise InvalidParent(
                        f"Cannot promote the children of node {node_id}: the combined "
                        f"transform of child {child_id} has shear"
                    ) from e

            for child_id, transform in combined.items():
                child = self._nodes[child_id]
                self._nodes[child_id] = replace(child, parent=node.parent, transform=transform)
                self._invalidate_world(child_id)

            if node.parent is None:
                self._root = node.children[0]
            else:
                parent_node = self._nodes[node.parent]
                position = parent_node.children.index(node_id)
                children = (
                    parent_node.children[:position]
                    + node.children
                    + parent_node.children[position + 1:]
                )
                self._nodes[node.parent] = replace(parent_node, children=children)

            del self._nodes[node_id]
            for primitive_id in node.primitives:
                self._release_primitive(primitive_id)
            self._world_cache.pop(node_id, None)

            logger.debug("Removed node %s, promoted %d children", node_id, len(node.children))
            return [node_id]

    def move_node(self, node_id: NodeId, new_parent: NodeId) -> None:
        """Re-attach a node (with its subtree) as the last child of ``new_parent``.

        The local transform is kept, so the world transform follows the new parent.

        Raises:
            UnknownNode: If ``node_id`` is absent
            InvalidParent: If ``new_parent`` is absent, is the node itself or one
                of its descendants, or if ``node_id`` is the root
        """
        with self._lock:
            self._check_writable()
            node = self._require(node_id)
            if new_parent not in self._nodes:
                raise InvalidParent(f"Parent node {new_parent} does not exist")
            if node.parent is None:
                raise InvalidParent("The root node cannot be moved")
            if node_id == new_parent or node_id in self._ancestor_ids(new_parent):
                raise InvalidParent(
                    f"Moving node {node_id} under {new_parent} would create a cycle"
                )

            old_parent = self._nodes[node.parent]
            self._nodes[node.parent] = replace(
                old_parent, children=tuple(c for c in old_parent.children if c != node_id)
            )
            target = self._nodes[new_parent]
            self._nodes[new_parent] = replace(target, children=target.children + (node_id,))
            self._nodes[node_id] = replace(node, parent=new_parent)
            self._invalidate_world(node_id)

    # ------------------------------------------------------------------
    # Node content

    def set_name(self, node_id: NodeId, name: str) -> None:
        with self._lock:
            self._check_writable()
            self._nodes[node_id] = replace(self._require(node_id), name=name)

    def set_transform(self, node_id: NodeId, transform: Transform | NDArray[np.float64]) -> None:
        """Set the local transform of a node.

        Args:
            node_id: Target node
            transform: A Transform, or a 4x4 matrix without shear

        Raises:
            UnknownNode: If ``node_id`` is absent
            ValueError: If a matrix holds shear
        """
        if not isinstance(transform, Transform):
            transform = Transform.from_matrix(transform, exact=True)
        with self._lock:
            self._check_writable()
            node = self._require(node_id)
            self._nodes[node_id] = replace(node, transform=transform.copy())
            self._invalidate_world(node_id)

    def attach_geometry(self, node_id: NodeId, primitive: Primitive | PrimitiveId) -> PrimitiveId:
        """Attach a primitive to a node.

        A Primitive object is taken into the arena and gets a new id; passing
        an existing PrimitiveId shares that primitive with another node.

        Returns:
            The id of the attached primitive

        Raises:
            UnknownNode: If ``node_id`` is absent
            UnknownPrimitive: If a PrimitiveId is passed that the arena does not own
        """
        with self._lock:
            self._check_writable()
            node = self._require(node_id)

            if isinstance(primitive, Primitive):
                primitive_id = PrimitiveId(self._primitive_ids.next())
                self._primitives[primitive_id] = primitive
                self._primitive_refs[primitive_id] = 0
            else:
                primitive_id = primitive
                if primitive_id not in self._primitives:
                    raise UnknownPrimitive(primitive_id)

            self._primitive_refs[primitive_id] += 1
            self._nodes[node_id] = replace(node, primitives=node.primitives + (primitive_id,))
            return primitive_id

    def detach_geometry(self, node_id: NodeId, primitive_id: PrimitiveId) -> None:
        """Remove one reference to a primitive from a node.

        Raises:
            UnknownNode: If ``node_id`` is absent
            UnknownPrimitive: If the node does not reference ``primitive_id``
        """
        with self._lock:
            self._check_writable()
            node = self._require(node_id)
            if primitive_id not in node.primitives:
                raise UnknownPrimitive(primitive_id)
            primitives = list(node.primitives)
            primitives.remove(primitive_id)
            self._nodes[node_id] = replace(node, primitives=tuple(primitives))
            self._release_primitive(primitive_id)

    def _release_primitive(self, primitive_id: PrimitiveId) -> None:
        self._primitive_refs[primitive_id] -= 1
        if self._primitive_refs[primitive_id] == 0:
            del self._primitive_refs[primitive_id]
            del self._primitives[primitive_id]

    def set_metadata(self, node_id: NodeId, key: str, value: MetadataValue | object) -> None:
        """Set a metadata value on a node, replacing any previous value for ``key``.

        Python scalars (str, int, float, bool) are converted to metadata values.

        Raises:
            UnknownNode: If ``node_id`` is absent
            TypeError: If ``value`` has no metadata kind
        """
        value = metadata_value(value)
        with self._lock:
            self._check_writable()
            node = self._require(node_id)
            metadata = dict(node.metadata)
            metadata[key] = value
            self._nodes[node_id] = replace(node, metadata=MappingProxyType(metadata))

    def remove_metadata(self, node_id: NodeId, key: str) -> None:
        """Remove a metadata key from a node.

        Raises:
            UnknownNode: If ``node_id`` is absent
            KeyNotFound: If the key is not set
        """
        with self._lock:
            self._check_writable()
            node = self._require(node_id)
            if key not in node.metadata:
                raise KeyNotFound(node_id, key)
            metadata = dict(node.metadata)
            del metadata[key]
            self._nodes[node_id] = replace(node, metadata=MappingProxyType(metadata))

    # ------------------------------------------------------------------
    # Resources

    def add_resource(
        self,
        kind: ResourceKind,
        data: bytes,
        mime_type: str | None = None,
        locator: str | None = None,
    ) -> ResourceId:
        """Take ownership of a block of bulk data and return its id."""
        with self._lock:
            self._check_writable()
            resource_id = ResourceId(self._resource_ids.next())
            self._resources[resource_id] = Resource(
                id=resource_id,
                kind=kind,
                data=bytes(data),
                mime_type=mime_type,
                locator=locator,
            )
            return resource_id

    def resource(self, resource_id: ResourceId) -> Resource:
        """Dereference a resource id.

        Raises:
            UnknownResource: If the id was never added or has been evicted
        """
        with self._lock:
            resource = self._resources.get(resource_id)
            if resource is None:
                raise UnknownResource(resource_id)
            return resource

    def evict_resource(self, resource_id: ResourceId) -> None:
        """Drop a resource; later dereferences of its id fail."""
        with self._lock:
            self._check_writable()
            if self._resources.pop(resource_id, None) is None:
                raise UnknownResource(resource_id)

    def resources(self) -> list[Resource]:
        with self._lock:
            return list(self._resources.values())

    # ------------------------------------------------------------------
    # Reading

    @property
    def root(self) -> NodeId | None:
        """Id of the root node, or None while the arena is empty."""
        return self._root

    def node(self, node_id: NodeId) -> Node:
        """Return the current record of a node.

        Raises:
            UnknownNode: If ``node_id`` is absent
        """
        with self._lock:
            return self._require(node_id)

    def nodes(self) -> list[NodeId]:
        """All node ids in allocation order."""
        with self._lock:
            return list(self._nodes)

    def children(self, node_id: NodeId) -> tuple[NodeId, ...]:
        with self._lock:
            return self._require(node_id).children

    def parent(self, node_id: NodeId) -> NodeId | None:
        with self._lock:
            return self._require(node_id).parent

    def local_transform(self, node_id: NodeId) -> Transform:
        with self._lock:
            return self._require(node_id).transform.copy()

    def primitive(self, primitive_id: PrimitiveId) -> Primitive:
        with self._lock:
            primitive = self._primitives.get(primitive_id)
            if primitive is None:
                raise UnknownPrimitive(primitive_id)
            return primitive

    def primitives(self, node_id: NodeId) -> list[Primitive]:
        """Primitives attached to a node, in attachment order."""
        with self._lock:
            return [self._primitives[pid] for pid in self._require(node_id).primitives]

    @property
    def primitive_count(self) -> int:
        """Number of distinct primitives owned by the arena."""
        return len(self._primitives)

    def metadata(self, node_id: NodeId) -> Mapping[str, MetadataValue]:
        with self._lock:
            return self._require(node_id).metadata

    def get_metadata(self, node_id: NodeId, key: str) -> MetadataValue:
        """Return a metadata value.

        Raises:
            UnknownNode: If ``node_id`` is absent
            KeyNotFound: If the key is not set on this node
        """
        with self._lock:
            metadata = self._require(node_id).metadata
            if key not in metadata:
                raise KeyNotFound(node_id, key)
            return metadata[key]

    def inherited_metadata(self, node_id: NodeId) -> dict[str, MetadataValue]:
        """Metadata of the node merged with that of all its ancestors.

        Nearer nodes override farther ones when keys are equal.
        """
        with self._lock:
            self._require(node_id)
            merged: dict[str, MetadataValue] = {}
            for ancestor in reversed([node_id, *self._ancestor_ids(node_id)]):
                merged.update(self._nodes[ancestor].metadata)
            return merged

    def _ancestor_ids(self, node_id: NodeId) -> list[NodeId]:
        result = []
        parent = self._nodes[node_id].parent
        while parent is not None:
            result.append(parent)
            parent = self._nodes[parent].parent
        return result

    def ancestors(self, node_id: NodeId) -> list[NodeId]:
        """Ids from the parent up to the root."""
        with self._lock:
            self._require(node_id)
            return self._ancestor_ids(node_id)

    def depth(self, node_id: NodeId) -> int:
        """Depth of a node in the hierarchy (root = 0)."""
        return len(self.ancestors(node_id))

    def find(self, name: str) -> NodeId | None:
        """Find the first node (pre-order) with the given name."""
        snapshot = self.traverse()
        for node_id in snapshot:
            if snapshot._nodes[node_id].name == name:
                return node_id
        return None

    def find_all(self, name: str) -> list[NodeId]:
        """Find all nodes with the given name, in pre-order."""
        snapshot = self.traverse()
        return [node_id for node_id in snapshot if snapshot._nodes[node_id].name == name]

    def traverse(
        self,
        order: TraversalOrder = TraversalOrder.PRE_ORDER,
        start: NodeId | None = None,
    ) -> Traversal:
        """Snapshot the structure and return a lazy traversal over it.

        Args:
            order: Pre-order (parents first) or post-order (children first)
            start: Subtree root to walk; defaults to the arena root

        Raises:
            UnknownNode: If ``start`` is given and absent
        """
        with self._lock:
            if start is not None:
                self._require(start)
            else:
                start = self._root
            return Traversal(dict(self._nodes), start, order)

    def world_transform(
        self, node_id: NodeId, unit: LengthUnit | None = None
    ) -> NDArray[np.float64]:
        """Compose the local transforms from the root down to a node.

        Args:
            node_id: Target node
            unit: Express the result in this length unit instead of the
                arena's own

        Returns:
            4x4 transformation matrix in world space

        Raises:
            UnknownNode: If ``node_id`` is absent
        """
        with self._lock:
            self._require(node_id)
            matrix = self._world_matrix(node_id)

        if unit is not None and unit is not self.length_unit:
            factor = self.length_unit.factor_to(unit)
            return np.diag([factor, factor, factor, 1.0]) @ matrix
        return matrix.copy()

    def _world_matrix(self, node_id: NodeId) -> NDArray[np.float64]:
        cached = self._world_cache.get(node_id)
        if cached is not None:
            return cached

        # Walk up to the nearest cached ancestor, then compose downwards
        chain = [node_id]
        parent = self._nodes[node_id].parent
        base = np.eye(4)
        while parent is not None:
            cached = self._world_cache.get(parent)
            if cached is not None:
                base = cached
                break
            chain.append(parent)
            parent = self._nodes[parent].parent

        for chain_id in reversed(chain):
            base = base @ self._nodes[chain_id].transform.to_matrix()
            base.setflags(write=False)
            self._world_cache[chain_id] = base
        return base

    def _invalidate_world(self, node_id: NodeId) -> None:
        for descendant in Traversal(self._nodes, node_id, TraversalOrder.PRE_ORDER):
            self._world_cache.pop(descendant, None)

    def iter_geometry(
        self, unit: LengthUnit | None = None
    ) -> Iterator[tuple[NodeId, Primitive, NDArray[np.float64]]]:
        """Yield (node id, primitive, world matrix) for every attached primitive."""
        for node_id in self.traverse():
            primitives = self.primitives(node_id)
            if not primitives:
                continue
            matrix = self.world_transform(node_id, unit=unit)
            for primitive in primitives:
                yield node_id, primitive, matrix

    def flatten(self, unit: LengthUnit | None = None) -> Primitive:
        """Merge all surface geometry into one world-space triangle primitive.

        Point and line primitives are skipped.
        """
        world = [
            primitive.transform(matrix)
            for _, primitive, matrix in self.iter_geometry(unit=unit)
            if primitive.primitive_type.is_surface
        ]
        return Primitive.merge(world)

    # ------------------------------------------------------------------
    # Units

    @property
    def length_unit(self) -> LengthUnit:
        """Unit of vertex positions and translations in this arena."""
        return self._length_unit

    @length_unit.setter
    def length_unit(self, unit: LengthUnit) -> None:
        # Declares the unit of existing data; use rescale_to() to convert
        with self._lock:
            self._check_writable()
            self._length_unit = unit

    def rescale_to(self, unit: LengthUnit) -> None:
        """Change the arena's length unit.

        Only the root transform is scaled; primitives keep their vertex data,
        so every world transform afterwards maps into ``unit``.
        """
        with self._lock:
            self._check_writable()
            if unit is self.length_unit:
                return
            factor = self.length_unit.factor_to(unit)
            if self._root is not None:
                root = self._nodes[self._root]
                self._nodes[self._root] = replace(root, transform=root.transform.scaled(factor))
            self._world_cache.clear()
            logger.debug("Rescaled arena from %s to %s (factor %g)", self.length_unit, unit, factor)
            self._length_unit = unit

    # ------------------------------------------------------------------
    # Invariants

    def validate(self) -> list[str]:
        """Check every structural invariant.

        Returns:
            Human readable descriptions of violations; empty when consistent
        """
        with self._lock:
            problems: list[str] = []
            if not self._nodes:
                if self._root is not None:
                    problems.append(f"empty arena still names root {self._root}")
                return problems

            roots = [nid for nid, node in self._nodes.items() if node.parent is None]
            if roots != [self._root]:
                problems.append(f"expected single root {self._root}, found {roots}")

            child_count: dict[NodeId, int] = {}
            for node_id, node in self._nodes.items():
                for child in node.children:
                    child_count[child] = child_count.get(child, 0) + 1
                    child_node = self._nodes.get(child)
                    if child_node is None:
                        problems.append(f"node {node_id} lists missing child {child}")
                    elif child_node.parent != node_id:
                        problems.append(
                            f"child {child} of {node_id} names parent {child_node.parent}"
                        )
            for node_id, node in self._nodes.items():
                expected = 0 if node.parent is None else 1
                if child_count.get(node_id, 0) != expected:
                    problems.append(
                        f"node {node_id} is listed as a child {child_count.get(node_id, 0)} times"
                    )

            if self._root in self._nodes:
                seen: set[NodeId] = set()
                for node_id in Traversal(self._nodes, self._root, TraversalOrder.PRE_ORDER):
                    if node_id in seen:
                        problems.append(f"node {node_id} reached twice (cycle)")
                        break
                    seen.add(node_id)
                unreachable = set(self._nodes) - seen
                if unreachable:
                    problems.append(f"nodes unreachable from root: {sorted(unreachable)}")

            refs: dict[PrimitiveId, int] = {}
            for node in self._nodes.values():
                for primitive_id in node.primitives:
                    refs[primitive_id] = refs.get(primitive_id, 0) + 1
            if refs != self._primitive_refs or set(refs) != set(self._primitives):
                problems.append("primitive reference counts disagree with node references")

            return problems

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __repr__(self) -> str:
        state = ", frozen" if self._frozen else ""
        return (
            f"AssemblyArena(nodes={len(self._nodes)}, primitives={len(self._primitives)}, "
            f"resources={len(self._resources)}, unit={self.length_unit}{state})"
        )
