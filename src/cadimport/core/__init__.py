"""Core assembly structure and geometry components."""

from .ids import IdCounter, NodeId, PrimitiveId, ResourceId
from .transform import Transform
from .primitive import Attribute, Primitive, PrimitiveKind, PrimitiveType, Vertices
from .arena import ROOT, AssemblyArena, Node, RemovalPolicy, Traversal, TraversalOrder
from . import geometry

__all__ = [
    "IdCounter",
    "NodeId",
    "PrimitiveId",
    "ResourceId",
    "Transform",
    "Attribute",
    "Primitive",
    "PrimitiveKind",
    "PrimitiveType",
    "Vertices",
    "ROOT",
    "AssemblyArena",
    "Node",
    "RemovalPolicy",
    "Traversal",
    "TraversalOrder",
    "geometry",
]
