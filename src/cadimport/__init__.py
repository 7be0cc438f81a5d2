"""cadimport: normalize 3D/CAD files into one id-addressed assembly structure."""

from .core import (
    ROOT,
    AssemblyArena,
    Attribute,
    Node,
    NodeId,
    Primitive,
    PrimitiveId,
    PrimitiveKind,
    PrimitiveType,
    RemovalPolicy,
    ResourceId,
    Transform,
    TraversalOrder,
    Vertices,
)
from .errors import (
    AccessDenied,
    AdapterFailure,
    CadImportError,
    FrozenArena,
    InvalidOption,
    InvalidParent,
    IoFailure,
    KeyNotFound,
    MalformedPrimitive,
    NotFound,
    RegistryFrozen,
    ResourceError,
    UnknownNode,
    UnknownPrimitive,
    UnknownResource,
    UnsupportedFormat,
)
from .materials import Material
from .metadata import AngleUnit, LengthUnit
from .resources import (
    FileResourceProvider,
    MemoryResourceProvider,
    Resource,
    ResourceKind,
    ResourceProvider,
    ZipResourceProvider,
)
from .config import ImportConfig, load_config, load_config_string
from .loaders import LoaderInfo, LoaderRegistry, LoadState, default_registry
from .logging_config import setup_logging

__version__ = "0.1.0"

__all__ = [
    "ROOT",
    "AssemblyArena",
    "Attribute",
    "Node",
    "NodeId",
    "Primitive",
    "PrimitiveId",
    "PrimitiveKind",
    "PrimitiveType",
    "RemovalPolicy",
    "ResourceId",
    "Transform",
    "TraversalOrder",
    "Vertices",
    "AccessDenied",
    "AdapterFailure",
    "CadImportError",
    "FrozenArena",
    "InvalidOption",
    "InvalidParent",
    "IoFailure",
    "KeyNotFound",
    "MalformedPrimitive",
    "NotFound",
    "RegistryFrozen",
    "ResourceError",
    "UnknownNode",
    "UnknownPrimitive",
    "UnknownResource",
    "UnsupportedFormat",
    "Material",
    "AngleUnit",
    "LengthUnit",
    "FileResourceProvider",
    "MemoryResourceProvider",
    "Resource",
    "ResourceKind",
    "ResourceProvider",
    "ZipResourceProvider",
    "ImportConfig",
    "load_config",
    "load_config_string",
    "LoaderInfo",
    "LoaderRegistry",
    "LoadState",
    "default_registry",
    "setup_logging",
]
