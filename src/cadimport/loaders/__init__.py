"""Format loaders and the registry that dispatches to them."""

from .base import Loader, LoaderInfo, StreamLoader
from .options import GENERAL_OPTIONS, OptionDescriptor, OptionsDescriptor, bool_option, resolve_options
from .registry import LoadJob, LoaderRegistry, LoadState, default_registry
from .trimesh_loader import ProviderResolver, TrimeshLoader

__all__ = [
    "Loader",
    "LoaderInfo",
    "StreamLoader",
    "GENERAL_OPTIONS",
    "OptionDescriptor",
    "OptionsDescriptor",
    "bool_option",
    "resolve_options",
    "LoadJob",
    "LoaderRegistry",
    "LoadState",
    "default_registry",
    "ProviderResolver",
    "TrimeshLoader",
]
