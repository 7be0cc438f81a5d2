"""Loader backed by trimesh.

trimesh does the byte-level parsing; this module only maps a trimesh.Scene
onto an arena. Auxiliary files (glTF buffers, OBJ material libraries and
textures) are fetched through the resource provider via a trimesh resolver,
never from the filesystem directly.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Mapping

import numpy as np
import trimesh
from PIL import Image
from trimesh.path import Path3D
from trimesh.resolvers import Resolver
from trimesh.visual.material import PBRMaterial

from ..core.arena import ROOT, AssemblyArena
from ..core.ids import NodeId, PrimitiveId, ResourceId
from ..core.primitive import Primitive, PrimitiveType
from ..materials.material import Material
from ..metadata.units import LengthUnit
from ..resources.provider import ResourceProvider, join_locator, locator_extension
from ..resources.resource import ResourceKind
from .base import LoaderInfo, StreamLoader
from .options import OptionsDescriptor, bool_option

logger = logging.getLogger(__name__)


class ProviderResolver(Resolver):
    """trimesh resolver reading sibling files through a ResourceProvider."""

    def __init__(self, provider: ResourceProvider, locator: str) -> None:
        self.provider = provider
        self.locator = locator

    def get(self, name: str) -> bytes:
        with self.provider.open(join_locator(self.locator, name)) as stream:
            return stream.read()

    def write(self, name: str, data: bytes | str) -> None:
        raise NotImplementedError("Resource providers are read-only")

    def namespaced(self, namespace: str) -> ProviderResolver:
        return ProviderResolver(self.provider, join_locator(self.locator, f"{namespace}/_"))

    def keys(self) -> list[str]:
        directory = join_locator(self.locator, ".")
        return [name.rsplit("/", 1)[-1] for name in self.provider.list(directory)]


def _unit_color(color: Any) -> np.ndarray:
    """Color as floats in 0-1; integer colors are taken as 0-255."""
    values = np.asarray(color).reshape(-1)
    if np.issubdtype(values.dtype, np.integer):
        return values.astype(np.float64) / 255.0
    return values.astype(np.float64)


def _rgb(color: Any) -> tuple[float, float, float]:
    values = _unit_color(color)[:3]
    return tuple(float(v) for v in np.clip(values, 0.0, 1.0))


def _alpha(color: Any) -> float:
    values = _unit_color(color)
    if len(values) < 4:
        return 1.0
    return float(np.clip(values[3], 0.0, 1.0))


def _is_identity(matrix: Any) -> bool:
    return matrix is None or np.allclose(np.asarray(matrix, dtype=np.float64), np.eye(4))


class _SceneBuilder:
    """Populates one arena from one trimesh scene."""

    def __init__(self, arena: AssemblyArena, load_textures: bool) -> None:
        self.arena = arena
        self.load_textures = load_textures
        self._geometry: dict[str, list[PrimitiveId]] = {}
        self._materials: dict[int, Material | None] = {}
        self._images: dict[int, ResourceId] = {}

    def build(self, scene: trimesh.Scene) -> None:
        graph = scene.graph
        children: dict[Any, list[tuple[Any, dict[str, Any]]]] = {}
        for parent, child, attr in graph.to_edgelist():
            children.setdefault(parent, []).append((child, attr))

        top = children.get(graph.base_frame, [])
        if len(top) == 1 and top[0][0] not in children and _is_identity(top[0][1].get("matrix")):
            # Flat single-shape files: the shape lives on the root itself
            child, attr = top[0]
            root = self.arena.create_node(ROOT, name=str(child))
            if attr.get("geometry") is not None:
                self._attach(scene, attr["geometry"], root)
            self._apply_scene_metadata(scene, root)
            return

        root = self.arena.create_node(ROOT, name=str(graph.base_frame))
        stack: list[tuple[Any, NodeId]] = [(graph.base_frame, root)]
        while stack:
            frame, node_id = stack.pop()
            created = []
            for child, attr in children.get(frame, []):
                child_id = self.arena.create_node(node_id, name=str(child))
                matrix = attr.get("matrix")
                if matrix is not None:
                    self.arena.set_transform(child_id, np.asarray(matrix, dtype=np.float64))
                geometry_name = attr.get("geometry")
                if geometry_name is not None:
                    self._attach(scene, geometry_name, child_id)
                created.append((child, child_id))
            stack.extend(reversed(created))

        self._apply_scene_metadata(scene, root)

    def _attach(self, scene: trimesh.Scene, name: str, node_id: NodeId) -> None:
        """Convert a geometry once; later instances share the same primitives."""
        cached = self._geometry.get(name)
        if cached is not None:
            for primitive_id in cached:
                self.arena.attach_geometry(node_id, primitive_id)
            return

        geometry = scene.geometry.get(name)
        primitives: list[Primitive] = []
        if isinstance(geometry, trimesh.Trimesh):
            primitives.append(Primitive.from_trimesh(geometry, self._material(geometry)))
        elif isinstance(geometry, trimesh.PointCloud):
            colors = None
            if len(geometry.colors) == len(geometry.vertices):
                colors = np.asarray(geometry.colors, dtype=np.float64) / 255.0
            primitives.append(
                Primitive.non_indexed(geometry.vertices, PrimitiveType.POINTS, colors=colors)
            )
        elif isinstance(geometry, Path3D):
            strips = [
                Primitive.non_indexed(entity.discrete(geometry.vertices), PrimitiveType.LINE_STRIP)
                for entity in geometry.entities
            ]
            strips = [strip for strip in strips if strip.vertex_count >= 2]
            if strips:
                primitives.append(Primitive.merge(strips))
        else:
            logger.warning(
                "Skipping geometry %r of unsupported type %s", name, type(geometry).__name__
            )

        self._geometry[name] = [self.arena.attach_geometry(node_id, p) for p in primitives]

    def _material(self, mesh: trimesh.Trimesh) -> Material | None:
        visual = mesh.visual
        if visual.kind == "texture":
            source = getattr(visual, "material", None)
        elif visual.kind == "face":
            return Material(diffuse_color=_rgb(visual.main_color),
                            transparency=1.0 - _alpha(visual.main_color))
        else:
            return None
        if source is None:
            return None

        key = id(source)
        if key not in self._materials:
            self._materials[key] = self._convert_material(source)
        return self._materials[key]

    def _convert_material(self, source: Any) -> Material:
        name = str(getattr(source, "name", None) or "")

        if isinstance(source, PBRMaterial):
            base = source.baseColorFactor
            diffuse = _rgb(base) if base is not None else (1.0, 1.0, 1.0)
            alpha = _alpha(base) if base is not None else 1.0
            emissive = _rgb(source.emissiveFactor) if source.emissiveFactor is not None else (0.0, 0.0, 0.0)
            roughness = source.roughnessFactor
            shininess = 1.0 - float(roughness) if roughness is not None else 0.2
            return Material(
                name=name,
                diffuse_color=diffuse,
                emissive_color=emissive,
                shininess=float(np.clip(shininess, 0.0, 1.0)),
                transparency=1.0 - alpha,
                texture=self._image(source.baseColorTexture),
            )

        # SimpleMaterial (OBJ/MTL style)
        ambient = source.ambient
        glossiness = getattr(source, "glossiness", None)
        return Material(
            name=name,
            diffuse_color=_rgb(source.diffuse),
            specular_color=_rgb(source.specular),
            ambient_intensity=float(np.clip(np.mean(_rgb(ambient)), 0.0, 1.0)) if ambient is not None else 0.2,
            shininess=float(np.clip(glossiness / 1000.0, 0.0, 1.0)) if glossiness is not None else 0.2,
            transparency=1.0 - _alpha(source.diffuse),
            texture=self._image(getattr(source, "image", None)),
        )

    def _image(self, image: Image.Image | None) -> ResourceId | None:
        """Store a texture image once as a PNG resource."""
        if image is None or not self.load_textures:
            return None
        key = id(image)
        if key not in self._images:
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            self._images[key] = self.arena.add_resource(
                ResourceKind.IMAGE, buffer.getvalue(), mime_type="image/png"
            )
        return self._images[key]

    def _apply_scene_metadata(self, scene: trimesh.Scene, root: NodeId) -> None:
        for key, value in (scene.metadata or {}).items():
            if isinstance(value, (str, bool, int, float, np.generic)):
                self.arena.set_metadata(root, str(key), value)
            else:
                logger.debug("Ignoring non-scalar scene metadata %r", key)


class TrimeshLoader(StreamLoader):
    """Loads OFF, OBJ, STL, PLY and glTF through trimesh."""

    info = LoaderInfo(
        name="trimesh",
        extensions=("off", "obj", "stl", "ply", "glb", "gltf"),
        mime_types=(
            "model/vnd.off",
            "model/obj",
            "model/stl",
            "model/x.stl-binary",
            "application/ply",
            "model/gltf-binary",
            "model/gltf+json",
        ),
        priority=0,
        options=OptionsDescriptor([
            bool_option("process", "Let trimesh merge duplicate vertices and clean up meshes"),
            bool_option("textures", "Store texture images as arena resources", default=True),
        ]),
    )

    _MIME_FILE_TYPES = {
        "model/vnd.off": "off",
        "model/obj": "obj",
        "model/stl": "stl",
        "model/x.stl-binary": "stl",
        "application/ply": "ply",
        "model/gltf-binary": "glb",
        "model/gltf+json": "gltf",
    }

    def file_type(self, locator: str, mime_type: str | None = None) -> str:
        extension = locator_extension(locator)
        if extension in self.info.extensions:
            return extension
        if mime_type and mime_type.lower() in self._MIME_FILE_TYPES:
            return self._MIME_FILE_TYPES[mime_type.lower()]
        raise ValueError(f"Cannot determine file type of {locator!r}")

    def parse(
        self,
        data: bytes,
        provider: ResourceProvider,
        locator: str,
        arena: AssemblyArena,
        options: Mapping[str, Any],
    ) -> None:
        scene = trimesh.load_scene(
            io.BytesIO(data),
            file_type=self.file_type(locator, options["mime_type"]),
            resolver=ProviderResolver(provider, locator),
            process=options["process"],
        )

        units = getattr(scene, "units", None)
        if units:
            try:
                arena.length_unit = LengthUnit.parse(str(units))
            except ValueError:
                logger.warning("Unknown unit %r in %r, assuming meters", units, locator)

        _SceneBuilder(arena, load_textures=options["textures"]).build(scene)
