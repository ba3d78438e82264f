# shadowcatcher/src/shadowcatcher/host/scene_host.py

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from shadowcatcher.core.common_types import (Plane, PolygonLoop, Transform, Vector3D, as_vector, normalize,
                                             polygon_area_3d)
from shadowcatcher.core.errors import NoCastingGeometry, SceneError
from shadowcatcher.core.pipeline import CancelCheck, ProgressCallback, ShadowCaster, ShadowResult
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.models.mesh_definitions import ElementKind, Instance, Mesh

logger = logging.getLogger(__name__)

DEFAULT_LAYER = "Layer0"


def spherical_to_cartesian(azimuth_rad: float, elevation_rad: float, r: float = 1.0) -> np.ndarray:
    x = r * np.cos(elevation_rad) * np.cos(azimuth_rad)
    y = r * np.cos(elevation_rad) * np.sin(azimuth_rad)
    z = r * np.sin(elevation_rad)
    return np.array([x, y, z])


def light_direction_from_sun(azimuth_deg: float, elevation_deg: float) -> Vector3D:
    """
    Light direction for a sun at the given angles.

    Azimuth is measured counter-clockwise from +X in the XY plane and
    elevation up from it. The returned vector points from the sun towards the
    scene, i.e. it is the reversed sun direction.
    """
    sun = spherical_to_cartesian(np.radians(azimuth_deg), np.radians(elevation_deg))
    return -sun


@dataclass
class SceneInstance:
    """
    A placed mesh as a host application sees it, before visibility is resolved.

    Attributes:
        mesh: Shared mesh definition.
        transform: Placement in the scene.
        visible: Visibility of the instance itself.
        casts_shadow: Whether the instance casts shadows.
        layer: Name of the layer the instance is on.
        name: Descriptive name.
    """
    mesh: Mesh
    transform: Transform = field(default_factory=Transform.identity)
    visible: bool = True
    casts_shadow: bool = True
    layer: str = DEFAULT_LAYER
    name: str = ""

    def to_instance(self, layer_visible: bool = True) -> Instance:
        return Instance(mesh=self.mesh, transform=self.transform,
                        visible=self.visible and layer_visible,
                        casts_shadow=self.casts_shadow, name=self.name)


def select_visible_instances(instances: Iterable[SceneInstance], hidden_layers: Iterable[str] = ()) -> List[Instance]:
    """Instances that cast shadows and are visible, on a visible layer."""
    hidden = set(hidden_layers)
    selected = []
    for inst in instances:
        if inst.casts_shadow and inst.visible and inst.layer not in hidden:
            selected.append(inst.to_instance())
    return selected


def find_receiving_face(mesh: Mesh, transform: Optional[Transform] = None, group: Optional[str] = None) -> np.ndarray:
    """
    World-space vertices of the one face of `mesh` that receives shadows.

    Args:
        mesh: Mesh holding the candidate faces.
        transform: Placement of the mesh; identity when omitted.
        group: Restricts the candidates to the faces of this named group.

    Raises:
        SceneError: If the group is unknown or not exactly one candidate face
                    receives shadows.
    """
    transform = transform or Transform.identity()
    candidates = range(len(mesh.faces))
    if group is not None:
        found = mesh.find_group(group)
        if found is None:
            logger.error(f"Mesh '{mesh.name}' has no group '{group}'.")
            raise SceneError(f"Mesh '{mesh.name}' has no group '{group}'.")
        candidates = [ref.index for ref in found.members if ref.kind is ElementKind.FACE]
    receiving = [i for i in candidates if mesh.faces[i].receives_shadow]
    if len(receiving) != 1:
        logger.error(f"Mesh '{mesh.name}' has {len(receiving)} faces that receive shadows; expected one.")
        raise SceneError(f"Expected one face that receives shadows, found {len(receiving)}.")
    return transform.apply_points(mesh.face_points(receiving[0]))


class SceneHost(ABC):
    """What the shadow computation needs from a host application."""

    @abstractmethod
    def get_receiving_plane(self) -> Tuple[Plane, PolygonLoop]:
        """The receiving plane and the receiving face's outline in plane-local coordinates."""

    @abstractmethod
    def list_casting_instances(self) -> List[Instance]:
        """Instances eligible to cast shadows."""

    @abstractmethod
    def get_light_direction(self) -> Vector3D:
        """Direction the light travels."""

    def get_settings(self) -> ShadowSettings:
        return ShadowSettings()


@dataclass
class Scene(SceneHost):
    """
    An in-memory host: one receiving face, a light and placed meshes.

    When `selection` names instances, only those are considered; if none of
    them is eligible every instance of the scene is considered instead.

    Attributes:
        receiving_face: 3D vertices of the receiving face, in winding order.
        light_direction: Direction the light travels.
        instances: Placed meshes.
        hidden_layers: Names of layers that are switched off.
        selection: Names of the selected instances, if any.
        shadow_time: Time the light direction corresponds to, used in labels.
        settings: Settings for the computation.
        name: Scene name.
    """
    receiving_face: np.ndarray
    light_direction: Vector3D
    instances: List[SceneInstance] = field(default_factory=list)
    hidden_layers: Set[str] = field(default_factory=set)
    selection: Sequence[str] = ()
    shadow_time: Optional[datetime] = None
    settings: ShadowSettings = field(default_factory=ShadowSettings)
    name: str = ""

    def __post_init__(self):
        self.receiving_face = np.asarray(self.receiving_face, dtype=float).reshape(-1, 3)
        self.light_direction = as_vector(self.light_direction)
        self.hidden_layers = set(self.hidden_layers)

    @property
    def receiving_area(self) -> float:
        return polygon_area_3d(self.receiving_face)

    def get_receiving_plane(self) -> Tuple[Plane, PolygonLoop]:
        if len(self.receiving_face) < 3:
            logger.error(f"Scene '{self.name}': the receiving face has {len(self.receiving_face)} vertices.")
            raise SceneError("There must be a face receiving shadows with at least three vertices.")
        try:
            plane = Plane.from_points(self.receiving_face)
        except ValueError as e:
            logger.error(f"Scene '{self.name}': the receiving face is degenerate: {e}")
            raise SceneError(f"The receiving face is degenerate: {e}") from e
        off_plane = [i for i, p in enumerate(self.receiving_face) if not plane.contains(p, self.settings.tolerance)]
        if off_plane:
            logger.error(f"Scene '{self.name}': receiving face vertices {off_plane} are off its plane.")
            raise SceneError("The receiving face is not planar.")
        boundary = PolygonLoop(tuple(plane.to_2d(p) for p in self.receiving_face))
        return plane, boundary

    def list_casting_instances(self) -> List[Instance]:
        if self.selection:
            chosen = set(self.selection)
            selected = select_visible_instances((i for i in self.instances if i.name in chosen),
                                                self.hidden_layers)
            if selected:
                return selected
            logger.info(f"No eligible instance in the selection; using all {len(self.instances)} instance(s).")
        return select_visible_instances(self.instances, self.hidden_layers)

    def get_light_direction(self) -> Vector3D:
        return self.light_direction

    def get_settings(self) -> ShadowSettings:
        return self.settings


def catch_shadows(host: SceneHost,
                  settings: Optional[ShadowSettings] = None,
                  progress: Optional[ProgressCallback] = None,
                  cancel: Optional[CancelCheck] = None) -> ShadowResult:
    """
    Computes the shadows of a host's instances on its receiving face.

    Raises:
        SceneError: If the receiving face is missing or degenerate.
        NoCastingGeometry: If there is nothing to cast a shadow.
    """
    plane, boundary = host.get_receiving_plane()
    instances = host.list_casting_instances()
    if not instances:
        logger.error("There is no geometry to cast shadow.")
        raise NoCastingGeometry("There is no geometry to cast shadow.")
    try:
        light = normalize(host.get_light_direction())
    except ValueError as e:
        logger.error(f"Invalid light direction: {e}")
        raise SceneError(f"Invalid light direction: {e}") from e

    caster = ShadowCaster(settings or host.get_settings(), progress, cancel)
    return caster.compute(plane, boundary, instances, light)
