# shadowcatcher/src/shadowcatcher/__init__.py
"""Planar shadow footprints of 3D meshes on a receiving face."""

from shadowcatcher.core.common_types import Plane, PolygonLoop, ShadowPolygonSet, Transform
from shadowcatcher.core.errors import (ComputationCancelled, ComputationError, IncompleteResult,
                                       NoCastingGeometry, SceneError, ShadowCatcherError)
from shadowcatcher.core.pipeline import CancellationToken, ShadowCaster, ShadowResult, compute_shadow
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.models.mesh_definitions import Instance, Mesh

__version__ = "0.1.0"
