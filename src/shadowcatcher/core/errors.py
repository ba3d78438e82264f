# shadowcatcher/src/shadowcatcher/core/errors.py

from dataclasses import dataclass


class ShadowCatcherError(Exception):
    """Base class for all errors raised by shadowcatcher."""


# --- Fatal to a computation ---

class ComputationError(ShadowCatcherError):
    """A shadow computation could not produce a result."""


class NoCastingGeometry(ComputationError):
    """No eligible instance was supplied to cast a shadow."""


class ComputationCancelled(ComputationError):
    """The caller cancelled the computation between two pipeline stages."""


# --- Recovered locally by the pipeline ---

class GeometryError(ShadowCatcherError):
    """A single geometric feature could not be processed."""


class DegenerateProjection(GeometryError):
    """The light direction is parallel to the receiving plane."""


class ReconstructionFailure(GeometryError):
    """A traced polygon loop did not close."""


# --- Host side ---

class SceneError(ShadowCatcherError):
    """A scene description is invalid or violates a host precondition."""


# --- Warnings attached to results ---

@dataclass(frozen=True)
class ShadowWarning:
    message: str


@dataclass(frozen=True)
class NonManifoldMesh(ShadowWarning):
    """An edge with more than two incident shadow casting faces was classified by majority."""
    edge_index: int = -1
    face_count: int = 0


@dataclass(frozen=True)
class IncompleteResult(ShadowWarning):
    """The shadow set is empty although casting geometry was present."""
    instance_count: int = 0
