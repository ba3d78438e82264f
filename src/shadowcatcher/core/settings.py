# shadowcatcher/src/shadowcatcher/core/settings.py

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

# --- Defaults ---
# Distances are in model units, the same units the meshes are defined in.
DEFAULT_TOLERANCE = 1e-6          # Vertex snapping and point-on-edge distance
DEFAULT_PARALLEL_TOLERANCE = 1e-9  # |dot(light, normal)| below this is a grazing light
DEFAULT_FACING_TOLERANCE = 1e-9   # dot(light, normal) below -this faces the light
DEFAULT_AREA_UNIT = "m²"


@dataclass(frozen=True)
class ShadowSettings:
    """
    Tunables of a shadow computation.

    Attributes:
        tolerance: Two plane-local points closer than this are the same vertex,
                   and a vertex this close to an edge splits it.
        parallel_tolerance: Projection fails with DegenerateProjection when the
                            light direction and plane normal are this close to
                            perpendicular.
        facing_tolerance: A face faces the light when dot(light, normal) is
                          below minus this value; faces edge-on to the light
                          count as facing away.
        exact_union: Merge shadow groups with a geometric union instead of the
                     coincident-edge flattening.
        area_unit: Unit label used by the area report.
    """
    tolerance: float = DEFAULT_TOLERANCE
    parallel_tolerance: float = DEFAULT_PARALLEL_TOLERANCE
    facing_tolerance: float = DEFAULT_FACING_TOLERANCE
    exact_union: bool = False
    area_unit: str = DEFAULT_AREA_UNIT

    def __post_init__(self):
        if self.tolerance <= 0.0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}.")
        if self.parallel_tolerance < 0.0 or self.facing_tolerance < 0.0:
            raise ValueError("parallel_tolerance and facing_tolerance must not be negative.")

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> 'ShadowSettings':
        """
        Builds settings from a plain mapping such as the `settings` section of
        a scene file. Missing keys keep their defaults.

        Raises:
            KeyError: If the mapping holds a key that is not a setting.
        """
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyError(f"Unknown shadow settings: {', '.join(unknown)}")
        return cls(**data)

    def with_overrides(self, **overrides: Any) -> 'ShadowSettings':
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
