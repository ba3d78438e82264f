# shadowcatcher/src/shadowcatcher/core/pipeline.py

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from shadowcatcher.core.aggregate import ShadowAggregator
from shadowcatcher.core.boolean_trim import BooleanTrimmer
from shadowcatcher.core.common_types import Plane, Point2D, PolygonLoop, ShadowPolygonSet, Vector3D, normalize
from shadowcatcher.core.errors import (ComputationCancelled, ComputationError, IncompleteResult,
                                       NoCastingGeometry, ShadowWarning)
from shadowcatcher.core.mesh_graph import connected_components
from shadowcatcher.core.projection import PlaneProjector, footprint_loops
from shadowcatcher.core.reconstruction import PolygonReconstructor
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.core.silhouette import SilhouetteExtractor
from shadowcatcher.models.mesh_definitions import Instance


class PipelineStage(Enum):
    """Per-instance stages, in the order they run."""
    GROUPED = "grouped"
    SILHOUETTE_EXTRACTED = "silhouette_extracted"
    PROJECTED = "projected"
    RECONSTRUCTED = "reconstructed"
    GROUND_SUBTRACTED = "ground_subtracted"
    BOUNDARY_TRIMMED = "boundary_trimmed"
    MERGED = "merged"


@dataclass(frozen=True)
class ProgressEvent:
    instance_index: int
    instance_count: int
    stage: PipelineStage
    instance_name: str = ""


class CancellationToken:
    """Set by the caller to stop a running computation at the next checkpoint."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


ProgressCallback = Callable[[ProgressEvent], None]
CancelCheck = Union[CancellationToken, Callable[[], bool]]


@dataclass
class Diagnostics:
    """Counts of what the pipeline processed and recovered from."""
    instances: int = 0
    components: int = 0
    silhouette_edges: int = 0
    degenerate_projections: int = 0
    dropped_loops: int = 0
    non_manifold_edges: int = 0


@dataclass(frozen=True)
class ShadowResult:
    """
    Outcome of one shadow computation.

    Attributes:
        shadows: Shadow polygons after removing the casting geometry's own
                 footprints and clipping to the receiving face.
        ground_footprint_area: Summed area of the casting faces that lie on
                               the receiving plane.
        cast_shadows: Shadow polygons clipped to the receiving face, with the
                      footprints still included.
        warnings: Non-fatal problems, e.g. IncompleteResult.
        diagnostics: Counters collected while computing.
    """
    shadows: ShadowPolygonSet
    ground_footprint_area: float
    cast_shadows: ShadowPolygonSet = field(default_factory=ShadowPolygonSet)
    warnings: Tuple[ShadowWarning, ...] = ()
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def shadow_area(self) -> float:
        return self.shadows.area

    @property
    def is_complete(self) -> bool:
        return not any(isinstance(w, IncompleteResult) for w in self.warnings)


class ShadowCaster:
    """
    Runs the shadow pipeline over a list of casting instances.

    Every instance goes through the stages of PipelineStage in order. After
    each stage the progress callback (if any) is called and the cancellation
    check (if any) is consulted; a cancelled run raises ComputationCancelled.
    """

    def __init__(self,
                 settings: Optional[ShadowSettings] = None,
                 progress: Optional[ProgressCallback] = None,
                 cancel: Optional[CancelCheck] = None):
        self.settings = settings or ShadowSettings()
        self.progress = progress
        self.cancel = cancel
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _is_cancelled(self) -> bool:
        if self.cancel is None:
            return False
        if isinstance(self.cancel, CancellationToken):
            return self.cancel.cancelled
        return bool(self.cancel())

    def _checkpoint(self, index: int, count: int, stage: Optional[PipelineStage], name: str = "") -> None:
        if stage is not None and self.progress is not None:
            self.progress(ProgressEvent(index, count, stage, name))
        if self._is_cancelled():
            where = f"after stage '{stage.value}' of instance {index + 1}/{count}" if stage else \
                f"before instance {index + 1}/{count}"
            self.logger.info(f"Shadow computation cancelled {where}.")
            raise ComputationCancelled(f"Cancelled {where}.")

    def compute(self,
                plane: Plane,
                boundary: Union[PolygonLoop, Sequence[Point2D]],
                instances: Sequence[Instance],
                light_dir: Vector3D) -> ShadowResult:
        """
        Computes the shadow cast by `instances` on `plane`, clipped to `boundary`.

        Args:
            plane: The receiving plane; its in-plane basis defines the 2D
                   coordinates of `boundary` and of the result.
            boundary: Outline of the receiving face in plane-local coordinates.
            instances: Candidate casting instances. Only visible instances that
                       cast shadows are processed.
            light_dir: Direction the light travels (the reversed sun direction).

        Returns:
            A ShadowResult. An empty shadow set despite eligible geometry is
            reported as an IncompleteResult warning, not an error.

        Raises:
            NoCastingGeometry: If no instance is eligible.
            ComputationCancelled: If the cancellation check fires.
            ComputationError: If the light direction is a zero vector.
        """
        eligible = [inst for inst in instances if inst.is_eligible]
        if not eligible:
            self.logger.error("There is no geometry to cast shadow.")
            raise NoCastingGeometry("There is no geometry to cast shadow.")
        try:
            light = normalize(light_dir)
        except ValueError as e:
            self.logger.error(f"Invalid light direction {light_dir}: {e}")
            raise ComputationError(f"Invalid light direction {light_dir}: {e}") from e
        boundary_loop = boundary if isinstance(boundary, PolygonLoop) else PolygonLoop(tuple(boundary))

        settings = self.settings
        tol = settings.tolerance
        extractor = SilhouetteExtractor(settings.facing_tolerance)
        reconstructor = PolygonReconstructor(tol)
        trimmer = BooleanTrimmer(tol)
        aggregator = ShadowAggregator(tol, exact_union=settings.exact_union)
        diagnostics = Diagnostics(instances=len(eligible))

        self.logger.info(f"Casting shadows from {len(eligible)} instance(s) "
                         f"({len(instances) - len(eligible)} skipped as hidden or not casting).")
        instance_shadows: List[ShadowPolygonSet] = []
        instance_casts: List[ShadowPolygonSet] = []
        ground_area = 0.0
        count = len(eligible)

        for index, instance in enumerate(eligible):
            self._checkpoint(index, count, None)
            name = instance.name or instance.mesh.name or f"#{index}"
            mesh = instance.mesh

            projector = PlaneProjector(plane, light, instance.transform, settings.parallel_tolerance)
            ground_polygons, footprint_area = footprint_loops(mesh, projector.plane, tol)
            ground_area += footprint_area

            components = connected_components(mesh)
            diagnostics.components += len(components)
            self._checkpoint(index, count, PipelineStage.GROUPED, name)

            silhouettes = [extractor.extract(mesh, component, projector.light_dir) for component in components]
            diagnostics.silhouette_edges += sum(len(edges) for edges in silhouettes)
            self._checkpoint(index, count, PipelineStage.SILHOUETTE_EXTRACTED, name)

            soups = [projector.project_edges(mesh, edges, min_length=tol) for edges in silhouettes]
            diagnostics.degenerate_projections += projector.degenerate_count
            if projector.degenerate_count:
                self.logger.warning(f"Instance '{name}': {projector.degenerate_count} silhouette edge(s) "
                                    f"could not be projected (light parallel to the receiving plane).")
            self._checkpoint(index, count, PipelineStage.PROJECTED, name)

            groups = [reconstructor.reconstruct(soup) for soup in soups if soup]
            groups = [group for group in groups if group]
            self._checkpoint(index, count, PipelineStage.RECONSTRUCTED, name)

            cast_groups = [trimmer.intersect(group, boundary_loop) for group in groups]
            for polygon in ground_polygons:
                groups = [trimmer.subtract(group, PolygonLoop(tuple(polygon))) for group in groups]
            self._checkpoint(index, count, PipelineStage.GROUND_SUBTRACTED, name)

            groups = [trimmer.intersect(group, boundary_loop) for group in groups]
            self._checkpoint(index, count, PipelineStage.BOUNDARY_TRIMMED, name)

            merged = aggregator.merge(groups)
            instance_shadows.append(merged)
            instance_casts.append(aggregator.merge(cast_groups))
            self._checkpoint(index, count, PipelineStage.MERGED, name)
            self.logger.info(f"Instance '{name}' ({index + 1}/{count}): {len(components)} component(s), "
                             f"{len(merged.loops)} shadow loop(s), area {merged.area:.6g}.")

        shadows = aggregator.merge(s.loops for s in instance_shadows)
        cast_shadows = aggregator.merge(s.loops for s in instance_casts)

        diagnostics.non_manifold_edges = len(extractor.non_manifold)
        diagnostics.dropped_loops = (reconstructor.dropped_loops + trimmer.dropped_loops
                                     + aggregator.dropped_loops)

        warnings: List[ShadowWarning] = list(extractor.non_manifold)
        if shadows.is_empty:
            message = f"No shadow polygons were produced by {count} casting instance(s)."
            self.logger.warning(message)
            warnings.append(IncompleteResult(message=message, instance_count=count))

        self.logger.info(f"Shadow area {shadows.area:.6g}, ground footprint area {ground_area:.6g}.")
        return ShadowResult(shadows=shadows,
                            ground_footprint_area=ground_area,
                            cast_shadows=cast_shadows,
                            warnings=tuple(warnings),
                            diagnostics=diagnostics)


def compute_shadow(plane: Plane,
                   boundary: Union[PolygonLoop, Sequence[Point2D]],
                   instances: Sequence[Instance],
                   light_dir: Vector3D,
                   settings: Optional[ShadowSettings] = None,
                   progress: Optional[ProgressCallback] = None,
                   cancel: Optional[CancelCheck] = None) -> ShadowResult:
    """Functional entry point; see ShadowCaster.compute."""
    return ShadowCaster(settings, progress, cancel).compute(plane, boundary, instances, light_dir)
