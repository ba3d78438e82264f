# shadowcatcher/src/shadowcatcher/host/report.py

from dataclasses import dataclass
from datetime import datetime

from shadowcatcher.core.pipeline import ShadowResult
from shadowcatcher.core.settings import DEFAULT_AREA_UNIT

# --- Shadow material ---
SHADOWS_MATERIAL_NAME = "02 - Shadows"
SHADOWS_MATERIAL_COLOR = (255, 0, 0)
SHADOWS_MATERIAL_ALPHA = 0.5

SHADOW_TIME_FORMAT = "%H:%M - %d %B"
SHADOW_LAYER_PREFIX = "02"


def format_shadow_label(time: datetime) -> str:
    """Name given to a shadow result, e.g. 'Shadows: 14:30 - 21 June'."""
    return f"Shadows: {time.strftime(SHADOW_TIME_FORMAT)}"


def shadow_layer_name(time: datetime) -> str:
    return f"{SHADOW_LAYER_PREFIX} - {time.strftime(SHADOW_TIME_FORMAT)}"


def _percent(part: float, whole: float) -> float:
    return part / whole * 100.0 if whole else 0.0


@dataclass(frozen=True)
class ShadowStatistics:
    """
    Area figures of a shadow result on its receiving face.

    The site is the whole receiving face, the ground is the site without the
    casting geometry's footprints, and the sun area is the ground that is not
    in shadow. Shadow and sun percentages are relative to the ground.
    """
    site_area: float
    ground_area: float
    footprint_area: float
    shadow_area: float
    sun_area: float

    @classmethod
    def from_result(cls, site_area: float, result: ShadowResult) -> 'ShadowStatistics':
        footprint = result.ground_footprint_area
        ground = site_area - footprint
        shadow = result.shadows.area
        return cls(site_area=site_area, ground_area=ground, footprint_area=footprint,
                   shadow_area=shadow, sun_area=ground - shadow)

    @property
    def footprint_percent(self) -> float:
        return _percent(self.footprint_area, self.site_area)

    @property
    def ground_percent(self) -> float:
        return _percent(self.ground_area, self.site_area)

    @property
    def shadow_percent(self) -> float:
        return _percent(self.shadow_area, self.ground_area)

    @property
    def sun_percent(self) -> float:
        return _percent(self.sun_area, self.ground_area)

    def format_report(self, unit: str = DEFAULT_AREA_UNIT) -> str:
        def area(value: float) -> str:
            return f"{value:.2f} {unit}"

        return (f"     Site Area: {area(self.site_area)}\n"
                f"\n"
                f"   Ground Area: {area(self.ground_area)} ( {self.ground_percent:.2f}% of Site )\n"
                f"Footprint Area: {area(self.footprint_area)} ( {self.footprint_percent:.2f}% of Site )\n"
                f"\n"
                f"      Sun Area: {area(self.sun_area)} ( {self.sun_percent:.2f}% of Ground )\n"
                f"   Shadow Area: {area(self.shadow_area)} ( {self.shadow_percent:.2f}% of Ground )\n")
