# shadowcatcher/src/shadowcatcher/__main__.py
"""
Command line front end.

Usage:
    python -m shadowcatcher SCENE.yaml [--output OUT.yaml] [--exact-union] [--log-level LEVEL]

Examples:
    # Print the area report of a scene
    python -m shadowcatcher courtyard.yaml

    # Also write the shadow loops (world coordinates) to a file
    python -m shadowcatcher courtyard.yaml --output shadows.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

from shadowcatcher.core.errors import ShadowCatcherError
from shadowcatcher.host.report import ShadowStatistics, format_shadow_label
from shadowcatcher.host.scene_host import catch_shadows
from shadowcatcher.io.scene_io import load_scene_from_yaml, save_result_to_yaml


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowcatcher",
        description="Compute the shadows cast by a scene's meshes onto its receiving face"
    )
    parser.add_argument('scene', help='Scene description (YAML)')
    parser.add_argument('-o', '--output',
                        help='Write the shadow loops and statistics to this YAML file')
    parser.add_argument('--exact-union', action='store_true',
                        help='Merge shadow groups with an exact union instead of edge flattening')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        scene = load_scene_from_yaml(args.scene)
        settings = scene.settings.with_overrides(exact_union=True if args.exact_union else None)
        result = catch_shadows(scene, settings=settings)
    except ShadowCatcherError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    plane, _ = scene.get_receiving_plane()
    stats = ShadowStatistics.from_result(scene.receiving_area, result)
    if scene.shadow_time is not None:
        print(format_shadow_label(scene.shadow_time))
    print(stats.format_report(settings.area_unit))
    for warning in result.warnings:
        print(f"Warning: {warning.message}", file=sys.stderr)

    if args.output:
        save_result_to_yaml(result, plane, args.output,
                            site_area=scene.receiving_area, shadow_time=scene.shadow_time)
    return 0


if __name__ == '__main__':
    sys.exit(main())
