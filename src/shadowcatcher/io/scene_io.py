# shadowcatcher/src/shadowcatcher/io/scene_io.py

import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
import quaternion as npq  # For np.quaternion
import yaml

from shadowcatcher.core.common_types import Plane, Transform, as_vector
from shadowcatcher.core.errors import SceneError
from shadowcatcher.core.pipeline import ShadowResult
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.host.report import (SHADOWS_MATERIAL_ALPHA, SHADOWS_MATERIAL_COLOR, SHADOWS_MATERIAL_NAME,
                                       ShadowStatistics, format_shadow_label)
from shadowcatcher.host.scene_host import (DEFAULT_LAYER, Scene, SceneInstance, find_receiving_face,
                                           light_direction_from_sun)
from shadowcatcher.models.mesh_definitions import Mesh
from shadowcatcher.utils.mesh_utils import load_mesh_from_file

logger = logging.getLogger(__name__)


# --- Custom YAML Representers ---

def numpy_array_representer(dumper: yaml.Dumper, data: np.ndarray) -> yaml.Node:
    """Custom representer for numpy.ndarray."""
    return dumper.represent_list(data.tolist())


def numpy_quaternion_representer(dumper: yaml.Dumper, data: npq.quaternion) -> yaml.Node:
    """Custom representer for numpy.quaternion."""
    return dumper.represent_list([float(data.w), float(data.x), float(data.y), float(data.z)])


class ResultDumper(yaml.SafeDumper):
    pass


ResultDumper.add_representer(np.ndarray, numpy_array_representer)
ResultDumper.add_representer(npq.quaternion, numpy_quaternion_representer)


# --- Custom YAML Constructors ---

def numpy_array_constructor(loader: yaml.Loader, node: yaml.SequenceNode) -> np.ndarray:
    """Custom constructor for numpy.ndarray."""
    return np.array(loader.construct_sequence(node, deep=True), dtype=float)


def numpy_quaternion_constructor(loader: yaml.Loader, node: yaml.SequenceNode) -> npq.quaternion:
    """Custom constructor for numpy.quaternion."""
    components = loader.construct_sequence(node, deep=True)
    return npq.quaternion(components[0], components[1], components[2], components[3])


class SceneLoader(yaml.SafeLoader):
    pass


SceneLoader.add_constructor('!numpy.ndarray', numpy_array_constructor)
SceneLoader.add_constructor('!numpy.quaternion', numpy_quaternion_constructor)

# Settings that are floats; YAML 1.1 reads exponent literals like 1e-6 as strings.
_FLOAT_SETTINGS = ('tolerance', 'parallel_tolerance', 'facing_tolerance')


def _fail(message: str) -> SceneError:
    logger.error(message)
    return SceneError(message)


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise _fail(f"Missing '{key}' in {where}.")
    return data[key]


def _parse_orientation(value: Any) -> npq.quaternion:
    if isinstance(value, npq.quaternion):
        return value
    components = [float(c) for c in value]
    if len(components) != 4:
        raise ValueError(f"orientation needs 4 components [w, x, y, z], got {len(components)}")
    return npq.quaternion(*components)


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_settings(data: Optional[Dict[str, Any]]) -> ShadowSettings:
    data = dict(data or {})
    for key in _FLOAT_SETTINGS:
        if key in data:
            data[key] = float(data[key])
    return ShadowSettings.from_mapping(data)


def _parse_mesh(name: str, data: Dict[str, Any], base_dir: str) -> Mesh:
    where = f"mesh '{name}'"
    if 'path' in data:
        path = data['path']
        if not os.path.isabs(path):
            path = os.path.join(base_dir, path)
        mesh = load_mesh_from_file(path, name=name)
        if mesh is None:
            raise _fail(f"Could not load {where} from '{path}'.")
        return mesh
    return Mesh.from_polygons(_require(data, 'vertices', where),
                              _require(data, 'faces', where),
                              loose_edges=data.get('loose_edges', ()),
                              casts_shadow=data.get('casts_shadow', True),
                              receives_shadow=data.get('receives_shadow', True),
                              groups=data.get('groups'),
                              name=name)


def _parse_transform(data: Dict[str, Any]) -> Transform:
    return Transform(position=as_vector(data.get('position', [0.0, 0.0, 0.0])),
                     orientation=_parse_orientation(data.get('orientation', [1.0, 0.0, 0.0, 0.0])))


def _parse_receiving_face(value: Any, meshes: Dict[str, Mesh]) -> np.ndarray:
    # Either the face's vertices or a reference to a mesh holding it.
    if not isinstance(value, dict):
        return np.asarray(value, dtype=float)
    mesh_name = _require(value, 'mesh', "'receiving_face'")
    if mesh_name not in meshes:
        raise _fail(f"Unknown mesh '{mesh_name}' in 'receiving_face'.")
    return find_receiving_face(meshes[mesh_name], _parse_transform(value), value.get('group'))


def _parse_instance(index: int, data: Dict[str, Any], meshes: Dict[str, Mesh]) -> SceneInstance:
    where = f"instance #{index}"
    mesh_name = _require(data, 'mesh', where)
    if mesh_name not in meshes:
        raise _fail(f"Unknown mesh '{mesh_name}' in {where}.")
    return SceneInstance(mesh=meshes[mesh_name],
                         transform=_parse_transform(data),
                         visible=bool(data.get('visible', True)),
                         casts_shadow=bool(data.get('casts_shadow', True)),
                         layer=str(data.get('layer', DEFAULT_LAYER)),
                         name=str(data.get('name', f"{mesh_name}#{index}")))


def scene_from_dict(data: Dict[str, Any], base_dir: str = ".") -> Scene:
    """
    Builds a Scene from the mapping of a scene file.

    Mesh `path` entries are resolved relative to `base_dir`.

    Raises:
        SceneError: If a required entry is missing or malformed.
    """
    if not isinstance(data, dict):
        raise _fail("A scene file must contain a mapping at the top level.")
    try:
        if 'light_direction' in data:
            light = as_vector(data['light_direction'])
        elif 'sun' in data:
            sun = data['sun']
            light = light_direction_from_sun(float(_require(sun, 'azimuth', "'sun'")),
                                             float(_require(sun, 'elevation', "'sun'")))
        else:
            raise _fail("A scene needs either 'light_direction' or 'sun'.")

        meshes = {str(name): _parse_mesh(str(name), mesh_data, base_dir)
                  for name, mesh_data in (data.get('meshes') or {}).items()}
        instances = [_parse_instance(i, inst, meshes) for i, inst in enumerate(data.get('instances') or [])]

        return Scene(receiving_face=_parse_receiving_face(_require(data, 'receiving_face', "the scene"), meshes),
                     light_direction=light,
                     instances=instances,
                     hidden_layers=set(data.get('hidden_layers') or ()),
                     selection=tuple(data.get('selection') or ()),
                     shadow_time=_parse_time(data.get('shadow_time')),
                     settings=_parse_settings(data.get('settings')),
                     name=str(data.get('name', "")))
    except SceneError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise _fail(f"Invalid scene description: {e}") from e


def load_scene_from_yaml(file_path: str) -> Scene:
    """
    Loads a Scene from a YAML file.

    Args:
        file_path: The path to the YAML file.

    Raises:
        SceneError: If the file cannot be read or does not describe a valid scene.
    """
    try:
        with open(file_path, 'r') as f:
            data = yaml.load(f, Loader=SceneLoader)
    except FileNotFoundError as e:
        raise _fail(f"Scene file not found at {file_path}") from e
    except yaml.YAMLError as e:
        raise _fail(f"Error parsing YAML file {file_path}: {e}") from e

    scene = scene_from_dict(data, base_dir=os.path.dirname(os.path.abspath(file_path)))
    logger.info(f"Scene '{scene.name}' loaded from {file_path} with {len(scene.instances)} instance(s).")
    return scene


def result_to_dict(result: ShadowResult, plane: Plane, site_area: Optional[float] = None,
                   shadow_time: Optional[datetime] = None) -> Dict[str, Any]:
    """Plain mapping of a result, with the shadow loops in world coordinates."""
    output: Dict[str, Any] = {}
    if shadow_time is not None:
        output['name'] = format_shadow_label(shadow_time)
    output['material'] = {'name': SHADOWS_MATERIAL_NAME,
                          'color': list(SHADOWS_MATERIAL_COLOR),
                          'alpha': SHADOWS_MATERIAL_ALPHA}
    output['shadow_area'] = float(result.shadows.area)
    output['ground_footprint_area'] = float(result.ground_footprint_area)
    output['complete'] = result.is_complete
    output['warnings'] = [w.message for w in result.warnings]
    if site_area is not None:
        stats = ShadowStatistics.from_result(site_area, result)
        output['statistics'] = {'site_area': float(stats.site_area),
                                'ground_area': float(stats.ground_area),
                                'footprint_area': float(stats.footprint_area),
                                'shadow_area': float(stats.shadow_area),
                                'sun_area': float(stats.sun_area)}
    output['loops'] = [{'hole': loop.is_hole, 'points': points}
                       for loop, points in zip(result.shadows.loops, result.shadows.to_world(plane))]
    return output


def save_result_to_yaml(result: ShadowResult, plane: Plane, file_path: str,
                        site_area: Optional[float] = None, shadow_time: Optional[datetime] = None) -> None:
    """
    Saves the shadow loops of a result, in world coordinates, to a YAML file.

    Args:
        result: The computed shadows.
        plane: The receiving plane the result's loops are expressed on.
        file_path: The path to the YAML file to write.
        site_area: Area of the receiving face; adds the area statistics when given.
        shadow_time: Time of the shadows; names the result when given.
    """
    data = result_to_dict(result, plane, site_area, shadow_time)
    try:
        with open(file_path, 'w') as f:
            yaml.dump(data, f, sort_keys=False, Dumper=ResultDumper)
        logger.info(f"Shadow result saved to {file_path}")
    except OSError as e:
        logger.error(f"Error saving shadow result to {file_path}: {e}")
        raise
