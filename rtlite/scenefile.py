"""Scene loading and dumping for JSON map files"""
import json
import logging

import numpy as np

from .errors import InvalidSceneError
from .geometry import Sphere, Plane, Triangle, Box
from .materials import Material, CheckerTexture, NoiseTexture
from .ray import Camera, PointLight, Scene

logger = logging.getLogger(__name__)


def load_scene(json_path, aspect=None):
    """Load a scene from a JSON map file.

    aspect is used when the camera block does not set one (pass width / height).
    """
    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidSceneError(f"{json_path}: not valid JSON ({e})") from e
    scene = scene_from_dict(data, aspect)
    logger.info(f"Loaded {json_path}: {len(scene.surfs)} object(s), {len(scene.lights)} light(s)")
    return scene


def dump_scene(scene, json_path):
    """Write scene back out in the same format load_scene reads."""
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(scene_to_dict(scene), f, indent=2)
    logger.debug(f"Dumped scene to {json_path}")


def _vector(value, what, size=3):
    try:
        v = np.array(value, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidSceneError(f"{what} must be a list of {size} numbers, got {value!r}") from e
    if v.shape != (size,) or not np.all(np.isfinite(v)):
        raise InvalidSceneError(f"{what} must be a list of {size} finite numbers, got {value!r}")
    return v


def _color(value, what):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _vector([value] * 3, what)
    return _vector(value, what)


def _number(value, what):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSceneError(f"{what} must be a number, got {value!r}")
    return float(value)


def _require(d, key, what):
    if not isinstance(d, dict):
        raise InvalidSceneError(f"{what} must be an object, got {type(d).__name__}")
    if key not in d:
        raise InvalidSceneError(f"{what} is missing required key {key!r}")
    return d[key]


def _texture_from_dict(d, what):
    kind = _require(d, 'type', what)
    if kind == 'noise':
        return NoiseTexture(_number(d.get('scale', 4.0), f"{what}.scale"))
    if kind != 'checker':
        raise InvalidSceneError(f"{what}: unknown texture type {kind!r}")
    return CheckerTexture(_color(_require(d, 'odd', what), f"{what}.odd"),
                          _color(_require(d, 'even', what), f"{what}.even"),
                          _number(d.get('scale', 10.0), f"{what}.scale"))


def _material_from_dict(d, what):
    if not isinstance(d, dict):
        raise InvalidSceneError(f"{what} must be an object, got {type(d).__name__}")
    diffuse = d.get('diffuse', [1.0, 1.0, 1.0] if 'texture' in d else None)
    if diffuse is None:
        raise InvalidSceneError(f"{what} is missing required key 'diffuse'")
    texture = d.get('texture')
    return Material(
        _color(diffuse, f"{what}.diffuse"),
        k_s=_color(d.get('specular', 0.0), f"{what}.specular"),
        p=_number(d.get('shininess', 20.0), f"{what}.shininess"),
        k_a=None if d.get('ambient') is None else _color(d['ambient'], f"{what}.ambient"),
        texture=None if texture is None else _texture_from_dict(texture, f"{what}.texture"),
    )


def _resolve_material(ref, materials, what):
    if isinstance(ref, str):
        if ref not in materials:
            raise InvalidSceneError(f"{what} references unknown material {ref!r}")
        return materials[ref]
    return _material_from_dict(ref, f"{what}.material")


def _object_from_dict(d, materials, what):
    kind = _require(d, 'type', what)
    material = _resolve_material(_require(d, 'material', what), materials, what)
    if kind == 'sphere':
        radius = _number(_require(d, 'radius', what), f"{what}.radius")
        if radius <= 0:
            raise InvalidSceneError(f"{what}.radius must be positive, got {radius}")
        return Sphere(_vector(_require(d, 'center', what), f"{what}.center"), radius, material)
    if kind == 'plane':
        return Plane(_vector(_require(d, 'point', what), f"{what}.point"),
                     _vector(_require(d, 'normal', what), f"{what}.normal"), material)
    if kind == 'triangle':
        vertices = _require(d, 'vertices', what)
        if not isinstance(vertices, list) or len(vertices) != 3:
            raise InvalidSceneError(f"{what}.vertices must hold exactly 3 points")
        return Triangle([_vector(v, f"{what}.vertices[{i}]") for i, v in enumerate(vertices)], material)
    if kind == 'box':
        return Box(_vector(_require(d, 'p0', what), f"{what}.p0"),
                   _vector(_require(d, 'p1', what), f"{what}.p1"), material)
    raise InvalidSceneError(f"{what}: unknown object type {kind!r}")


def scene_from_dict(data, aspect=None):
    """Build and validate a Scene from parsed map data."""
    if not isinstance(data, dict):
        raise InvalidSceneError(f"scene must be a JSON object, got {type(data).__name__}")

    cam = _require(data, 'camera', 'scene')
    focus = cam.get('dist_to_focus') if isinstance(cam, dict) else None
    camera = Camera(
        eye=_vector(_require(cam, 'lookfrom', 'camera'), 'camera.lookfrom'),
        target=_vector(_require(cam, 'lookat', 'camera'), 'camera.lookat'),
        up=_vector(cam.get('up', [0.0, 1.0, 0.0]), 'camera.up'),
        vfov=_number(cam.get('vfov', 40.0), 'camera.vfov'),
        aspect=_number(cam.get('aspect', aspect if aspect is not None else 1.0), 'camera.aspect'),
        aperture=_number(cam.get('aperture', 0.0), 'camera.aperture'),
        focus_dist=None if focus is None else _number(focus, 'camera.dist_to_focus'),
    )

    table = data.get('materials', {})
    if not isinstance(table, dict):
        raise InvalidSceneError("scene.materials must be an object mapping names to materials")
    materials = {name: _material_from_dict(m, f"materials.{name}") for name, m in table.items()}

    objects = _require(data, 'objects', 'scene')
    if not isinstance(objects, list):
        raise InvalidSceneError("scene.objects must be a list")
    surfs = [_object_from_dict(o, materials, f"objects[{i}]") for i, o in enumerate(objects)]

    lights_data = data.get('lights', [])
    if not isinstance(lights_data, list):
        raise InvalidSceneError("scene.lights must be a list")
    lights = []
    for i, light in enumerate(lights_data):
        what = f"lights[{i}]"
        lights.append(PointLight(_vector(_require(light, 'position', what), f"{what}.position"),
                                 _color(_require(light, 'intensity', what), f"{what}.intensity")))

    top = data.get('background_top')
    scene = Scene(surfs, lights, camera,
                  bg_color=_color(data.get('background', [0.2, 0.3, 0.5]), 'scene.background'),
                  ambient=_color(data.get('ambient', 0.1), 'scene.ambient'),
                  bg_top=None if top is None else _color(top, 'scene.background_top'))
    return scene.validate()


def _material_to_dict(m):
    d = {'diffuse': m.k_d.tolist(), 'specular': m.k_s.tolist(), 'shininess': m.p}
    if m.k_a is not m.k_d:
        d['ambient'] = m.k_a.tolist()
    if isinstance(m.texture, CheckerTexture):
        d['texture'] = {'type': m.texture.kind, 'odd': m.texture.odd.tolist(),
                        'even': m.texture.even.tolist(), 'scale': m.texture.scale}
    elif m.texture is not None:
        d['texture'] = {'type': m.texture.kind, 'scale': m.texture.scale}
    return d


def scene_to_dict(scene):
    """Inverse of scene_from_dict; shared materials are written once to the material table."""
    names = {}
    materials = {}
    objects = []
    for surf in scene.surfs:
        key = id(surf.material)
        if key not in names:
            names[key] = f"material{len(names)}"
            materials[names[key]] = _material_to_dict(surf.material)
        obj = {'type': surf.kind, 'material': names[key]}
        if surf.kind == 'sphere':
            obj.update(center=surf.center.tolist(), radius=surf.radius)
        elif surf.kind == 'plane':
            obj.update(point=surf.point.tolist(), normal=surf.normal.tolist())
        elif surf.kind == 'box':
            obj.update(p0=surf.min.tolist(), p1=surf.max.tolist())
        else:
            obj.update(vertices=surf.vs.tolist())
        objects.append(obj)

    cam = scene.camera
    data = {
        'camera': {
            'lookfrom': cam.eye.tolist(), 'lookat': cam.target.tolist(), 'up': cam.up.tolist(),
            'vfov': cam.vfov, 'aspect': cam.aspect, 'aperture': cam.aperture,
            'dist_to_focus': cam.focus_dist,
        },
        'background': scene.bg_color.tolist(),
        'ambient': scene.ambient.tolist(),
        'materials': materials,
        'objects': objects,
        'lights': [{'position': l.position.tolist(), 'intensity': l.intensity.tolist()}
                   for l in scene.lights],
    }
    if scene.bg_top is not None:
        data['background_top'] = scene.bg_top.tolist()
    return data
