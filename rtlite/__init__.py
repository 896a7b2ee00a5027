"""
rtlite: a small ray tracer for spheres, planes, triangles and boxes.

Build a Scene (or load one with load_scene), call render() to get a
(height, width, 3) float buffer, and save_image() to write it out.
"""
from .errors import (RenderError, ConfigurationError, InvalidSceneError,
                     DegenerateVectorError, RenderCancelled)
from .geometry import Hit, no_hit, Sphere, Plane, Triangle, Box
from .materials import Material, CheckerTexture, NoiseTexture
from .ray import Ray, Camera, PointLight, Scene, shade, trace, trace_pixel
from .render import render, partition_rows
from .scenefile import load_scene, dump_scene
from .utils import vec, normalize, save_image

__version__ = '0.1.0'
