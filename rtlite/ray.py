"""
Core implementation of the ray tracer.
"""
import logging
import math

import numpy as np

from .config import EPSILON, TIE_EPSILON
from .errors import DegenerateVectorError, InvalidSceneError
from .geometry import no_hit
from .materials import Material
from .utils import vec, normalize, reflect, clamp_color, as_color

logger = logging.getLogger(__name__)


class Ray:

    def __init__(self, origin, direction, start=EPSILON, end=np.inf):
        """Create a ray with the given origin and direction.

        Only intersections with start < t < end count; the default start
        keeps rays leaving a surface from hitting it again.
        """
        self.origin = np.array(origin, np.float64)
        self.direction = np.array(direction, np.float64)
        self.start = start
        self.end = end

    def at(self, t):
        return self.origin + t * self.direction


class Camera:

    def __init__(self, eye=vec([0,0,0]), target=vec([0,0,-1]), up=vec([0,1,0]),
                 vfov=90.0, aspect=1.0, aperture=0.0, focus_dist=None):
        """Create a camera with given viewing parameters.

        Parameters:
          eye : (3,) -- the camera position
          target : (3,) -- the point the camera looks at
          up : (3,) -- the approximate up direction
          vfov : float -- vertical field of view in degrees
          aspect : float -- image width / height
          aperture : float -- lens diameter; 0 gives a pinhole camera
          focus_dist : float -- distance of the plane in focus (defaults to |target - eye|)
        """
        self.eye = vec(eye)
        self.target = vec(target)
        self.up = vec(up)
        self.vfov = float(vfov)
        self.aspect = float(aspect)
        self.aperture = float(aperture)

        if not 0.0 < self.vfov < 180.0:
            raise InvalidSceneError(f"camera vfov must be in (0, 180) degrees, got {self.vfov}")
        if not self.aspect > 0.0:
            raise InvalidSceneError(f"camera aspect ratio must be positive, got {self.aspect}")
        if not self.aperture >= 0.0:
            raise InvalidSceneError(f"camera aperture must be non-negative, got {self.aperture}")

        try:
            self.w = vec(normalize(self.eye - self.target))
        except DegenerateVectorError as e:
            raise InvalidSceneError("camera eye and target coincide") from e
        try:
            self.u = vec(normalize(np.cross(self.up, self.w)))
        except DegenerateVectorError as e:
            raise InvalidSceneError("camera up vector is zero or parallel to the view direction") from e
        self.v = vec(np.cross(self.w, self.u))

        self.focus_dist = float(np.linalg.norm(self.eye - self.target)) if focus_dist is None else float(focus_dist)
        if not self.focus_dist > 0.0:
            raise InvalidSceneError(f"camera focus distance must be positive, got {self.focus_dist}")
        self.lens_radius = self.aperture / 2.0

        rads = np.radians(self.vfov)

        self.img_h_half = np.tan(rads / 2.0)
        self.img_w_half = self.aspect * self.img_h_half

    def generate_ray(self, img_point, lens_sample=None):
        """Compute the ray corresponding to a point in the image.

        img_point is (x, y) in [0, 1]^2 with y pointing down the image.
        lens_sample is a pair of uniform numbers in [0, 1) used to pick a
        point on the lens; it is ignored by a pinhole camera.
        """
        alpha = self.img_w_half * (img_point[0] * 2.0 - 1.0)
        beta = self.img_h_half * (1.0 - img_point[1] * 2.0)

        direction = (alpha * self.u) + (beta * self.v) - self.w

        if self.lens_radius <= 0.0 or lens_sample is None:
            return Ray(self.eye, normalize(direction))

        # Uniform point on the lens disk; every ray still passes through the focus plane point.
        r = self.lens_radius * math.sqrt(lens_sample[0])
        phi = 2.0 * math.pi * lens_sample[1]
        offset = r * math.cos(phi) * self.u + r * math.sin(phi) * self.v
        focus_point = self.eye + self.focus_dist * direction
        origin = self.eye + offset
        return Ray(origin, normalize(focus_point - origin))


class PointLight:
    def __init__(self, position, intensity):
        """Create a point light at given position and with given intensity (scalar or RGB)"""
        self.position = vec(position)
        self.intensity = as_color(intensity)

    def illuminate(self, ray, hit, scene):
        """Compute the shading at a surface point due to this light.

        Returns zero when anything in the scene blocks the path to the light.
        """
        light_vec_full = self.position - hit.point
        dist = np.linalg.norm(light_vec_full)
        light_vec = normalize(light_vec_full)
        shadow_ray = Ray(hit.point, light_vec, start=EPSILON, end=dist)
        if scene.is_occluded(shadow_ray):
            return np.zeros(3)

        mat = hit.material
        view_vec = normalize(ray.origin - hit.point)
        normal = facing_normal(hit.normal, view_vec)

        diffuse = max(0.0, np.dot(normal, light_vec))
        specular = mat.k_s * (max(0.0, np.dot(reflect(-light_vec, normal), view_vec)) ** mat.p)

        return (mat.diffuse_at(hit.point) * diffuse + specular) * self.intensity

    def validate(self):
        if not np.all(np.isfinite(self.position)):
            raise InvalidSceneError(f"light position is not finite: {self.position.tolist()}")
        if not np.all(np.isfinite(self.intensity)) or np.any(self.intensity < 0):
            raise InvalidSceneError(f"light intensity must be finite and non-negative, got {self.intensity.tolist()}")


def facing_normal(normal, view_vec):
    """Flip the normal so it points to the side the viewer is on."""
    return normal if np.dot(normal, view_vec) >= 0 else -normal


class Scene:

    def __init__(self, surfs, lights=(), camera=None, bg_color=vec([0.2,0.3,0.5]), ambient=0.1, bg_top=None):
        """Create a scene containing the given objects.

        Parameters:
          surfs : list -- primitives, searched in this order
          lights : list of PointLight -- may be empty
          camera : Camera -- the viewpoint to render from
          bg_color : (3,) -- color of rays that hit nothing (horizon color when bg_top is set)
          ambient : (3,) or float -- ambient light intensity
          bg_top : (3,) -- if given, the background blends from bg_color to this color going up
        """
        self.surfs = tuple(surfs)
        self.lights = tuple(lights)
        self.camera = camera
        self.bg_color = as_color(bg_color)
        self.ambient = as_color(ambient)
        self.bg_top = None if bg_top is None else as_color(bg_top)

    def validate(self):
        """Check structural preconditions; raises InvalidSceneError."""
        if not self.surfs:
            raise InvalidSceneError("scene has no primitives")
        for i, surf in enumerate(self.surfs):
            if not isinstance(getattr(surf, 'material', None), Material):
                raise InvalidSceneError(f"primitive {i} ({type(surf).__name__}) has no material")
            surf.validate()
            surf.material.validate()
        for light in self.lights:
            light.validate()
        if not isinstance(self.camera, Camera):
            raise InvalidSceneError("scene has no camera")
        for name in ('bg_color', 'ambient'):
            c = getattr(self, name)
            if not np.all(np.isfinite(c)) or np.any(c < 0):
                raise InvalidSceneError(f"scene {name} must be finite and non-negative, got {c.tolist()}")
        return self

    def intersect(self, ray):
        """Computes the first (smallest t) intersection between a ray and the scene.

        A later primitive only replaces the current nearest hit when it is
        closer by more than TIE_EPSILON, so near-ties go to scene order.
        """
        nearest = no_hit
        for surf in self.surfs:
            hit = surf.intersect(ray)
            if hit.t < nearest.t - TIE_EPSILON:
                nearest = hit
        return nearest

    def is_occluded(self, ray):
        """Return True if any surface blocks the ray (fast boolean)."""
        for surf in self.surfs:
            if surf.intersect(ray).t < np.inf:
                return True
        return False

    def background(self, direction):
        if self.bg_top is None:
            return self.bg_color
        t = 0.5 * (normalize(direction)[1] + 1.0)
        return (1.0 - t) * self.bg_color + t * self.bg_top


def shade(ray, hit, scene):
    """Ambient term plus the unclamped contribution of every light."""
    color = scene.ambient * hit.material.ambient_at(hit.point)
    for light in scene.lights:
        color = color + light.illuminate(ray, hit, scene)
    return color


def trace(ray, scene, shading='phong'):
    """Color seen along a single ray, clamped to [0, 1]."""
    hit = scene.intersect(ray)
    if hit.t == np.inf:
        return scene.background(ray.direction)
    if shading == 'normals':
        return 0.5 * (normalize(hit.normal) + 1.0)
    return clamp_color(shade(ray, hit, scene))


def pixel_offsets(samples, rng=None):
    """Sub-pixel sample positions in the unit square.

    One sample is the pixel center. More samples are jittered inside the
    cells of a grid ceil(sqrt(samples)) cells wide and just tall enough to
    hold them, filled row by row, so every row of cells gets a sample.
    """
    if samples == 1:
        return [(0.5, 0.5)]
    if rng is None:
        rng = np.random.default_rng()
    cols = math.ceil(math.sqrt(samples))
    rows = math.ceil(samples / cols)
    return [((i % cols + rng.random()) / cols, (i // cols + rng.random()) / rows) for i in range(samples)]


def trace_pixel_checked(px, py, width, height, samples, camera, scene, rng=None, shading='phong'):
    """Box-filtered color of pixel (px, py), and whether it fell back to the background.

    Numeric failures (degenerate vectors, NaNs, division by zero) are kept
    inside this pixel: it gets the scene background color instead.
    """
    try:
        with np.errstate(invalid='raise', divide='raise'):
            if camera.lens_radius > 0.0 and rng is None:
                rng = np.random.default_rng()
            color = np.zeros(3)
            for ox, oy in pixel_offsets(samples, rng):
                lens = rng.random(2) if camera.lens_radius > 0.0 else None
                ray = camera.generate_ray(((px + ox) / width, (py + oy) / height), lens)
                color = color + trace(ray, scene, shading)
            color = color / samples
        if not np.all(np.isfinite(color)):
            raise FloatingPointError(f"non-finite color {color.tolist()}")
        return color, False
    except ArithmeticError as e:
        logger.debug(f"pixel ({px}, {py}) fell back to background: {e}")
        return scene.bg_color, True


def trace_pixel(px, py, width, height, samples, camera, scene, rng=None, shading='phong'):
    """Color of pixel (px, py) in a width x height image."""
    return trace_pixel_checked(px, py, width, height, samples, camera, scene, rng, shading)[0]
