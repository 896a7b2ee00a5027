"""
Built-in example scenes.

Every builder takes the output aspect ratio (width / height) so the camera
matches the image it will be rendered into.
"""
import numpy as np

from .geometry import Sphere, Plane, Box
from .materials import Material, CheckerTexture
from .ray import Camera, PointLight, Scene
from .utils import vec


def two_spheres(aspect=16 / 9):
    tan = Material(vec([0.7, 0.7, 0.4]), 0.6)
    gray = Material(vec([0.2, 0.2, 0.2]))

    surfs = [
        Sphere(vec([0, 0, 0]), 0.5, tan),
        Sphere(vec([0, -40, 0]), 39.5, gray),
    ]
    lights = [PointLight(vec([12, 10, 5]), vec([1.0, 1.0, 1.0]))]
    camera = Camera(vec([3, 1.7, 5]), target=vec([0, 0, 0]), vfov=25, aspect=aspect)
    return Scene(surfs, lights, camera, ambient=0.1)


def three_spheres(aspect=16 / 9):
    tan = Material(vec([0.4, 0.4, 0.2]), k_s=0.3, p=90)
    blue = Material(vec([0.2, 0.2, 0.5]), k_s=0.5, p=60)
    gray = Material(vec([0.2, 0.2, 0.2]))

    surfs = [
        Sphere(vec([-0.7, 0, 0]), 0.5, tan),
        Sphere(vec([0.7, 0, 0]), 0.5, blue),
        Sphere(vec([0, -40, 0]), 39.5, gray),
    ]
    lights = [
        PointLight(vec([12, 10, 5]), vec([0.9, 0.9, 0.9])),
        PointLight(vec([-6, 4, 6]), vec([0.3, 0.3, 0.35])),
    ]
    camera = Camera(vec([3, 1.2, 5]), target=vec([0, -0.4, 0]), vfov=24, aspect=aspect)
    return Scene(surfs, lights, camera, ambient=0.1)


def ortho_friendly(aspect=1.0, sphere_radius=0.25):
    """One small sphere straight ahead, lit only by ambient light."""
    gray = Material(vec([0.5, 0.5, 0.5]))
    surfs = [Sphere(vec([0, 0, -0.5]), sphere_radius, gray)]
    camera = Camera(vec([0, 0, 0]), target=vec([0, 0, -0.5]), vfov=90, aspect=aspect)
    return Scene(surfs, [], camera, ambient=0.5)


def checker_floor(aspect=16 / 9):
    checker = Material(vec([1, 1, 1]), texture=CheckerTexture(vec([0.2, 0.3, 0.1]), vec([0.9, 0.9, 0.9]), scale=2.0))
    red = Material(vec([0.8, 0.1, 0.1]), k_s=0.6, p=120)
    blue = Material(vec([0.1, 0.2, 0.6]), k_s=0.3, p=40)

    surfs = [
        Plane(vec([0, -0.5, 0]), vec([0, 1, 0]), checker),
        Sphere(vec([0, 0, 0]), 0.5, red),
        Box(vec([-1.4, -0.5, -0.8]), vec([-0.8, 0.1, -0.2]), blue),
    ]
    lights = [PointLight(vec([4, 6, 3]), vec([1.0, 1.0, 1.0]))]
    camera = Camera(vec([0, 1, 4]), target=vec([0, 0, 0]), vfov=35, aspect=aspect)
    return Scene(surfs, lights, camera, bg_color=vec([1, 1, 1]), bg_top=vec([0.5, 0.7, 1.0]), ambient=0.15)


def random_spheres(aspect=1.0, seed=None, extent=3):
    """A field of small random spheres around three large ones.

    Small spheres sit on a (2 * extent)^2 grid; each is diffuse, metallic or
    glassy looking, picked at random.
    """
    rng = np.random.default_rng(seed)

    diffuse_mat = lambda: Material(rng.random(3) * rng.random(3))
    metal_mat = lambda albedo: Material(albedo, k_s=0.8, p=200)
    glass_mat = Material(vec([0.05, 0.05, 0.05]), k_s=1.0, p=500)

    surfs = []
    for a in range(-extent, extent):
        for b in range(-extent, extent):
            pick = rng.random()
            center = vec([a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random()])
            if np.linalg.norm(center - vec([4, 0.2, 0])) <= 0.9:
                continue
            if pick < 0.8:
                material = diffuse_mat()
            elif pick < 0.95:
                material = metal_mat(0.5 * (1 + rng.random(3)))
            else:
                material = glass_mat
            surfs.append(Sphere(center, 0.2, material))

    ground = Material(vec([1, 1, 1]), texture=CheckerTexture(vec([0.2, 0.3, 0.1]), vec([0.9, 0.9, 0.9])))
    surfs += [
        Plane(vec([0, 0, 0]), vec([0, 1, 0]), ground),
        Sphere(vec([0, 1, 0]), 1.0, glass_mat),
        Sphere(vec([-4, 1, 0]), 1.0, Material(vec([0.4, 0.2, 0.1]))),
        Sphere(vec([4, 1, 0]), 1.0, metal_mat(vec([0.7, 0.6, 0.5]))),
    ]
    lights = [PointLight(vec([10, 10, 10]), vec([1.0, 1.0, 1.0]))]
    camera = Camera(vec([13, 2, 3]), target=vec([0, 0, 0]), vfov=20, aspect=aspect,
                    aperture=0.1, focus_dist=10.0)
    return Scene(surfs, lights, camera, bg_color=vec([1, 1, 1]), bg_top=vec([0.5, 0.7, 1.0]), ambient=0.25)


EXAMPLES = {
    'two_spheres': two_spheres,
    'three_spheres': three_spheres,
    'ortho_friendly': ortho_friendly,
    'checker_floor': checker_floor,
    'random': random_spheres,
}
