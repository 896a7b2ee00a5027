import importlib.util
import unittest
import numpy as np
from rtlite.errors import DegenerateVectorError, InvalidSceneError
from rtlite.geometry import Sphere, Plane, Triangle, Box, Hit, no_hit
from rtlite.materials import Material, CheckerTexture, NoiseTexture
from rtlite.ray import *
from rtlite.utils import normalize, vec, reflect, clamp_color

def assert_direction_matches(v, w):
    np.testing.assert_almost_equal(normalize(v), normalize(w))


def flipy_vec(vect):
    v = np.array(vect, dtype=np.float64)
    v[1] = 1-v[1]
    return v


class TestVectorMath(unittest.TestCase):

    def test_normalize(self):
        np.testing.assert_almost_equal(normalize(vec([3, 0, 4])), [0.6, 0, 0.8])

    def test_normalize_degenerate(self):
        with self.assertRaises(DegenerateVectorError):
            normalize(vec([0, 0, 0]))
        with self.assertRaises(DegenerateVectorError):
            normalize(vec([1e-9, 0, 0]))
        # also an ArithmeticError, which is what per-pixel recovery catches
        with self.assertRaises(ArithmeticError):
            normalize(vec([0, 0, 0]))

    def test_vec_is_read_only(self):
        v = vec([1, 2, 3])
        with self.assertRaises(ValueError):
            v[0] = 5

    def test_reflect(self):
        np.testing.assert_almost_equal(reflect(vec([1, -1, 0]), vec([0, 1, 0])), [1, 1, 0])

    def test_clamp_color(self):
        np.testing.assert_array_equal(clamp_color(np.array([1.7, -0.2, 0.5])), [1.0, 0.0, 0.5])


class TestSphereIntersect(unittest.TestCase):

    def confirm_hit(self, sphere, ray):
        # make sure hit is self-consistent, then return it
        hit = sphere.intersect(ray)
        self.assertLess(hit.t, np.inf)
        np.testing.assert_almost_equal(ray.origin + hit.t * ray.direction, hit.point)
        np.testing.assert_almost_equal(normalize(hit.point - sphere.center), hit.normal)
        self.assertAlmostEqual(np.linalg.norm(hit.point - sphere.center), sphere.radius)
        self.assertIs(hit.material, sphere.material)
        self.assertIs(hit.surface, sphere)
        return hit

    def test_unitsphere_hits(self):
        unit_sphere = Sphere(np.array([0,0,0]), 1.0, None)
        # dead center hit
        hit = self.confirm_hit(unit_sphere, Ray(vec([2.0,0.0,0.0]), vec([-1.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1.0)
        # dead center with non-unit direction
        hit = self.confirm_hit(unit_sphere, Ray(vec([3.0,0.0,0.0]), vec([-2.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1.0)
        # off center hit
        hit = self.confirm_hit(unit_sphere, Ray(vec([1.0,0.5,0.0]), vec([-1.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1 - np.sin(np.pi/3))
        # center hit from off axis
        hit = self.confirm_hit(unit_sphere, Ray(vec([2.0,3.0,4.0]), vec([-2.0,-3.0,-4.0])))
        self.assertAlmostEqual(hit.t, 1 - 1 / np.sqrt(29))

    def test_unitsphere_misses(self):
        unit_sphere = Sphere(vec([0,0,0]), 1.0, None)
        # on axis miss
        hit = unit_sphere.intersect(Ray(vec([2.0,3.0,0.0]), vec([-1.0,0.0,0.0])))
        self.assertEqual(hit.t, np.inf)
        # sphere entirely behind the ray
        hit = unit_sphere.intersect(Ray(vec([3.0,0.0,0.0]), vec([1.0,0.0,0.0])))
        self.assertIs(hit, no_hit)

    def test_nonunit_hits(self):
        # all the same as the first case, but scaled by 3 and shifted by (-1, -5, -7)
        sphere = Sphere(vec([-1,-5,-7]), 3.0, None)
        hit = self.confirm_hit(sphere, Ray(vec([5.0,-5.0,-7.0]), vec([-3.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1.0)
        hit = self.confirm_hit(sphere, Ray(vec([8.0,-5.0,-7.0]), vec([-6.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1.0)
        hit = self.confirm_hit(sphere, Ray(vec([2.0,-3.5,-7.0]), vec([-3.0,0.0,0.0])))
        self.assertAlmostEqual(hit.t, 1 - np.sin(np.pi/3))

    def test_entry_point_is_nearest(self):
        sphere = Sphere(vec([0, 0, -5]), 1.0, None)
        hit = self.confirm_hit(sphere, Ray(vec([0, 0, 0]), vec([0, 0, -1])))
        self.assertAlmostEqual(hit.t, 4.0)

    def test_from_inside_hits_exit(self):
        sphere = Sphere(vec([0, 0, 0]), 2.0, None)
        hit = self.confirm_hit(sphere, Ray(vec([0, 0, 0]), vec([0, 0, -1])))
        self.assertAlmostEqual(hit.t, 2.0)

    def test_root_at_origin_is_discarded(self):
        # ray starting on the surface and pointing out must not hit it again
        sphere = Sphere(vec([0, 0, 0]), 1.0, None)
        hit = sphere.intersect(Ray(vec([0, 0, 1]), vec([0, 0, 1])))
        self.assertEqual(hit.t, np.inf)

    def test_ray_end_limits_hits(self):
        sphere = Sphere(vec([0, 0, -5]), 1.0, None)
        hit = sphere.intersect(Ray(vec([0, 0, 0]), vec([0, 0, -1]), end=3.0))
        self.assertEqual(hit.t, np.inf)


class TestPlaneIntersect(unittest.TestCase):

    def test_hit(self):
        plane = Plane(vec([0, -1, 0]), vec([0, 2, 0]), None)
        np.testing.assert_almost_equal(plane.normal, [0, 1, 0])
        hit = plane.intersect(Ray(vec([0, 1, 0]), vec([0, -1, 0])))
        self.assertAlmostEqual(hit.t, 2.0)
        np.testing.assert_almost_equal(hit.point, [0, -1, 0])
        np.testing.assert_almost_equal(plane.normal_at(hit.point), [0, 1, 0])

    def test_parallel_never_hits(self):
        plane = Plane(vec([0, 0, 0]), vec([0, 1, 0]), None)
        for origin in ([0, 1, 0], [0, 0, 0], [5, -3, 2], [0, 1e-9, 0]):
            for direction in ([1, 0, 0], [0, 0, -1], normalize(vec([1, 0, 1]))):
                hit = plane.intersect(Ray(vec(origin), vec(direction)))
                self.assertEqual(hit.t, np.inf)

    def test_behind_origin_misses(self):
        plane = Plane(vec([0, 0, 0]), vec([0, 1, 0]), None)
        hit = plane.intersect(Ray(vec([0, 1, 0]), vec([0, 1, 0])))
        self.assertEqual(hit.t, np.inf)

    def test_degenerate_normal(self):
        with self.assertRaises(InvalidSceneError):
            Plane(vec([0, 0, 0]), vec([0, 0, 0]), None)


class TestCamera(unittest.TestCase):

    def test_default_camera(self):
        # A camera located at the origin facing the -z direction
        cam = Camera()
        # Center ray is straight down the axis
        ray = cam.generate_ray(flipy_vec([0.5, 0.5]))
        np.testing.assert_almost_equal(ray.origin, vec([0,0,0]))
        assert_direction_matches(ray.direction, vec([0,0,-1]))
        # FOV is 90 degrees, so corner rays are centered in octants
        ray = cam.generate_ray(flipy_vec([0, 0]))
        assert_direction_matches(ray.direction, vec([-1,-1,-1]))
        ray = cam.generate_ray(flipy_vec([1, 0]))
        assert_direction_matches(ray.direction, vec([ 1,-1,-1]))
        ray = cam.generate_ray(flipy_vec([0, 1]))
        assert_direction_matches(ray.direction, vec([-1, 1,-1]))

    def test_rays_are_unit_length(self):
        cam = Camera(vfov=60, aspect=2.0)
        for p in ([0, 0], [0.3, 0.8], [1, 1]):
            ray = cam.generate_ray(vec(p))
            self.assertAlmostEqual(np.linalg.norm(ray.direction), 1.0)

    def test_fov(self):
        # A camera with a different fov: rays should be scaled in x and y
        vfov = 60
        cam = Camera(vfov=vfov)
        s = np.tan(vfov/2 * np.pi/180)
        # Center ray is still straight down the axis
        ray = cam.generate_ray(flipy_vec([0.5, 0.5]))
        np.testing.assert_almost_equal(ray.origin, vec([0,0,0]))
        assert_direction_matches(ray.direction, vec([0,0,-1]))
        ray = cam.generate_ray(flipy_vec([1, 1]))
        assert_direction_matches(ray.direction, vec([s, s, -1]))

    def test_aspect(self):
        # A camera with a different aspect ratio: rays should be scaled in x
        aspect = 1.5
        cam = Camera(aspect=aspect)
        # Center ray is still straight down the axis
        ray = cam.generate_ray(flipy_vec([0.5, 0.5]))
        np.testing.assert_almost_equal(ray.origin, vec([0,0,0]))
        assert_direction_matches(ray.direction, vec([0,0,-1]))
        ray = cam.generate_ray(flipy_vec([1, 1]))
        assert_direction_matches(ray.direction, vec([aspect, 1, -1]))

    def test_square_frame(self):
        # A camera with a frame where up is equal to v
        cam = Camera(eye=vec([1,2,2]), target=vec([1,4,2]), up=vec([0,0,1]))
        # Center ray is straight down the y axis
        ray = cam.generate_ray(flipy_vec([0.5, 0.5]))
        np.testing.assert_almost_equal(ray.origin, vec([1,2,2]))
        assert_direction_matches(ray.direction, vec([0,1,0]))
        # corners are like default camera but (x,y) is (x, z)
        ray = cam.generate_ray(flipy_vec([0, 0]))
        assert_direction_matches(ray.direction, vec([-1, 1,-1]))
        ray = cam.generate_ray(flipy_vec([1, 0]))
        assert_direction_matches(ray.direction, vec([ 1, 1,-1]))

    def test_arbitrary_frame(self):
        # A camera that lines up with nothing in particular
        eye = vec([3,4,5])
        target = vec([6,7,8])
        up = vec([1,2,3])
        vfov = 47
        cam = Camera(eye=eye, target=target, up=up, vfov=vfov)
        # Center ray points towards target
        ray = cam.generate_ray(flipy_vec([0.5, 0.5]))
        np.testing.assert_almost_equal(ray.origin, eye)
        assert_direction_matches(ray.direction, target - eye)

    def test_same_point_same_ray(self):
        cam = Camera(eye=vec([1, 1, 1]), target=vec([0, 0, 0]), vfov=40, aspect=1.3)
        a = cam.generate_ray(vec([0.25, 0.75]))
        b = cam.generate_ray(vec([0.25, 0.75]))
        np.testing.assert_array_equal(a.origin, b.origin)
        np.testing.assert_array_equal(a.direction, b.direction)

    def test_lens_rays_pass_through_focus_plane(self):
        cam = Camera(eye=vec([0, 0, 0]), target=vec([0, 0, -4]), aperture=0.5)
        self.assertAlmostEqual(cam.focus_dist, 4.0)
        pinhole = cam.generate_ray(vec([0.3, 0.6]))
        lens = cam.generate_ray(vec([0.3, 0.6]), lens_sample=(0.8, 0.3))
        self.assertGreater(np.linalg.norm(lens.origin - cam.eye), 0)
        self.assertLessEqual(np.linalg.norm(lens.origin - cam.eye), cam.lens_radius + 1e-12)
        # both rays meet the focus plane z = -4 at the same point
        p0 = pinhole.origin + (-4 - pinhole.origin[2]) / pinhole.direction[2] * pinhole.direction
        p1 = lens.origin + (-4 - lens.origin[2]) / lens.direction[2] * lens.direction
        np.testing.assert_almost_equal(p0, p1)

    def test_invalid_cameras(self):
        with self.assertRaises(InvalidSceneError):
            Camera(vfov=0)
        with self.assertRaises(InvalidSceneError):
            Camera(vfov=180)
        with self.assertRaises(InvalidSceneError):
            Camera(aspect=0)
        with self.assertRaises(InvalidSceneError):
            Camera(eye=vec([1, 1, 1]), target=vec([1, 1, 1]))
        with self.assertRaises(InvalidSceneError):
            Camera(eye=vec([0, 0, 0]), target=vec([0, 5, 0]), up=vec([0, 1, 0]))


class TestPoinLight(unittest.TestCase):

    def shading_test(self, p, n, v, l, r, I, material, scene):
        # test with shading at p with normal n and view/illum directions v/l
        # r is distance to light, I is intensity
        t = 1.3        # arbitrary value
        d = -2.3 * v   # arbitrary scale
        ray = Ray(p - t*d, d)  # ray consistent with hit
        hit = Hit(t, p, n, material)
        light = PointLight(p + r * normalize(l), I)
        return light.illuminate(ray, hit, scene)

    def test_diffuse(self):
        # light directly overhead, unit distance and intensity
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([1, 1, 0]),  # p, n, v
                vec([0,1,0]), 1, vec([1,1,1]),  # l, r, I
                Material(vec([0.2,0.4,0.6])), Scene([])
            ),
            vec([0.2,0.4,0.6])
        )
        # light at 60 degrees, unit distance and intensity
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([1, 1, 0]),  # p, n, v
                vec([0,1,np.sqrt(3)]), 1, vec([1,1,1]),  # l, r, I
                Material(vec([0.2,0.4,0.6])), Scene([])
            ),
            0.5 * vec([0.2,0.4,0.6])
        )

    def test_no_distance_falloff(self):
        # same light ten times further away gives the same contribution
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([1, 1, 0]),
                vec([0,1,0]), 10, vec([1,1,1]),
                Material(vec([0.2,0.4,0.6])), Scene([])
            ),
            vec([0.2,0.4,0.6])
        )

    def test_light_below_surface(self):
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([1, 1, 0]),
                vec([1,-1,0]), 1, vec([1,1,1]),
                Material(vec([0.2,0.4,0.6])), Scene([])
            ),
            vec([0, 0, 0])
        )

    def test_specular_mirror_direction(self):
        # viewer exactly on the mirror direction of the light: full specular
        mat = Material(vec([0, 0, 0]), k_s=0.5, p=10)
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([1, 1, 0]),
                vec([-1,1,0]), 1, vec([1,1,1]),
                mat, Scene([])
            ),
            vec([0.5, 0.5, 0.5])
        )

    def test_back_face_is_flipped(self):
        # viewer and light both below a surface whose normal points up
        np.testing.assert_allclose(
            self.shading_test(
                vec([0,0,0]), vec([0,1,0]), vec([0, -1, 0]),
                vec([0,-1,0]), 1, vec([1,1,1]),
                Material(vec([0.2,0.4,0.6])), Scene([])
            ),
            vec([0.2,0.4,0.6])
        )


def shadow_scene(lights, ambient=0.2):
    """A floor plane with a sphere hovering over the origin."""
    floor = Material(vec([0.5, 0.5, 0.5]))
    blocker = Material(vec([0.9, 0.1, 0.1]))
    surfs = [
        Plane(vec([0, 0, 0]), vec([0, 1, 0]), floor),
        Sphere(vec([0, 2, 0]), 1.0, blocker),
    ]
    camera = Camera(vec([0, 5, 5]), target=vec([0, 0, 0]))
    return Scene(surfs, lights, camera, bg_color=vec([0, 0, 0]), ambient=ambient)


class TestShading(unittest.TestCase):

    def floor_hit(self, scene):
        ray = Ray(vec([0, 0.5, 3]), normalize(vec([0, -0.5, -3])))
        hit = scene.intersect(ray)
        self.assertIs(hit.surface, scene.surfs[0])
        np.testing.assert_almost_equal(hit.point, [0, 0, 0])
        return ray, hit

    def test_occluded_light_contributes_nothing(self):
        light = PointLight(vec([0, 6, 0]), vec([1, 1, 1]))
        scene = shadow_scene([light])
        ray, hit = self.floor_hit(scene)
        np.testing.assert_array_equal(light.illuminate(ray, hit, scene), [0, 0, 0])
        # ambient survives
        np.testing.assert_allclose(shade(ray, hit, scene), 0.2 * vec([0.5, 0.5, 0.5]))

    def test_unoccluded_light(self):
        light = PointLight(vec([6, 6, 0]), vec([1, 1, 1]))
        scene = shadow_scene([light])
        ray, hit = self.floor_hit(scene)
        expected = 0.2 * vec([0.5, 0.5, 0.5]) + np.cos(np.pi / 4) * vec([0.5, 0.5, 0.5])
        np.testing.assert_allclose(shade(ray, hit, scene), expected)

    def test_light_behind_point_is_not_a_shadow(self):
        # sphere lies beyond the light, so it cannot cast a shadow on the floor point
        scene = shadow_scene([PointLight(vec([0, 0.5, 0]), vec([1, 1, 1]))])
        ray, hit = self.floor_hit(scene)
        self.assertFalse(scene.is_occluded(Ray(hit.point, vec([0, 1, 0]), end=0.5)))
        np.testing.assert_allclose(shade(ray, hit, scene), 0.2 * vec([0.5, 0.5, 0.5]) + vec([0.5, 0.5, 0.5]))

    def test_bright_lights_clamp(self):
        lights = [PointLight(vec([6, 6, 0]), vec([3, 3, 3])), PointLight(vec([-6, 6, 0]), vec([3, 3, 3]))]
        scene = shadow_scene(lights)
        ray, _ = self.floor_hit(scene)
        color = trace(ray, scene)
        np.testing.assert_array_equal(color, [1.0, 1.0, 1.0])

    def test_no_lights_is_ambient_only(self):
        scene = shadow_scene([], ambient=vec([0.3, 0.4, 0.5]))
        ray, _ = self.floor_hit(scene)
        np.testing.assert_array_equal(trace(ray, scene), vec([0.3, 0.4, 0.5]) * vec([0.5, 0.5, 0.5]))
        sphere_ray = Ray(vec([0, 2, 5]), vec([0, 0, -1]))
        np.testing.assert_array_equal(trace(sphere_ray, scene), vec([0.3, 0.4, 0.5]) * vec([0.9, 0.1, 0.1]))

    def test_miss_is_background(self):
        scene = shadow_scene([])
        np.testing.assert_array_equal(trace(Ray(vec([5, 1, 0]), vec([0, 1, 0])), scene), [0, 0, 0])

    def test_background_gradient(self):
        scene = Scene([], bg_color=vec([1, 1, 1]), bg_top=vec([0.5, 0.7, 1.0]))
        np.testing.assert_allclose(scene.background(vec([0, 1, 0])), [0.5, 0.7, 1.0])
        np.testing.assert_allclose(scene.background(vec([0, -1, 0])), [1, 1, 1])
        np.testing.assert_allclose(scene.background(vec([1, 0, 0])), [0.75, 0.85, 1.0])

    def test_normals_debug_shading(self):
        scene = shadow_scene([])
        ray, _ = self.floor_hit(scene)
        np.testing.assert_allclose(trace(ray, scene, shading='normals'), [0.5, 1.0, 0.5])

    def test_checker_texture(self):
        tex = CheckerTexture(vec([0, 0, 0]), vec([1, 1, 1]), scale=1.0)
        np.testing.assert_array_equal(tex.value(vec([1, 1, 1])), [1, 1, 1])
        np.testing.assert_array_equal(tex.value(vec([-1, 1, 1])), [0, 0, 0])
        mat = Material(vec([0.5, 0.5, 0.5]), texture=tex)
        np.testing.assert_array_equal(mat.diffuse_at(vec([1, 1, 1])), [0.5, 0.5, 0.5])
        np.testing.assert_array_equal(mat.ambient_at(vec([-1, 1, 1])), [0, 0, 0])

    @unittest.skipUnless(importlib.util.find_spec('noise'), "needs the noise package")
    def test_noise_texture(self):
        tex = NoiseTexture(scale=4.0)
        # Perlin noise vanishes on lattice points, leaving the plain sine bands
        np.testing.assert_allclose(tex.value(vec([0, 0, 0])), [0.5, 0.5, 0.5], atol=1e-9)
        for p in ([0.3, 0.7, 0.1], [2.5, -1.2, 4.4], [-3, 0.25, -0.6]):
            c = tex.value(vec(p))
            self.assertTrue(np.all((c >= 0) & (c <= 1)))
            self.assertEqual(c[0], c[1])
            self.assertEqual(c[1], c[2])


class TestSceneIntersect(unittest.TestCase):

    def test_nearest_wins(self):
        near = Sphere(vec([0, 0, -3]), 1.0, None)
        far = Sphere(vec([0, 0, -10]), 1.0, None)
        scene = Scene([far, near])
        hit = scene.intersect(Ray(vec([0, 0, 0]), vec([0, 0, -1])))
        self.assertIs(hit.surface, near)
        self.assertAlmostEqual(hit.t, 2.0)

    def test_tie_goes_to_scene_order(self):
        first = Sphere(vec([0, 0, -3]), 1.0, None)
        second = Sphere(vec([0, 0, -3]), 1.0, None)
        ray = Ray(vec([0, 0, 0]), vec([0, 0, -1]))
        self.assertIs(Scene([first, second]).intersect(ray).surface, first)
        self.assertIs(Scene([second, first]).intersect(ray).surface, second)

    def test_empty_scene_misses(self):
        self.assertIs(Scene([]).intersect(Ray(vec([0, 0, 0]), vec([0, 0, -1]))), no_hit)

    def test_triangle_in_scene(self):
        tri = Triangle(np.array([[-1, -1, -2], [1, -1, -2], [0, 1, -2]]), None)
        scene = Scene([tri])
        hit = scene.intersect(Ray(vec([0, 0, 0]), vec([0, 0, -1])))
        self.assertAlmostEqual(hit.t, 2.0)
        self.assertTrue(scene.is_occluded(Ray(vec([0, 0, 0]), vec([0, 0, -1]), end=3.0)))
        self.assertFalse(scene.is_occluded(Ray(vec([0, 0, 0]), vec([0, 0, -1]), end=1.5)))


class BrokenSphere(Sphere):

    def intersect(self, ray):
        raise DegenerateVectorError("broken on purpose")


class TestTracePixel(unittest.TestCase):

    def scene(self):
        return shadow_scene([PointLight(vec([6, 6, 0]), vec([1, 1, 1]))])

    def test_single_sample_is_pixel_center(self):
        scene = self.scene()
        ray = scene.camera.generate_ray(((3 + 0.5) / 8, (5 + 0.5) / 8))
        np.testing.assert_array_equal(trace_pixel(3, 5, 8, 8, 1, scene.camera, scene), trace(ray, scene))

    def test_multi_sample_reproducible(self):
        scene = self.scene()
        a = trace_pixel(4, 4, 8, 8, 9, scene.camera, scene, rng=np.random.default_rng(7))
        b = trace_pixel(4, 4, 8, 8, 9, scene.camera, scene, rng=np.random.default_rng(7))
        np.testing.assert_array_equal(a, b)
        self.assertTrue(np.all((a >= 0) & (a <= 1)))

    def test_multi_sample_averages(self):
        # pixel entirely on a uniformly lit ambient-only surface: average equals every sample
        scene = shadow_scene([], ambient=1.0)
        color = trace_pixel(4, 7, 8, 8, 5, scene.camera, scene, rng=np.random.default_rng(1))
        np.testing.assert_allclose(color, [0.5, 0.5, 0.5])

    def test_offsets_stay_in_pixel(self):
        offsets = pixel_offsets(7, np.random.default_rng(3))
        self.assertEqual(len(offsets), 7)
        for ox, oy in offsets:
            self.assertTrue(0 <= ox < 1 and 0 <= oy < 1)
        self.assertEqual(pixel_offsets(1), [(0.5, 0.5)])

    def test_offsets_cover_whole_pixel(self):
        # counts that do not fill a square grid must still reach its last row of cells
        rng = np.random.default_rng(0)
        for samples in (2, 3, 5, 6, 7):
            with self.subTest(samples=samples):
                offsets = np.array([pixel_offsets(samples, rng) for _ in range(400)]).reshape(-1, 2)
                self.assertLess(abs(offsets[:, 0].mean() - 0.5), 0.1)
                self.assertLess(abs(offsets[:, 1].mean() - 0.5), 0.1)
                self.assertGreater(offsets[:, 1].max(), 0.5)
                self.assertLess(offsets[:, 1].min(), 0.5)

    def test_failure_falls_back_to_background(self):
        base = self.scene()
        scene = Scene([BrokenSphere(vec([0, 0, 0]), 1.0, base.surfs[0].material)],
                      camera=base.camera, bg_color=vec([0.1, 0.2, 0.3]))
        color, failed = trace_pixel_checked(4, 4, 8, 8, 1, scene.camera, scene)
        self.assertTrue(failed)
        np.testing.assert_array_equal(color, [0.1, 0.2, 0.3])

    def test_nan_falls_back_to_background(self):
        base = self.scene()
        broken = Material(vec([np.nan, 0.5, 0.5]))
        scene = Scene([Plane(vec([0, 0, 0]), vec([0, 1, 0]), broken)],
                      camera=base.camera, bg_color=vec([0.1, 0.2, 0.3]))
        color, failed = trace_pixel_checked(4, 4, 8, 8, 1, scene.camera, scene)
        self.assertTrue(failed)
        np.testing.assert_array_equal(color, [0.1, 0.2, 0.3])


class TestBoxIntersect(unittest.TestCase):

    def setUp(self):
        self.box = Box(vec([1, 1, 1]), vec([-1, -1, -1]), None)

    def test_corners_in_any_order(self):
        np.testing.assert_array_equal(self.box.min, [-1, -1, -1])
        np.testing.assert_array_equal(self.box.max, [1, 1, 1])

    def test_face_hits(self):
        hit = self.box.intersect(Ray(vec([3, 0, 0]), vec([-1, 0, 0])))
        self.assertAlmostEqual(hit.t, 2.0)
        np.testing.assert_almost_equal(hit.point, [1, 0, 0])
        np.testing.assert_array_equal(hit.normal, [1, 0, 0])
        self.assertIs(hit.surface, self.box)
        hit = self.box.intersect(Ray(vec([0.5, -4, 0.2]), vec([0, 2, 0])))
        self.assertAlmostEqual(hit.t, 1.5)
        np.testing.assert_array_equal(hit.normal, [0, -1, 0])

    def test_diagonal_hit(self):
        hit = self.box.intersect(Ray(vec([3, 3, 3]), vec([-1, -1, -1])))
        self.assertAlmostEqual(hit.t, 2.0)
        np.testing.assert_almost_equal(hit.point, [1, 1, 1])

    def test_from_inside_hits_exit(self):
        hit = self.box.intersect(Ray(vec([0, 0, 0]), vec([0, 0, -1])))
        self.assertAlmostEqual(hit.t, 1.0)
        np.testing.assert_array_equal(hit.normal, [0, 0, -1])

    def test_misses(self):
        # passes beside the box
        self.assertIs(self.box.intersect(Ray(vec([3, 2, 0]), vec([-1, 0, 0]))), no_hit)
        # parallel to a slab and outside it
        self.assertIs(self.box.intersect(Ray(vec([3, 0, 5]), vec([-1, 0, 0]))), no_hit)
        # box behind the ray
        self.assertIs(self.box.intersect(Ray(vec([3, 0, 0]), vec([1, 0, 0]))), no_hit)
        # stops short of the box
        self.assertIs(self.box.intersect(Ray(vec([3, 0, 0]), vec([-1, 0, 0]), end=1.5)), no_hit)

    def test_normal_at(self):
        np.testing.assert_array_equal(self.box.normal_at(vec([1, 0.2, -0.3])), [1, 0, 0])
        np.testing.assert_array_equal(self.box.normal_at(vec([0.1, 0.3, -1])), [0, 0, -1])

    def test_flat_box(self):
        with self.assertRaises(InvalidSceneError):
            Box(vec([0, 0, 0]), vec([1, 0, 1]), None)

    def test_shadow_from_box(self):
        floor = Material(vec([0.5, 0.5, 0.5]))
        scene = Scene([Plane(vec([0, 0, 0]), vec([0, 1, 0]), floor), Box(vec([-1, 1, -1]), vec([1, 2, 1]), floor)],
                      [PointLight(vec([0, 5, 0]), 1.0)], ambient=0.2)
        ray = Ray(vec([0, 0.5, 3]), normalize(vec([0, -0.5, -3])))
        hit = scene.intersect(ray)
        np.testing.assert_allclose(shade(ray, hit, scene), 0.2 * vec([0.5, 0.5, 0.5]))


class TestTriangleIntersect(unittest.TestCase):

    def test_simple(self):
        # A triangle on the xy plane and perpendicular rays
        tri = Triangle(np.array([[0,0,0], [1,0,0], [0,1,0]]), None)
        hit = tri.intersect(Ray(vec([0.3, 0.3, 1]), vec([0, 0, -1])))
        self.assertAlmostEqual(hit.t, 1.)
        np.testing.assert_allclose(hit.point, [0.3, 0.3, 0])
        np.testing.assert_allclose(hit.normal, [0, 0, 1])
        hit = tri.intersect(Ray(vec([-0.3, 0.3, 1]), vec([0, 0, -1])))
        self.assertEqual(hit.t, np.inf)

    def test_transformed(self):
        # The same triangle under a linear xf of positive determinant
        M = np.array([[3,1,4],[1,5,9],[2,6,5]])
        M = np.sign(np.linalg.det(M)) * M  # ensure no reflection
        u = np.array([2,7,1])
        tri = Triangle(np.array([u + M @ [0,0,0], u + M @ [1,0,0], u + M @ [0,1,0]]), None)
        hit = tri.intersect(Ray(u + M @ [0.3, 0.3, 1], M @ [0, 0, -1]))
        self.assertAlmostEqual(hit.t, 1.)
        np.testing.assert_allclose(hit.point, u + M @ [0.3, 0.3, 0])
        assert_direction_matches(hit.normal, np.linalg.inv(M.transpose()) @ [0, 0, 1])
        hit = tri.intersect(Ray(u + M @ [-0.3, 0.3, 1], M @ [0, 0, -1]))
        self.assertEqual(hit.t, np.inf)

    def test_zero_area(self):
        with self.assertRaises(InvalidSceneError):
            Triangle(np.array([[0,0,0], [1,1,1], [2,2,2]]), None)



if __name__ == '__main__':
    unittest.main()
