import threading
import unittest
import numpy as np
from rtlite.config import RenderSettings
from rtlite.errors import ConfigurationError, InvalidSceneError, RenderCancelled
from rtlite.examples import checker_floor, ortho_friendly, random_spheres, two_spheres
from rtlite.geometry import Sphere, Plane
from rtlite.materials import Material
from rtlite.ray import Camera, PointLight, Scene
from rtlite.render import partition_rows, render, render_rows
from rtlite.utils import vec


def small_scene():
    """Sphere over a floor with one light; enough to exercise shadows and misses."""
    red = Material(vec([0.8, 0.2, 0.2]), k_s=0.4, p=40)
    gray = Material(vec([0.5, 0.5, 0.5]))
    surfs = [
        Sphere(vec([0, 0.5, 0]), 0.5, red),
        Plane(vec([0, 0, 0]), vec([0, 1, 0]), gray),
    ]
    lights = [PointLight(vec([3, 5, 2]), vec([1, 1, 1]))]
    camera = Camera(vec([0, 1.5, 3]), target=vec([0, 0.4, 0]), vfov=50)
    return Scene(surfs, lights, camera, ambient=0.1)


class CountdownCancel:
    """Reports cancellation after it has been polled a given number of times."""

    def __init__(self, polls):
        self.polls = polls

    def is_set(self):
        self.polls -= 1
        return self.polls < 0


class TestPartitionRows(unittest.TestCase):

    def test_covers_every_row_once(self):
        for height in range(1, 41):
            for workers in range(1, 21):
                ranges = partition_rows(height, workers)
                self.assertEqual(len(ranges), min(workers, height))
                self.assertEqual(ranges[0][0], 0)
                self.assertEqual(ranges[-1][1], height)
                for (a0, a1), (b0, b1) in zip(ranges, ranges[1:]):
                    self.assertEqual(a1, b0)
                sizes = [y1 - y0 for y0, y1 in ranges]
                self.assertGreaterEqual(min(sizes), 1)
                self.assertLessEqual(max(sizes) - min(sizes), 1)

    def test_single_worker(self):
        self.assertEqual(partition_rows(7, 1), [(0, 7)])

    def test_more_workers_than_rows(self):
        self.assertEqual(partition_rows(3, 8), [(0, 1), (1, 2), (2, 3)])


class TestRenderSettings(unittest.TestCase):

    def test_defaults(self):
        settings = RenderSettings().validate()
        self.assertEqual((settings.width, settings.height, settings.samples), (200, 200, 1))
        self.assertEqual(settings.shading, 'phong')

    def test_effective_workers(self):
        self.assertEqual(RenderSettings(height=3, workers=8).effective_workers, 3)
        self.assertEqual(RenderSettings(height=100, workers=4).effective_workers, 4)
        self.assertGreaterEqual(RenderSettings(height=100, workers=0).effective_workers, 1)

    def test_rejects_bad_settings(self):
        scene = small_scene()
        bad = [
            dict(width=0, height=10),
            dict(width=10, height=-1),
            dict(width=2.5, height=10),
            dict(width=True, height=10),
            dict(width=10, height=10, samples=0),
            dict(width=10, height=10, workers=-1),
            dict(width=10, height=10, seed=-1),
            dict(width=10, height=10, shading='flat'),
        ]
        for kwargs in bad:
            with self.subTest(**kwargs):
                with self.assertRaises(ConfigurationError):
                    render(scene, **kwargs)

    def test_settings_checked_before_scene(self):
        with self.assertRaises(ConfigurationError):
            render(Scene([]), 0, 10)


class TestSceneValidation(unittest.TestCase):

    def test_no_primitives(self):
        with self.assertRaises(InvalidSceneError):
            render(Scene([], camera=Camera()), 4, 4, workers=1)

    def test_no_camera(self):
        with self.assertRaises(InvalidSceneError):
            render(Scene([Sphere(vec([0, 0, -2]), 1.0, Material(vec([1, 1, 1])))]), 4, 4, workers=1)

    def test_missing_material(self):
        with self.assertRaises(InvalidSceneError):
            render(Scene([Sphere(vec([0, 0, -2]), 1.0, None)], camera=Camera()), 4, 4, workers=1)

    def test_bad_radius(self):
        scene = Scene([Sphere(vec([0, 0, -2]), -1.0, Material(vec([1, 1, 1])))], camera=Camera())
        with self.assertRaises(InvalidSceneError):
            render(scene, 4, 4, workers=1)

    def test_negative_material(self):
        scene = Scene([Sphere(vec([0, 0, -2]), 1.0, Material(vec([-1, 1, 1])))], camera=Camera())
        with self.assertRaises(InvalidSceneError):
            render(scene, 4, 4, workers=1)

    def test_no_lights_is_fine(self):
        buf = render(ortho_friendly(), 9, 9, workers=1)
        # center pixel sees the sphere lit by ambient only, corners see the background
        np.testing.assert_allclose(buf[4, 4], [0.25, 0.25, 0.25])
        np.testing.assert_allclose(buf[0, 0], [0.2, 0.3, 0.5])


class TestRender(unittest.TestCase):

    def test_buffer_shape_and_range(self):
        buf = render(small_scene(), 20, 15, workers=1)
        self.assertEqual(buf.shape, (15, 20, 3))
        self.assertEqual(buf.dtype, np.float64)
        self.assertTrue(np.all((buf >= 0) & (buf <= 1)))

    def test_deterministic(self):
        scene = small_scene()
        a = render(scene, 24, 18, workers=1)
        b = render(scene, 24, 18, workers=1)
        np.testing.assert_array_equal(a, b)

    def test_worker_count_does_not_change_image(self):
        scene = small_scene()
        reference = render(scene, 50, 50, workers=1)
        for workers in (4, 16):
            with self.subTest(workers=workers):
                np.testing.assert_array_equal(render(scene, 50, 50, workers=workers), reference)

    def test_jittered_samples_follow_seed(self):
        scene = checker_floor(aspect=4 / 3)
        a = render(scene, 16, 12, samples=4, workers=1, seed=5)
        b = render(scene, 16, 12, samples=4, workers=3, seed=5)
        np.testing.assert_array_equal(a, b)
        c = render(scene, 16, 12, samples=4, workers=1, seed=6)
        self.assertFalse(np.array_equal(a, c))

    def test_lens_samples_follow_seed(self):
        scene = random_spheres(aspect=4 / 3, seed=1, extent=1)
        a = render(scene, 16, 12, samples=2, workers=1, seed=3)
        b = render(scene, 16, 12, samples=2, workers=4, seed=3)
        np.testing.assert_array_equal(a, b)

    def test_rows_match_full_render(self):
        scene = two_spheres(aspect=1.0)
        full = render(scene, 10, 10, workers=1)
        block, failures = render_rows(scene, 3, 7, 10, 10, 1)
        self.assertEqual(failures, 0)
        np.testing.assert_array_equal(block, full[3:7])

    def test_normals_shading(self):
        buf = render(small_scene(), 10, 10, workers=1, shading='normals')
        # bottom row looks at the floor, whose normal is +y
        np.testing.assert_allclose(buf[9, 5], [0.5, 1.0, 0.5])

    def test_failed_pixels_get_background(self):
        broken = Material(vec([np.nan, 0.5, 0.5]))
        scene = Scene([Plane(vec([0, 0, 0]), vec([0, 1, 0]), broken)],
                      camera=Camera(vec([0, 1, 3]), target=vec([0, 0, 0])),
                      bg_color=vec([0.1, 0.2, 0.3]))
        # validation would reject the NaN material, so trace rows directly
        block, failures = render_rows(scene, 0, 8, 8, 8, 1)
        self.assertGreater(failures, 0)
        self.assertTrue(np.all(np.isfinite(block)))
        np.testing.assert_array_equal(block[7, 4], [0.1, 0.2, 0.3])


class TestCancel(unittest.TestCase):

    def test_cancel_before_start_in_process(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(RenderCancelled):
            render(small_scene(), 10, 10, workers=1, cancel=cancel)

    def test_cancel_before_start_in_pool(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(RenderCancelled):
            render(small_scene(), 10, 10, workers=2, cancel=cancel)

    def test_cancel_part_way(self):
        with self.assertRaises(RenderCancelled):
            render(small_scene(), 10, 10, workers=1, cancel=CountdownCancel(4))

    def test_unset_cancel_finishes(self):
        buf = render(small_scene(), 10, 10, workers=2, cancel=threading.Event())
        self.assertEqual(buf.shape, (10, 10, 3))


if __name__ == '__main__':
    unittest.main()
