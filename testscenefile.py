import copy
import json
import os
import tempfile
import unittest
import numpy as np
from rtlite.errors import InvalidSceneError
from rtlite.examples import EXAMPLES
from rtlite.geometry import Sphere, Plane, Triangle, Box
from rtlite.materials import CheckerTexture, NoiseTexture
from rtlite.scenefile import load_scene, dump_scene, scene_from_dict, scene_to_dict

SCENE = {
    "camera": {"lookfrom": [0, 1, 4], "lookat": [0, 0, 0], "vfov": 35},
    "materials": {
        "red": {"diffuse": [0.8, 0.1, 0.1], "specular": 0.5, "shininess": 50},
        "floor": {"texture": {"type": "checker", "odd": [0, 0, 0], "even": [1, 1, 1], "scale": 2}},
        "marble": {"texture": {"type": "noise", "scale": 3}},
    },
    "objects": [
        {"type": "sphere", "center": [0, 0, 0], "radius": 0.5, "material": "red"},
        {"type": "plane", "point": [0, -0.5, 0], "normal": [0, 1, 0], "material": "floor"},
        {"type": "triangle", "vertices": [[-1, 0, -1], [1, 0, -1], [0, 1, -1]], "material": {"diffuse": 0.5}},
        {"type": "sphere", "center": [1, 0, 0], "radius": 0.25, "material": "red"},
        {"type": "box", "p0": [2, 0, 0], "p1": [3, 1, 1], "material": "marble"},
    ],
    "lights": [{"position": [4, 6, 3], "intensity": 1.0}],
    "background": [0.1, 0.1, 0.1],
    "ambient": 0.2,
}


def broken(change):
    """Copy of SCENE with change(data) applied."""
    data = copy.deepcopy(SCENE)
    change(data)
    return data


class TestSceneFromDict(unittest.TestCase):

    def test_builds_scene(self):
        scene = scene_from_dict(SCENE, aspect=2.0)
        self.assertEqual([type(s) for s in scene.surfs], [Sphere, Plane, Triangle, Sphere, Box])
        self.assertEqual(len(scene.lights), 1)
        np.testing.assert_array_equal(scene.lights[0].intensity, [1, 1, 1])
        np.testing.assert_array_equal(scene.ambient, [0.2, 0.2, 0.2])
        self.assertEqual(scene.camera.aspect, 2.0)
        self.assertEqual(scene.camera.vfov, 35.0)

    def test_named_materials_are_shared(self):
        scene = scene_from_dict(SCENE)
        self.assertIs(scene.surfs[0].material, scene.surfs[3].material)
        np.testing.assert_array_equal(scene.surfs[0].material.k_s, [0.5, 0.5, 0.5])
        self.assertEqual(scene.surfs[0].material.p, 50.0)

    def test_textured_material_defaults_to_white(self):
        floor = scene_from_dict(SCENE).surfs[1].material
        self.assertIsInstance(floor.texture, CheckerTexture)
        np.testing.assert_array_equal(floor.k_d, [1, 1, 1])
        self.assertEqual(floor.texture.scale, 2.0)

    def test_box_and_noise_texture(self):
        box = scene_from_dict(SCENE).surfs[4]
        np.testing.assert_array_equal(box.min, [2, 0, 0])
        np.testing.assert_array_equal(box.max, [3, 1, 1])
        self.assertIsInstance(box.material.texture, NoiseTexture)
        self.assertEqual(box.material.texture.scale, 3.0)

    def test_camera_aspect_in_file_wins(self):
        data = broken(lambda d: d["camera"].update(aspect=1.5))
        self.assertEqual(scene_from_dict(data, aspect=2.0).camera.aspect, 1.5)

    def test_missing_lights_and_background(self):
        def strip(d):
            del d["lights"]
            del d["background"]
        scene = scene_from_dict(broken(strip))
        self.assertEqual(scene.lights, ())
        np.testing.assert_array_equal(scene.bg_color, [0.2, 0.3, 0.5])

    def test_invalid_scenes(self):
        cases = {
            "objects not a list": lambda d: d.update(objects="nope"),
            "no camera": lambda d: d.pop("camera"),
            "no objects": lambda d: d.pop("objects"),
            "empty objects": lambda d: d.update(objects=[]),
            "unknown material": lambda d: d["objects"][0].update(material="blue"),
            "unknown type": lambda d: d["objects"][0].update(type="cube"),
            "short vector": lambda d: d["objects"][0].update(center=[0, 0]),
            "string radius": lambda d: d["objects"][0].update(radius="big"),
            "negative radius": lambda d: d["objects"][0].update(radius=-1),
            "zero normal": lambda d: d["objects"][1].update(normal=[0, 0, 0]),
            "flat box": lambda d: d["objects"][4].update(p1=[3, 0, 1]),
            "box without corner": lambda d: d["objects"][4].pop("p1"),
            "flat triangle": lambda d: d["objects"][2].update(vertices=[[0, 0, 0], [1, 1, 1], [2, 2, 2]]),
            "two vertices": lambda d: d["objects"][2].update(vertices=[[0, 0, 0], [1, 1, 1]]),
            "material without diffuse": lambda d: d["materials"]["red"].pop("diffuse"),
            "negative diffuse": lambda d: d["materials"]["red"].update(diffuse=[-1, 0, 0]),
            "unknown texture": lambda d: d["materials"]["floor"]["texture"].update(type="marble"),
            "camera without lookfrom": lambda d: d["camera"].pop("lookfrom"),
            "camera eye on target": lambda d: d["camera"].update(lookfrom=[0, 0, 0]),
            "camera fov": lambda d: d["camera"].update(vfov=200),
            "light without intensity": lambda d: d["lights"][0].pop("intensity"),
            "negative ambient": lambda d: d.update(ambient=-0.5),
            "lights not a list": lambda d: d.update(lights={"position": [0, 1, 0], "intensity": 1}),
            "light not an object": lambda d: d.update(lights=[3]),
        }
        for name, change in cases.items():
            with self.subTest(name):
                with self.assertRaises(InvalidSceneError):
                    scene_from_dict(broken(change))

    def test_top_level_must_be_object(self):
        with self.assertRaises(InvalidSceneError):
            scene_from_dict([SCENE])


class TestSceneFiles(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def test_load(self):
        with open(self.path("scene.json"), "w") as f:
            json.dump(SCENE, f)
        scene = load_scene(self.path("scene.json"), aspect=1.0)
        self.assertEqual(len(scene.surfs), 5)

    def test_not_json(self):
        with open(self.path("scene.json"), "w") as f:
            f.write("{ camera: oops")
        with self.assertRaises(InvalidSceneError):
            load_scene(self.path("scene.json"))

    def test_not_utf8(self):
        with open(self.path("scene.json"), "wb") as f:
            f.write(b"\xff\xfe\x00{\x00}")
        with self.assertRaises(InvalidSceneError):
            load_scene(self.path("scene.json"))

    def test_missing_file(self):
        with self.assertRaises(OSError):
            load_scene(self.path("nowhere.json"))

    def test_dump_then_load(self):
        scene = scene_from_dict(SCENE, aspect=1.25)
        dump_scene(scene, self.path("dump.json"))
        again = load_scene(self.path("dump.json"))
        self.assertEqual(scene_to_dict(again), scene_to_dict(scene))
        self.assertIs(again.surfs[0].material, again.surfs[3].material)

    def test_examples_survive_dump(self):
        for name, build in EXAMPLES.items():
            with self.subTest(name):
                scene = build(1.5)
                dump_scene(scene, self.path(f"{name}.json"))
                again = load_scene(self.path(f"{name}.json"))
                self.assertEqual(len(again.surfs), len(scene.surfs))
                self.assertEqual(scene_to_dict(again), scene_to_dict(scene))


if __name__ == '__main__':
    unittest.main()
