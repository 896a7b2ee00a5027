import json
import os
import tempfile
import unittest
from PIL import Image
from rtlite.cli import main, parse_args
from rtlite.scenefile import load_scene


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def test_defaults(self):
        args = parse_args([])
        self.assertEqual((args.x, args.y, args.rays, args.threads), (200, 200, 1, 0))
        self.assertEqual(args.example, 'random')
        self.assertEqual(args.image_out, 'image.png')
        self.assertEqual(args.dump, 'current_map.json')
        self.assertFalse(args.debug_normals)

    def test_renders_example(self):
        out, dump = self.path('out.png'), self.path('map.json')
        code = main(['-e', 'two_spheres', '-x', '8', '-y', '6', '--threads', '1', '-o', out, '--dump', dump])
        self.assertEqual(code, 0)
        with Image.open(out) as im:
            self.assertEqual(im.size, (8, 6))
            self.assertEqual(im.mode, 'RGB')
        scene = load_scene(dump)
        self.assertAlmostEqual(scene.camera.aspect, 8 / 6)

    def test_renders_map(self):
        dump, out = self.path('map.json'), self.path('out.png')
        self.assertEqual(main(['-e', 'checker_floor', '-x', '6', '-y', '6', '--threads', '1',
                               '-o', self.path('first.png'), '--dump', dump]), 0)
        self.assertEqual(main(['-m', dump, '-x', '6', '-y', '6', '--threads', '1', '-r', '2',
                               '--encoding', 'srgb', '-d', '-o', out, '--dump', '']), 0)
        with Image.open(out) as im:
            self.assertEqual(im.size, (6, 6))

    def test_random_example_with_seed(self):
        first, second = self.path('a.json'), self.path('b.json')
        for dump, out in ((first, 'a.png'), (second, 'b.png')):
            code = main(['-x', '4', '-y', '4', '--threads', '1', '--seed', '9',
                         '-o', self.path(out), '--dump', dump])
            self.assertEqual(code, 0)
        with open(first) as fa, open(second) as fb:
            self.assertEqual(json.load(fa), json.load(fb))

    def test_bad_size(self):
        code = main(['-x', '0', '--threads', '1', '-o', self.path('out.png'), '--dump', ''])
        self.assertEqual(code, 2)
        self.assertFalse(os.path.exists(self.path('out.png')))

    def test_missing_map(self):
        code = main(['-m', self.path('nowhere.json'), '--threads', '1', '-o', self.path('out.png'), '--dump', ''])
        self.assertEqual(code, 2)

    def test_binary_map(self):
        with open(self.path('bad.json'), 'wb') as f:
            f.write(bytes(range(128, 256)))
        code = main(['-m', self.path('bad.json'), '--threads', '1', '-o', self.path('out.png'), '--dump', ''])
        self.assertEqual(code, 2)

    def test_broken_map(self):
        with open(self.path('bad.json'), 'w') as f:
            json.dump({'camera': {'lookfrom': [0, 0, 1], 'lookat': [0, 0, 0]}, 'objects': []}, f)
        code = main(['-m', self.path('bad.json'), '--threads', '1', '-o', self.path('out.png'), '--dump', ''])
        self.assertEqual(code, 2)


if __name__ == '__main__':
    unittest.main()
