"""
Command line front end.

Usage examples:
  rtlite -x 400 -y 300 -o spheres.png
  rtlite --map scenes/checker.json -r 16 --threads 8 -o checker.png
  python -m rtlite --example three_spheres -d
"""
import argparse
import logging
import sys

from .config import RENDER_SETTINGS, OUTPUT_SETTINGS, ENCODINGS
from .errors import ConfigurationError, InvalidSceneError, RenderCancelled
from .examples import EXAMPLES
from .render import render
from .scenefile import load_scene, dump_scene
from .utils import save_image

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog='rtlite',
        description='Small multiprocess ray tracer for spheres, planes, triangles and boxes.')
    p.add_argument('-m', '--map', help='scene file to render (JSON); without it a built-in example is used')
    p.add_argument('-e', '--example', choices=sorted(EXAMPLES), default='random',
                   help='built-in scene to render when no map is given')
    p.add_argument('-r', '--rays', type=int, default=RENDER_SETTINGS['samples'], help='samples per pixel')
    p.add_argument('-x', type=int, default=RENDER_SETTINGS['width'], help='output width')
    p.add_argument('-y', type=int, default=RENDER_SETTINGS['height'], help='output height')
    p.add_argument('--threads', type=int, default=RENDER_SETTINGS['workers'],
                   help='worker processes (0 uses every CPU)')
    p.add_argument('--seed', type=int, default=RENDER_SETTINGS['seed'],
                   help='seed for jittered samples and the random example')
    p.add_argument('-o', '--image-out', default=OUTPUT_SETTINGS['image'], help='where to save the rendered image')
    p.add_argument('--encoding', choices=ENCODINGS, default=OUTPUT_SETTINGS['encoding'],
                   help='how linear colors are turned into 8-bit values')
    p.add_argument('--dump', default=OUTPUT_SETTINGS['dump'],
                   help="write the rendered scene here as JSON ('' to skip)")
    p.add_argument('-d', '--debug-normals', action='store_true', help='shade surfaces by their normals')
    p.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    aspect = args.x / args.y if args.x > 0 and args.y > 0 else 1.0
    try:
        if args.map:
            scene = load_scene(args.map, aspect=aspect)
        elif args.example == 'random':
            scene = EXAMPLES['random'](aspect, seed=args.seed)
        else:
            scene = EXAMPLES[args.example](aspect)
        if args.dump:
            dump_scene(scene, args.dump)
        pixels = render(scene, args.x, args.y, samples=args.rays, workers=args.threads, seed=args.seed,
                        shading='normals' if args.debug_normals else 'phong')
        save_image(pixels, args.image_out, args.encoding)
    except (ConfigurationError, InvalidSceneError, OSError) as e:
        logger.error(str(e))
        return 2
    except (KeyboardInterrupt, RenderCancelled):
        logger.error("Render interrupted")
        return 130
    logger.info(f"Saved {args.image_out}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
