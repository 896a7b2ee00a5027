"""
Configuration settings for the ray tracer
"""
import os

from .errors import ConfigurationError

# Numeric tolerances
EPSILON = 1e-4             # minimum ray parameter, offsets secondary rays off surfaces
DEGENERATE_EPSILON = 1e-8  # vectors shorter than this cannot be normalized
PARALLEL_EPSILON = 1e-8    # |dot(d, n)| below this counts as parallel
TIE_EPSILON = 1e-9         # nearer-hit margin; within it the earlier primitive wins

SHADING_MODES = ('phong', 'normals')
ENCODINGS = ('gamma', 'srgb', 'linear')

# Rendering settings
RENDER_SETTINGS = {
    'width': 200,
    'height': 200,
    'samples': 1,
    'workers': 0,  # 0 picks os.cpu_count()
    'seed': 0,
    'shading': 'phong',
}

# Output settings
OUTPUT_SETTINGS = {
    'image': 'image.png',
    'encoding': 'gamma',
    'dump': 'current_map.json',
}


def _positive_int(name, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


class RenderSettings:

    def __init__(self, width=None, height=None, samples=None, workers=None, seed=None, shading=None):
        """Collect render settings, falling back to RENDER_SETTINGS for anything not given."""
        self.width = RENDER_SETTINGS['width'] if width is None else width
        self.height = RENDER_SETTINGS['height'] if height is None else height
        self.samples = RENDER_SETTINGS['samples'] if samples is None else samples
        self.workers = RENDER_SETTINGS['workers'] if workers is None else workers
        self.seed = RENDER_SETTINGS['seed'] if seed is None else seed
        self.shading = RENDER_SETTINGS['shading'] if shading is None else shading

    def validate(self):
        """Raise ConfigurationError unless every setting is usable."""
        _positive_int('width', self.width)
        _positive_int('height', self.height)
        _positive_int('samples', self.samples)
        if isinstance(self.workers, bool) or not isinstance(self.workers, int):
            raise ConfigurationError(f"workers must be an integer, got {self.workers!r}")
        if self.workers < 0:
            raise ConfigurationError(f"workers must be zero (auto) or positive, got {self.workers}")
        if isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0:
            raise ConfigurationError(f"seed must be a non-negative integer, got {self.seed!r}")
        if self.shading not in SHADING_MODES:
            raise ConfigurationError(f"unknown shading mode {self.shading!r}, expected one of {SHADING_MODES}")
        return self

    @property
    def effective_workers(self):
        """Number of workers actually used; never more than there are rows."""
        workers = self.workers or os.cpu_count() or 1
        return min(workers, self.height)

    def __repr__(self):
        return (f"RenderSettings(width={self.width}, height={self.height}, samples={self.samples}, "
                f"workers={self.workers}, seed={self.seed}, shading={self.shading!r})")
