import numpy as np

from .errors import InvalidSceneError
from .utils import as_color


class CheckerTexture:

    kind = 'checker'

    def __init__(self, odd, even, scale=10.0):
        """Solid 3D checker pattern.

        Parameters:
          odd : (3,) -- color where sin(sx) sin(sy) sin(sz) is negative
          even : (3,) -- color everywhere else
          scale : float -- spatial frequency of the pattern
        """
        self.odd = as_color(odd)
        self.even = as_color(even)
        self.scale = float(scale)

    def value(self, point):
        """Texture color at a world-space point."""
        s = self.scale
        sines = np.sin(s * point[0]) * np.sin(s * point[1]) * np.sin(s * point[2])
        return self.odd if sines < 0 else self.even


class NoiseTexture:

    kind = 'noise'
    white = as_color(1.0)

    def __init__(self, scale=4.0):
        """Gray marble-like bands along z, warped by Perlin turbulence.

        Needs the optional `noise` package.
        """
        self.scale = float(scale)

    def value(self, point):
        import noise
        x, y, z = 1.5 * np.asarray(point, dtype=np.float64)
        turbulence = noise.pnoise3(x, y, z, octaves=4, persistence=0.5, lacunarity=2.0)
        return self.white * (0.5 * (1.0 + np.sin(self.scale * point[2] + 10.0 * turbulence)))


class Material:

    def __init__(self, k_d, k_s=0., p=20., k_a=None, texture=None):
        """
        Create a new material with the given parameters.

        Parameters:
          k_d : (3,) -- Diffuse coefficient (color)
          k_s : (3,) or float -- Specular coefficient
          p : float -- Specular exponent (shininess)
          k_a : (3,) -- Ambient coefficient (defaults to k_d)
          texture : CheckerTexture or NoiseTexture -- modulates k_d and k_a at the hit point
        """
        self.k_d = as_color(k_d)
        self.k_s = as_color(k_s)
        self.p = float(p)
        self.k_a = self.k_d if k_a is None else as_color(k_a)
        self.texture = texture

    def diffuse_at(self, point):
        if self.texture is None:
            return self.k_d
        return self.k_d * self.texture.value(point)

    def ambient_at(self, point):
        if self.texture is None:
            return self.k_a
        return self.k_a * self.texture.value(point)

    def validate(self):
        for name in ('k_d', 'k_s', 'k_a'):
            c = getattr(self, name)
            if not np.all(np.isfinite(c)) or np.any(c < 0):
                raise InvalidSceneError(f"material {name} must be finite and non-negative, got {c.tolist()}")
        if not (np.isfinite(self.p) and self.p >= 0):
            raise InvalidSceneError(f"material shininess must be non-negative, got {self.p}")

    def __repr__(self):
        return f"Material(k_d={self.k_d.tolist()}, k_s={self.k_s.tolist()}, p={self.p})"

