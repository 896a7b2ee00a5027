import numpy as np
from PIL import Image

from .config import DEGENERATE_EPSILON, ENCODINGS
from .errors import ConfigurationError, DegenerateVectorError


def vec(list):
    """Handy shorthand to make a read-only double-precision 3-vector (or color)."""
    v = np.array(list, dtype=np.float64)
    v.flags.writeable = False
    return v

def normalize(v):
    """Return a unit vector in the direction of the vector v.

    Raises DegenerateVectorError when v is too short to have a direction.
    """
    n = np.linalg.norm(v)
    if not n >= DEGENERATE_EPSILON:
        raise DegenerateVectorError(f"cannot normalize vector {np.asarray(v).tolist()} of length {n:g}")
    return v / n

def reflect(d, n):
    """Mirror direction d about the unit normal n."""
    return d - 2.0 * np.dot(d, n) * n

def clamp_color(c):
    """Clip every channel into the displayable [0, 1] range."""
    return np.clip(c, 0.0, 1.0)

def as_color(value):
    """Accept a scalar or an RGB triple and return an RGB vector."""
    if np.ndim(value) == 0:
        return vec([value, value, value])
    return vec(value)


def to_srgb(img):
    img_clip = np.clip(img, 0, 1)
    return np.where(img > 0.0031308, (1.055 * img_clip**(1/2.4) - 0.055), 12.92 * img_clip)

def to_srgb8(img):
    return np.clip(np.round(255.0 * to_srgb(img)), 0, 255).astype(np.uint8)

def to_gamma8(img):
    """Gamma 2 encoding: square root of the linear value, scaled by 255.99 and truncated."""
    return (255.99 * np.sqrt(np.clip(img, 0, 1))).astype(np.uint8)

def to_linear8(img):
    return (255.99 * np.clip(img, 0, 1)).astype(np.uint8)


def encode_image(pixels, encoding='gamma'):
    """Turn a (h, w, 3) float raster in [0, 1] into 8-bit RGB."""
    if encoding == 'gamma':
        return to_gamma8(pixels)
    if encoding == 'srgb':
        return to_srgb8(pixels)
    if encoding == 'linear':
        return to_linear8(pixels)
    raise ConfigurationError(f"unknown encoding {encoding!r}, expected one of {ENCODINGS}")

def save_image(pixels, path, encoding='gamma'):
    """Encode a raster buffer and write it with Pillow; the format follows the file extension."""
    Image.fromarray(encode_image(pixels, encoding)).save(path)
