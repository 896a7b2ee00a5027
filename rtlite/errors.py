"""
Exceptions raised by the renderer.
"""


class RenderError(Exception):
    """Base class for every error raised by rtlite."""


class ConfigurationError(RenderError, ValueError):
    """Invalid render settings (resolution, samples, worker count)."""


class InvalidSceneError(RenderError, ValueError):
    """The scene fails a structural precondition and cannot be rendered."""


class DegenerateVectorError(RenderError, ArithmeticError):
    """Attempt to normalize a vector whose length is (nearly) zero."""


class RenderCancelled(RenderError):
    """The render was stopped before every row was finished."""
