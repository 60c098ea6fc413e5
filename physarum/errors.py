"""Error taxonomy for the simulator.

Startup problems are fatal. Per-frame problems (surface unavailable, capture
write failure) are reported and the simulation keeps advancing. Numerical
drift inside kernels is clamped where it happens and never raised.
"""

from __future__ import annotations

__all__ = [
    "PhysarumError",
    "FatalInitError",
    "FrameError",
    "ReentrantFrameError",
    "TransientPresentError",
    "CaptureError",
]


class PhysarumError(RuntimeError):
    """Base class for every simulator error."""


class FatalInitError(PhysarumError):
    """Invalid configuration or resource creation failure at startup."""


class FrameError(PhysarumError):
    """A failure raised while advancing or presenting one displayed frame."""


class ReentrantFrameError(FrameError):
    """`advance_and_present` was called while a previous call was in flight."""


class TransientPresentError(FrameError):
    """The presentation surface is unavailable for this frame."""


class CaptureError(FrameError):
    """Writing a captured frame to disk failed."""
