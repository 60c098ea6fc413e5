"""Presentation surfaces: where a finished frame is composited.

A surface is acquired, cleared, then the full RGBA image is drawn over it.
`acquire()` raises `TransientPresentError` when the surface cannot take a
frame right now; the orchestrator skips presentation for that frame and keeps
simulating.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from .errors import TransientPresentError


class PresentSurface(Protocol):
    display_enabled: bool

    def poll(self) -> None: ...

    def acquire(self) -> None: ...

    def clear(self) -> None: ...

    def draw(self, image: np.ndarray) -> None: ...


class HeadlessSurface:
    """In-memory surface holding the last presented RGBA image."""

    def __init__(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        self.image = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self.available = True
        self.display_enabled = True
        self.frames_presented = 0

    def poll(self) -> None:
        return None

    def acquire(self) -> None:
        if not self.available:
            raise TransientPresentError("headless surface marked unavailable")

    def clear(self) -> None:
        self.image[...] = 0
        self.image[..., 3] = 255

    def draw(self, image: np.ndarray) -> None:
        if image.shape != self.image.shape:
            raise TransientPresentError(
                f"surface is {self.image.shape}, frame is {image.shape}"
            )
        self.image[...] = image
        self.frames_presented += 1


class MatplotlibSurface:
    """Interactive matplotlib window showing the presentation buffer.

    Space toggles display updates; the simulation keeps running while
    updates are off. Closing the window makes every later frame skip
    presentation.
    """

    def __init__(self, width: int, height: int, *, title: str = "physarum") -> None:
        self.width = int(width)
        self.height = int(height)
        self.display_enabled = True

        # pyplot is only loaded once a window is requested
        import matplotlib.pyplot as plt

        self._plt = plt
        plt.ion()
        self._fig = plt.figure(figsize=(8, 8 * self.height / max(self.width, 1)))
        if self._fig.canvas.manager is not None:
            self._fig.canvas.manager.set_window_title(title)
        self._ax = self._fig.add_axes([0.0, 0.0, 1.0, 1.0])
        self._ax.set_axis_off()
        self._blank = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self._blank[..., 3] = 255
        self._artist = self._ax.imshow(self._blank, interpolation="nearest", origin="upper")
        self._fig.canvas.mpl_connect("key_press_event", self._on_key)
        plt.show(block=False)

    def _on_key(self, event) -> None:
        if event.key == " ":
            self.display_enabled = not self.display_enabled

    @property
    def open(self) -> bool:
        return bool(self._plt.fignum_exists(self._fig.number))

    def poll(self) -> None:
        if self.open:
            self._fig.canvas.flush_events()

    def acquire(self) -> None:
        if not self.open:
            raise TransientPresentError("display window is closed")

    def clear(self) -> None:
        self._artist.set_data(self._blank)

    def draw(self, image: np.ndarray) -> None:
        self._artist.set_data(image)
        self._fig.canvas.draw_idle()
        self._fig.canvas.flush_events()

    def close(self) -> None:
        if self.open:
            self._plt.close(self._fig)


def make_surface(width: int, height: int, *, headless: bool) -> PresentSurface:
    if headless:
        return HeadlessSurface(width, height)
    return MatplotlibSurface(width, height)
