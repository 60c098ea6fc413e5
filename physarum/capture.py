"""Optional disk capture of presented frames as PNG files.

Synchronous capture writes inside the frame call. Asynchronous capture hands
host-side copies to a background writer thread through a bounded queue; when
the queue is full the frame call waits for the writer to catch up.
"""

from __future__ import annotations

import queue
import threading
from pathlib import Path
from typing import Optional

import numpy as np
from matplotlib import image as mpimg

from .console import console
from .errors import CaptureError, FatalInitError

_STOP = object()


class FrameCapture:
    """Writes `frame_{index}.png` files into `directory`."""

    def __init__(self, directory: Path | str, *, asynchronous: bool = False, max_pending: int = 8) -> None:
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalInitError(f"cannot create capture directory {self.directory}: {e}") from e

        self.asynchronous = bool(asynchronous)
        self.written = 0
        self.failed = 0
        self._queue: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None
        if self.asynchronous:
            self._queue = queue.Queue(maxsize=max(1, int(max_pending)))
            self._worker = threading.Thread(target=self._drain, name="physarum-capture", daemon=True)
            self._worker.start()

    def path_for(self, frame_index: int) -> Path:
        return self.directory / f"frame_{int(frame_index)}.png"

    def save(self, pixels: np.ndarray, width: int, height: int, frame_index: int) -> None:
        """Write one RGBA8 frame; raises CaptureError on synchronous failure."""
        if pixels.shape != (int(height), int(width), 4) or pixels.dtype != np.uint8:
            raise CaptureError(
                f"expected ({height}, {width}, 4) uint8 pixels, got {pixels.shape} {pixels.dtype}"
            )
        path = self.path_for(frame_index)
        if self._queue is not None:
            self._queue.put((np.array(pixels, copy=True), path))
            return
        self._write(pixels, path)

    def _write(self, pixels: np.ndarray, path: Path) -> None:
        try:
            mpimg.imsave(path, pixels)
        except (OSError, ValueError) as e:
            self.failed += 1
            raise CaptureError(f"failed to write {path}: {e}") from e
        self.written += 1

    def _drain(self) -> None:
        assert self._queue is not None
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                pixels, path = item
                try:
                    self._write(pixels, path)
                except CaptureError as e:
                    console.error("Frame capture failed", detail=str(e))
            finally:
                self._queue.task_done()

    def flush(self) -> None:
        """Block until every queued frame has been written (or has failed)."""
        if self._queue is not None:
            self._queue.join()

    def close(self) -> None:
        if self._queue is not None and self._worker is not None:
            self._queue.put(_STOP)
            self._worker.join()
            self._queue = None
            self._worker = None
