"""Webcam capture resource — opened by a session on start, released on stop."""

from __future__ import annotations

import base64

import cv2
import numpy as np

from . import config
from .errors import CaptureUnavailable


class WebcamCapture:
    """Exclusive handle on one camera for the lifetime of a session.

    open() fails fast with CaptureUnavailable instead of waiting for the
    device. Frames are read on demand (one per sample), so there is no
    background capture thread.

    IMPORTANT: On macOS, cv2.VideoCapture must be opened on the main thread
    for camera authorization to work the first time.
    """

    def __init__(
        self,
        camera_index: int = config.CAMERA_INDEX,
        width: int = config.FRAME_WIDTH,
        height: int = config.FRAME_HEIGHT,
    ) -> None:
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self._cap: cv2.VideoCapture | None = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> None:
        """Acquire the camera. Raises CaptureUnavailable if it cannot be opened."""
        if self.is_open:
            return
        print(f"[CAPTURE] Opening camera {self.camera_index}...")
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            print("[CAPTURE] ERROR: Camera failed to open!")
            raise CaptureUnavailable(f"Camera {self.camera_index} is unavailable")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap

        actual_w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        print(f"[CAPTURE] Camera opened: {actual_w}x{actual_h}")

    def read_frame(self) -> np.ndarray:
        """Grab the current frame. Raises CaptureUnavailable if the read fails."""
        if not self.is_open:
            raise CaptureUnavailable("Camera is not open")
        ret, frame = self._cap.read()
        if not ret:
            raise CaptureUnavailable("Camera read failed")
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            print("[CAPTURE] Camera released")


def encode_frame(frame: np.ndarray, quality: int = config.JPEG_QUALITY) -> str:
    """Encode a BGR frame as a JPEG data URL for the analysis service."""
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ValueError("Could not encode frame as JPEG")
    b64_image = base64.b64encode(buffer).decode("utf-8")
    return f"data:image/jpeg;base64,{b64_image}"
