"""
Caller-side rolling frame buffer for streaming clients.

The classification service is stateless; clients that receive frames one at
a time keep one ``FrameBuffer`` per session and submit ``to_window()`` once it
is full. A buffer must never be shared between sessions.
"""

from collections import deque

import numpy as np

from .config import BATCH_SIZE, NUM_FEATURES, NUM_LANDMARKS, VALUES_PER_LANDMARK
from .errors import InsufficientFrames, InvalidShape
from .landmarks import features_from_frame


class FrameBuffer:
    """Keeps the latest ``sequence_length`` frames as flat 132-feature rows."""

    def __init__(self, sequence_length: int):
        if sequence_length <= 0:
            raise ValueError(f"sequence_length must be positive, got {sequence_length}.")
        self.sequence_length = sequence_length
        self._frames: deque[np.ndarray] = deque(maxlen=sequence_length)

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def ready(self) -> bool:
        return len(self._frames) == self.sequence_length

    @property
    def missing(self) -> int:
        return self.sequence_length - len(self._frames)

    def append(self, frame) -> None:
        """Add one frame, given as (33, 4) landmarks or a flat 132 row.

        The oldest frame is dropped once the buffer is full.
        """
        arr = np.asarray(frame, dtype=np.float32)
        if arr.shape == (NUM_LANDMARKS, VALUES_PER_LANDMARK):
            arr = features_from_frame(arr)
        elif arr.shape != (NUM_FEATURES,):
            raise InvalidShape(
                (NUM_LANDMARKS, VALUES_PER_LANDMARK), arr.shape,
                f"a frame may also be a flat row of {NUM_FEATURES}",
            )
        self._frames.append(arr.copy())

    def to_window(self) -> np.ndarray:
        """Return the buffered frames as a (1, T, 132) float32 window.

        Raises:
            InsufficientFrames: If fewer than ``sequence_length`` frames are held.
        """
        if not self.ready:
            raise InsufficientFrames(len(self._frames), self.sequence_length)
        return np.stack(self._frames).reshape(BATCH_SIZE, self.sequence_length, NUM_FEATURES)

    def clear(self) -> None:
        self._frames.clear()
