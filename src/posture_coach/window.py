"""
Window assembly: validate a caller-supplied window and package it for inference.

The server never buffers frames. Every call carries the complete window,
shaped [1, T, 132] where T is the sequence length from the model config.
Shape mismatches raise ``InvalidShape``; nothing is truncated or padded.
"""

import logging
from typing import NamedTuple

import numpy as np

from .config import BATCH_SIZE, NUM_FEATURES
from .errors import InvalidShape
from .landmarks import frame_from_features

logger = logging.getLogger(__name__)

_ARRAY_TYPES = (list, tuple, np.ndarray)


class Window(NamedTuple):
    """A validated window plus the frame the posture rules run on."""
    tensor: np.ndarray      # (1, T, 132) float32
    last_frame: np.ndarray  # (33, 4) float32, read-only

    @property
    def sequence_length(self) -> int:
        return int(self.tensor.shape[1])


def expected_shape(sequence_length: int) -> tuple[int, int, int]:
    return (BATCH_SIZE, sequence_length, NUM_FEATURES)


def _leading_dims(raw) -> tuple:
    """Dimensions of a nested list, following the first element at each level."""
    dims = []
    node = raw
    while isinstance(node, _ARRAY_TYPES):
        dims.append(len(node))
        if len(node) == 0:
            break
        node = node[0]
    return tuple(dims)


def _check_nested_shape(raw, expected: tuple[int, int, int]) -> None:
    if not isinstance(raw, _ARRAY_TYPES):
        raise InvalidShape(expected, (), "window must be a 3-D array")

    if len(raw) != expected[0]:
        raise InvalidShape(expected, _leading_dims(raw))

    steps = raw[0]
    if not isinstance(steps, _ARRAY_TYPES) or len(steps) != expected[1]:
        raise InvalidShape(expected, _leading_dims(raw))

    for t, row in enumerate(steps):
        if not isinstance(row, _ARRAY_TYPES):
            raise InvalidShape(
                expected, (expected[0], expected[1]), f"time step {t} is not a feature row"
            )
        if len(row) != expected[2]:
            raise InvalidShape(
                expected, (expected[0], expected[1], len(row)), f"time step {t}"
            )


def check_tensor_shape(tensor: np.ndarray, sequence_length: int) -> None:
    """Raise ``InvalidShape`` unless *tensor* is exactly [1, T, 132]."""
    expected = expected_shape(sequence_length)
    actual = tuple(np.shape(tensor))
    if actual != expected:
        raise InvalidShape(expected, actual)


def assemble_window(raw, sequence_length: int) -> Window:
    """Validate *raw* and build the float32 tensor and last frame.

    Args:
        raw: Nested lists or an ndarray shaped [1][T][132].
        sequence_length: Configured T.

    Returns:
        Window with the (1, T, 132) tensor and the (33, 4) last frame.

    Raises:
        InvalidShape: On any dimension mismatch, non-numeric content, or
            NaN / infinite values.
    """
    expected = expected_shape(sequence_length)

    if raw is None:
        raise InvalidShape(expected, (), "window is missing")

    if isinstance(raw, np.ndarray):
        check_tensor_shape(raw, sequence_length)
        try:
            tensor = np.ascontiguousarray(raw, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise InvalidShape(expected, raw.shape, "window values must be numeric") from exc
    else:
        _check_nested_shape(raw, expected)
        try:
            tensor = np.asarray(raw, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise InvalidShape(
                expected, _leading_dims(raw), "window values must be numeric"
            ) from exc
        check_tensor_shape(tensor, sequence_length)

    if not np.isfinite(tensor).all():
        raise InvalidShape(expected, tensor.shape, "window values must be finite")

    last_frame = frame_from_features(tensor[0, -1])
    logger.debug("Assembled window %s", tensor.shape)
    return Window(tensor=tensor, last_frame=last_frame)
