"""
MediaPipe Pose landmark indices and frame helpers.

A frame is a (33, 4) float array of [x, y, z, visibility] rows. The index
scheme below is fixed by the pose estimator on the client and must never be
renumbered.
"""

import numpy as np

from .config import NUM_FEATURES, NUM_LANDMARKS, VALUES_PER_LANDMARK

# ---------------------------------------------------------------------------
# Landmark indices
# ---------------------------------------------------------------------------
NOSE = 0
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
RIGHT_ELBOW = 14
LEFT_WRIST = 15
RIGHT_WRIST = 16
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26
LEFT_ANKLE = 27
RIGHT_ANKLE = 28
LEFT_HEEL = 29
RIGHT_HEEL = 30
LEFT_FOOT_INDEX = 31
RIGHT_FOOT_INDEX = 32

# Column layout within a landmark row
X, Y, Z, VISIBILITY = 0, 1, 2, 3


def frame_from_features(row) -> np.ndarray:
    """Reshape one time-step of 132 features into a read-only (33, 4) frame.

    Feature ``4*i + k`` becomes ``frame[i, k]`` where ``k`` indexes
    (x, y, z, visibility).
    """
    flat = np.asarray(row, dtype=np.float32).reshape(-1)
    if flat.shape[0] != NUM_FEATURES:
        raise ValueError(
            f"Expected {NUM_FEATURES} features per frame, got {flat.shape[0]}."
        )
    frame = flat.reshape(NUM_LANDMARKS, VALUES_PER_LANDMARK).copy()
    frame.setflags(write=False)
    return frame


def features_from_frame(frame) -> np.ndarray:
    """Inverse of :func:`frame_from_features`: (33, 4) -> (132,)."""
    arr = np.asarray(frame, dtype=np.float32)
    if arr.shape != (NUM_LANDMARKS, VALUES_PER_LANDMARK):
        raise ValueError(
            f"Expected a ({NUM_LANDMARKS}, {VALUES_PER_LANDMARK}) frame, got {arr.shape}."
        )
    return arr.reshape(NUM_FEATURES)
