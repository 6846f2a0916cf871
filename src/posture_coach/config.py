"""
Configuration constants for the posture classification backend.

Centralizes model paths, landmark/tensor dimensions, sentinel class names,
and environment variable loading.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Model artifacts
# ---------------------------------------------------------------------------
MODELS_DIR = Path(os.environ.get("POSTURE_MODELS_DIR", PROJECT_ROOT / "models"))
MODEL_PATH = Path(os.environ.get("POSTURE_MODEL_PATH", MODELS_DIR / "model.onnx"))
MODEL_CONFIG_PATH = Path(
    os.environ.get("POSTURE_MODEL_CONFIG_PATH", MODELS_DIR / "model_config.json")
)

# Skip model loading entirely (e.g. hosts without the ONNX native runtime).
MODEL_ENABLED: bool = _env_flag("POSTURE_MODEL_ENABLED", True)

# Hold a lock around session.run(); only needed for runtimes whose sessions
# are not reentrant.
SERIALIZE_RUNS: bool = _env_flag("POSTURE_SERIALIZE_RUNS", False)

ONNX_PROVIDERS: list[str] = [
    p.strip()
    for p in os.environ.get("POSTURE_ONNX_PROVIDERS", "CPUExecutionProvider").split(",")
    if p.strip()
]

LOG_LEVEL: str = os.environ.get("POSTURE_LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Tensor dimensions
# ---------------------------------------------------------------------------
NUM_LANDMARKS: int = 33         # MediaPipe Pose keypoints
VALUES_PER_LANDMARK: int = 4    # x, y, z, visibility
NUM_FEATURES: int = NUM_LANDMARKS * VALUES_PER_LANDMARK  # 132
BATCH_SIZE: int = 1
DEFAULT_SEQUENCE_LENGTH: int = 45  # used when the model config omits it

# ---------------------------------------------------------------------------
# Class names with special handling
# ---------------------------------------------------------------------------
UNKNOWN_CLASS: str = "unknown"   # predicted index outside the class table
REST_CLASS: str = "rest"         # form confidence not applicable
