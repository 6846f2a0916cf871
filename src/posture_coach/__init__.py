"""
Posture classification and form-feedback backend.

Processes a window of pose landmarks through a stateless pipeline:
    Stage 1: Window assembly & shape validation ([1, T, 132])
    Stage 2: Exercise classification (ONNX model, softmax)
    Stage 3: Posture rules on the last frame (flags + coaching messages)
    Stage 4: Result assembly
"""

from .buffer import FrameBuffer
from .errors import InferenceFailure, InsufficientFrames, InvalidShape, ModelLoadFailure
from .inference import InferenceEngine
from .model_config import ModelConfig, load_model_config
from .normalization import argmax, softmax
from .rules import PostureRulesEngine
from .schemas import ClassificationResult, PostureResponse, RuleResult
from .service import PostureService
from .window import Window, assemble_window

__all__ = [
    "FrameBuffer",
    "InferenceFailure",
    "InsufficientFrames",
    "InvalidShape",
    "ModelLoadFailure",
    "InferenceEngine",
    "ModelConfig",
    "load_model_config",
    "argmax",
    "softmax",
    "PostureRulesEngine",
    "ClassificationResult",
    "PostureResponse",
    "RuleResult",
    "PostureService",
    "Window",
    "assemble_window",
]
