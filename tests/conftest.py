"""Shared fixtures: a fake ONNX Runtime session and synthetic landmark windows."""

import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

from posture_coach.inference import InferenceEngine
from posture_coach.model_config import ModelConfig

SEQ_LEN = 30
CLASS_NAMES = ["push_up", "squat", "plank", "sit_up", "rest"]


class FakeSession:
    """Stand-in for ``onnxruntime.InferenceSession`` (``get_inputs`` / ``run``).

    ``outputs`` is either a list of arrays returned as-is, or a callable
    taking the feeds dict.
    """

    def __init__(self, outputs=None, input_names=("input",), error=None, delay=0.0):
        self._inputs = [
            SimpleNamespace(name=name, shape=[1, SEQ_LEN, 132], type="tensor(float)")
            for name in input_names
        ]
        self.outputs = outputs
        self.error = error
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._counter_lock = threading.Lock()

    def get_inputs(self):
        return self._inputs

    def run(self, output_names, feeds):
        with self._counter_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(feeds)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if callable(self.outputs):
                return self.outputs(feeds)
            return self.outputs
        finally:
            with self._counter_lock:
                self.active -= 1


def logits_for(index: int, n: int = len(CLASS_NAMES), high: float = 4.0) -> np.ndarray:
    logits = np.zeros((1, n), dtype=np.float32)
    logits[0, index] = high
    return logits


@pytest.fixture
def make_window():
    """Factory for [1, T, 132] windows of constant coordinates."""
    def _make(seq_len: int = SEQ_LEN, value: float = 0.0, visibility: float = 0.9) -> np.ndarray:
        window = np.full((1, seq_len, 132), value, dtype=np.float32)
        window[..., 3::4] = visibility
        return window
    return _make


@pytest.fixture
def model_config() -> ModelConfig:
    return ModelConfig(sequence_length=SEQ_LEN, class_names=tuple(CLASS_NAMES))


@pytest.fixture
def make_engine(model_config):
    """Factory for engines wrapping a FakeSession."""
    def _make(outputs=None, session=None, config=None, **kwargs):
        if session is None:
            if outputs is None:
                outputs = [logits_for(1), np.array([[0.8]], dtype=np.float32)]
            session = FakeSession(outputs=outputs)
        return InferenceEngine(session, config or model_config, **kwargs)
    return _make
