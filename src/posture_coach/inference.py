"""
Inference engine: owns the ONNX Runtime session and the model config.

The engine is created once at startup (``InferenceEngine.load``) and shared
by all requests. Apart from the session it holds no mutable state, so
concurrent ``predict`` calls are independent. ONNX Runtime sessions accept
concurrent ``run`` calls; with ``serialize_runs=True`` a lock is held around
``run`` only, for runtimes whose sessions are not reentrant.

Model outputs:
    output[0]  classification logits, [1, num_classes]
    output[1]  optional form confidence, [1, 1], clamped to [0, 1]
"""

import contextlib
import logging
import threading
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import onnxruntime as ort

from .config import REST_CLASS, UNKNOWN_CLASS
from .errors import InferenceFailure, ModelLoadFailure
from .model_config import ModelConfig, load_model_config
from .normalization import argmax, softmax
from .schemas import ClassificationResult, FormConfidenceStatus
from .window import check_tensor_shape, expected_shape

logger = logging.getLogger(__name__)


def _first_input_name(session) -> str:
    try:
        inputs = session.get_inputs()
    except Exception as exc:
        raise ModelLoadFailure(f"Failed to read ONNX model input info: {exc}") from exc
    if not inputs:
        raise ModelLoadFailure("ONNX model declares no inputs.")
    return inputs[0].name


def _read_logits(output) -> np.ndarray:
    """Read output[0] ([1, num_classes]) as a 1-D float32 vector."""
    arr = np.asarray(output, dtype=np.float32)
    if arr.ndim != 2 or arr.shape[0] != 1 or arr.shape[1] == 0:
        raise ValueError(f"expected logits shaped [1, num_classes], got {list(arr.shape)}")
    return arr[0]


def _read_form_score(output) -> float:
    """Read output[1] ([1, 1]) as a scalar clamped to [0, 1]."""
    arr = np.asarray(output, dtype=np.float32)
    raw = float(arr.reshape(-1)[0])
    if not np.isfinite(raw):
        raise ValueError(f"form confidence is not finite: {raw}")
    return min(1.0, max(0.0, raw))


class InferenceEngine:
    """Runs the posture classifier on validated [1, T, 132] windows."""

    def __init__(
        self,
        session,
        model_config: ModelConfig,
        serialize_runs: bool = False,
    ):
        self._input_name = _first_input_name(session)
        self._session = session
        self._config = model_config
        self._run_lock = threading.Lock() if serialize_runs else contextlib.nullcontext()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        model_path: Union[str, Path],
        config_path: Union[str, Path],
        providers: Optional[Sequence[str]] = None,
        serialize_runs: bool = False,
    ) -> "InferenceEngine":
        """Read the model bytes, build the session and parse the config.

        A session built before a later step fails is dropped before the
        error propagates.

        Raises:
            ModelLoadFailure: On any startup failure.
        """
        model_path = Path(model_path)
        session = None
        try:
            try:
                model_bytes = model_path.read_bytes()
            except OSError as exc:
                raise ModelLoadFailure(f"Cannot read model {model_path}: {exc}") from exc

            try:
                session = ort.InferenceSession(
                    model_bytes,
                    providers=list(providers) if providers else ["CPUExecutionProvider"],
                )
            except Exception as exc:
                raise ModelLoadFailure(
                    f"Failed to create ONNX session from {model_path}: {exc}"
                ) from exc

            model_config = load_model_config(config_path)
            engine = cls(session, model_config, serialize_runs=serialize_runs)
        except ModelLoadFailure as exc:
            session = None  # drop a session built before the failing step
            logger.error("Posture model failed to load: %s", exc)
            raise

        logger.info(
            "Loaded posture model %s (input='%s', shape=%s, %d classes)",
            model_path.name, engine.input_name, list(engine.input_shape), engine.num_classes,
        )
        return engine

    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        if self._session is not None:
            self._session = None
            logger.info("Posture model session released.")

    def __enter__(self) -> "InferenceEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._session is None

    @property
    def model_config(self) -> ModelConfig:
        return self._config

    @property
    def sequence_length(self) -> int:
        return self._config.sequence_length

    @property
    def class_names(self) -> list[str]:
        return list(self._config.class_names)

    @property
    def num_classes(self) -> int:
        return self._config.num_classes

    @property
    def input_name(self) -> str:
        return self._input_name

    @property
    def input_shape(self) -> tuple[int, int, int]:
        return expected_shape(self.sequence_length)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def _run(
        self, tensor: np.ndarray
    ) -> Tuple[np.ndarray, Optional[float], FormConfidenceStatus]:
        check_tensor_shape(tensor, self.sequence_length)
        feeds = {self._input_name: np.ascontiguousarray(tensor, dtype=np.float32)}

        session = self._session
        if session is None:
            raise InferenceFailure("Inference engine is closed.")

        try:
            with self._run_lock:
                outputs = session.run(None, feeds)
        except Exception as exc:
            raise InferenceFailure(f"ONNX inference failed: {exc}") from exc

        if not outputs:
            raise InferenceFailure("ONNX model returned no outputs.")

        try:
            logits = _read_logits(outputs[0])
        except (TypeError, ValueError) as exc:
            raise InferenceFailure(f"Failed to read ONNX output tensor: {exc}") from exc
        if not np.isfinite(logits).all():
            raise InferenceFailure("ONNX model returned non-finite logits.")

        if len(outputs) < 2:
            return logits, None, FormConfidenceStatus.ABSENT

        try:
            form_score = _read_form_score(outputs[1])
        except Exception as exc:
            logger.warning("Could not extract form confidence: %s", exc)
            return logits, None, FormConfidenceStatus.UNREADABLE

        return logits, form_score, FormConfidenceStatus.AVAILABLE

    def classify(self, tensor: np.ndarray) -> Tuple[np.ndarray, Optional[float]]:
        """Run the model and return raw outputs.

        Args:
            tensor: float32 array shaped [1, T, 132].

        Returns:
            Tuple of (logits of shape (num_classes,), form score or None).
            The form score is None when the model has no second output or
            when that output cannot be read.

        Raises:
            InvalidShape: If *tensor* is not [1, T, 132].
            InferenceFailure: If the session is closed, ``run`` fails, or the
                logits cannot be read or are not finite.
        """
        logits, form_score, _status = self._run(tensor)
        return logits, form_score

    def predict(self, tensor: np.ndarray) -> ClassificationResult:
        """Classify *tensor* and map the result onto class names.

        An index outside the class table maps to ``"unknown"``. Form
        confidence is dropped for the ``"rest"`` class.
        """
        logits, form_score, status = self._run(tensor)
        probs = softmax(logits)
        best_idx = argmax(probs)
        predicted = self._config.class_name(best_idx, UNKNOWN_CLASS)

        if self.num_classes and self.num_classes != probs.shape[0]:
            logger.warning(
                "Model returned %d logits but config lists %d class names.",
                probs.shape[0], self.num_classes,
            )

        if status is not FormConfidenceStatus.ABSENT and predicted.lower() == REST_CLASS:
            form_score, status = None, FormConfidenceStatus.NOT_APPLICABLE

        return ClassificationResult(
            predicted_class=predicted,
            score=float(probs[best_idx]),
            probabilities=[float(p) for p in probs],
            class_names=self.class_names,
            form_confidence=form_score,
            form_confidence_status=status,
        )
