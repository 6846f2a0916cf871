"""
Posture classification service.

Runs one stateless request through the pipeline:
    1. Window assembly (validate [1, T, 132], extract last frame)
    2. Inference (logits + optional form confidence)
    3. Softmax and label lookup
    4. Posture rules on the last frame, keyed by predicted class
    5. Result assembly
"""

import logging
import time
from typing import Optional

from .assembler import assemble_response
from .inference import InferenceEngine
from .rules import PostureRulesEngine
from .schemas import PostureResponse
from .window import assemble_window

logger = logging.getLogger(__name__)


class PostureService:
    """Thin orchestrator over a shared engine; holds no per-request state."""

    def __init__(
        self,
        engine: InferenceEngine,
        rules_engine: Optional[PostureRulesEngine] = None,
    ):
        self.engine = engine
        self.rules_engine = rules_engine or PostureRulesEngine()

    def classify(self, raw_window) -> PostureResponse:
        """Classify a full window and attach form feedback.

        Args:
            raw_window: Nested lists or ndarray shaped [1][T][132].

        Raises:
            InvalidShape: If the window does not match the model input.
            InferenceFailure: If the runtime fails.
        """
        t0 = time.perf_counter()

        window = assemble_window(raw_window, self.engine.sequence_length)
        classification = self.engine.predict(window.tensor)
        rules = self.rules_engine.evaluate(classification.predicted_class, window.last_frame)
        response = assemble_response(classification, rules)

        logger.info(
            "Classification: '%s' score=%.3f form=%s flags=%s (%.1f ms)",
            response.predicted_class,
            response.score,
            "n/a" if response.form_confidence is None else f"{response.form_confidence:.2f}",
            response.flags,
            (time.perf_counter() - t0) * 1000.0,
        )
        return response
