"""
Error taxonomy for the posture pipeline.

Client-side problems derive from ``ValueError`` and server-side ones from
``RuntimeError`` so callers that only know the built-ins still route them
correctly.
"""

from typing import Sequence


class InvalidShape(ValueError):
    """Window or frame dimensions do not match the configured tensor shape."""

    def __init__(self, expected: Sequence, actual: Sequence, detail: str = ""):
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        message = (
            f"Input window must be shaped {_fmt(self.expected)}, "
            f"got {_fmt(self.actual)}"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InsufficientFrames(ValueError):
    """A frame buffer was asked for a window before it filled up."""

    def __init__(self, have: int, need: int):
        self.have = have
        self.need = need
        super().__init__(f"Need {need} frames to build a window, have {have}.")


class ModelLoadFailure(RuntimeError):
    """Model bytes, session or configuration could not be loaded at startup."""


class InferenceFailure(RuntimeError):
    """The runtime failed while running an already-validated window."""


def _fmt(dims: Sequence) -> str:
    return "[" + ", ".join(str(d) for d in dims) + "]"
