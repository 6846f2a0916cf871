"""Probability normalization over raw model logits."""

import numpy as np


def softmax(logits) -> np.ndarray:
    """Numerically stable softmax.

    The max logit is subtracted before exponentiating, so the result is
    invariant to adding a constant to every logit and large logits do not
    overflow.

    Args:
        logits: 1-D sequence of raw scores.

    Returns:
        float64 array of the same length and order, summing to 1.

    Raises:
        ValueError: If *logits* is empty or holds NaN / infinite values.
    """
    values = np.asarray(logits, dtype=np.float64).reshape(-1)
    if values.size == 0:
        raise ValueError("softmax of an empty logits vector is undefined.")
    if not np.isfinite(values).all():
        raise ValueError("softmax requires finite logits.")
    exp_values = np.exp(values - np.max(values))
    return exp_values / exp_values.sum()


def argmax(values) -> int:
    """Index of the maximum value; the first one wins on ties."""
    arr = np.asarray(values).reshape(-1)
    if arr.size == 0:
        raise ValueError("argmax of an empty vector is undefined.")
    return int(np.argmax(arr))
