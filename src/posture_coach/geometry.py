"""
Geometry primitives over landmark coordinates.

Every function reads (x, y, z) only; a visibility column, when present, is
ignored. Angles are in degrees, and divisions carry a ``1e-6`` guard so
degenerate (coincident) points give a finite result.
"""

import numpy as np

EPS = 1e-6
VERTICAL = np.array([0.0, -1.0, 0.0])


# ============================================================================
# Points & vectors
# ============================================================================

def _xyz(p) -> np.ndarray:
    return np.asarray(p, dtype=np.float64)[:3]


def midpoint(a, b) -> np.ndarray:
    """Average of two landmarks' x, y, z, with visibility fixed to 1."""
    mid = (_xyz(a) + _xyz(b)) * 0.5
    return np.append(mid, 1.0)


def vector(from_, to) -> np.ndarray:
    return _xyz(to) - _xyz(from_)


# ============================================================================
# Angles
# ============================================================================

def angle(a, b, c) -> float:
    """Angle ABC at vertex *b* between rays b->a and b->c."""
    ba = _xyz(a) - _xyz(b)
    bc = _xyz(c) - _xyz(b)
    denom = np.linalg.norm(ba) * np.linalg.norm(bc) + EPS
    cos = float(np.dot(ba, bc) / denom)
    cos = max(-1.0, min(1.0, cos))
    return float(np.degrees(np.arccos(cos)))


def angle_to_vertical(v) -> float:
    """Angle between *v* and the image axis (0, -1, 0)."""
    v = _xyz(v)
    cos = float(np.dot(v, VERTICAL) / (np.linalg.norm(v) + EPS))
    cos = max(-1.0, min(1.0, cos))
    return float(np.degrees(np.arccos(cos)))


# ============================================================================
# Lines
# ============================================================================

def line_y_at_x(p1, p2, x: float) -> float:
    """y of the line through *p1* and *p2* at horizontal position *x*.

    Vertical lines (``|dx| < 1e-6``) return ``p1.y``.
    """
    x1, y1 = float(p1[0]), float(p1[1])
    dx = float(p2[0]) - x1
    if abs(dx) < EPS:
        return y1
    t = (x - x1) / dx
    return y1 + t * (float(p2[1]) - y1)
