"""
===============================================================================
PATCHED CONICS - Angle Helpers
===============================================================================
Angles are carried as plain floats in radians. These helpers implement the
normalization conventions used by the orbit model:

    normalize_angle           -> (-2*pi, 2*pi), sign preserving
    normalize_angle_positive  -> [0, 2*pi)
    normalize_inclination     -> [0, pi]
===============================================================================
"""

import math

from core.constants import PI, TWO_PI


def normalize_angle(angle: float) -> float:
    """Reduce *angle* modulo a full turn, keeping its sign."""
    return math.fmod(angle, TWO_PI)


def normalize_angle_positive(angle: float) -> float:
    """
    Reduce *angle* into [0, 2*pi).

    A tiny negative input can round up to exactly 2*pi after adding a full
    turn; that case folds back to 0.
    """
    result = normalize_angle(angle)
    if result < 0.0:
        result += TWO_PI
    if result >= TWO_PI:
        result = 0.0
    return result


def normalize_inclination(angle: float) -> float:
    """
    Reduce an inclination into [0, pi].

    The angle is first wrapped into [0, 2*pi); anything past a half turn
    has a half turn removed.
    """
    result = normalize_angle_positive(angle)
    if result > PI:
        result -= PI
    return result


def wrap_difference(a: float, b: float) -> float:
    """Return ``a - b`` wrapped into [0, 2*pi)."""
    difference = a - b
    if difference < 0.0:
        difference += TWO_PI
    return difference

