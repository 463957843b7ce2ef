"""
===============================================================================
PATCHED CONICS - Orbital Element Conventions
===============================================================================
Closed enumerations shared by the orbit model and the maneuver calculus.

The conic variant is fixed by physics: an orbit is either elliptic
(0 <= e < 1) or hyperbolic (e > 1). Parabolic trajectories (e == 1) are not
modelled; eccentricities within PARABOLIC_TOLERANCE of 1 are rejected so the
inverse-trig formulas never operate at their singular point.
===============================================================================
"""

from enum import Enum, IntEnum

from core.constants import PARABOLIC_TOLERANCE


class OrbitType(Enum):
    """Conic section variant of an orbit."""
    ELLIPTIC = "elliptic"
    HYPERBOLIC = "hyperbolic"

    @classmethod
    def from_eccentricity(cls, eccentricity: float) -> "OrbitType":
        """
        Classify an eccentricity.

        Raises
        ------
        ValueError
            If the eccentricity is negative, not finite, or parabolic.
        """
        if not eccentricity >= 0.0:
            raise ValueError(f"Eccentricity cannot be less than 0, got {eccentricity}")
        if abs(eccentricity - 1.0) <= PARABOLIC_TOLERANCE:
            raise ValueError(f"Parabolic orbits are unsupported (e = {eccentricity})")
        if eccentricity == float("inf"):
            raise ValueError("Eccentricity must be finite")
        return cls.ELLIPTIC if eccentricity < 1.0 else cls.HYPERBOLIC


class ManeuverPoint(IntEnum):
    """
    Point of an orbit at which an impulse is notionally applied.

    UNSPECIFIED refers to the semi-major-axis reference: radius a and the
    reference speed h / a.
    """
    UNSPECIFIED = 0
    PERIAPSIS = 1
    APOAPSIS = 2
