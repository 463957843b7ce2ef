"""
===============================================================================
PATCHED CONICS - Anomaly Resolver and Orbit Points
===============================================================================
Conversions between the three angular parameterizations of a point on an
orbit, and the OrbitPoint record that bundles everything known about that
point.

    true anomaly (nu)       -- physical angle from periapsis
    eccentric anomaly (E)   -- auxiliary-circle (or hyperbola) angle
    mean anomaly (M)        -- linear in time, M = n * t

Forward map (nu -> E -> M) is closed form:

    cos E = (e + cos nu) / (1 + e cos nu)
        elliptic:    E = acos(...)       M = E - e sin E
        hyperbolic:  E = acosh(...)      M = e sinh E - E
    E -> 2*pi - E when nu > pi

The inverse map (M -> nu) is the only iterative solve in the model. It is a
plain bisection over nu inside the half plane selected by M < pi, using the
forward map as the comparator, until the bracket is narrower than
ANOMALY_TOLERANCE. Bisection needs no derivative and has a fixed iteration
bound (about 50 halvings of a pi-wide bracket).

Domain handling
---------------
    - Elliptic acos arguments are clipped to [-1, 1] (round-off only).
    - Hyperbolic acosh arguments below 1 are clipped to 1 (round-off only).
    - True anomalies past a hyperbola's asymptote have no physical point:
      the public conversion raises ValueError, while the bisection
      comparator treats them as +inf (nu < pi) or -inf (nu > pi) mean
      anomaly, which keeps the comparator monotonic on each half plane.

References
----------
    [1] Curtis, "Orbital Mechanics for Engineering Students", 4th ed., Ch. 3.
    [2] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from core.angles import normalize_angle_positive
from core.constants import ANOMALY_TOLERANCE, PI, TWO_PI
from dynamics.elements import OrbitType

if TYPE_CHECKING:
    from dynamics.orbit import Orbit


# =============================================================================
# ANOMALY CONVERSIONS
# =============================================================================

def _beyond_asymptote(cos_nu: float, eccentricity: float) -> bool:
    """True when 1 + e*cos(nu) <= 0, i.e. past a hyperbola's asymptote."""
    return 1.0 + eccentricity * cos_nu <= 0.0


def eccentric_anomaly_from_true(true_anomaly: float, eccentricity: float) -> float:
    """
    Eccentric (elliptic) or hyperbolic anomaly for a true anomaly.

    Raises
    ------
    ValueError
        If the orbit is hyperbolic and *true_anomaly* lies past the
        asymptote.
    """
    kind = OrbitType.from_eccentricity(eccentricity)
    nu = normalize_angle_positive(true_anomaly)
    cos_nu = np.cos(nu)
    cos_e = (eccentricity + cos_nu) / (1.0 + eccentricity * cos_nu) \
        if not _beyond_asymptote(cos_nu, eccentricity) else np.nan

    if kind is OrbitType.ELLIPTIC:
        result = np.arccos(np.clip(cos_e, -1.0, 1.0))
    else:
        if np.isnan(cos_e):
            raise ValueError(
                f"True anomaly {nu:.6f} rad lies beyond the asymptote of a "
                f"hyperbola with e = {eccentricity:.6f}"
            )
        result = np.arccosh(max(cos_e, 1.0))

    if nu > PI:
        result = TWO_PI - result
    return float(result)


def mean_anomaly_from_eccentric(eccentric_anomaly: float, eccentricity: float) -> float:
    """Kepler's equation, elliptic or hyperbolic form."""
    if OrbitType.from_eccentricity(eccentricity) is OrbitType.ELLIPTIC:
        return float(eccentric_anomaly - eccentricity * np.sin(eccentric_anomaly))
    return float(eccentricity * np.sinh(eccentric_anomaly) - eccentric_anomaly)


def mean_anomaly_from_true(true_anomaly: float, eccentricity: float) -> float:
    """Forward map nu -> M."""
    return mean_anomaly_from_eccentric(
        eccentric_anomaly_from_true(true_anomaly, eccentricity), eccentricity
    )


def _bisection_mean_anomaly(true_anomaly: float, eccentricity: float, kind: OrbitType) -> float:
    # Comparator for the inverse solve; unbounded past a hyperbola's asymptote.
    if kind is OrbitType.HYPERBOLIC and _beyond_asymptote(np.cos(true_anomaly), eccentricity):
        return np.inf if true_anomaly < PI else -np.inf
    return mean_anomaly_from_true(true_anomaly, eccentricity)


def true_anomaly_from_mean(mean_anomaly: float, eccentricity: float) -> float:
    """
    Solve Kepler's equation for the true anomaly by bisection.

    The mean anomaly is first normalized into [0, 2*pi). Exactly 0 maps to
    periapsis and (for elliptic orbits) exactly pi maps to apoapsis without
    iterating. Otherwise the true anomaly is bracketed in [0, pi) when
    M < pi and in [pi, 2*pi) otherwise, and the bracket is halved until it
    is narrower than ANOMALY_TOLERANCE.

    Convergence is not guaranteed for eccentricities extremely close to 1;
    those are rejected as parabolic before the solve starts.

    Parameters
    ----------
    mean_anomaly : float
        Mean anomaly (rad).
    eccentricity : float
        Orbit eccentricity.

    Returns
    -------
    float
        True anomaly (rad) in [0, 2*pi].
    """
    kind = OrbitType.from_eccentricity(eccentricity)
    mean_anomaly = normalize_angle_positive(mean_anomaly)

    if mean_anomaly == 0.0 or (mean_anomaly == PI and kind is OrbitType.ELLIPTIC):
        return mean_anomaly

    if mean_anomaly < PI:
        lo, hi = 0.0, PI
    else:
        lo, hi = PI, TWO_PI

    while hi - lo > ANOMALY_TOLERANCE:
        mid = 0.5 * (lo + hi)
        if _bisection_mean_anomaly(mid, eccentricity, kind) < mean_anomaly:
            lo = mid
        else:
            hi = mid

    return 0.5 * (lo + hi)


# =============================================================================
# RADIUS AND TIMING
# =============================================================================

def radius_from_anomalies(
    semi_major_axis: float,
    eccentricity: float,
    eccentric_anomaly: float,
    true_anomaly: float,
) -> float:
    """
    Orbital radius at a point.

        elliptic:    r = a (1 - e cos E)
        hyperbolic:  r = p / (1 + e cos nu),  p = a (e^2 - 1)

    The hyperbolic branch uses the conic equation because the reflected
    anomaly convention (E -> 2*pi - E) has no cosh counterpart.
    """
    if OrbitType.from_eccentricity(eccentricity) is OrbitType.ELLIPTIC:
        return float(semi_major_axis * (1.0 - eccentricity * np.cos(eccentric_anomaly)))
    p = semi_major_axis * (eccentricity * eccentricity - 1.0)
    return float(p / (1.0 + eccentricity * np.cos(true_anomaly)))


def time_since_periapsis_from_mean(mean_anomaly: float, mean_motion: float, period: float) -> float:
    """
    t = M / n, wrapped positive by adding one period when negative.

    Hyperbolic orbits have an infinite period and are left unwrapped
    (negative means before periapsis passage).
    """
    result = mean_anomaly / mean_motion
    if result < 0.0 and np.isfinite(period):
        result += period
    return float(result)


def vis_viva_speed(mu: float, radius: float, semi_major_axis: float, kind: OrbitType) -> float:
    """
    Orbital speed at *radius*.

        elliptic:    v^2 = mu (2/r - 1/a)
        hyperbolic:  v^2 = mu (2/r + 1/a)     (a is a positive magnitude)
    """
    inverse_a = 1.0 / semi_major_axis
    if kind is OrbitType.HYPERBOLIC:
        inverse_a = -inverse_a
    return float(np.sqrt(mu * max(2.0 / radius - inverse_a, 0.0)))


def angular_position(
    true_anomaly: float,
    longitude_of_ascending_node: float,
    argument_of_periapsis: float,
) -> float:
    """Orbit-plane angular position nu + Omega + omega in [0, 2*pi)."""
    return normalize_angle_positive(
        true_anomaly + longitude_of_ascending_node + argument_of_periapsis
    )


# =============================================================================
# ORBIT POINT
# =============================================================================

@dataclass(frozen=True)
class OrbitPoint:
    """
    State at one anomaly on an orbit.

    Attributes
    ----------
    mean_anomaly : float
        Mean anomaly (rad).
    eccentric_anomaly : float
        Eccentric (or hyperbolic) anomaly (rad).
    true_anomaly : float
        True anomaly (rad).
    angular_position : float
        nu + omega + Omega, normalized into [0, 2*pi) (rad).
    radius : float
        Distance from the parent's centre (m). Negative for the apoapsis
        marker of a hyperbolic orbit.
    altitude : float
        Height above the parent's surface (m).
    speed : float
        Orbital speed (m/s).
    time_since_periapsis : float
        Time elapsed since the last periapsis passage (s).
    gravitational_acceleration : float
        Parent's gravitational acceleration at this radius (m/s^2).
    """
    mean_anomaly: float
    eccentric_anomaly: float
    true_anomaly: float
    angular_position: float
    radius: float
    altitude: float
    speed: float
    time_since_periapsis: float
    gravitational_acceleration: float

    def __str__(self) -> str:
        return (
            f"Radius: {self.radius / 1e3:.3f} km, Velocity: {self.speed:.3f} m/s, "
            f"Angular position: {np.degrees(self.angular_position):.3f} deg"
        )

    # ------------------------------------------------------------------ #
    #  Closed-form special cases
    # ------------------------------------------------------------------ #
    @classmethod
    def periapsis(cls, orbit: Orbit) -> OrbitPoint:
        """Periapsis: all anomalies zero, speed h / r_p."""
        radius = orbit.periapsis_radius
        altitude = orbit.parent.get_altitude(radius)
        return cls(
            mean_anomaly=0.0,
            eccentric_anomaly=0.0,
            true_anomaly=0.0,
            angular_position=angular_position(
                0.0, orbit.longitude_of_ascending_node, orbit.argument_of_periapsis
            ),
            radius=radius,
            altitude=altitude,
            speed=orbit.angular_momentum / radius,
            time_since_periapsis=0.0,
            gravitational_acceleration=orbit.parent.get_gravitational_acceleration(altitude),
        )

    @classmethod
    def apoapsis(cls, orbit: Orbit) -> OrbitPoint:
        """
        Apoapsis: all anomalies pi, speed h / r_a, half a period after
        periapsis.

        For a hyperbolic orbit this is the signed marker -a(1 + e): radius
        and speed come out negative and the time is infinite.
        """
        radius = orbit.apoapsis_radius
        altitude = orbit.parent.get_altitude(radius)
        return cls(
            mean_anomaly=PI,
            eccentric_anomaly=PI,
            true_anomaly=PI,
            angular_position=angular_position(
                PI, orbit.longitude_of_ascending_node, orbit.argument_of_periapsis
            ),
            radius=radius,
            altitude=altitude,
            speed=orbit.angular_momentum / radius,
            time_since_periapsis=0.5 * orbit.period,
            gravitational_acceleration=orbit.parent.get_gravitational_acceleration(altitude),
        )

    # ------------------------------------------------------------------ #
    #  General points
    # ------------------------------------------------------------------ #
    @classmethod
    def from_true_anomaly(cls, orbit: Orbit, true_anomaly: float) -> OrbitPoint:
        """Resolve the point at *true_anomaly* (normalized into [0, 2*pi))."""
        true_anomaly = normalize_angle_positive(true_anomaly)
        eccentric_anomaly = eccentric_anomaly_from_true(true_anomaly, orbit.eccentricity)
        mean_anomaly = mean_anomaly_from_eccentric(eccentric_anomaly, orbit.eccentricity)
        return cls._build(orbit, mean_anomaly, eccentric_anomaly, true_anomaly)

    @classmethod
    def from_mean_anomaly(cls, orbit: Orbit, mean_anomaly: float) -> OrbitPoint:
        """Resolve the point at *mean_anomaly* (normalized into [0, 2*pi))."""
        mean_anomaly = normalize_angle_positive(mean_anomaly)
        true_anomaly = normalize_angle_positive(
            true_anomaly_from_mean(mean_anomaly, orbit.eccentricity)
        )
        eccentric_anomaly = eccentric_anomaly_from_true(true_anomaly, orbit.eccentricity)
        return cls._build(orbit, mean_anomaly, eccentric_anomaly, true_anomaly)

    @classmethod
    def _build(
        cls,
        orbit: Orbit,
        mean_anomaly: float,
        eccentric_anomaly: float,
        true_anomaly: float,
    ) -> OrbitPoint:
        radius = radius_from_anomalies(
            orbit.semi_major_axis, orbit.eccentricity, eccentric_anomaly, true_anomaly
        )
        altitude = orbit.parent.get_altitude(radius)
        return cls(
            mean_anomaly=mean_anomaly,
            eccentric_anomaly=eccentric_anomaly,
            true_anomaly=true_anomaly,
            angular_position=angular_position(
                true_anomaly, orbit.longitude_of_ascending_node, orbit.argument_of_periapsis
            ),
            radius=radius,
            altitude=altitude,
            speed=vis_viva_speed(
                orbit.parent.gravitational_parameter, radius, orbit.semi_major_axis, orbit.kind
            ),
            time_since_periapsis=time_since_periapsis_from_mean(
                mean_anomaly, orbit.mean_motion, orbit.period
            ),
            gravitational_acceleration=orbit.parent.get_gravitational_acceleration(altitude),
        )
