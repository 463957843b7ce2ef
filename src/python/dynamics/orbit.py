"""
===============================================================================
PATCHED CONICS - Orbit Model
===============================================================================
Immutable two-body orbit about a parent body, described by classical
orbital elements:

    a     : semi-major axis magnitude (m), always positive
    e     : eccentricity, elliptic [0, 1) or hyperbolic (1, inf)
    i     : inclination (rad), normalized to [0, pi]
    omega : argument of periapsis (rad), normalized to [0, 2*pi)
    Omega : longitude of ascending node (rad), normalized to [0, 2*pi)
    M0    : mean anomaly at epoch (rad)

The semi-major axis is stored as a magnitude for both conic variants.
Instead of the signed-a convention for hyperbolas, the formulas that
depend on the variant branch on OrbitType:

                      elliptic          hyperbolic
    periapsis         a (1 - e)         a (e - 1)
    apoapsis          a (1 + e)        -a (1 + e)   (excess-energy marker)
    energy           -mu / 2a          +mu / 2a
    period            2 pi sqrt(a^3/mu) inf

Everything derived from the elements (angular momentum, period, the
periapsis/apoapsis points and the point at epoch) is computed once in
__post_init__. Orbits are never modified; every maneuver builds a new one.

Transfer windows
----------------
For two co-planar elliptic orbits about the same parent the ideal Hohmann
departure phase is

    theta = pi * (1 - sqrt(((a_in / a_out) + 1)^3) / (2 sqrt(2)))

and the time until the outer body leads the inner body by theta is found
by stepping the phase error forward (at most one synodic period) until it
wraps through zero, then bisecting that step.
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

from core.angles import normalize_angle_positive, normalize_inclination, wrap_difference
from core.constants import NEVER, PI, TRANSFER_WINDOW_TOLERANCE, TWO_PI
from core.frames import perifocal_state, perifocal_to_inertial_matrix
from dynamics.elements import ManeuverPoint, OrbitType
from dynamics.orbit_point import OrbitPoint

if TYPE_CHECKING:
    from dynamics.bodies import CelestialBody

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Orbit:
    """
    Conic orbit about *parent*.

    Parameters
    ----------
    parent : CelestialBody
        Body at the focus of the conic.
    semi_major_axis : float
        Semi-major axis magnitude (m). Must be finite and positive.
    eccentricity : float
        Orbit eccentricity. Parabolic values are rejected.
    inclination : float
        Inclination (rad), normalized to [0, pi].
    argument_of_periapsis : float
        Argument of periapsis (rad), normalized to [0, 2*pi).
    longitude_of_ascending_node : float
        Longitude of the ascending node (rad), normalized to [0, 2*pi).
    mean_anomaly_at_epoch : float
        Mean anomaly at the reference epoch (rad).
    kind : OrbitType, optional
        Expected conic variant. When given, the eccentricity must match it.

    Raises
    ------
    ValueError
        If the semi-major axis is not positive, the eccentricity is
        invalid, or the eccentricity does not match *kind*.
    """
    parent: CelestialBody = field(repr=False)
    semi_major_axis: float
    eccentricity: float
    inclination: float = 0.0
    argument_of_periapsis: float = 0.0
    longitude_of_ascending_node: float = 0.0
    mean_anomaly_at_epoch: float = 0.0
    kind: Optional[OrbitType] = None

    angular_momentum: float = field(init=False, repr=False, compare=False)
    period: float = field(init=False, repr=False, compare=False)
    periapsis: OrbitPoint = field(init=False, repr=False, compare=False)
    apoapsis: OrbitPoint = field(init=False, repr=False, compare=False)
    point_at_epoch: OrbitPoint = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not (np.isfinite(self.semi_major_axis) and self.semi_major_axis > 0.0):
            raise ValueError(
                f"Semi-major axis must be greater than 0 m, got {self.semi_major_axis}"
            )
        kind = OrbitType.from_eccentricity(self.eccentricity)
        if self.kind is not None and self.kind is not kind:
            raise ValueError(
                f"Eccentricity {self.eccentricity} does not describe a {self.kind.value} orbit"
            )

        _set = object.__setattr__
        _set(self, "kind", kind)
        _set(self, "semi_major_axis", float(self.semi_major_axis))
        _set(self, "eccentricity", float(self.eccentricity))
        _set(self, "inclination", normalize_inclination(self.inclination))
        _set(self, "argument_of_periapsis", normalize_angle_positive(self.argument_of_periapsis))
        _set(self, "longitude_of_ascending_node",
             normalize_angle_positive(self.longitude_of_ascending_node))
        _set(self, "mean_anomaly_at_epoch", normalize_angle_positive(self.mean_anomaly_at_epoch))

        mu = self.parent.gravitational_parameter
        rp = self.periapsis_radius
        ra = self.apoapsis_radius
        _set(self, "angular_momentum", float(np.sqrt(2.0 * mu * (ra * rp / (rp + ra)))))
        if kind is OrbitType.ELLIPTIC:
            _set(self, "period", float(TWO_PI / np.sqrt(mu) * self.semi_major_axis ** 1.5))
        else:
            _set(self, "period", NEVER)

        _set(self, "periapsis", OrbitPoint.periapsis(self))
        _set(self, "apoapsis", OrbitPoint.apoapsis(self))
        _set(self, "point_at_epoch", OrbitPoint.from_mean_anomaly(self, self.mean_anomaly_at_epoch))

    def __str__(self) -> str:
        return (
            f"Parent: {self.parent.name}, "
            f"Radius: {self.semi_major_axis / 1e3:.3f} km, "
            f"Eccentricity: {self.eccentricity:.6g}, "
            f"Inclination: {np.degrees(self.inclination):.3f} deg, "
            f"Velocity: {self.reference_speed:.3f} m/s"
        )

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def create(cls, parent, semi_major_axis, eccentricity, inclination=0.0,
               argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
               mean_anomaly_at_epoch=0.0) -> Orbit:
        """Build an orbit of whichever variant the eccentricity selects."""
        return cls(parent, semi_major_axis, eccentricity, inclination,
                   argument_of_periapsis, longitude_of_ascending_node,
                   mean_anomaly_at_epoch)

    @classmethod
    def elliptic(cls, parent, semi_major_axis, eccentricity, inclination=0.0,
                 argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
                 mean_anomaly_at_epoch=0.0) -> Orbit:
        return cls(parent, semi_major_axis, eccentricity, inclination,
                   argument_of_periapsis, longitude_of_ascending_node,
                   mean_anomaly_at_epoch, kind=OrbitType.ELLIPTIC)

    @classmethod
    def hyperbolic(cls, parent, semi_major_axis, eccentricity, inclination=0.0,
                   argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
                   mean_anomaly_at_epoch=0.0) -> Orbit:
        return cls(parent, semi_major_axis, eccentricity, inclination,
                   argument_of_periapsis, longitude_of_ascending_node,
                   mean_anomaly_at_epoch, kind=OrbitType.HYPERBOLIC)

    @classmethod
    def circular_from_radius(cls, parent, radius, inclination=0.0,
                             longitude_of_ascending_node=0.0,
                             mean_anomaly_at_epoch=0.0) -> Orbit:
        """Circular orbit at *radius* from the parent's centre."""
        return cls.elliptic(parent, radius, 0.0, inclination, 0.0,
                            longitude_of_ascending_node, mean_anomaly_at_epoch)

    @classmethod
    def circular_from_altitude(cls, parent, altitude, inclination=0.0,
                               longitude_of_ascending_node=0.0,
                               mean_anomaly_at_epoch=0.0) -> Orbit:
        """Circular orbit at *altitude* above the parent's surface."""
        return cls.circular_from_radius(parent, parent.get_radius(altitude), inclination,
                                        longitude_of_ascending_node, mean_anomaly_at_epoch)

    @classmethod
    def circular_from_sphere_of_influence_edge(cls, parent, inclination=0.0,
                                               longitude_of_ascending_node=0.0,
                                               mean_anomaly_at_epoch=0.0) -> Orbit:
        """Highest circular orbit that stays clear of every moon's SOI."""
        return cls.circular_from_radius(parent, parent.stable_apoapsis_radius, inclination,
                                        longitude_of_ascending_node, mean_anomaly_at_epoch)

    @classmethod
    def from_radii(cls, parent, periapsis, apoapsis, inclination=0.0,
                   argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
                   mean_anomaly_at_epoch=0.0) -> Orbit:
        """
        Elliptic orbit from its periapsis and apoapsis radii.

            e = (ra - rp) / (ra + rp),   a = rp / (1 - e)
        """
        eccentricity = (apoapsis - periapsis) / (apoapsis + periapsis)
        semi_major_axis = periapsis / (1.0 - eccentricity)
        return cls.elliptic(parent, semi_major_axis, eccentricity, inclination,
                            argument_of_periapsis, longitude_of_ascending_node,
                            mean_anomaly_at_epoch)

    @classmethod
    def hyperbolic_from_radii(cls, parent, periapsis, apoapsis, inclination=0.0,
                              argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
                              mean_anomaly_at_epoch=0.0) -> Orbit:
        """
        Hyperbolic orbit from its periapsis and (negative) apoapsis marker.

            a = (-ra - rp) / 2,   e = rp / a + 1
        """
        semi_major_axis = (-apoapsis - periapsis) / 2.0
        eccentricity = periapsis / semi_major_axis + 1.0
        return cls.hyperbolic(parent, semi_major_axis, eccentricity, inclination,
                              argument_of_periapsis, longitude_of_ascending_node,
                              mean_anomaly_at_epoch)

    @classmethod
    def from_excess_speed(cls, parent, periapsis, excess_speed, inclination=0.0,
                          argument_of_periapsis=0.0, longitude_of_ascending_node=0.0,
                          mean_anomaly_at_epoch=0.0) -> Orbit:
        """
        Hyperbolic orbit with the given periapsis and hyperbolic excess speed.

            e = 1 + v_inf^2 rp / mu,   a = rp / (e - 1)
        """
        if not excess_speed > 0.0:
            raise ValueError(
                f"Hyperbolic excess speed must be greater than 0 m/s, got {excess_speed}"
            )
        eccentricity = 1.0 + excess_speed ** 2 * periapsis / parent.gravitational_parameter
        semi_major_axis = periapsis / (eccentricity - 1.0)
        return cls.hyperbolic(parent, semi_major_axis, eccentricity, inclination,
                              argument_of_periapsis, longitude_of_ascending_node,
                              mean_anomaly_at_epoch)

    # =========================================================================
    # DERIVED QUANTITIES
    # =========================================================================

    @property
    def is_elliptic(self) -> bool:
        return self.kind is OrbitType.ELLIPTIC

    @property
    def is_circular(self) -> bool:
        return self.eccentricity == 0.0

    @property
    def periapsis_radius(self) -> float:
        if self.kind is OrbitType.ELLIPTIC:
            return self.semi_major_axis * (1.0 - self.eccentricity)
        return self.semi_major_axis * (self.eccentricity - 1.0)

    @property
    def apoapsis_radius(self) -> float:
        if self.kind is OrbitType.ELLIPTIC:
            return self.semi_major_axis * (1.0 + self.eccentricity)
        return -self.semi_major_axis * (1.0 + self.eccentricity)

    @property
    def periapsis_speed(self) -> float:
        return self.periapsis.speed

    @property
    def apoapsis_speed(self) -> float:
        return self.apoapsis.speed

    @property
    def specific_energy(self) -> float:
        """Specific orbital energy: -mu/2a elliptic, +mu/2a hyperbolic (J/kg)."""
        energy = self.parent.gravitational_parameter / (2.0 * self.semi_major_axis)
        return -energy if self.kind is OrbitType.ELLIPTIC else energy

    @property
    def semi_minor_axis(self) -> float:
        return self.semi_major_axis * np.sqrt(abs(1.0 - self.eccentricity ** 2))

    @property
    def semi_latus_rectum(self) -> float:
        return self.angular_momentum ** 2 / self.parent.gravitational_parameter

    @property
    def mean_motion(self) -> float:
        """sqrt(mu / a^3) (rad/s); equals 2*pi / T for elliptic orbits."""
        return float(np.sqrt(self.parent.gravitational_parameter / self.semi_major_axis ** 3))

    @property
    def focal_offset(self) -> float:
        """Distance from the conic's centre to the parent (the focus), a*e."""
        return self.semi_major_axis * self.eccentricity

    @property
    def reference_speed(self) -> float:
        """Speed associated with the semi-major axis, h / a."""
        return self.angular_momentum / self.semi_major_axis

    @property
    def excess_speed(self) -> float:
        """Hyperbolic excess speed sqrt(mu / a). Only meaningful for hyperbolas."""
        return float(np.sqrt(self.parent.gravitational_parameter / self.semi_major_axis))

    # =========================================================================
    # NAMED POINTS
    # =========================================================================

    def get_radius(self, point: ManeuverPoint) -> float:
        """Radius at a named maneuver point."""
        if point == ManeuverPoint.UNSPECIFIED:
            return self.semi_major_axis
        if point == ManeuverPoint.PERIAPSIS:
            return self.periapsis.radius
        if point == ManeuverPoint.APOAPSIS:
            return self.apoapsis.radius
        raise ValueError(f"'{point}' is not a valid orbital maneuver point")

    def get_velocity(self, point: ManeuverPoint) -> float:
        """Speed at a named maneuver point."""
        if point == ManeuverPoint.UNSPECIFIED:
            return self.reference_speed
        if point == ManeuverPoint.PERIAPSIS:
            return self.periapsis.speed
        if point == ManeuverPoint.APOAPSIS:
            return self.apoapsis.speed
        raise ValueError(f"'{point}' is not a valid orbital maneuver point")

    def circularize(self) -> Orbit:
        """Circular orbit with the same semi-major axis, plane and epoch phase."""
        if self.is_circular and self.is_elliptic:
            return self
        return Orbit.elliptic(
            self.parent, self.semi_major_axis, 0.0, self.inclination,
            self.argument_of_periapsis, self.longitude_of_ascending_node,
            self.point_at_epoch.mean_anomaly,
        )

    # =========================================================================
    # ARBITRARY POINTS
    # =========================================================================

    def get_point_by_true_anomaly(self, true_anomaly: float) -> OrbitPoint:
        return OrbitPoint.from_true_anomaly(self, true_anomaly)

    def get_point_by_mean_anomaly(self, mean_anomaly: float) -> OrbitPoint:
        return OrbitPoint.from_mean_anomaly(self, mean_anomaly)

    def get_point_by_elapsed_time(self, elapsed_time: float) -> OrbitPoint:
        """Point reached *elapsed_time* seconds after the epoch."""
        return OrbitPoint.from_mean_anomaly(
            self, self.point_at_epoch.mean_anomaly + self.mean_motion * elapsed_time
        )

    def get_point_by_period_ratio(self, ratio: float) -> OrbitPoint:
        """Point at the given fraction of a period past periapsis."""
        return OrbitPoint.from_mean_anomaly(self, TWO_PI * ratio)

    def get_state_vectors(self, point: OrbitPoint) -> Tuple[np.ndarray, np.ndarray]:
        """
        Inertial position (m) and velocity (m/s) of *point*, relative to the
        parent's centre.
        """
        r_pqw, v_pqw = perifocal_state(
            point.radius, point.true_anomaly, self.eccentricity,
            self.semi_latus_rectum, self.parent.gravitational_parameter,
        )
        rotation = perifocal_to_inertial_matrix(
            self.longitude_of_ascending_node, self.inclination, self.argument_of_periapsis
        )
        return rotation @ r_pqw, rotation @ v_pqw

    # =========================================================================
    # TRANSFER WINDOWS
    # =========================================================================

    def get_angular_alignment(self, other: Orbit) -> float:
        """
        Hohmann departure phase angle between this orbit and *other*.

        The inner and outer orbit are picked by semi-major axis, so the
        result does not depend on which of the two is ``self``. Returns NaN
        when the orbits have different parents.
        """
        if self.parent is not other.parent:
            return np.nan
        inner, outer = sorted((self, other), key=lambda orbit: orbit.semi_major_axis)
        ratio = inner.semi_major_axis / outer.semi_major_axis
        return float(PI * (1.0 - 1.0 / (2.0 * np.sqrt(2.0)) * np.sqrt((ratio + 1.0) ** 3)))

    def get_synodic_period(self, other: Orbit) -> float:
        """Time between successive identical alignments, 1 / |1/T1 - 1/T2|."""
        difference = abs(1.0 / self.period - 1.0 / other.period)
        if difference == 0.0:
            return NEVER
        return 1.0 / difference

    def get_time_to_next_transfer_window(self, other: Orbit, time_since_epoch: float = 0.0) -> float:
        """
        Time (s) from *time_since_epoch* until the Hohmann departure angle
        between this orbit and *other* is next reached.

        The phase error, (outer - inner angular position) - theta wrapped
        into [0, 2*pi), shrinks as the inner body catches up and jumps from
        ~0 to ~2*pi at the window. It is sampled in steps short enough that
        it moves well under half a turn per step, for at most one synodic
        period. The first step containing the jump is bisected until the
        bracket is narrower than TRANSFER_WINDOW_TOLERANCE.

        Returns NEVER if either orbit is hyperbolic, the parents differ,
        the semi-major axes are equal, or no window is found.
        """
        if not (self.is_elliptic and other.is_elliptic):
            return NEVER
        if self.parent is not other.parent or self.semi_major_axis == other.semi_major_axis:
            return NEVER

        inner, outer = sorted((self, other), key=lambda orbit: orbit.semi_major_axis)
        target = self.get_angular_alignment(other)

        def phase_error(dt: float) -> float:
            t = time_since_epoch + dt
            alignment = wrap_difference(
                outer.get_point_by_elapsed_time(t).angular_position,
                inner.get_point_by_elapsed_time(t).angular_position,
            )
            return wrap_difference(alignment, target)

        drift = inner.mean_motion - outer.mean_motion
        step = min(0.25 / drift, inner.period / 8.0)
        horizon = self.get_synodic_period(other) + step

        lo, previous = 0.0, phase_error(0.0)
        while lo < horizon:
            hi = lo + step
            current = phase_error(hi)
            if current - previous > PI:
                break
            lo, previous = hi, current
        else:
            logger.debug("No transfer window within one synodic period after t=%.1f s",
                         time_since_epoch)
            return NEVER

        while hi - lo > TRANSFER_WINDOW_TOLERANCE:
            mid = 0.5 * (lo + hi)
            if phase_error(mid) < PI:
                lo = mid
            else:
                hi = mid

        result = 0.5 * (lo + hi)
        logger.debug("Transfer window %.3f s after t=%.1f s (phase %.4f rad)",
                     result, time_since_epoch, target)
        return result
