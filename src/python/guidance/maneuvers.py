"""
===============================================================================
PATCHED CONICS - Maneuver Calculus
===============================================================================
Impulsive transitions between orbits. Each maneuver is a pure function of
an initial orbit and a target condition, and produces an immutable record:

    (initial orbit, resulting orbit, delta-V, maneuver point)

Interplanetary maneuvers are modelled with patched conics. The trajectory
is split at the sphere of influence of a planet into

    - a heliocentric (parent-relative) transfer ellipse between the
      planet's radius and the target radius, and
    - a planet-centred hyperbola whose excess speed is the mismatch between
      the planet's own orbital speed and the transfer ellipse's speed at
      the planet's radius:

          v_inf = | v_planet - v_transfer(r_planet) |

The hyperbola is pinned to a periapsis radius (parking orbit, flyby
altitude) and the burn is the speed difference at that periapsis.

Sign conventions and units:
    - All distances in meters
    - All velocities in m/s
    - All angles in radians
===============================================================================
"""

import logging
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Tuple

import numpy as np

from dynamics.bodies import CelestialBody
from dynamics.elements import ManeuverPoint
from dynamics.orbit import Orbit

logger = logging.getLogger(__name__)


class ManeuverKind(IntEnum):
    """Maneuver archetypes."""
    IDENTITY = auto()
    CHANGE_APOAPSIS = auto()
    CHANGE_PERIAPSIS = auto()
    CHANGE_INCLINATION = auto()
    ESCAPE = auto()
    CAPTURE = auto()
    GRAVITY_ASSIST = auto()


@dataclass(frozen=True)
class Maneuver:
    """
    Immutable record of an impulsive orbit transition.

    Attributes
    ----------
    kind : ManeuverKind
        Archetype that produced the record.
    initial : Orbit
        Orbit before the impulse.
    resulting : Orbit
        Orbit after the impulse.
    delta_v : float
        Impulse magnitude (m/s).
    maneuver_point : ManeuverPoint
        Point of *initial* where the impulse is applied.
    """
    kind: ManeuverKind
    initial: Orbit
    resulting: Orbit
    delta_v: float
    maneuver_point: ManeuverPoint

    def __str__(self) -> str:
        return (
            f"dV: {self.delta_v:.3f} m/s at {self.maneuver_point.name} point "
            f"({self.kind.name.lower().replace('_', ' ')})\n"
            f"Initial[{self.initial}]\n"
            f"Next[{self.resulting}]"
        )


@dataclass(frozen=True)
class EscapeManeuver(Maneuver):
    """Escape from a parking orbit onto a parent-relative transfer ellipse."""
    escape: Orbit
    source_body_point: ManeuverPoint

    @property
    def impulse_angle(self) -> float:
        """
        Angle between the periapsis and the departure asymptote,
        acos(-1/e), used to time the burn relative to the planet's motion.
        """
        return float(np.arccos(-1.0 / self.escape.eccentricity))


@dataclass(frozen=True)
class CaptureManeuver(Maneuver):
    """Capture from an inbound transfer ellipse into a parking orbit."""
    capture: Orbit
    target_body_point: ManeuverPoint


@dataclass(frozen=True)
class GravityAssistManeuver(Maneuver):
    """Flyby patching an inbound and an outbound hyperbola at one periapsis."""
    capture: Orbit
    escape: Orbit
    assist_body_point: ManeuverPoint


class ManeuverPlanner:
    """
    Builds maneuver records for every supported orbit transition.

    The planner is stateless: all inputs are passed as arguments and a new
    Maneuver is returned. Orbits are never modified.

    Typical usage:
        planner = ManeuverPlanner()
        raise_apo = planner.change_apoapsis(parking, GEO_RADIUS)
        circ = planner.change_periapsis(raise_apo.resulting, GEO_RADIUS)
        total = raise_apo.delta_v + circ.delta_v
    """

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def identity(self, orbit: Orbit) -> Maneuver:
        """No-op maneuver: same orbit, zero delta-V."""
        return Maneuver(ManeuverKind.IDENTITY, orbit, orbit, 0.0, ManeuverPoint.UNSPECIFIED)

    # -------------------------------------------------------------------------
    # In-plane shape changes
    # -------------------------------------------------------------------------

    def change_apoapsis(self, orbit: Orbit, target_apoapsis: float) -> Maneuver:
        """
        Change the apoapsis with a burn at periapsis.

        The periapsis radius is kept. Depending on the target:

            target >= r_p       -> ellipse (r_p, target)
            0 <= target < r_p   -> ellipse (target, r_p), roles swap
            target < 0          -> hyperbola with periapsis r_p; the negative
                                   radius encodes the excess energy

        Equations:
            dv = | v_p(before) - v_p(after) |

        Args:
            orbit: Initial orbit.
            target_apoapsis: New apoapsis radius (m).

        Returns:
            Maneuver applied at PERIAPSIS.
        """
        if np.isclose(target_apoapsis, orbit.apoapsis_radius, rtol=1e-12, atol=0.0):
            return Maneuver(ManeuverKind.CHANGE_APOAPSIS, orbit, orbit, 0.0, ManeuverPoint.PERIAPSIS)

        periapsis = orbit.periapsis_radius
        plane = _plane_of(orbit)
        if target_apoapsis >= periapsis:
            resulting = Orbit.from_radii(orbit.parent, periapsis, target_apoapsis, **plane)
        elif target_apoapsis >= 0.0:
            resulting = Orbit.from_radii(orbit.parent, target_apoapsis, periapsis, **plane)
        else:
            resulting = Orbit.hyperbolic_from_radii(orbit.parent, periapsis, target_apoapsis, **plane)

        delta_v = abs(orbit.periapsis.speed - resulting.periapsis.speed)
        logger.debug(
            "Change apoapsis: %.0f m -> %.0f m, dv=%.1f m/s",
            orbit.apoapsis_radius, target_apoapsis, delta_v,
        )
        return Maneuver(ManeuverKind.CHANGE_APOAPSIS, orbit, resulting, delta_v, ManeuverPoint.PERIAPSIS)

    def change_periapsis(self, orbit: Orbit, target_periapsis: float) -> Maneuver:
        """
        Change the periapsis with a burn at apoapsis.

        The apoapsis radius is kept; a target beyond the current apoapsis
        swaps the two roles. Requires an elliptic orbit (a hyperbola has no
        apoapsis to burn at).

        Equations:
            dv = | v_a(before) - v_a(after) |

        Args:
            orbit: Initial elliptic orbit.
            target_periapsis: New periapsis radius (m), > 0.

        Returns:
            Maneuver applied at APOAPSIS.
        """
        if not orbit.is_elliptic:
            raise ValueError("Orbit must be elliptic in order to change its periapsis")
        if not target_periapsis > 0.0:
            raise ValueError(f"Target periapsis must be greater than 0 m, got {target_periapsis}")

        if np.isclose(target_periapsis, orbit.periapsis_radius, rtol=1e-12, atol=0.0):
            return Maneuver(ManeuverKind.CHANGE_PERIAPSIS, orbit, orbit, 0.0, ManeuverPoint.APOAPSIS)

        apoapsis = orbit.apoapsis_radius
        plane = _plane_of(orbit)
        if target_periapsis <= apoapsis:
            resulting = Orbit.from_radii(orbit.parent, target_periapsis, apoapsis, **plane)
        else:
            resulting = Orbit.from_radii(orbit.parent, apoapsis, target_periapsis, **plane)

        delta_v = abs(orbit.apoapsis.speed - resulting.apoapsis.speed)
        logger.debug(
            "Change periapsis: %.0f m -> %.0f m, dv=%.1f m/s",
            orbit.periapsis_radius, target_periapsis, delta_v,
        )
        return Maneuver(ManeuverKind.CHANGE_PERIAPSIS, orbit, resulting, delta_v, ManeuverPoint.APOAPSIS)

    # -------------------------------------------------------------------------
    # Plane change
    # -------------------------------------------------------------------------

    def change_inclination(
        self,
        orbit: Orbit,
        target_inclination: float,
        maneuver_point: ManeuverPoint = ManeuverPoint.UNSPECIFIED,
    ) -> Maneuver:
        """
        Rotate the orbit plane to a new inclination.

        Semi-major axis, eccentricity, argument of periapsis, node and epoch
        phase are kept. The target is normalized into [0, pi].

        Equations:
            dv = 2 * v * sin(|delta_i| / 2)

        where v is the speed at *maneuver_point*. The burn is cheapest where
        the speed is lowest, usually at apoapsis.

        Args:
            orbit: Initial orbit.
            target_inclination: New inclination (rad).
            maneuver_point: Where the burn is applied.

        Returns:
            Maneuver applied at *maneuver_point*.
        """
        if not orbit.is_elliptic and maneuver_point == ManeuverPoint.APOAPSIS:
            raise ValueError("Orbit must be elliptic in order to change its inclination at apoapsis")

        resulting = Orbit.create(
            orbit.parent,
            orbit.semi_major_axis,
            orbit.eccentricity,
            inclination=target_inclination,
            argument_of_periapsis=orbit.argument_of_periapsis,
            longitude_of_ascending_node=orbit.longitude_of_ascending_node,
            mean_anomaly_at_epoch=orbit.point_at_epoch.mean_anomaly,
        )
        delta_i = abs(orbit.inclination - resulting.inclination)
        delta_v = orbit.get_velocity(maneuver_point) * 2.0 * np.sin(0.5 * delta_i)

        logger.debug(
            "Change inclination: %.4f rad -> %.4f rad at %s, dv=%.1f m/s",
            orbit.inclination, resulting.inclination, maneuver_point.name, delta_v,
        )
        return Maneuver(ManeuverKind.CHANGE_INCLINATION, orbit, resulting, float(delta_v), maneuver_point)

    # -------------------------------------------------------------------------
    # Patched-conic maneuvers
    # -------------------------------------------------------------------------

    def escape(
        self,
        parking_orbit: Orbit,
        target_radius: float,
        maneuver_point: ManeuverPoint = ManeuverPoint.PERIAPSIS,
        source_body_point: ManeuverPoint = ManeuverPoint.UNSPECIFIED,
    ) -> EscapeManeuver:
        """
        Escape from a parking orbit onto a transfer towards *target_radius*.

        The resulting orbit is the parent-relative transfer ellipse between
        the source planet's radius and *target_radius*. The escape
        hyperbola about the planet has its periapsis at the parking orbit's
        radius at *maneuver_point*.

        Equations:
            v_inf = | v_planet - v_transfer(r_planet) |
            e     = 1 + v_inf^2 r_p / mu
            dv    = | v_p(hyperbola) - v_parking |

        Args:
            parking_orbit: Orbit about the source planet.
            target_radius: Parent-relative radius to transfer to (m).
            maneuver_point: Point of the parking orbit where the burn happens.
            source_body_point: Point of the planet's own orbit used for its
                radius and speed.

        Returns:
            EscapeManeuver whose resulting orbit is the transfer ellipse.
        """
        source_body = _require_orbit(parking_orbit.parent, "Parking orbit's parent body")
        transfer, excess_speed = _patched_transfer(source_body, source_body_point, target_radius)

        escape = Orbit.from_excess_speed(
            parking_orbit.parent,
            parking_orbit.get_radius(maneuver_point),
            excess_speed,
            inclination=parking_orbit.inclination,
        )
        delta_v = abs(escape.periapsis.speed - parking_orbit.get_velocity(maneuver_point))

        logger.debug(
            "Escape from %s: v_inf=%.1f m/s, dv=%.1f m/s",
            source_body.name, excess_speed, delta_v,
        )
        return EscapeManeuver(
            ManeuverKind.ESCAPE, parking_orbit, transfer, delta_v, maneuver_point,
            escape=escape, source_body_point=source_body_point,
        )

    def capture(
        self,
        source_radius: float,
        parking_orbit: Orbit,
        target_body_point: ManeuverPoint = ManeuverPoint.UNSPECIFIED,
    ) -> CaptureManeuver:
        """
        Capture into *parking_orbit* after a transfer from *source_radius*.

        The initial orbit is the parent-relative transfer ellipse between
        *source_radius* and the target planet's radius. The capture
        hyperbola shares the parking orbit's periapsis, where the burn
        happens.

        Equations:
            v_inf = | v_planet - v_transfer(r_planet) |
            dv    = | v_p(parking) - v_p(hyperbola) |

        Args:
            source_radius: Parent-relative radius the transfer starts from (m).
            parking_orbit: Desired orbit about the target planet.
            target_body_point: Point of the planet's own orbit used for its
                radius and speed.

        Returns:
            CaptureManeuver applied at PERIAPSIS.
        """
        target_body = _require_orbit(parking_orbit.parent, "Parking orbit's parent body")
        transfer, excess_speed = _patched_transfer(target_body, target_body_point, source_radius)

        capture = Orbit.from_excess_speed(
            parking_orbit.parent,
            parking_orbit.periapsis.radius,
            excess_speed,
            inclination=parking_orbit.inclination,
        )
        delta_v = abs(parking_orbit.periapsis.speed - capture.periapsis.speed)

        logger.debug(
            "Capture at %s: v_inf=%.1f m/s, dv=%.1f m/s",
            target_body.name, excess_speed, delta_v,
        )
        return CaptureManeuver(
            ManeuverKind.CAPTURE, transfer, parking_orbit, delta_v, ManeuverPoint.PERIAPSIS,
            capture=capture, target_body_point=target_body_point,
        )

    def gravity_assist(
        self,
        source_radius: float,
        assist_body: CelestialBody,
        assist_altitude: float,
        target_radius: float,
        assist_body_point: ManeuverPoint = ManeuverPoint.UNSPECIFIED,
    ) -> GravityAssistManeuver:
        """
        Flyby of *assist_body* redirecting a transfer from *source_radius*
        towards *target_radius*.

        Inbound and outbound transfer ellipses each imply an excess speed at
        the assist planet. Both hyperbolas are pinned to the flyby periapsis
        radius R + *assist_altitude*; any mismatch in their periapsis speeds
        is made up by a powered burn there (zero for a pure flyby).

        Args:
            source_radius: Parent-relative radius of the inbound transfer (m).
            assist_body: Planet used for the flyby.
            assist_altitude: Flyby periapsis altitude (m).
            target_radius: Parent-relative radius of the outbound transfer (m).
            assist_body_point: Point of the planet's own orbit used for its
                radius and speed.

        Returns:
            GravityAssistManeuver from the inbound to the outbound transfer.
        """
        _require_orbit(assist_body, "Assist body")
        inbound, inbound_excess = _patched_transfer(assist_body, assist_body_point, source_radius)
        outbound, outbound_excess = _patched_transfer(assist_body, assist_body_point, target_radius)

        capture = Orbit.from_excess_speed(
            assist_body, assist_body.get_radius(assist_altitude), inbound_excess
        )
        escape = Orbit.from_excess_speed(
            assist_body, capture.periapsis.radius, outbound_excess
        )
        delta_v = abs(capture.periapsis.speed - escape.periapsis.speed)

        logger.debug(
            "Gravity assist at %s: v_inf in=%.1f m/s, out=%.1f m/s, dv=%.1f m/s",
            assist_body.name, inbound_excess, outbound_excess, delta_v,
        )
        return GravityAssistManeuver(
            ManeuverKind.GRAVITY_ASSIST, inbound, outbound, delta_v, ManeuverPoint.PERIAPSIS,
            capture=capture, escape=escape, assist_body_point=assist_body_point,
        )


# =============================================================================
# HELPERS
# =============================================================================

def _plane_of(orbit: Orbit) -> dict:
    return {
        'inclination': orbit.inclination,
        'argument_of_periapsis': orbit.argument_of_periapsis,
        'longitude_of_ascending_node': orbit.longitude_of_ascending_node,
    }


def _require_orbit(body: CelestialBody, role: str) -> CelestialBody:
    if body.orbit is None:
        raise ValueError(f"{role} ({body.name}) must have an orbit")
    return body


def _patched_transfer(
    body: CelestialBody,
    body_point: ManeuverPoint,
    other_radius: float,
) -> Tuple[Orbit, float]:
    """
    Parent-relative transfer ellipse between *body*'s radius and
    *other_radius*, and the excess speed it implies at *body*.
    """
    body_radius = body.orbit.get_radius(body_point)
    transfer = Orbit.from_radii(
        body.orbit.parent,
        min(body_radius, other_radius),
        max(body_radius, other_radius),
        inclination=body.orbit.inclination,
    )
    speed_at_body = (
        transfer.periapsis.speed if body_radius < other_radius else transfer.apoapsis.speed
    )
    excess_speed = abs(body.orbit.get_velocity(body_point) - speed_at_body)
    return transfer, excess_speed
