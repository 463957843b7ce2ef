"""
===============================================================================
PATCHED CONICS - Mission Ledger
===============================================================================
A mission is an ordered log of immutable entries. Each entry records the
vessel before and after one step and, for orbital maneuvers, the Maneuver
that was flown:

    Initial                  (identity maneuver on the starting orbit)
    Kerbin escape to Duna    (EscapeManeuver, dv, burn time)
    Deploy relay             (payload drop, no dv)
    Duna capture             (CaptureManeuver, dv, burn time)
    ...

Orbital burns are fed to the rocket equation in two halves so that the
mass lost during the first half lowers the propellant needed for the
second.

Missions can be scripted in YAML (see config/mission_config.yaml) and
built with build_mission().
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from core.constants import DEG2RAD
from dynamics.bodies import CelestialBody, PlanetarySystem
from dynamics.elements import ManeuverPoint
from dynamics.orbit import Orbit
from guidance.maneuvers import Maneuver, ManeuverPlanner
from guidance.propulsion import Vessel, VesselManeuver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissionManeuver:
    """One ledger entry."""
    initial_vessel: Vessel
    final_vessel: Vessel
    delta_v: float
    elapsed_time: float
    orbital_maneuver: Optional[Maneuver]
    vessel_maneuvers: Optional[Tuple[VesselManeuver, VesselManeuver]]
    description: str = ""

    def __str__(self) -> str:
        parts = []
        if self.description:
            parts.append(self.description)
        if self.orbital_maneuver is not None:
            parts.append(f"dV: {self.delta_v:.1f} m/s, dt: {self.elapsed_time:.1f} s")
        parts.append(f"Vessel[{self.final_vessel}]")
        return ", ".join(parts)

    @classmethod
    def from_orbital(cls, vessel: Vessel, maneuver: Maneuver, description: str = "") -> "MissionManeuver":
        """Fly *maneuver* with *vessel*, splitting the burn into two halves."""
        first = vessel.get_maneuver(0.5 * maneuver.delta_v)
        second = first.final_vessel.get_maneuver(0.5 * maneuver.delta_v)
        if np.isinf(second.elapsed_time):
            elapsed_time = second.elapsed_time
        else:
            elapsed_time = first.elapsed_time + second.elapsed_time
        return cls(
            initial_vessel=vessel,
            final_vessel=second.final_vessel,
            delta_v=maneuver.delta_v,
            elapsed_time=elapsed_time,
            orbital_maneuver=maneuver,
            vessel_maneuvers=(first, second),
            description=description,
        )

    @classmethod
    def from_payload_drop(cls, vessel: Vessel, dry_mass: float, description: str = "") -> "MissionManeuver":
        """Detach *dry_mass* kg from the vessel."""
        return cls(vessel, vessel.remove_dry_mass(dry_mass), 0.0, 0.0, None, None, description)


class Mission:
    """
    Ordered log of mission steps for one vessel.

    Parameters
    ----------
    description : str
        Human readable mission name.
    vessel : Vessel
        Vessel at the start of the mission.
    starting_orbit : Orbit
        Orbit at the start of the mission.
    """

    def __init__(self, description: str, vessel: Vessel, starting_orbit: Orbit):
        self.description = description
        self._maneuvers: List[MissionManeuver] = [
            MissionManeuver.from_orbital(vessel, ManeuverPlanner().identity(starting_orbit), "Initial")
        ]

    def __str__(self) -> str:
        lines = [self.description]
        lines.extend(str(entry) for entry in self._maneuvers)
        return "\n".join(lines)

    @property
    def maneuvers(self) -> Tuple[MissionManeuver, ...]:
        return tuple(self._maneuvers)

    @property
    def vessel(self) -> Vessel:
        return self._maneuvers[-1].final_vessel

    @property
    def orbit(self) -> Orbit:
        """Resulting orbit of the most recent orbital maneuver."""
        for entry in reversed(self._maneuvers):
            if entry.orbital_maneuver is not None:
                return entry.orbital_maneuver.resulting
        raise ValueError("Mission has no orbital maneuvers")

    @property
    def total_delta_v(self) -> float:
        return float(sum(entry.delta_v for entry in self._maneuvers))

    @property
    def total_elapsed_time(self) -> float:
        return float(sum(entry.elapsed_time for entry in self._maneuvers))

    def add_orbital_maneuver(self, maneuver: Maneuver, description: str = "") -> "Mission":
        entry = MissionManeuver.from_orbital(self.vessel, maneuver, description)
        self._maneuvers.append(entry)
        logger.debug("%s: %s", self.description, entry)
        return self

    def add_payload_drop(self, mass: float, description: str = "") -> "Mission":
        entry = MissionManeuver.from_payload_drop(self.vessel, mass, description)
        self._maneuvers.append(entry)
        logger.debug("%s: %s", self.description, entry)
        return self

    def to_dataframe(self) -> pd.DataFrame:
        """
        Ledger as a table.

        Returns
        -------
        pd.DataFrame
            Columns: description, maneuver, maneuver_point, delta_v,
            elapsed_time, used_propellant, mass, propellant_mass,
            available_delta_v, parent, periapsis, apoapsis
        """
        rows = []
        for entry in self._maneuvers:
            maneuver = entry.orbital_maneuver
            used = entry.initial_vessel.propellant_mass - entry.final_vessel.propellant_mass
            row = {
                "description": entry.description,
                "maneuver": maneuver.kind.name if maneuver is not None else "PAYLOAD_DROP",
                "maneuver_point": maneuver.maneuver_point.name if maneuver is not None else None,
                "delta_v": entry.delta_v,
                "elapsed_time": entry.elapsed_time,
                "used_propellant": used,
                "mass": entry.final_vessel.mass,
                "propellant_mass": entry.final_vessel.propellant_mass,
                "available_delta_v": entry.final_vessel.available_delta_v,
                "parent": None,
                "periapsis": np.nan,
                "apoapsis": np.nan,
            }
            if maneuver is not None:
                row["parent"] = maneuver.resulting.parent.name
                row["periapsis"] = maneuver.resulting.periapsis_radius
                row["apoapsis"] = maneuver.resulting.apoapsis_radius
            rows.append(row)
        return pd.DataFrame(rows)


# =============================================================================
# YAML MISSION SCRIPTS
# =============================================================================

_POINTS = {
    'unspecified': ManeuverPoint.UNSPECIFIED,
    'periapsis': ManeuverPoint.PERIAPSIS,
    'apoapsis': ManeuverPoint.APOAPSIS,
}


def _point(step: Dict[str, Any], key: str, default: ManeuverPoint) -> ManeuverPoint:
    name = step.get(key)
    if name is None:
        return default
    try:
        return _POINTS[str(name).lower()]
    except KeyError:
        raise ValueError(f"'{name}' is not a valid orbital maneuver point") from None


def _radius(entry: Dict[str, Any], body: CelestialBody, system: PlanetarySystem, prefix: str = "") -> float:
    """
    Resolve a radius given as ``<prefix>radius`` (m from the centre of
    *body*), ``<prefix>altitude`` (m above its surface), ``<prefix>body``
    (semi-major axis of another body's orbit) or ``<prefix>soi_fraction``
    (fraction of *body*'s sphere of influence).
    """
    if f'{prefix}radius' in entry:
        return float(entry[f'{prefix}radius'])
    if f'{prefix}altitude' in entry:
        return body.get_radius(float(entry[f'{prefix}altitude']))
    if f'{prefix}body' in entry:
        other = system[entry[f'{prefix}body']]
        if other.orbit is None:
            raise ValueError(f"{other.name} has no orbit to take a radius from")
        return other.orbit.semi_major_axis
    if f'{prefix}soi_fraction' in entry:
        return body.sphere_of_influence_radius * float(entry[f'{prefix}soi_fraction'])
    raise ValueError(f"No {prefix or ''}radius, altitude, body or soi_fraction given in {entry}")


def orbit_from_config(config: Dict[str, Any], system: PlanetarySystem) -> Orbit:
    """
    Build an orbit from a mission-script mapping.

    Circular orbits take a single ``radius``/``altitude``; elliptic orbits
    take ``periapsis_*`` and ``apoapsis_*`` entries. ``inclination_deg`` is
    optional.
    """
    body = system[config['body']]
    inclination = float(config.get('inclination_deg', 0.0)) * DEG2RAD
    # 'body' names the parent here, not a radius source
    radii = {key: value for key, value in config.items() if key != 'body'}
    if any(key.startswith('periapsis_') for key in config):
        return Orbit.from_radii(
            body,
            _radius(radii, body, system, 'periapsis_'),
            _radius(radii, body, system, 'apoapsis_'),
            inclination=inclination,
        )
    return Orbit.circular_from_radius(body, _radius(radii, body, system), inclination=inclination)


def _source_radius(step: Dict[str, Any], system: PlanetarySystem) -> float:
    if 'source_radius' in step:
        return float(step['source_radius'])
    source = system[step['source']]
    if source.orbit is None:
        raise ValueError(f"{source.name} has no orbit to take a radius from")
    return source.orbit.semi_major_axis


def _apply_step(mission: Mission, step: Dict[str, Any], system: PlanetarySystem,
                planner: ManeuverPlanner) -> None:
    kind = step['type']
    description = step.get('description', kind.replace('_', ' '))
    orbit = mission.orbit

    if kind == 'payload_drop':
        mission.add_payload_drop(float(step['mass']), description)
        return

    if kind == 'change_apoapsis':
        maneuver = planner.change_apoapsis(orbit, _radius(step, orbit.parent, system))
    elif kind == 'change_periapsis':
        maneuver = planner.change_periapsis(orbit, _radius(step, orbit.parent, system))
    elif kind == 'change_inclination':
        if 'match' in step:
            target = system[step['match']]
            if target.orbit is None:
                raise ValueError(f"{target.name} has no orbit to match")
            inclination = target.orbit.inclination
        else:
            inclination = float(step['inclination_deg']) * DEG2RAD
        maneuver = planner.change_inclination(
            orbit, inclination, _point(step, 'point', ManeuverPoint.UNSPECIFIED)
        )
    elif kind == 'escape':
        maneuver = planner.escape(
            orbit,
            _radius(step, orbit.parent.parent or orbit.parent, system, 'target_'),
            _point(step, 'point', ManeuverPoint.PERIAPSIS),
            _point(step, 'source_point', ManeuverPoint.UNSPECIFIED),
        )
    elif kind == 'capture':
        maneuver = planner.capture(
            _source_radius(step, system),
            orbit_from_config(step['parking_orbit'], system),
            _point(step, 'target_point', ManeuverPoint.UNSPECIFIED),
        )
    elif kind == 'gravity_assist':
        assist = system[step['assist']]
        maneuver = planner.gravity_assist(
            _source_radius(step, system),
            assist,
            float(step['altitude']),
            _radius(step, assist.parent or assist, system, 'target_'),
            _point(step, 'assist_point', ManeuverPoint.UNSPECIFIED),
        )
    else:
        raise ValueError(f"Unknown mission step type '{kind}'")

    mission.add_orbital_maneuver(maneuver, description)


def build_mission(config: Dict[str, Any], system: PlanetarySystem) -> Mission:
    """
    Build a Mission from a parsed mission script.

    Args:
        config: Mapping with ``mission``, ``vessel``, ``starting_orbit``
            and ``steps`` sections.
        system: Planetary system the script refers to.

    Returns:
        The mission with every step applied in order.
    """
    vessel = Vessel.from_config(config['vessel'])
    starting_orbit = orbit_from_config(config['starting_orbit'], system)
    mission = Mission(config['mission']['name'], vessel, starting_orbit)

    planner = ManeuverPlanner()
    for step in config.get('steps', []) or []:
        _apply_step(mission, step, system, planner)

    logger.info(
        "Mission %s: %d entries, total dv=%.1f m/s, remaining dv=%.1f m/s",
        mission.description, len(mission.maneuvers), mission.total_delta_v,
        mission.vessel.available_delta_v,
    )
    return mission
