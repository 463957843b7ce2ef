"""
===============================================================================
PATCHED CONICS - Celestial Bodies and Planetary Systems
===============================================================================
A planetary system is a tree of bodies: the root (a star) has no orbit, and
every other body carries an Orbit around its parent. The tree is built once
(normally from a YAML catalog) and only read afterwards.

Sphere of influence (Laplace):

    r_SOI = a * (m / M)^(2/5)

where a is the body's semi-major axis, m its mass and M its parent's mass.
Beyond r_SOI the parent's gravity dominates and the patched-conic model
switches to the parent-centred leg.

YAML catalog layout
-------------------
    name: Kerbol
    root:
      name: Kerbol
      mass: 1.7565459e+28          # kg
      radius: 261600000.0          # m
      atmosphere_height: 600000.0  # m
      children:
        - name: Kerbin
          mass: 5.2915158e+22
          radius: 600000.0
          atmosphere_height: 70000.0
          orbit:
            semi_major_axis: 13599840256.0   # m
            eccentricity: 0.0
            inclination_deg: 0.0
            argument_of_periapsis_deg: 0.0
            longitude_of_ascending_node_deg: 0.0
            mean_anomaly_at_epoch_rad: 3.14
          children: [...]
===============================================================================
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

import numpy as np
import yaml

from core.constants import DEG2RAD, GRAVITATIONAL_CONSTANT
from dynamics.orbit import Orbit

logger = logging.getLogger(__name__)


class CelestialBody:
    """
    A gravitating body, optionally orbiting a parent.

    Constructing a body with an orbit registers it as a child of the
    orbit's parent.

    Parameters
    ----------
    name : str
        Unique name within its planetary system.
    mass : float
        Mass (kg), > 0.
    radius : float
        Mean surface radius (m), > 0.
    atmosphere_height : float
        Height of the atmosphere above the surface (m), >= 0.
    orbit : Orbit, optional
        Orbit around the parent body. None for the root of a system.
    """

    def __init__(
        self,
        name: str,
        mass: float,
        radius: float,
        atmosphere_height: float = 0.0,
        orbit: Optional[Orbit] = None,
    ):
        if not mass > 0.0:
            raise ValueError(f"Mass of {name} must be greater than 0 kg, got {mass}")
        if not radius > 0.0:
            raise ValueError(f"Radius of {name} must be greater than 0 m, got {radius}")
        if not atmosphere_height >= 0.0:
            raise ValueError(
                f"Atmosphere height of {name} cannot be negative, got {atmosphere_height}"
            )

        self.name = name
        self.mass = float(mass)
        self.radius = float(radius)
        self.atmosphere_height = float(atmosphere_height)
        self.orbit = orbit
        self.children: List["CelestialBody"] = []

        self.gravitational_parameter = GRAVITATIONAL_CONSTANT * self.mass
        self.surface_gravity = self.gravitational_parameter / self.radius ** 2
        self.escape_velocity = float(np.sqrt(2.0 * self.surface_gravity * self.radius))

        if orbit is not None:
            orbit.parent.add_child(self)

    @classmethod
    def from_gravitational_parameter(cls, name, gravitational_parameter, radius,
                                     atmosphere_height=0.0, orbit=None) -> "CelestialBody":
        """Build a body from mu = G*m instead of its mass."""
        return cls(name, gravitational_parameter / GRAVITATIONAL_CONSTANT, radius,
                   atmosphere_height, orbit)

    def __repr__(self) -> str:
        parent = self.parent.name if self.parent is not None else None
        return f"CelestialBody(name={self.name!r}, parent={parent!r})"

    def __str__(self) -> str:
        return self.name

    # ------------------------------------------------------------------ #
    #  Tree
    # ------------------------------------------------------------------ #
    @property
    def parent(self) -> Optional["CelestialBody"]:
        return self.orbit.parent if self.orbit is not None else None

    def add_child(self, child: "CelestialBody") -> None:
        if child.orbit is None or child.orbit.parent is not self:
            raise ValueError(f"{child.name} does not orbit {self.name}")
        if child not in self.children:
            self.children.append(child)

    # ------------------------------------------------------------------ #
    #  Geometry
    # ------------------------------------------------------------------ #
    @property
    def equatorial_circumference(self) -> float:
        return 2.0 * np.pi * self.radius

    @property
    def surface_area(self) -> float:
        return 4.0 * np.pi * self.radius ** 2

    @property
    def sphere_of_influence_radius(self) -> float:
        """a * (m / M)^0.4, infinite for the root of the system."""
        if self.orbit is None:
            return np.inf
        return float(self.orbit.semi_major_axis * (self.mass / self.orbit.parent.mass) ** 0.4)

    @property
    def stable_apoapsis_radius(self) -> float:
        """
        Largest radius an orbit can reach without entering a moon's sphere
        of influence. Falls back to the body's own SOI when it has no moons.
        """
        if not self.children:
            return self.sphere_of_influence_radius
        return min(
            child.orbit.periapsis_radius - child.sphere_of_influence_radius
            for child in self.children
        )

    def get_altitude(self, radius: float) -> float:
        return radius - self.radius

    def get_radius(self, altitude: float) -> float:
        return self.radius + altitude

    def get_gravitational_acceleration(self, altitude: float) -> float:
        """g(h) = g0 * (R / (R + h))^2."""
        return self.surface_gravity * (self.radius / (self.radius + altitude)) ** 2


class PlanetarySystem:
    """
    Name -> body index over one tree of celestial bodies.

    A body can only be added once its parent is part of the system; its
    children are added along with it.
    """

    def __init__(self, name: str):
        self.name = name
        self._bodies: Dict[str, CelestialBody] = {}

    def add_body(self, body: CelestialBody) -> None:
        parent = body.parent
        if parent is not None and self._bodies.get(parent.name) is not parent:
            raise ValueError(
                f"Cannot add {body.name} to {self.name}: parent {parent.name} is not in the system"
            )
        if body.name in self._bodies and self._bodies[body.name] is not body:
            raise ValueError(f"{self.name} already contains a body named {body.name}")

        self._bodies[body.name] = body
        for child in body.children:
            self.add_body(child)

    def __getitem__(self, name: str) -> CelestialBody:
        try:
            return self._bodies[name]
        except KeyError:
            raise ValueError(f"{self.name} has no body named {name!r}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._bodies

    def __iter__(self) -> Iterator[CelestialBody]:
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    @property
    def root(self) -> Optional[CelestialBody]:
        return next((body for body in self if body.parent is None), None)

    def siblings(self, name: str) -> List[CelestialBody]:
        """Other bodies orbiting the same parent as *name*."""
        body = self[name]
        if body.parent is None:
            return []
        return [child for child in body.parent.children if child is not body]


# =============================================================================
# YAML CATALOG
# =============================================================================

def _orbit_from_config(parent: CelestialBody, config: dict) -> Orbit:
    return Orbit.create(
        parent,
        semi_major_axis=float(config['semi_major_axis']),
        eccentricity=float(config.get('eccentricity', 0.0)),
        inclination=float(config.get('inclination_deg', 0.0)) * DEG2RAD,
        argument_of_periapsis=float(config.get('argument_of_periapsis_deg', 0.0)) * DEG2RAD,
        longitude_of_ascending_node=float(config.get('longitude_of_ascending_node_deg', 0.0)) * DEG2RAD,
        mean_anomaly_at_epoch=float(config.get('mean_anomaly_at_epoch_rad', 0.0)),
    )


def _body_from_config(config: dict, parent: Optional[CelestialBody] = None) -> CelestialBody:
    orbit = None
    if parent is not None:
        if 'orbit' not in config:
            raise ValueError(f"{config['name']} orbits {parent.name} but has no orbit entry")
        orbit = _orbit_from_config(parent, config['orbit'])

    body = CelestialBody(
        config['name'],
        mass=float(config['mass']),
        radius=float(config['radius']),
        atmosphere_height=float(config.get('atmosphere_height', 0.0)),
        orbit=orbit,
    )
    for child in config.get('children', []) or []:
        _body_from_config(child, body)
    return body


def planetary_system_from_config(config: dict) -> PlanetarySystem:
    """Build a PlanetarySystem from an already-parsed catalog mapping."""
    system = PlanetarySystem(config.get('name', config['root']['name']))
    system.add_body(_body_from_config(config['root']))
    logger.info("Loaded planetary system %s with %d bodies", system.name, len(system))
    return system


def load_planetary_system(path: Union[str, Path]) -> PlanetarySystem:
    """
    Load a planetary system from a YAML catalog.

    Args:
        path: Path to the catalog file.

    Returns:
        The populated PlanetarySystem.
    """
    logger.debug("Loading planetary system from %s", path)
    with open(path, 'r') as f:
        config = yaml.safe_load(f)
    return planetary_system_from_config(config)
