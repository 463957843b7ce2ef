"""
===============================================================================
PATCHED CONICS - Engine and Vessel Model
===============================================================================
Rocket-equation bookkeeping for impulsive burns.

Tsiolkovsky rocket equation:

    v_e   = g0 * Isp                         (effective exhaust velocity)
    dv    = v_e * ln((m_dry + m_prop) / m_dry)
    m_prop = m_dry * (exp(dv / v_e) - 1)     (propellant for dv)
    mdot  = F / v_e                          (mass flow at full thrust)

Vessels are immutable: burning propellant or dropping payload returns a new
Vessel, so a mission ledger can keep the vessel state before and after
every entry.

Usage
-----
    engine = Engine(specific_impulse=345.0, thrust=60000.0)
    vessel = Vessel(engine, dry_mass=4000.0, propellant_mass=4000.0)
    burn = vessel.get_maneuver(1500.0)
    vessel = burn.final_vessel
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np

from core.constants import STANDARD_GRAVITY


@dataclass(frozen=True)
class Engine:
    """
    Rocket engine.

    Parameters
    ----------
    specific_impulse : float
        Specific impulse (s), > 0.
    thrust : float
        Full thrust (N), > 0.
    """
    specific_impulse: float
    thrust: float

    def __post_init__(self):
        if not self.specific_impulse > 0.0:
            raise ValueError(
                f"Specific impulse must be greater than 0 s, got {self.specific_impulse}"
            )
        if not self.thrust > 0.0:
            raise ValueError(f"Thrust must be greater than 0 N, got {self.thrust}")

    def __str__(self) -> str:
        return (
            f"Isp: {self.specific_impulse:.3f} s, Thrust: {self.thrust / 1e3:.3f} kN, "
            f"Flow rate: {self.propellant_flow_rate:.3f} kg/s"
        )

    @property
    def exhaust_velocity(self) -> float:
        """g0 * Isp (m/s)."""
        return STANDARD_GRAVITY * self.specific_impulse

    @property
    def propellant_flow_rate(self) -> float:
        """Mass flow at full thrust (kg/s)."""
        return self.thrust / self.exhaust_velocity

    def get_available_delta_v(self, dry_mass: float, propellant_mass: float) -> float:
        return float(self.exhaust_velocity * np.log((dry_mass + propellant_mass) / dry_mass))

    def get_propellant_mass(self, dry_mass: float, delta_v: float) -> float:
        return float(dry_mass * (np.exp(delta_v / self.exhaust_velocity) - 1.0))


@dataclass(frozen=True)
class Vessel:
    """
    Spacecraft reduced to what the rocket equation needs.

    Parameters
    ----------
    engine : Engine
        Main engine.
    dry_mass : float
        Everything except usable propellant (kg).
    propellant_mass : float
        Usable propellant (kg).
    """
    engine: Engine
    dry_mass: float
    propellant_mass: float = 0.0

    def __post_init__(self):
        if not self.dry_mass > 0.0:
            raise ValueError(f"Dry mass must be greater than 0 kg, got {self.dry_mass}")
        if not self.propellant_mass >= 0.0:
            raise ValueError(f"Propellant mass cannot be negative, got {self.propellant_mass}")

    def __str__(self) -> str:
        return (
            f"Mass: {self.mass:.1f} kg (Dry: {self.dry_mass:.1f} kg, "
            f"Propellant: {self.propellant_mass:.1f} kg), Engine: ({self.engine}), "
            f"dV: {self.available_delta_v:.1f} m/s"
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> Vessel:
        """
        Build a vessel from a configuration mapping:

            engine:
              specific_impulse: 345.0   # s
              thrust: 60000.0           # N
            dry_mass: 4000.0            # kg
            propellant_mass: 4000.0     # kg
        """
        engine_cfg = config['engine']
        engine = Engine(float(engine_cfg['specific_impulse']), float(engine_cfg['thrust']))
        return cls(engine, float(config['dry_mass']), float(config.get('propellant_mass', 0.0)))

    # ------------------------------------------------------------------ #
    #  Mass properties
    # ------------------------------------------------------------------ #
    @property
    def mass(self) -> float:
        return self.dry_mass + self.propellant_mass

    @property
    def available_delta_v(self) -> float:
        return self.engine.get_available_delta_v(self.dry_mass, self.propellant_mass)

    @property
    def acceleration(self) -> float:
        """Full-thrust acceleration (m/s^2)."""
        return self.engine.thrust / self.mass

    def get_weight(self, gravitational_acceleration: float) -> float:
        return self.mass * gravitational_acceleration

    def get_thrust_to_weight_ratio(self, gravitational_acceleration: float) -> float:
        return self.engine.thrust / self.get_weight(gravitational_acceleration)

    # ------------------------------------------------------------------ #
    #  Burns
    # ------------------------------------------------------------------ #
    def get_maneuver(self, delta_v: float, thrust_ratio: float = 1.0) -> VesselManeuver:
        """Burn for *delta_v* at *thrust_ratio* of full thrust."""
        return VesselManeuver(self, delta_v, thrust_ratio)

    def get_maneuver_for_propellant(self, propellant_mass: float, thrust_ratio: float = 1.0) -> VesselManeuver:
        """
        Burn that consumes *propellant_mass*. More propellant than is on
        board yields an infinite delta-V request (an impossible burn).
        """
        if propellant_mass < 0.0:
            return self.get_maneuver(0.0, thrust_ratio)
        if propellant_mass > self.propellant_mass:
            return self.get_maneuver(np.inf, thrust_ratio)
        remaining = self.engine.get_available_delta_v(
            self.dry_mass, self.propellant_mass - propellant_mass
        )
        return self.get_maneuver(self.available_delta_v - remaining, thrust_ratio)

    def get_maneuver_for_duration(self, duration: float, thrust_ratio: float = 1.0) -> VesselManeuver:
        """Burn lasting *duration* seconds at *thrust_ratio*."""
        ratio = float(np.clip(thrust_ratio, 0.0, 1.0))
        propellant_mass = self.engine.propellant_flow_rate * duration * ratio
        return self.get_maneuver_for_propellant(propellant_mass, thrust_ratio)

    # ------------------------------------------------------------------ #
    #  Mass changes
    # ------------------------------------------------------------------ #
    def add_propellant(self, mass: float) -> Vessel:
        return Vessel(self.engine, self.dry_mass, self.propellant_mass + mass)

    def remove_propellant(self, mass: float) -> Vessel:
        return Vessel(self.engine, self.dry_mass, self.propellant_mass - mass)

    def add_dry_mass(self, mass: float) -> Vessel:
        return Vessel(self.engine, self.dry_mass + mass, self.propellant_mass)

    def remove_dry_mass(self, mass: float) -> Vessel:
        return Vessel(self.engine, self.dry_mass - mass, self.propellant_mass)


@dataclass(frozen=True)
class VesselManeuver:
    """
    Outcome of one burn for one vessel.

    A non-positive delta-V is a no-op. A zero thrust ratio never finishes,
    and a delta-V beyond what the vessel carries burns all propellant and
    never finishes either; both report an infinite burn time.
    """
    vessel: Vessel
    requested_delta_v: float
    requested_thrust_ratio: float = 1.0

    delta_v: float = field(init=False)
    thrust_ratio: float = field(init=False)
    used_propellant: float = field(init=False)
    elapsed_time: float = field(init=False)

    def __post_init__(self):
        _set = object.__setattr__
        _set(self, 'thrust_ratio', float(np.clip(self.requested_thrust_ratio, 0.0, 1.0)))

        if not self.requested_delta_v > 0.0:
            _set(self, 'delta_v', 0.0)
            _set(self, 'used_propellant', 0.0)
            _set(self, 'elapsed_time', 0.0)
            return

        _set(self, 'delta_v', float(self.requested_delta_v))
        if self.thrust_ratio == 0.0:
            _set(self, 'used_propellant', 0.0)
            _set(self, 'elapsed_time', np.inf)
            return

        available = self.vessel.available_delta_v
        if self.delta_v > available:
            _set(self, 'used_propellant', self.vessel.propellant_mass)
            _set(self, 'elapsed_time', np.inf)
            return

        engine = self.vessel.engine
        used = self.vessel.propellant_mass - engine.get_propellant_mass(
            self.vessel.dry_mass, available - self.delta_v
        )
        _set(self, 'used_propellant', used)
        _set(self, 'elapsed_time', used / (engine.propellant_flow_rate * self.thrust_ratio))

    def __str__(self) -> str:
        return (
            f"dV: {self.delta_v:.1f} m/s, Used propellant mass: {self.used_propellant:.1f} kg, "
            f"Time: {self.elapsed_time:.3f} s, Thrust: {self.thrust / 1e3:.3f} kN"
        )

    @property
    def thrust(self) -> float:
        return self.vessel.engine.thrust * self.thrust_ratio

    @property
    def used_propellant_ratio(self) -> float:
        if self.vessel.propellant_mass == 0.0:
            return 1.0
        return self.used_propellant / self.vessel.propellant_mass

    @property
    def final_vessel(self) -> Vessel:
        return self.vessel.remove_propellant(self.used_propellant)
