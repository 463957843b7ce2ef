"""
===============================================================================
PATCHED CONICS - Propulsion and Mission Ledger Test Suite
===============================================================================
Tests for the rocket-equation bookkeeping (Engine, Vessel, VesselManeuver),
the Mission ledger and the YAML mission scripts.

Reference vessel (config/mission_config.yaml):
    Isp 345 s -> v_e = 3383.3 m/s
    6500 kg dry + 9000 kg propellant -> ~2940 m/s available
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import copy

import numpy as np
import pandas as pd
import pytest
import yaml
from numpy.testing import assert_allclose

from core.constants import STANDARD_GRAVITY
from dynamics.bodies import CelestialBody, load_planetary_system
from dynamics.elements import ManeuverPoint
from dynamics.orbit import Orbit
from guidance.maneuvers import ManeuverKind, ManeuverPlanner
from guidance.mission import Mission, MissionManeuver, build_mission, orbit_from_config
from guidance.propulsion import Engine, Vessel, VesselManeuver

CONFIG_DIR = os.path.join(os.path.dirname(__file__), '..', '..', '..', 'config')


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def engine():
    return Engine(specific_impulse=345.0, thrust=60000.0)


@pytest.fixture
def vessel(engine):
    return Vessel(engine, dry_mass=6500.0, propellant_mass=9000.0)


@pytest.fixture
def earth():
    return CelestialBody.from_gravitational_parameter("Earth", 3.986e14, 6371000.0)


@pytest.fixture
def leo(earth):
    return Orbit.circular_from_radius(earth, 7000e3)


@pytest.fixture(scope="module")
def kerbol():
    return load_planetary_system(os.path.join(CONFIG_DIR, 'kerbol_system.yaml'))


@pytest.fixture(scope="module")
def mission_config():
    with open(os.path.join(CONFIG_DIR, 'mission_config.yaml'), 'r') as f:
        return yaml.safe_load(f)


# =============================================================================
# Test: Engine
# =============================================================================

class TestEngine:

    def test_exhaust_velocity(self, engine):
        assert_allclose(engine.exhaust_velocity, STANDARD_GRAVITY * 345.0)

    def test_flow_rate(self, engine):
        assert_allclose(engine.propellant_flow_rate, 60000.0 / (STANDARD_GRAVITY * 345.0))

    def test_rocket_equation_inverse(self, engine):
        propellant = engine.get_propellant_mass(1000.0, 1500.0)
        assert_allclose(engine.get_available_delta_v(1000.0, propellant), 1500.0, rtol=1e-12)

    @pytest.mark.parametrize("isp, thrust", [(0.0, 1.0), (-1.0, 1.0), (300.0, 0.0)])
    def test_invalid_engine_rejected(self, isp, thrust):
        with pytest.raises(ValueError):
            Engine(isp, thrust)


# =============================================================================
# Test: Vessel
# =============================================================================

class TestVessel:

    def test_available_delta_v(self, vessel):
        expected = STANDARD_GRAVITY * 345.0 * np.log(15500.0 / 6500.0)
        assert_allclose(vessel.available_delta_v, expected, rtol=1e-12)
        assert 2900.0 < vessel.available_delta_v < 2980.0

    def test_mass_properties(self, vessel):
        assert vessel.mass == 15500.0
        assert_allclose(vessel.acceleration, 60000.0 / 15500.0)
        assert_allclose(vessel.get_thrust_to_weight_ratio(9.81), 60000.0 / (15500.0 * 9.81))

    def test_from_config(self, mission_config):
        vessel = Vessel.from_config(mission_config['vessel'])
        assert vessel.engine == Engine(345.0, 60000.0)
        assert vessel.dry_mass == 6500.0
        assert vessel.propellant_mass == 9000.0

    def test_mass_changes_return_new_vessel(self, vessel):
        lighter = vessel.remove_dry_mass(500.0)
        assert lighter.dry_mass == 6000.0
        assert vessel.dry_mass == 6500.0
        assert vessel.add_propellant(100.0).propellant_mass == 9100.0
        assert vessel.remove_propellant(100.0).propellant_mass == 8900.0
        assert vessel.add_dry_mass(100.0).dry_mass == 6600.0

    def test_dropping_payload_raises_delta_v(self, vessel):
        assert vessel.remove_dry_mass(800.0).available_delta_v > vessel.available_delta_v

    @pytest.mark.parametrize("dry, propellant", [(0.0, 100.0), (-1.0, 100.0), (1000.0, -1.0)])
    def test_invalid_vessel_rejected(self, engine, dry, propellant):
        with pytest.raises(ValueError):
            Vessel(engine, dry, propellant)

    def test_cannot_drop_whole_dry_mass(self, vessel):
        with pytest.raises(ValueError):
            vessel.remove_dry_mass(6500.0)
        with pytest.raises(ValueError):
            vessel.remove_propellant(9000.5)

    def test_exact_burn_empties_tank(self, vessel):
        final = vessel.get_maneuver(vessel.available_delta_v).final_vessel
        assert final.propellant_mass >= 0.0
        assert_allclose(final.propellant_mass, 0.0, atol=1e-6)


# =============================================================================
# Test: Vessel maneuver
# =============================================================================

class TestVesselManeuver:
    """One burn through the rocket equation."""

    def test_propellant_and_time(self, vessel):
        burn = vessel.get_maneuver(1000.0)
        v_e = vessel.engine.exhaust_velocity
        expected_used = vessel.mass * (1.0 - np.exp(-1000.0 / v_e))
        assert_allclose(burn.used_propellant, expected_used, rtol=1e-9)
        assert_allclose(burn.elapsed_time, expected_used / vessel.engine.propellant_flow_rate, rtol=1e-12)
        assert_allclose(burn.final_vessel.available_delta_v, vessel.available_delta_v - 1000.0, rtol=1e-9)

    def test_partial_thrust_takes_longer(self, vessel):
        full = vessel.get_maneuver(500.0)
        half = vessel.get_maneuver(500.0, thrust_ratio=0.5)
        assert_allclose(half.used_propellant, full.used_propellant)
        assert_allclose(half.elapsed_time, 2.0 * full.elapsed_time)
        assert_allclose(half.thrust, 30000.0)

    def test_thrust_ratio_clamped(self, vessel):
        assert vessel.get_maneuver(100.0, thrust_ratio=3.0).thrust_ratio == 1.0
        assert vessel.get_maneuver(100.0, thrust_ratio=-1.0).thrust_ratio == 0.0

    @pytest.mark.parametrize("delta_v", [0.0, -50.0])
    def test_non_positive_delta_v_is_noop(self, vessel, delta_v):
        burn = vessel.get_maneuver(delta_v)
        assert burn.delta_v == 0.0
        assert burn.used_propellant == 0.0
        assert burn.elapsed_time == 0.0
        assert burn.final_vessel == vessel

    def test_zero_thrust_never_finishes(self, vessel):
        burn = vessel.get_maneuver(100.0, thrust_ratio=0.0)
        assert burn.used_propellant == 0.0
        assert burn.elapsed_time == np.inf

    def test_insufficient_propellant(self, vessel):
        burn = vessel.get_maneuver(5000.0)
        assert burn.delta_v == 5000.0
        assert burn.used_propellant == vessel.propellant_mass
        assert burn.elapsed_time == np.inf
        assert burn.used_propellant_ratio == 1.0
        assert burn.final_vessel.propellant_mass == 0.0

    def test_empty_tank_ratio(self, engine):
        empty = Vessel(engine, 1000.0)
        assert empty.get_maneuver(10.0).used_propellant_ratio == 1.0

    def test_for_propellant(self, vessel):
        burn = vessel.get_maneuver_for_propellant(2000.0)
        assert_allclose(burn.used_propellant, 2000.0, rtol=1e-9)

    def test_for_propellant_edge_cases(self, vessel):
        assert vessel.get_maneuver_for_propellant(-10.0).delta_v == 0.0
        too_much = vessel.get_maneuver_for_propellant(10000.0)
        assert too_much.delta_v == np.inf
        assert too_much.elapsed_time == np.inf

    def test_for_duration(self, vessel):
        burn = vessel.get_maneuver_for_duration(60.0)
        assert_allclose(burn.elapsed_time, 60.0, rtol=1e-9)
        assert_allclose(burn.used_propellant, 60.0 * vessel.engine.propellant_flow_rate, rtol=1e-9)


# =============================================================================
# Test: Mission ledger
# =============================================================================

class TestMission:
    """Ledger bookkeeping."""

    def test_starts_with_initial_entry(self, vessel, leo):
        mission = Mission("Test", vessel, leo)
        assert len(mission.maneuvers) == 1
        first = mission.maneuvers[0]
        assert first.description == "Initial"
        assert first.orbital_maneuver.kind is ManeuverKind.IDENTITY
        assert first.delta_v == 0.0
        assert mission.vessel == vessel
        assert mission.orbit is leo

    def test_orbital_maneuver_split_in_halves(self, vessel, leo):
        maneuver = ManeuverPlanner().change_apoapsis(leo, 42164e3)
        entry = MissionManeuver.from_orbital(vessel, maneuver)

        first, second = entry.vessel_maneuvers
        assert isinstance(first, VesselManeuver)
        assert_allclose(first.delta_v, 0.5 * maneuver.delta_v)
        assert_allclose(second.delta_v, 0.5 * maneuver.delta_v)
        assert second.vessel == first.final_vessel
        assert_allclose(entry.elapsed_time, first.elapsed_time + second.elapsed_time)

        v_e = vessel.engine.exhaust_velocity
        assert_allclose(entry.final_vessel.mass, vessel.mass * np.exp(-maneuver.delta_v / v_e), rtol=1e-9)

    def test_impossible_burn_takes_forever(self, engine, leo):
        small = Vessel(engine, 1000.0, 100.0)
        maneuver = ManeuverPlanner().change_apoapsis(leo, 42164e3)
        entry = MissionManeuver.from_orbital(small, maneuver)
        assert entry.elapsed_time == np.inf
        assert entry.final_vessel.propellant_mass == 0.0

    def test_chaining(self, vessel, leo):
        planner = ManeuverPlanner()
        mission = Mission("MEO", vessel, leo)
        raise_apo = planner.change_apoapsis(leo, 12000e3)
        mission.add_orbital_maneuver(raise_apo, "Raise apoapsis")
        mission.add_payload_drop(500.0, "Drop")
        circ = planner.change_periapsis(mission.orbit, 12000e3)
        result = mission.add_orbital_maneuver(circ, "Circularize")

        assert result is mission
        assert len(mission.maneuvers) == 4
        assert mission.orbit is circ.resulting
        assert_allclose(mission.total_delta_v, raise_apo.delta_v + circ.delta_v)
        assert mission.vessel.dry_mass == 6000.0
        assert np.isfinite(mission.total_elapsed_time)

    def test_payload_drop_keeps_orbit(self, vessel, leo):
        mission = Mission("Drop", vessel, leo).add_payload_drop(200.0)
        entry = mission.maneuvers[-1]
        assert entry.orbital_maneuver is None
        assert entry.delta_v == 0.0
        assert entry.elapsed_time == 0.0
        assert mission.orbit is leo

    def test_payload_drop_heavier_than_vessel_rejected(self, vessel, leo):
        mission = Mission("Drop", vessel, leo)
        with pytest.raises(ValueError):
            mission.add_payload_drop(7000.0)
        assert len(mission.maneuvers) == 1

    def test_to_dataframe(self, vessel, leo):
        mission = Mission("Table", vessel, leo)
        mission.add_orbital_maneuver(ManeuverPlanner().change_apoapsis(leo, 20000e3), "Raise")
        mission.add_payload_drop(100.0, "Drop")
        df = mission.to_dataframe()

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == [
            "description", "maneuver", "maneuver_point", "delta_v", "elapsed_time",
            "used_propellant", "mass", "propellant_mass", "available_delta_v",
            "parent", "periapsis", "apoapsis",
        ]
        assert list(df["maneuver"]) == ["IDENTITY", "CHANGE_APOAPSIS", "PAYLOAD_DROP"]
        assert df.loc[1, "maneuver_point"] == "PERIAPSIS"
        assert df.loc[1, "parent"] == "Earth"
        assert_allclose(df.loc[1, "apoapsis"], 20000e3)
        assert np.isnan(df.loc[2, "periapsis"])
        assert_allclose(df["delta_v"].sum(), mission.total_delta_v)
        assert df.loc[1, "used_propellant"] > 0.0


# =============================================================================
# Test: Mission scripts
# =============================================================================

class TestMissionScript:
    """YAML mission script -> Mission."""

    def test_duna_relay(self, mission_config, kerbol):
        mission = build_mission(mission_config, kerbol)

        assert mission.description == "Duna relay (1x relay, 1x Ike lander)"
        assert len(mission.maneuvers) == 8
        assert mission.orbit.parent is kerbol['Duna']
        assert 1000.0 < mission.total_delta_v < 1800.0, f"dv = {mission.total_delta_v:.1f} m/s"
        assert np.isfinite(mission.total_elapsed_time)
        assert mission.vessel.dry_mass == 6500.0 - 800.0 - 1200.0
        assert mission.vessel.propellant_mass > 0.0

    def test_step_kinds(self, mission_config, kerbol):
        mission = build_mission(mission_config, kerbol)
        kinds = [
            entry.orbital_maneuver.kind if entry.orbital_maneuver is not None else None
            for entry in mission.maneuvers
        ]
        assert kinds == [
            ManeuverKind.IDENTITY,
            ManeuverKind.CHANGE_APOAPSIS,
            ManeuverKind.ESCAPE,
            ManeuverKind.CAPTURE,
            None,
            ManeuverKind.CHANGE_INCLINATION,
            ManeuverKind.CHANGE_PERIAPSIS,
            None,
        ]
        assert mission.maneuvers[5].orbital_maneuver.maneuver_point is ManeuverPoint.APOAPSIS

    def test_final_orbit_reaches_ike(self, mission_config, kerbol):
        mission = build_mission(mission_config, kerbol)
        assert_allclose(mission.orbit.periapsis_radius, kerbol['Ike'].orbit.semi_major_axis)
        assert_allclose(mission.orbit.inclination, kerbol['Ike'].orbit.inclination)

    def test_orbit_from_config(self, kerbol):
        orbit = orbit_from_config(
            {'body': 'Duna', 'periapsis_altitude': 80000.0, 'apoapsis_soi_fraction': 0.5},
            kerbol,
        )
        duna = kerbol['Duna']
        assert_allclose(orbit.periapsis_radius, duna.get_radius(80000.0))
        assert_allclose(orbit.apoapsis_radius, 0.5 * duna.sphere_of_influence_radius)

    def test_orbit_from_config_needs_radius(self, kerbol):
        with pytest.raises(ValueError):
            orbit_from_config({'body': 'Duna'}, kerbol)

    def test_unknown_step_rejected(self, mission_config, kerbol):
        config = copy.deepcopy(mission_config)
        config['steps'] = [{'type': 'aerobrake'}]
        with pytest.raises(ValueError):
            build_mission(config, kerbol)

    def test_unknown_point_rejected(self, mission_config, kerbol):
        config = copy.deepcopy(mission_config)
        config['steps'] = [{'type': 'change_inclination', 'inclination_deg': 5.0, 'point': 'node'}]
        with pytest.raises(ValueError):
            build_mission(config, kerbol)
