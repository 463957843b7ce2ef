"""
===============================================================================
PATCHED CONICS - Anomaly Resolver Test Suite
===============================================================================
Tests for the true/eccentric/mean anomaly conversions and the OrbitPoint
records built from them: Kepler round trips across elliptic and hyperbolic
eccentricities, closed-form periapsis/apoapsis, monotonic radius, the
circular special case and the inverse-trig domain decisions.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import PI, TWO_PI
from dynamics.bodies import CelestialBody
from dynamics.orbit import Orbit
from dynamics.orbit_point import (
    OrbitPoint,
    eccentric_anomaly_from_true,
    mean_anomaly_from_eccentric,
    mean_anomaly_from_true,
    radius_from_anomalies,
    time_since_periapsis_from_mean,
    true_anomaly_from_mean,
)

MU_EARTH = 3.986e14
R_EARTH = 6371000.0

ELLIPTIC_ECCENTRICITIES = [0.0, 0.1, 0.5, 0.9]
HYPERBOLIC_ECCENTRICITIES = [1.1, 2.0, 5.0]
MEAN_ANOMALIES = np.linspace(0.0, TWO_PI, 24, endpoint=False)[1:]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def earth():
    """Earth-like body with mu = 3.986e14 m^3/s^2."""
    return CelestialBody.from_gravitational_parameter("Earth", MU_EARTH, R_EARTH)


@pytest.fixture
def molniya(earth):
    """Highly eccentric elliptic orbit."""
    return Orbit.elliptic(earth, 26600e3, 0.74)


# =============================================================================
# Test: Kepler round trip
# =============================================================================

class TestRoundTrip:
    """M -> nu -> M must reproduce M for every supported eccentricity."""

    @pytest.mark.parametrize("e", ELLIPTIC_ECCENTRICITIES + HYPERBOLIC_ECCENTRICITIES)
    def test_mean_true_mean(self, e):
        for mean_anomaly in MEAN_ANOMALIES:
            nu = true_anomaly_from_mean(mean_anomaly, e)
            assert_allclose(mean_anomaly_from_true(nu, e), mean_anomaly, atol=1e-9,
                            err_msg=f"e={e}, M={mean_anomaly}")

    @pytest.mark.parametrize("e", ELLIPTIC_ECCENTRICITIES)
    def test_true_anomaly_stays_in_half_plane(self, e):
        for mean_anomaly in MEAN_ANOMALIES:
            nu = true_anomaly_from_mean(mean_anomaly, e)
            if mean_anomaly < PI:
                assert 0.0 <= nu <= PI
            else:
                assert PI <= nu <= TWO_PI

    def test_circular_true_equals_mean(self):
        # acos loses precision next to 0 and pi, so sample away from them
        for mean_anomaly in np.linspace(0.1, 6.1, 25):
            assert_allclose(true_anomaly_from_mean(mean_anomaly, 0.0), mean_anomaly, atol=1e-12)

    def test_mean_anomaly_is_normalized(self):
        assert_allclose(true_anomaly_from_mean(TWO_PI + 1.0, 0.3),
                        true_anomaly_from_mean(1.0, 0.3), atol=1e-14)
        assert_allclose(true_anomaly_from_mean(-1.0, 0.3),
                        true_anomaly_from_mean(TWO_PI - 1.0, 0.3), atol=1e-14)


# =============================================================================
# Test: Closed-form special cases
# =============================================================================

class TestClosedForm:
    """Exact periapsis / apoapsis handling."""

    def test_zero_mean_anomaly_is_periapsis(self):
        assert true_anomaly_from_mean(0.0, 0.5) == 0.0
        assert true_anomaly_from_mean(0.0, 2.0) == 0.0

    def test_pi_mean_anomaly_is_apoapsis_for_ellipse(self):
        assert true_anomaly_from_mean(PI, 0.5) == PI

    def test_pi_mean_anomaly_is_iterated_for_hyperbola(self):
        nu = true_anomaly_from_mean(PI, 2.0)
        assert PI < nu < TWO_PI
        assert_allclose(mean_anomaly_from_true(nu, 2.0), PI, atol=1e-9)

    @pytest.mark.parametrize("e", ELLIPTIC_ECCENTRICITIES)
    def test_point_at_zero_and_pi(self, earth, e):
        orbit = Orbit.elliptic(earth, 10000e3, e)
        periapsis = orbit.get_point_by_mean_anomaly(0.0)
        apoapsis = orbit.get_point_by_mean_anomaly(PI)

        assert periapsis.true_anomaly == 0.0
        assert_allclose(periapsis.radius, 10000e3 * (1.0 - e), rtol=1e-12)
        assert apoapsis.true_anomaly == PI
        assert_allclose(apoapsis.radius, 10000e3 * (1.0 + e), rtol=1e-12)

    def test_general_point_matches_closed_form(self, molniya):
        point = molniya.get_point_by_true_anomaly(0.0)
        assert_allclose(point.radius, molniya.periapsis.radius, rtol=1e-12)
        assert_allclose(point.speed, molniya.periapsis.speed, rtol=1e-9)

        point = molniya.get_point_by_true_anomaly(PI)
        assert_allclose(point.radius, molniya.apoapsis.radius, rtol=1e-12)
        assert_allclose(point.speed, molniya.apoapsis.speed, rtol=1e-9)
        assert_allclose(point.time_since_periapsis, 0.5 * molniya.period, rtol=1e-12)


# =============================================================================
# Test: Radius and speed
# =============================================================================

class TestRadius:
    """Radius and speed along an orbit."""

    @pytest.mark.parametrize("e", [0.1, 0.5, 0.9])
    def test_radius_monotonic_to_apoapsis(self, earth, e):
        orbit = Orbit.elliptic(earth, 20000e3, e)
        radii = [orbit.get_point_by_true_anomaly(nu).radius for nu in np.linspace(0.0, PI, 50)]
        assert np.all(np.diff(radii) >= 0.0)

    def test_circular_speed_is_constant(self, earth):
        orbit = Orbit.circular_from_radius(earth, 7000e3)
        speeds = [orbit.get_point_by_true_anomaly(nu).speed for nu in np.linspace(0.0, TWO_PI, 37)]
        assert_allclose(speeds, orbit.periapsis.speed, rtol=1e-12)
        assert_allclose(orbit.periapsis.radius, orbit.apoapsis.radius, rtol=0.0)

    def test_hyperbolic_radius_uses_conic_equation(self):
        a, e, nu = 10000e3, 2.0, 1.0
        expected = a * (e * e - 1.0) / (1.0 + e * np.cos(nu))
        E = eccentric_anomaly_from_true(nu, e)
        assert_allclose(radius_from_anomalies(a, e, E, nu), expected, rtol=1e-12)

    def test_elliptic_radius(self):
        a, e = 10000e3, 0.3
        nu = 2.0
        E = eccentric_anomaly_from_true(nu, e)
        expected = a * (1.0 - e * e) / (1.0 + e * np.cos(nu))
        assert_allclose(radius_from_anomalies(a, e, E, nu), expected, rtol=1e-12)

    def test_point_fields(self, molniya):
        point = molniya.get_point_by_mean_anomaly(1.0)
        assert isinstance(point, OrbitPoint)
        assert_allclose(point.altitude, point.radius - R_EARTH, rtol=1e-12)
        assert_allclose(point.gravitational_acceleration, MU_EARTH / point.radius ** 2, rtol=1e-9)
        vis_viva = np.sqrt(MU_EARTH * (2.0 / point.radius - 1.0 / molniya.semi_major_axis))
        assert_allclose(point.speed, vis_viva, rtol=1e-12)
        assert_allclose(point.time_since_periapsis, 1.0 / molniya.mean_motion, rtol=1e-12)


# =============================================================================
# Test: Timing
# =============================================================================

class TestTiming:
    """Time since periapsis from mean anomaly."""

    def test_positive_mean_anomaly(self):
        assert_allclose(time_since_periapsis_from_mean(1.0, 0.001, 6283.0), 1000.0)

    def test_negative_wraps_by_period(self):
        assert_allclose(time_since_periapsis_from_mean(-1.0, 0.001, 6283.0), 5283.0)

    def test_hyperbolic_is_not_wrapped(self):
        assert_allclose(time_since_periapsis_from_mean(-1.0, 0.001, np.inf), -1000.0)


# =============================================================================
# Test: Domain handling
# =============================================================================

class TestDomain:
    """Inverse-trig domain and degenerate eccentricities."""

    def test_beyond_asymptote_rejected(self):
        # asymptote of e = 2 lies at acos(-1/2) = 120 deg
        with pytest.raises(ValueError):
            eccentric_anomaly_from_true(np.radians(150.0), 2.0)

    def test_inside_asymptote_accepted(self):
        E = eccentric_anomaly_from_true(np.radians(100.0), 2.0)
        assert np.isfinite(E)
        assert E > 0.0

    def test_parabolic_rejected(self):
        with pytest.raises(ValueError):
            true_anomaly_from_mean(1.0, 1.0)
        with pytest.raises(ValueError):
            eccentric_anomaly_from_true(1.0, 1.0 + 1e-12)

    def test_negative_eccentricity_rejected(self):
        with pytest.raises(ValueError):
            mean_anomaly_from_eccentric(1.0, -0.1)

    def test_near_apoapsis_stays_finite(self):
        E = eccentric_anomaly_from_true(PI - 1e-9, 0.999999)
        assert np.isfinite(E)
        assert 0.0 <= E <= PI

    def test_eccentric_anomaly_reflected_past_pi(self):
        e = 0.4
        E1 = eccentric_anomaly_from_true(1.0, e)
        E2 = eccentric_anomaly_from_true(TWO_PI - 1.0, e)
        assert_allclose(E1 + E2, TWO_PI, atol=1e-12)
