"""
===============================================================================
PATCHED CONICS - Physical, Astronomical and Numerical Constants
===============================================================================
Central repository for all constants used throughout the orbit and maneuver
calculus. Using SI units throughout (meters, seconds, kilograms, radians).

The gravitational constant is the 2014 CODATA value: the masses in the
bundled Kerbol catalog were chosen against it, so gravitational parameters
derived from those masses reproduce the catalog's reference values.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
GRAVITATIONAL_CONSTANT = 6.67408e-11   # m^3 / (kg * s^2), CODATA 2014
STANDARD_GRAVITY = 9.80665             # m/s^2, used by the rocket equation

# =============================================================================
# NUMERICAL CONSTANTS
# =============================================================================
# Width (rad) at which the mean -> true anomaly bisection stops
ANOMALY_TOLERANCE = 1e-15

# Width (s) at which the transfer window bisection stops
TRANSFER_WINDOW_TOLERANCE = 1e-3

# Eccentricities this close to 1 are treated as parabolic (unsupported)
PARABOLIC_TOLERANCE = 1e-10

# Sentinel returned when an event never happens (e.g. no transfer window)
NEVER = np.inf

# =============================================================================
# EARTH REFERENCE RADII
# =============================================================================
EARTH_RADIUS = 6371000.0               # Mean radius (m)
GEO_RADIUS = 42164000.0                # Geostationary orbit radius (m)
