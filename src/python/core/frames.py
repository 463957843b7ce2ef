"""
===============================================================================
PATCHED CONICS - Reference Frame Transformations
===============================================================================
Every orbit is described in the inertial frame of its parent body: the
reference plane is the parent's equator (or ecliptic for the root body),
with the X-axis towards the reference direction used for the longitude of
the ascending node.

Points on an orbit are first computed in the perifocal (PQW) frame:

    P -> towards periapsis
    Q -> 90 deg ahead of P in the direction of motion
    W -> along the orbit normal (angular momentum)

and then rotated into the parent-centred inertial frame with the classical
3-1-3 Euler sequence (RAAN, inclination, argument of periapsis).

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.
===============================================================================
"""

from typing import Tuple

import numpy as np


# =============================================================================
# ELEMENTARY ROTATION MATRICES
# =============================================================================

def Rx(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the X-axis.

        Rx(a) = | 1    0       0     |
                | 0   cos(a)  sin(a)  |
                | 0  -sin(a)  cos(a)  |
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [1.0,  0.0,  0.0],
        [0.0,    c,    s],
        [0.0,   -s,    c],
    ], dtype=np.float64)


def Rz(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the Z-axis.

        Rz(a) = |  cos(a)  sin(a)  0 |
                | -sin(a)  cos(a)  0 |
                |    0       0     1 |
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [  c,    s,  0.0],
        [ -s,    c,  0.0],
        [0.0,  0.0,  1.0],
    ], dtype=np.float64)


# =============================================================================
# PERIFOCAL -> INERTIAL
# =============================================================================

def perifocal_to_inertial_matrix(
    longitude_of_ascending_node: float,
    inclination: float,
    argument_of_periapsis: float,
) -> np.ndarray:
    """
    Rotation matrix from the perifocal (PQW) frame to the parent-centred
    inertial frame:

        R = Rz(-RAAN) * Rx(-inc) * Rz(-omega)

    Parameters
    ----------
    longitude_of_ascending_node : float
        Longitude of the ascending node (rad).
    inclination : float
        Orbital inclination (rad).
    argument_of_periapsis : float
        Argument of periapsis (rad).

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    return (
        Rz(-longitude_of_ascending_node)
        @ Rx(-inclination)
        @ Rz(-argument_of_periapsis)
    )


def perifocal_state(
    radius: float,
    true_anomaly: float,
    eccentricity: float,
    semi_latus_rectum: float,
    mu: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Position and velocity in the perifocal frame.

        r_pqw = r * [cos(nu), sin(nu), 0]
        v_pqw = sqrt(mu/p) * [-sin(nu), e + cos(nu), 0]

    Valid for elliptic and hyperbolic orbits alike as long as *p* is the
    (positive) semi-latus rectum h^2 / mu.
    """
    cos_nu = np.cos(true_anomaly)
    sin_nu = np.sin(true_anomaly)

    r_pqw = radius * np.array([cos_nu, sin_nu, 0.0], dtype=np.float64)
    v_pqw = np.sqrt(mu / semi_latus_rectum) * np.array(
        [-sin_nu, eccentricity + cos_nu, 0.0], dtype=np.float64
    )
    return r_pqw, v_pqw
