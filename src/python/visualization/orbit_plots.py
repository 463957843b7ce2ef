"""
===============================================================================
PATCHED CONICS - Orbit Plots
===============================================================================
Top-down (inertial X-Y) plots of one or more orbits about a common parent.

Hyperbolic legs are only drawn inside the parent's sphere of influence,
and never past 98% of the asymptote angle acos(-1/e), where the radius
diverges.
===============================================================================
"""

from typing import List, Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Circle

from dynamics.orbit import Orbit

# Colorblind-friendly cycle
COLORS = ['#3498db', '#e67e22', '#2ecc71', '#9b59b6', '#e74c3c', '#1abc9c', '#f1c40f']


def _hyperbolic_true_anomaly_limit(orbit: Orbit) -> float:
    limit = 0.98 * np.arccos(-1.0 / orbit.eccentricity)
    soi = orbit.parent.sphere_of_influence_radius
    if np.isfinite(soi) and soi > orbit.periapsis_radius:
        cos_nu = (orbit.semi_latus_rectum / soi - 1.0) / orbit.eccentricity
        limit = min(limit, float(np.arccos(np.clip(cos_nu, -1.0, 1.0))))
    return limit


def sample_orbit(orbit: Orbit, n_points: int = 360) -> np.ndarray:
    """
    Inertial positions along *orbit*.

    Parameters
    ----------
    orbit : Orbit
        Orbit to sample.
    n_points : int
        Number of samples.

    Returns
    -------
    np.ndarray
        (n_points, 3) positions relative to the parent's centre (m).
    """
    if orbit.is_elliptic:
        anomalies = np.linspace(0.0, 2.0 * np.pi, n_points)
    else:
        limit = _hyperbolic_true_anomaly_limit(orbit)
        anomalies = np.linspace(-limit, limit, n_points)

    positions = np.empty((n_points, 3))
    for i, nu in enumerate(anomalies):
        r, _ = orbit.get_state_vectors(orbit.get_point_by_true_anomaly(nu))
        positions[i] = r
    return positions


def plot_orbits(
    orbits: Sequence[Orbit],
    ax: Optional[plt.Axes] = None,
    labels: Optional[List[str]] = None,
    n_points: int = 360,
) -> plt.Axes:
    """
    Draw *orbits* in the X-Y plane of their (shared) parent's frame.

    The parent of the first orbit is drawn to scale at the origin together
    with each orbit's periapsis marker.

    Returns
    -------
    plt.Axes
        The axes drawn into.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 10))
    if labels is None:
        labels = [str(orbit.parent.name) + f" orbit {i + 1}" for i, orbit in enumerate(orbits)]

    if orbits:
        parent = orbits[0].parent
        ax.add_patch(Circle((0.0, 0.0), parent.radius / 1e3, color='#7f8c8d', alpha=0.6,
                            label=parent.name))

    for i, (orbit, label) in enumerate(zip(orbits, labels)):
        color = COLORS[i % len(COLORS)]
        positions = sample_orbit(orbit, n_points) / 1e3
        ax.plot(positions[:, 0], positions[:, 1], color=color, label=label)

        periapsis, _ = orbit.get_state_vectors(orbit.periapsis)
        ax.plot(periapsis[0] / 1e3, periapsis[1] / 1e3, 'o', color=color, markersize=4)

    ax.set_xlabel('X (km)')
    ax.set_ylabel('Y (km)')
    ax.set_aspect('equal', adjustable='datalim')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='upper right')
    return ax


def save_orbit_plot(orbits: Sequence[Orbit], output_path: str,
                    labels: Optional[List[str]] = None, title: str = '') -> None:
    """Render *orbits* to an image file."""
    fig, ax = plt.subplots(figsize=(10, 10))
    plot_orbits(orbits, ax=ax, labels=labels)
    if title:
        ax.set_title(title, fontweight='bold')
    fig.savefig(output_path, dpi=300, bbox_inches='tight')
    plt.close(fig)
