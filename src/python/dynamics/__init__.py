"""
===============================================================================
PATCHED CONICS - Dynamics Module
===============================================================================
Two-body orbit model and the bodies it is expressed around.

Submodules:
    elements    -- OrbitType / ManeuverPoint enumerations
    orbit_point -- Anomaly conversions and the OrbitPoint record
    orbit       -- Immutable Orbit value, factories and transfer windows
    bodies      -- CelestialBody, PlanetarySystem and the YAML catalog loader
===============================================================================
"""
