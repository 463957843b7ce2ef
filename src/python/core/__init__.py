"""
===============================================================================
PATCHED CONICS - Core Module
===============================================================================
Constants, angle conventions and frame rotations shared by every layer.

Submodules:
    constants -- Mathematical, physical and numerical constants (SI units)
    angles    -- Angle normalization helpers
    frames    -- Perifocal -> inertial rotations
===============================================================================
"""
