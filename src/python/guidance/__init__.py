"""
===============================================================================
PATCHED CONICS - Guidance Module
===============================================================================
Impulsive maneuvers and the mission ledger that chains them.

Submodules:
    maneuvers  -- Maneuver records and the stateless ManeuverPlanner
    propulsion -- Engine / Vessel rocket-equation bookkeeping
    mission    -- Mission ledger and YAML mission scripts
===============================================================================
"""
