"""
===============================================================================
PATCHED CONICS - Visualization Module
===============================================================================
Top-down orbit plots rendered with matplotlib.
===============================================================================
"""
