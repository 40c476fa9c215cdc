"""
Spatial join of NYC shooting incidents to ZIP code areas, joined with
ACS population and median household income.
"""

__version__ = "0.1.0"
