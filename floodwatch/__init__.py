"""
floodwatch — flood risk scoring and periodic monitoring for georeferenced areas.
"""

__version__ = "1.0.0"
