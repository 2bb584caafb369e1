"""
Apex - Motorcycle ride companion

Ride recording with lean angle tracking, a garage of bikes, fuel economy
and maintenance schedules.
"""

__version__ = "0.4.0"
__author__ = "Apex Team"

__all__ = ["__version__"]
