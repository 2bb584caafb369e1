"""
Apex Mobile - Cross-platform Kivy UI for ride tracking.

This module provides a Kivy-based user interface that works on:
- Desktop (Windows, macOS, Linux) with a replayed GPS track
- Mobile (Android) with live GPS and accelerometer

Features:
- Ride recording with a live lean angle gauge
- Garage, fuel log and maintenance health
- Service reminders and update notices
"""

from .app import ApexApp

__all__ = ["ApexApp"]
