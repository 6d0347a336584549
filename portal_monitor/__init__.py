"""Captive portal monitor: detects a captive portal and keeps the machine logged in."""

__version__ = '1.0.0'
