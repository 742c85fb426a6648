"""Locust load, stress, spike, endurance and smoke tests for a JSON HTTP API."""

__version__ = "1.0.0"
