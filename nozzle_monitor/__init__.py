"""Fuel dispenser nozzle monitor: simulated concentrator engine and dashboard."""

__version__ = "0.1.0"
