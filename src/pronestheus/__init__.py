"""Prometheus exporter for Nest thermostats, Nest temperature sensors and local weather."""

__version__ = "0.4.0"
