"""Scheduling and availability engine for multi-worker salon bookings."""

__version__ = "0.1.0"
