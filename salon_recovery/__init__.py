"""Salon Recovery core: booking-platform adapters, rebooking and follow-ups."""

__version__ = "1.0.0"
