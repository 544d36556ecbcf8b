"""Booking services: lane resolution, availability, assignment and the store adapter."""
