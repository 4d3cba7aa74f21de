"""Booking models."""
