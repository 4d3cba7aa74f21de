"""Validation schemas."""
