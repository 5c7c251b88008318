"""Laundry order workflow service."""
