"""Emission factors and unit conversion."""
