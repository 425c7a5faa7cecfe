"""Product footprint resolution."""
