"""Dependency resolution, flattening and import matching."""
