"""Registry dependency resolution and style merging for component previews."""

__version__ = "0.1.0"
