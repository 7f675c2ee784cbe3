"""Component lookup and artifact storage adapters."""
