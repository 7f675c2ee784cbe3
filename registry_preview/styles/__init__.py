"""Tailwind config and global stylesheet merging."""
