"""Data access: upstream providers and local storage."""
