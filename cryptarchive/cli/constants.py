"""Exit codes shared by CLI commands."""

UPSTREAM_EXIT_CODE = 2
STORE_EXIT_CODE = 3
EXPORT_EXIT_CODE = 4
