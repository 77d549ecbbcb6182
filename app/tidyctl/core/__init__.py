"""Core services for tidyctl.

This package contains XDG paths, user settings and the CLI theme.
"""
