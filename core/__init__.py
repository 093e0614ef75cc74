"""Shared helpers for running tools, loading config files, templating and archiving."""
