"""Shared utilities: settings, logging, GCS access."""
