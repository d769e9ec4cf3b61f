"""Shared command, logging, metrics and orchestration utilities."""
