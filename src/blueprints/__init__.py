"""Blueprints: reviewer/builder agent loop orchestration."""

__version__ = "0.1.0"
