"""JSON HTTP API for the grading engine."""

from .app import app, create_app, run_server

__all__ = ['app', 'create_app', 'run_server']
