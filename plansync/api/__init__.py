"""
Plansync API module.

Provides the FastAPI endpoints for the Google Calendar integration.
"""

from plansync.api.main import app, run_server

__all__ = ["app", "run_server"]
