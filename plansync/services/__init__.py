"""
Application services built on the sync components.
"""

from plansync.services.connections import ConnectionOverview, ConnectionService

__all__ = [
    "ConnectionOverview",
    "ConnectionService",
]
