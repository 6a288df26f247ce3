"""
FastAPI dependency injection providers.

Provides database sessions, the credential vault, the connection service
and the calling user's ID.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from plansync.database import get_db
from plansync.security.vault import CredentialVault
from plansync.services.connections import ConnectionService

logger = logging.getLogger(__name__)


def get_db_session():
    """
    Dependency injection for database session.

    Yields a database session and ensures cleanup.
    """
    yield from get_db()


def get_vault() -> CredentialVault:
    """Vault keyed by TOKEN_ENCRYPTION_KEY (validated on first use)."""
    return CredentialVault.from_settings()


def get_connection_service(
    session: Session = Depends(get_db_session),
    vault: CredentialVault = Depends(get_vault),
) -> ConnectionService:
    return ConnectionService(session, vault)


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, description="Signed-in user ID"),
) -> uuid.UUID:
    """
    Resolve the calling user from the X-User-ID header.

    Session handling belongs to the web application; it forwards the
    signed-in user's ID in this header.

    Raises:
        HTTPException: 401 without the header, 400 if it is not a UUID
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        logger.warning(f"Rejected malformed user ID: {x_user_id!r}")
        raise HTTPException(status_code=400, detail="X-User-ID must be a UUID")
