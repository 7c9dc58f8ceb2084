"""
Bootstrap utilities for first admin creation.
Handles automatic creation of the first admin user from environment variables.
"""
import logging

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from ..auth.models import User, UserRole
from ..auth.store import CredentialStore
from ..config import Settings, settings
from .audit_service import record_audit_event
from .security import hash_password

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def admin_exists(db: Session) -> bool:
    """
    Check if any admin user exists in the database.

    Args:
        db: Database session

    Returns:
        bool: True if at least one admin exists, False otherwise
    """
    return db.query(User).filter(User.role == UserRole.ADMIN).count() > 0


def create_bootstrap_admin(db: Session, config: Settings = settings) -> bool:
    """
    Create the first admin user from environment variables.

    Args:
        db: Database session
        config: Settings holding the bootstrap credentials

    Returns:
        bool: True if admin was created successfully, False otherwise
    """
    if not config.bootstrap_admin_email or not config.bootstrap_admin_password:
        logger.warning("Bootstrap admin credentials not provided in environment variables")
        return False

    # Login validates with EmailStr; an address it refuses could never sign in
    try:
        email = _email_adapter.validate_python(config.bootstrap_admin_email)
    except ValidationError:
        logger.error(f"Bootstrap failed: {config.bootstrap_admin_email} is not a valid email address")
        return False

    store = CredentialStore(db)
    if store.find_user_by_email(email):
        logger.warning(f"Bootstrap failed: Email {email} already exists")
        return False

    admin = store.create_user(
        email=email,
        password_hash=hash_password(config.bootstrap_admin_password),
        first_name=config.bootstrap_admin_first_name,
        last_name=config.bootstrap_admin_last_name,
        role=UserRole.ADMIN,
        is_active=True,
    )
    record_audit_event(db, action="BOOTSTRAP_ADMIN_CREATED", user_id=admin.id, details={"email": admin.email})
    store.commit()
    logger.info(f"✅ Bootstrap admin created successfully: {admin.email} (ID: {admin.id})")
    return True


def bootstrap_admin_if_needed(db: Session, config: Settings = settings) -> None:
    """
    Check if admin exists and create bootstrap admin if needed.
    This function should be called during application startup.

    Args:
        db: Database session
        config: Settings holding the bootstrap credentials
    """
    logger.info("🔍 Checking for existing admin users...")

    if admin_exists(db):
        logger.info("✅ Admin users found. Bootstrap not needed.")
        return

    logger.info("🚀 No admin users found. Attempting bootstrap admin creation...")

    if create_bootstrap_admin(db, config):
        logger.info("🎉 Bootstrap admin creation completed successfully!")
    else:
        logger.warning("⚠️  Bootstrap admin creation skipped.")
        logger.info("💡 To create the first admin, set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD in your .env file.")
