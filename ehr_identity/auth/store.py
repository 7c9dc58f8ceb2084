"""
Credential Store - the single persistence contract for users and
registration requests.

Each method works on the injected SQLAlchemy session. Nothing is committed
until the caller invokes ``commit()``, so one workflow transition is one
transaction. Status transitions are conditional UPDATEs: of two concurrent
callers exactly one sees ``True`` and the other observes the new state.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.security import utcnow
from ..registration.models import RegistrationRequest, RegistrationStatus
from .exceptions import EmailAlreadyExistsException, UserNotFoundException
from .models import User, UserRole

# Set up logging
logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively; store and look them up lower-cased."""
    return email.strip().lower()


class CredentialStore:
    """Persistence operations used by the registration workflow and the gates."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def find_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_id(self, user_id: int) -> User:
        """
        Raises:
            UserNotFoundException: If no user has this id
        """
        user = self.find_user_by_id(user_id)
        if not user:
            raise UserNotFoundException()
        return user

    def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: UserRole,
        is_active: bool = True,
    ) -> User:
        """
        Insert a user and flush so the unique email index is checked now.

        Raises:
            EmailAlreadyExistsException: If the email already belongs to a user
        """
        if self.find_user_by_email(email):
            raise EmailAlreadyExistsException()

        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError:
            # Lost a race against a concurrent insert of the same email
            self.db.rollback()
            logger.warning(f"Concurrent user creation for {user.email}")
            raise EmailAlreadyExistsException()
        return user

    def update_user_active(self, user_id: int, is_active: bool) -> User:
        user = self.get_user_by_id(user_id)
        user.is_active = is_active
        user.updated_at = utcnow()
        return user

    def update_user_role(self, user_id: int, role: UserRole) -> User:
        user = self.get_user_by_id(user_id)
        user.role = role
        user.updated_at = utcnow()
        return user

    def touch_last_login(self, user_id: int) -> User:
        user = self.get_user_by_id(user_id)
        user.last_login = utcnow()
        return user

    def list_users(self, active_only: bool = False, roles: Optional[Iterable[UserRole]] = None) -> List[User]:
        query = self.db.query(User)
        if active_only:
            query = query.filter(User.is_active.is_(True))
        if roles:
            query = query.filter(User.role.in_(list(roles)))
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    # ------------------------------------------------------------------
    # Registration requests
    # ------------------------------------------------------------------

    def find_request_by_email(self, email: str) -> Optional[RegistrationRequest]:
        return (
            self.db.query(RegistrationRequest)
            .filter(RegistrationRequest.email == normalize_email(email))
            .first()
        )

    def find_request_by_id(self, request_id: int) -> Optional[RegistrationRequest]:
        return self.db.query(RegistrationRequest).filter(RegistrationRequest.id == request_id).first()

    def upsert_request(
        self,
        email: str,
        values: Dict[str, Any],
        expected_status: Optional[RegistrationStatus] = None,
    ) -> Optional[RegistrationRequest]:
        """
        Create the request for ``email`` or overwrite the existing one.

        When a row exists it is only overwritten while its status is still
        ``expected_status``; a row that changed underneath the caller, or an
        insert that collides with a concurrent insert, returns None.
        """
        email = normalize_email(email)
        existing = self.find_request_by_email(email)

        if existing is None:
            registration = RegistrationRequest(email=email, **values)
            self.db.add(registration)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Concurrent registration request insert for {email}")
                return None
            return registration

        guard = expected_status or existing.status
        updated = (
            self.db.query(RegistrationRequest)
            .filter(RegistrationRequest.id == existing.id, RegistrationRequest.status == guard)
            .update({**values, "updated_at": utcnow()}, synchronize_session=False)
        )
        if updated != 1:
            return None
        self.db.flush()
        self.db.refresh(existing)
        return existing

    def update_request_status(
        self,
        request_id: int,
        expected_status: RegistrationStatus,
        values: Dict[str, Any],
        **guards: Any,
    ) -> bool:
        """
        Conditionally update one request.

        The UPDATE only matches while ``status == expected_status`` and every
        column in ``guards`` still has the given value.

        Returns:
            bool: True if this caller performed the transition
        """
        query = self.db.query(RegistrationRequest).filter(
            RegistrationRequest.id == request_id,
            RegistrationRequest.status == expected_status,
        )
        for column, value in guards.items():
            attribute = getattr(RegistrationRequest, column)
            query = query.filter(attribute.is_(None) if value is None else attribute == value)

        updated = query.update({**values, "updated_at": utcnow()}, synchronize_session=False)
        self.db.flush()
        return updated == 1

    def list_requests(
        self,
        status: Optional[RegistrationStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[RegistrationRequest], int]:
        """
        Page through requests, newest first.

        Returns:
            Tuple of (items on this page, total matching)
        """
        query = self.db.query(RegistrationRequest)
        if status:
            query = query.filter(RegistrationRequest.status == status)

        total = query.count()
        items = (
            query.order_by(RegistrationRequest.requested_at.desc(), RegistrationRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def refresh(self, instance) -> None:
        """Reload a row after a conditional UPDATE bypassed the identity map."""
        self.db.refresh(instance)


def get_credential_store(db: Session = Depends(get_db)) -> CredentialStore:
    """Request-scoped store bound to the request's database session."""
    return CredentialStore(db)
