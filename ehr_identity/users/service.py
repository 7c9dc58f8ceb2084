"""
User administration service - directory listings, activation and role changes.

Deactivation is enforced by the authentication gate, which re-reads the user on
every request, so it takes effect on the caller's next request.
"""
import logging
from typing import List, Optional

from fastapi import Request

from ..auth.models import User, UserRole
from ..auth.store import CredentialStore
from ..core.audit_service import record_audit_event

# Set up logging
logger = logging.getLogger(__name__)

# Roles listed in the staff directory offered to every signed-in user
DIRECTORY_ROLES = (UserRole.CLINICIAN, UserRole.INTAKE_STAFF, UserRole.ADMIN)


def list_staff_directory(store: CredentialStore) -> List[User]:
    """Active clinicians, intake staff and administrators, sorted by name."""
    users = store.list_users(active_only=True, roles=DIRECTORY_ROLES)
    return sorted(users, key=lambda user: (user.first_name.lower(), user.last_name.lower()))


def list_all_users(store: CredentialStore) -> List[User]:
    """Every account, newest first."""
    return store.list_users()


def set_user_active(
    store: CredentialStore,
    admin: User,
    user_id: int,
    is_active: bool,
    request: Optional[Request] = None,
) -> User:
    """
    Activate or deactivate an account.

    Raises:
        UserNotFoundException: Unknown user id
    """
    user = store.update_user_active(user_id, is_active)
    record_audit_event(
        store.db,
        action="USER_ACTIVATED" if is_active else "USER_DEACTIVATED",
        user_id=admin.id,
        request=request,
        details={"target_user_id": user_id},
    )
    store.commit()
    store.refresh(user)
    logger.info(f"Admin {admin.id} set is_active={is_active} on user {user_id}")
    return user


def set_user_role(
    store: CredentialStore,
    admin: User,
    user_id: int,
    role: UserRole,
    request: Optional[Request] = None,
) -> User:
    """
    Change the role of an account. New sessions carry the new role; existing
    tokens keep the role they were issued with until they expire, but every
    role check reads the stored user.

    Raises:
        UserNotFoundException: Unknown user id
    """
    user = store.get_user_by_id(user_id)
    previous_role = user.role
    user = store.update_user_role(user_id, UserRole(role))
    record_audit_event(
        store.db,
        action="USER_ROLE_CHANGED",
        user_id=admin.id,
        request=request,
        details={"target_user_id": user_id, "from": previous_role.value, "to": user.role.value},
    )
    store.commit()
    store.refresh(user)
    logger.info(f"Admin {admin.id} changed role of user {user_id} from {previous_role.value} to {user.role.value}")
    return user
