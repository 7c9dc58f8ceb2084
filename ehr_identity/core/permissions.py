"""
Core permissions utilities for role-based access control.

``require_roles`` answers "is the caller one of these roles"; ``require_permission``
answers "may the caller perform this action" through ROLE_PERMISSIONS.
"""
import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from fastapi import Depends

from ..auth.dependencies import get_current_user
from ..auth.exceptions import AuthRequiredException, RoleDeniedException
from ..auth.models import User, UserRole

# Set up logging
logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """
    Permission types for role-based access control.
    """
    # User management permissions
    VIEW_USERS = "view_users"
    MANAGE_USERS = "manage_users"

    # Registration workflow permissions
    REVIEW_REGISTRATIONS = "review_registrations"

    # Patient intake permissions
    VIEW_PATIENTS = "view_patients"
    MANAGE_PATIENTS = "manage_patients"
    MANAGE_REFERRALS = "manage_referrals"
    MANAGE_SCHEDULES = "manage_schedules"

    # Clinical permissions
    MANAGE_EPISODES = "manage_episodes"
    DOCUMENT_VISITS = "document_visits"
    MANAGE_ASSESSMENTS = "manage_assessments"
    UPLOAD_DOCUMENTS = "upload_documents"

    # Quality assurance permissions
    REVIEW_QA = "review_qa"

    # Billing permissions
    MANAGE_BILLING = "manage_billing"
    VIEW_REPORTS = "view_reports"


# Role-based permission mapping
ROLE_PERMISSIONS: Dict[UserRole, List[Permission]] = {
    # Admin has all permissions
    UserRole.ADMIN: list(Permission),
    UserRole.INTAKE_STAFF: [
        Permission.VIEW_USERS,
        Permission.VIEW_PATIENTS,
        Permission.MANAGE_PATIENTS,
        Permission.MANAGE_REFERRALS,
        Permission.MANAGE_SCHEDULES,
        Permission.MANAGE_EPISODES,
        Permission.UPLOAD_DOCUMENTS,
    ],
    UserRole.CLINICIAN: [
        Permission.VIEW_USERS,
        Permission.VIEW_PATIENTS,
        Permission.MANAGE_EPISODES,
        Permission.DOCUMENT_VISITS,
        Permission.MANAGE_ASSESSMENTS,
        Permission.UPLOAD_DOCUMENTS,
    ],
    UserRole.QA_REVIEWER: [
        Permission.VIEW_PATIENTS,
        Permission.REVIEW_QA,
        Permission.VIEW_REPORTS,
    ],
    UserRole.BILLER: [
        Permission.VIEW_PATIENTS,
        Permission.MANAGE_BILLING,
        Permission.VIEW_REPORTS,
    ],
}


def get_permissions_for_role(role: UserRole) -> Set[Permission]:
    """
    Get permissions for a specific role.

    Args:
        role: User role

    Returns:
        Set[Permission]: Set of permissions for the role
    """
    return set(ROLE_PERMISSIONS.get(role, []))


def has_permission(role: UserRole, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: User role
        permission: Permission to check

    Returns:
        bool: True if the role has the permission
    """
    return permission in get_permissions_for_role(role)


def allowed(current_role: UserRole, required_roles: Iterable[UserRole]) -> bool:
    """Pure role check: True when ``current_role`` is one of ``required_roles``."""
    return UserRole(current_role) in {UserRole(role) for role in required_roles}


def authorize(user: Optional[User], required_roles: Iterable[UserRole]) -> User:
    """
    Check that an authenticated user holds one of the required roles.

    Raises:
        AuthRequiredException: No authenticated principal
        RoleDeniedException: The user's role is not among ``required_roles``
    """
    required = [UserRole(role) for role in required_roles]
    if user is None:
        raise AuthRequiredException()
    if not allowed(user.role, required):
        logger.warning(
            f"User {user.id} with role {user.role.value} denied; requires {[role.value for role in required]}"
        )
        raise RoleDeniedException([role.value for role in required], user.role.value)
    return user


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """
    Dependency factory to require specific roles.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        return authorize(current_user, roles)

    return role_checker


def require_permission(permission: Permission) -> Callable[..., User]:
    """Dependency factory to require that the caller's role grants ``permission``."""
    def permission_checker(current_user: User = Depends(get_current_user)) -> User:
        granted = [role for role, permissions in ROLE_PERMISSIONS.items() if permission in permissions]
        return authorize(current_user, granted)

    return permission_checker


# Common dependencies
require_admin = require_roles(UserRole.ADMIN)
