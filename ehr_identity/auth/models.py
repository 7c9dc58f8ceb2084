"""
User Model - Stores every account that can authenticate against the EHR.

Accounts are created by completing a registration request or directly by an
administrator. They are never deleted; deactivation clears ``is_active``.
"""
import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String
from sqlalchemy.sql import func

from ..database import Base


class UserRole(str, enum.Enum):
    """
    Enumeration for user roles in the EHR.

    Roles:
    - ADMIN: System administrators, the only role that manages accounts
    - INTAKE_STAFF: Referral intake and patient onboarding
    - CLINICIAN: Clinicians documenting visits and assessments
    - QA_REVIEWER: Quality assurance reviewers of clinical documentation
    - BILLER: Billing and claims staff
    """
    ADMIN = "ADMIN"
    INTAKE_STAFF = "INTAKE_STAFF"
    CLINICIAN = "CLINICIAN"
    QA_REVIEWER = "QA_REVIEWER"
    BILLER = "BILLER"


# Roles a prospective user may ask for through self-service registration.
# ADMIN is only ever granted by an existing administrator.
SELF_SERVICE_ROLES = frozenset({
    UserRole.INTAKE_STAFF,
    UserRole.CLINICIAN,
    UserRole.QA_REVIEWER,
    UserRole.BILLER,
})


class User(Base):
    """
    User Model

    Fields:
    - id: Primary key for user identification
    - email: Unique, lower-cased email address used for login
    - first_name / last_name: User's name
    - password_hash: bcrypt hash (never store raw passwords)
    - role: One of UserRole
    - is_active: False once an administrator deactivates the account
    - last_login: Timestamp of the most recent successful login
    - created_at / updated_at: Row timestamps
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
