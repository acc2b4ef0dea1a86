"""
IdentityService - Credentials and sessions

Owns the AuthIdentity rows (email + password hash) and signs profiles in and
out through Flask-Login. Password hashing goes through the Flask-Bcrypt
extension bound to the app so BCRYPT_LOG_ROUNDS is honoured.
"""

from typing import Optional
from flask_login import login_user as flask_login_user, logout_user as flask_logout_user
from repositories.auth_identity_repository import AuthIdentityRepository
from repositories.profile_repository import ProfileRepository
from services.common.result import Result
from utils.datetime_utils import utc_now
from logging_config import get_logger, SecurityLogger

logger = get_logger(__name__)
security_logger = SecurityLogger()


class IdentityService:
    """Service for authentication identities using Result pattern"""

    def __init__(self,
                 password_hasher=None,
                 identity_repository: Optional[AuthIdentityRepository] = None,
                 profile_repository: Optional[ProfileRepository] = None):
        """
        Args:
            password_hasher: Flask-Bcrypt instance
            identity_repository: AuthIdentity repository
            profile_repository: Profile repository
        """
        self.password_hasher = password_hasher
        self.identity_repository = identity_repository
        self.profile_repository = profile_repository

        if not self.password_hasher or not self.identity_repository or not self.profile_repository:
            raise ValueError("Password hasher, identity and profile repositories must be provided")

    def hash_password(self, password: str) -> str:
        password_hash = self.password_hasher.generate_password_hash(password)
        if hasattr(password_hash, 'decode'):
            password_hash = password_hash.decode('utf-8')
        return password_hash

    def find_identity(self, email: str):
        return self.identity_repository.find_by_email(email)

    def get_identity(self, identity_id: int):
        return self.identity_repository.get_by_id(identity_id)

    def create_identity(self, email: str, password: str) -> Result:
        """
        Create and commit a new identity.

        Returns:
            Result with the identity, or failure IDENTITY_EXISTS when the
            email is already registered
        """
        email = email.strip().lower()
        if self.identity_repository.find_by_email(email):
            return Result.failure("An identity with this email already exists", code="IDENTITY_EXISTS")

        try:
            identity = self.identity_repository.create(
                email=email,
                password_hash=self.hash_password(password)
            )
            self.identity_repository.commit()
            logger.info("Created auth identity", identity_id=identity.id)
            return Result.success(identity)
        except Exception as e:
            self.identity_repository.rollback()
            logger.error("Failed to create auth identity", error=str(e))
            return Result.failure("Failed to create account credentials", code="DATABASE_ERROR")

    def set_password(self, identity, password: str):
        """Replace the stored hash; flushes without committing."""
        return self.identity_repository.update(identity, password_hash=self.hash_password(password))

    def delete_identity(self, identity_id: int) -> bool:
        """Remove an identity and commit. Used to undo a half-finished signup."""
        identity = self.identity_repository.get_by_id(identity_id)
        if not identity:
            return False
        self.identity_repository.delete(identity)
        self.identity_repository.commit()
        logger.warning("Deleted orphaned auth identity", identity_id=identity_id)
        return True

    def authenticate(self, email: str, password: str, ip_address: Optional[str] = None) -> Result:
        """
        Check credentials and return the profile.

        Returns:
            Result[Profile] or failure INVALID_CREDENTIALS / ACCOUNT_DEACTIVATED
        """
        identity = self.identity_repository.find_by_email(email or '')
        if not identity or not self.password_hasher.check_password_hash(identity.password_hash, password or ''):
            security_logger.log_authentication_attempt(email, False, ip_address)
            return Result.failure("Invalid email or password", code="INVALID_CREDENTIALS")

        profile = self.profile_repository.get_by_id(identity.id)
        if not profile:
            security_logger.log_authentication_attempt(email, False, ip_address)
            return Result.failure("Profile not found", code="PROFILE_NOT_FOUND")

        if not profile.is_active:
            security_logger.log_authentication_attempt(email, False, ip_address)
            return Result.failure("Account is deactivated", code="ACCOUNT_DEACTIVATED")

        security_logger.log_authentication_attempt(email, True, ip_address)
        return Result.success(profile)

    def sign_in(self, profile, remember: bool = False) -> Result:
        """
        Start a Flask-Login session for the profile.

        Returns:
            Result[bool]; failure when Flask-Login refuses the user
        """
        if not flask_login_user(profile, remember=remember):
            return Result.failure("Unable to sign in", code="SIGN_IN_FAILED")

        identity = self.identity_repository.get_by_id(profile.id)
        if identity:
            self.identity_repository.update(identity, last_sign_in_at=utc_now())
            self.identity_repository.commit()
        return Result.success(True)

    def sign_out(self) -> Result:
        flask_logout_user()
        return Result.success(True)
