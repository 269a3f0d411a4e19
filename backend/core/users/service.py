"""
User account service.

Business rules on top of UserRepository: input validation, email
normalisation, duplicate detection, pagination defaults and statistics.
Errors are raised as backend.core.errors types so the API layer can map
them straight to HTTP responses.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from backend.core.database.models import User
from backend.core.database.repository import UserRepository
from backend.core.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
MAX_PAGE = 1_000_000

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$')


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_pagination(page: Optional[int], limit: Optional[int]):
    """
    Fall back to defaults for missing or non-positive values; cap the limit.

    Raises:
        ValidationError: page beyond MAX_PAGE
    """
    if not page or page <= 0:
        page = DEFAULT_PAGE
    if page > MAX_PAGE:
        raise ValidationError("page out of range")
    if not limit or limit <= 0:
        limit = DEFAULT_LIMIT
    return page, min(limit, MAX_LIMIT)


@dataclass
class Page:
    users: List[User]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class UserStats:
    total_users: int
    active_users: int
    inactive_users: int


class UserService:
    def __init__(self, repository: UserRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        email = (email or "").strip()
        return bool(email) and EMAIL_PATTERN.match(email) is not None

    @staticmethod
    def _check_id(user_id: int):
        if user_id is None or user_id <= 0:
            raise ValidationError("invalid user id")

    def _require(self, user_id: int) -> User:
        self._check_id(user_id)
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"user with id {user_id} not found")
        return user

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        name: str,
        federated_id: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """
        Create a new active account.

        Raises:
            ValidationError: Invalid email or blank name
            ConflictError: A live account already uses the email
        """
        if not self.is_valid_email(email):
            raise ValidationError(f"invalid email format: {email}")
        if not name or not name.strip():
            raise ValidationError("name is required")

        email = normalize_email(email)
        if self.repository.exists_by_email(email):
            raise ConflictError(f"user with email {email} already exists")

        user = User(
            email=email,
            name=name.strip(),
            federated_id=federated_id or None,
            avatar_url=avatar_url or "",
            is_active=True,
        )
        return self.repository.create(user)

    def get_or_create_user(
        self,
        email: str,
        name: str,
        federated_id: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """
        Resolve the account for a federated login, creating it on first login.

        Matches by Google id first, then by email. An account found by email
        that has no Google id yet gets linked to this one.

        Raises:
            ValidationError: Invalid email
            ConflictError: The Google id was linked elsewhere concurrently
        """
        email = normalize_email(email)
        if not self.is_valid_email(email):
            raise ValidationError(f"invalid email format: {email}")

        name = (name or "").strip() or email
        candidate = User(
            email=email,
            name=name,
            federated_id=federated_id or None,
            avatar_url=avatar_url or "",
            is_active=True,
        )
        user, created = self.repository.create_if_not_exists(email, federated_id, candidate)

        if not created and federated_id and not user.federated_id:
            logger.info(f"Linking Google account to existing user {user.id}")
            try:
                user = self.repository.update_fields(user, federated_id=federated_id)
            except IntegrityError:
                # Another live account took this Google id after the lookup
                raise ConflictError("Google account is already linked to another user")

        return user

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_user_by_id(self, user_id: int) -> User:
        return self._require(user_id)

    def get_user_by_email(self, email: str) -> User:
        email = normalize_email(email)
        if not self.is_valid_email(email):
            raise ValidationError("invalid email format")
        user = self.repository.get_by_email(email)
        if user is None:
            raise NotFoundError(f"user with email {email} not found")
        return user

    def get_all_users(self, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        page, limit = normalize_pagination(page, limit)
        users, total = self.repository.get_all(page, limit)
        return Page(users=users, total=total, page=page, limit=limit)

    def search_users(self, keyword: Optional[str], page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("search keyword is required")
        page, limit = normalize_pagination(page, limit)
        users, total = self.repository.search(keyword, page, limit)
        return Page(users=users, total=total, page=page, limit=limit)

    def get_active_users(self) -> List[User]:
        return self.repository.get_active()

    def get_user_stats(self) -> UserStats:
        total = self.repository.count()
        active = self.repository.count_active()
        return UserStats(total_users=total, active_users=active, inactive_users=total - active)

    def is_user_active(self, user_id: int) -> bool:
        return bool(self._require(user_id).is_active)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update_user_profile(self, user_id: int, name: Optional[str], avatar_url: Optional[str] = None) -> User:
        self._check_id(user_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")
        user = self._require(user_id)
        return self.repository.update_fields(user, name=name, avatar_url=avatar_url or "")

    def activate_user(self, user_id: int):
        self._set_status(user_id, True)

    def deactivate_user(self, user_id: int):
        self._set_status(user_id, False)

    def _set_status(self, user_id: int, is_active: bool):
        self._check_id(user_id)
        if not self.repository.update_status(user_id, is_active):
            raise NotFoundError(f"user with id {user_id} not found")
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")

    def delete_user(self, user_id: int):
        self._check_id(user_id)
        if not self.repository.delete(user_id):
            raise NotFoundError(f"user with id {user_id} not found")
        logger.info(f"User {user_id} deleted")
