"""
Database Repository - Persistence operations for user accounts.

Every lookup skips soft-deleted rows unless the method says otherwise.
Mutating methods commit their own transaction.
"""
from typing import Optional, List, Tuple
from datetime import datetime
from sqlalchemy.orm import Session, Query
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
import logging

from .models import User

logger = logging.getLogger(__name__)


class UserRepository:
    """
    Repository pattern for user account operations.
    """

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def _live(self) -> Query:
        return self.db.query(User).filter(User.deleted_at.is_(None))

    @staticmethod
    def _paginate(query: Query, page: int, limit: int) -> Tuple[List[User], int]:
        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return users, total

    def commit(self):
        """Commit transaction with error handling"""
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to commit transaction: {e}")
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """
        Insert a new account.

        Raises:
            IntegrityError: If a live account already has the email or Google id
        """
        self.db.add(user)
        self.commit()
        self.db.refresh(user)
        logger.debug(f"Created user {user.id} ({user.email})")
        return user

    def create_if_not_exists(self, email: str, federated_id: Optional[str], user: User) -> Tuple[User, bool]:
        """
        Return the live account matching email or Google id, creating it if absent.

        Safe against concurrent signups: a unique violation means another
        request won the race, so the winner's row is re-read and returned.

        Returns:
            Tuple of (account, created)
        """
        existing = self._find_by_email_or_federated_id(email, federated_id)
        if existing:
            return existing, False

        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            logger.info(f"Concurrent signup detected for {email}, re-reading existing account")
            self.db.rollback()
            existing = self._find_by_email_or_federated_id(email, federated_id)
            if existing is None:
                raise
            return existing, False

        self.db.refresh(user)
        logger.info(f"Created user {user.id} ({user.email})")
        return user, True

    def _find_by_email_or_federated_id(self, email: str, federated_id: Optional[str]) -> Optional[User]:
        """The account holding the Google id wins over an email match."""
        if federated_id:
            user = self.get_by_federated_id(federated_id)
            if user is not None:
                return user
        return self.get_by_email(email)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._live().filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self._live().filter(User.email == email).first()

    def get_by_federated_id(self, federated_id: str) -> Optional[User]:
        return self._live().filter(User.federated_id == federated_id).first()

    def get_all(self, page: int, limit: int) -> Tuple[List[User], int]:
        """Page through live accounts, newest first. Returns (users, total)."""
        return self._paginate(self._live(), page, limit)

    def get_active(self) -> List[User]:
        return self._live().filter(User.is_active.is_(True)).order_by(User.created_at.desc(), User.id.desc()).all()

    def search(self, keyword: str, page: int, limit: int) -> Tuple[List[User], int]:
        """Case-insensitive substring match on name or email."""
        pattern = f"%{keyword}%"
        query = self._live().filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        return self._paginate(query, page, limit)

    def exists(self, user_id: int) -> bool:
        return self._live().filter(User.id == user_id).count() > 0

    def exists_by_email(self, email: str) -> bool:
        return self._live().filter(User.email == email).count() > 0

    def count(self) -> int:
        return self._live().count()

    def count_active(self) -> int:
        return self._live().filter(User.is_active.is_(True)).count()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_fields(self, user: User, **fields) -> User:
        """Set the given attributes on a loaded account and commit."""
        for key, value in fields.items():
            if not hasattr(User, key):
                raise AttributeError(f"User has no column '{key}'")
            setattr(user, key, value)
        user.updated_at = datetime.utcnow()
        self.commit()
        self.db.refresh(user)
        return user

    def update_status(self, user_id: int, is_active: bool) -> bool:
        """Returns False when no live account has this id."""
        return self._update_live(user_id, {User.is_active: is_active})

    def update_avatar(self, user_id: int, avatar_url: str) -> bool:
        return self._update_live(user_id, {User.avatar_url: avatar_url})

    def _update_live(self, user_id: int, values: dict) -> bool:
        values[User.updated_at] = datetime.utcnow()
        updated = (
            self._live()
            .filter(User.id == user_id)
            .update(values, synchronize_session='fetch')
        )
        self.commit()
        return updated > 0

    # ------------------------------------------------------------------
    # Delete / restore
    # ------------------------------------------------------------------

    def delete(self, user_id: int) -> bool:
        """Soft delete. Returns False when no live account has this id."""
        return self._update_live(user_id, {User.deleted_at: datetime.utcnow()})

    def hard_delete(self, user_id: int) -> bool:
        """Remove the row permanently, deleted or not."""
        deleted = self.db.query(User).filter(User.id == user_id).delete(synchronize_session='fetch')
        self.commit()
        if deleted:
            logger.info(f"Permanently deleted user {user_id}")
        return deleted > 0

    def restore(self, user_id: int) -> bool:
        """
        Undo a soft delete.

        Raises:
            IntegrityError: If a live account has since taken the email or Google id
        """
        restored = (
            self.db.query(User)
            .filter(User.id == user_id, User.deleted_at.isnot(None))
            .update({User.deleted_at: None, User.updated_at: datetime.utcnow()}, synchronize_session='fetch')
        )
        self.commit()
        return restored > 0
