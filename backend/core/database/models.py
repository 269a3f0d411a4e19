"""
SQLAlchemy Database Models

Stores:
- User accounts created on first Google login

Accounts are soft deleted: deleted_at is set and the row is hidden from
every lookup, but kept for restore. Email and Google id are unique among
live (not deleted) rows only, so a deleted account never blocks a new
signup with the same address.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Index, text
from sqlalchemy.ext.declarative import declarative_base
from datetime import datetime

Base = declarative_base()

_LIVE_ROWS = text('deleted_at IS NULL')


class User(Base):
    """
    Application account linked to a Google identity.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    federated_id = Column(String(255), nullable=True)  # Google user id ("sub")
    avatar_url = Column(String(1000))
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ux_users_email_live', 'email', unique=True,
              postgresql_where=_LIVE_ROWS, sqlite_where=_LIVE_ROWS),
        Index('ux_users_federated_id_live', 'federated_id', unique=True,
              postgresql_where=_LIVE_ROWS, sqlite_where=_LIVE_ROWS),
        Index('ix_users_created_at', 'created_at'),
        Index('ix_users_deleted_at', 'deleted_at'),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, active={self.is_active})>"
