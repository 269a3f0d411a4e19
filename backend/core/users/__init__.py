"""User account management."""

from .service import Page, UserService, UserStats

__all__ = ['Page', 'UserService', 'UserStats']
