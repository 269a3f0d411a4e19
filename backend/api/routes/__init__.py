"""
API Routes
"""
from backend.api.routes import auth, health, menu, users

__all__ = ["auth", "health", "menu", "users"]
