"""
Users module - Profiles synced from the identity provider.
"""

from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository
from app.modules.users.router import router

__all__ = ["User", "UserRole", "UserRepository", "router"]
