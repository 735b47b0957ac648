"""
auth/roles.py -- Administrative role operations.

RoleManager resolves the names and emails that admins type into the ids the
RoleStore works with, and reports missing users or roles as NotFound. The
HTTP admin routes and the CLI both go through it.
"""

from __future__ import annotations

import logging

from auth.errors import NotFound
from auth.models import Role, User
from auth.store import RoleStore, UserStore
from auth.validation import validate_role_name

logger = logging.getLogger("turnstile.auth.roles")


class RoleManager:
    def __init__(self, users: UserStore, roles: RoleStore) -> None:
        self.users = users
        self.roles = roles

    def create_role(self, name: str) -> Role:
        """Raises ValidationError for an empty name, DuplicateRole if it exists."""
        role = self.roles.create_role(validate_role_name(name))
        logger.info("Created role %r (%s)", role.name, role.id)
        return role

    def list_roles(self) -> list[Role]:
        return self.roles.list_roles()

    def assign(self, email: str, role_name: str) -> tuple[User, Role]:
        """Add the user with email to role_name. Raises NotFound or AlreadyAssigned."""
        user, role = self._resolve_user(email), self._resolve_role(role_name)
        self.roles.assign(user.id, role.id)
        logger.info("Assigned role %r to user %s", role.name, user.id)
        return user, role

    def unassign(self, user_id: str, role_name: str) -> None:
        """Remove user_id from role_name. Raises NotFound if the role or the membership is missing."""
        role = self._resolve_role(role_name)
        if not self.roles.unassign(user_id, role.id):
            raise NotFound("User is not in that role.")
        logger.info("Removed role %r from user %s", role.name, user_id)

    def set_active(self, user_id: str, is_active: bool) -> User:
        """Soft-disable or re-enable a user. Raises NotFound."""
        if not self.users.set_active(user_id, is_active):
            raise NotFound("User not found.")
        logger.info("User %s %s", user_id, "enabled" if is_active else "disabled")
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    def _resolve_user(self, email: str) -> User:
        user = self.users.find_by_email(email)
        if user is None:
            raise NotFound("User not found.")
        return user

    def _resolve_role(self, name: str) -> Role:
        role = self.roles.get_by_name(name)
        if role is None:
            raise NotFound("Role not found.")
        return role
