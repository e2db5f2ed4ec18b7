"""User management and credential checks."""

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import AuthenticationRequired, DuplicateRecord, RecordNotFound, ValidationError
from ..models import CheckPoint, User
from ..schemas import UserIn, parse
from .roles import MODULES, default_permissions


class UserDirectory:
    def __init__(self, store):
        self.store = store

    def list_users(self) -> list[User]:
        return self.store.list_all(User, order_by=User.display_name)

    def get(self, user_id: str) -> User:
        user = self.store.get(User, user_id)
        if user is None:
            raise RecordNotFound(f"User {user_id!r} does not exist.")
        return user

    def authenticate(self, username: str, password: str) -> User:
        user = self.store.get(User, username, key_column=User.username)
        if user is None or not check_password_hash(user.password_hash, password):
            current_app.logger.warning("failed login for %r in factory %s", username, self.store.factory_id)
            raise AuthenticationRequired("Invalid username, password, or factory selection.")
        return user

    def create(self, payload) -> User:
        data = parse(UserIn, payload)
        if not data.password:
            raise ValidationError("password: A password is required.")
        if self.store.get(User, data.username, key_column=User.username) is not None:
            raise DuplicateRecord(f"Username {data.username!r} is taken.")
        user = User(
            id=self.store.next_sequential_id(User, "U"),
            username=data.username,
            display_name=data.display_name,
            password_hash=generate_password_hash(data.password),
            role=data.role,
            **self._access_fields(data),
        )
        with self.store.transaction():
            self.store.insert(user)
        current_app.logger.info("created user %s (%s)", user.username, user.role)
        return user

    def update(self, user_id: str, payload) -> User:
        user = self.get(user_id)
        data = parse(UserIn, payload)
        values = {"display_name": data.display_name, "role": data.role, **self._access_fields(data)}
        if data.password:
            values["password_hash"] = generate_password_hash(data.password)
        with self.store.transaction():
            self.store.update(user, **values)
        current_app.logger.info("updated user %s", user.username)
        return user

    def delete(self, user_id: str) -> None:
        user = self.get(user_id)
        username = user.username
        with self.store.transaction():
            self.store.delete(user)
        current_app.logger.info("deleted user %s", username)

    def _access_fields(self, data: UserIn) -> dict:
        if data.role == "System Admin":
            # Stored for display only; the role gate never reads them.
            everything = [cp.id for cp in self.store.list_all(CheckPoint, order_by=CheckPoint.id)]
            return {
                "assigned_checkpoints": everything,
                "permissions": {m: {"read": True, "write": True, "delete": True} for m in MODULES},
            }

        known = {cp.id for cp in self.store.list_all(CheckPoint)}
        unknown = [cp for cp in data.assigned_checkpoints if cp not in known]
        if unknown:
            raise ValidationError(f"Unknown checkpoints: {', '.join(unknown)}")
        permissions = default_permissions()
        permissions.update({m: p.model_dump() for m, p in data.permissions.items()})
        return {"assigned_checkpoints": list(data.assigned_checkpoints), "permissions": permissions}
