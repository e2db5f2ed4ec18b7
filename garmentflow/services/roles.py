"""User/role gate.

A stored :class:`~garmentflow.models.User` is turned into one of three
principal types.  ``SystemAdmin`` carries no checkpoint or permission fields
at all because they are always overridden for that role.

Usage::

    principal = principal_from_user(user)
    resolve_session_checkpoint(principal)        # "CP-003" or None
    can_access_module(principal, "tracking", "read")
"""

from dataclasses import dataclass, field

from ..errors import InvalidCheckpoint, PermissionDenied, ValidationError

MODULES = (
    "dashboard",
    "work-orders",
    "generate-qr-code",
    "check-point-scanning",
    "tracking",
    "finish-sewing-qc",
    "user-management",
    "master-data",
    "ai-tools",
)
ACTIONS = ("read", "write", "delete")


@dataclass(frozen=True)
class ModuleAccess:
    read: bool = True
    write: bool = False
    delete: bool = False

    def allows(self, action: str) -> bool:
        return bool(getattr(self, action, False))


@dataclass(frozen=True)
class StandardUser:
    user_id: str
    display_name: str
    assigned_checkpoints: tuple = ()
    permissions: dict = field(default_factory=dict)
    role = "User"


@dataclass(frozen=True)
class AdminUser:
    user_id: str
    display_name: str
    assigned_checkpoints: tuple = ()
    permissions: dict = field(default_factory=dict)
    role = "Admin"


@dataclass(frozen=True)
class SystemAdmin:
    user_id: str
    display_name: str
    role = "System Admin"


Principal = StandardUser | AdminUser | SystemAdmin


def default_permissions() -> dict:
    return {m: {"read": True, "write": False, "delete": False} for m in MODULES}


def principal_from_user(user) -> Principal:
    if user.role == "System Admin":
        return SystemAdmin(user_id=user.id, display_name=user.display_name)

    permissions = {
        module: ModuleAccess(**{a: bool(triple.get(a, False)) for a in ACTIONS})
        for module, triple in (user.permissions or {}).items()
    }
    checkpoints = tuple(user.assigned_checkpoints or ())
    if user.role == "Admin":
        return AdminUser(user.id, user.display_name, checkpoints, permissions)
    if user.role == "User":
        return StandardUser(user.id, user.display_name, checkpoints, permissions)
    raise ValidationError(f"Unknown role {user.role!r}.")


def resolve_session_checkpoint(principal: Principal) -> str | None:
    """The station a session starts at, or None.

    None means either "no default" (System Admin, nothing assigned) or "ask
    the user" (Admin with several checkpoints); see
    :func:`requires_checkpoint_selection`.
    """
    if isinstance(principal, SystemAdmin):
        return None
    if len(principal.assigned_checkpoints) == 1:
        return principal.assigned_checkpoints[0]
    return None


def requires_checkpoint_selection(principal: Principal) -> bool:
    return isinstance(principal, AdminUser) and len(principal.assigned_checkpoints) > 1


def selectable_checkpoints(principal: Principal, checkpoints) -> list:
    """Checkpoints ``principal`` may operate at, in registry order."""
    if isinstance(principal, SystemAdmin):
        return list(checkpoints)
    assigned = set(principal.assigned_checkpoints)
    return [cp for cp in checkpoints if cp.id in assigned]


def select_session_checkpoint(principal: Principal, checkpoint_id: str, checkpoints) -> str:
    offered = {cp.id for cp in selectable_checkpoints(principal, checkpoints)}
    if checkpoint_id not in offered:
        raise InvalidCheckpoint(f"Checkpoint {checkpoint_id!r} is not assigned to you.")
    return checkpoint_id


def can_access_module(principal: Principal, module: str, action: str = "read") -> bool:
    if isinstance(principal, SystemAdmin):
        return True
    access = principal.permissions.get(module)
    return access is not None and access.allows(action)


def require_module(principal: Principal, module: str, action: str = "read") -> None:
    if not can_access_module(principal, module, action):
        raise PermissionDenied(
            f"You do not have {action} access to {module}.", module=module, action=action
        )
