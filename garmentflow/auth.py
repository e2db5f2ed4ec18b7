"""Identity and session provider.

The signed Flask session holds ``user_id``, ``factory_id`` and the selected
``checkpoint_id``.  Services for the session's factory are built once per
request and cached on ``flask.g``.

Usage::

    @api.get("/history")
    @require_permission("tracking", "read")
    def history():
        services = factory_services()
"""

from functools import wraps

from flask import current_app, g, session

from . import db
from .errors import AuthenticationRequired, CheckpointSelectionRequired, RecordNotFound
from .services import build_services
from .services.roles import (
    principal_from_user,
    require_module,
    requires_checkpoint_selection,
    resolve_session_checkpoint,
    select_session_checkpoint,
    selectable_checkpoints,
)


def factory_services(factory_id: str | None = None):
    factory_id = factory_id or session.get("factory_id") or current_app.config["DEFAULT_FACTORY_ID"]
    cached = g.get("services")
    if cached is None or cached.factory_id != factory_id:
        cached = build_services(db.session, factory_id, current_app.config)
        g.services = cached
    return cached


def current_user():
    user_id = session.get("user_id")
    if not user_id:
        raise AuthenticationRequired()
    user = g.get("user")
    if user is None or user.id != user_id:
        try:
            user = factory_services().users.get(user_id)
        except RecordNotFound:
            session.clear()
            raise AuthenticationRequired("Your session has expired, please log in again.")
        g.user = user
    return user


def current_principal():
    return principal_from_user(current_user())


def session_payload() -> dict:
    """What a client needs after login: who is logged in and where."""
    user = current_user()
    principal = principal_from_user(user)
    checkpoints = factory_services().checkpoints.list_checkpoints()
    offered = selectable_checkpoints(principal, checkpoints) if requires_checkpoint_selection(principal) else []
    return {
        "user": user.to_dict(),
        "factory_id": session.get("factory_id"),
        "checkpoint_id": session.get("checkpoint_id"),
        "needs_checkpoint_selection": requires_checkpoint_selection(principal)
        and not session.get("checkpoint_id"),
        "offered_checkpoints": [cp.to_dict() for cp in offered],
    }


def login(username: str, password: str, factory_id: str | None = None) -> dict:
    factory_id = factory_id or current_app.config["DEFAULT_FACTORY_ID"]
    user = factory_services(factory_id).users.authenticate(username, password)
    principal = principal_from_user(user)

    session.clear()
    session["user_id"] = user.id
    session["factory_id"] = factory_id
    session["checkpoint_id"] = resolve_session_checkpoint(principal)
    g.user = user
    current_app.logger.info("user %s logged in to factory %s", user.username, factory_id)
    return session_payload()


def logout() -> None:
    user_id = session.get("user_id")
    session.clear()
    g.pop("user", None)
    if user_id:
        current_app.logger.info("user %s logged out", user_id)


def choose_checkpoint(checkpoint_id: str) -> dict:
    principal = current_principal()
    checkpoints = factory_services().checkpoints.list_checkpoints()
    session["checkpoint_id"] = select_session_checkpoint(principal, checkpoint_id, checkpoints)
    return session_payload()


def active_checkpoint_id(explicit: str | None = None) -> str:
    """Checkpoint for a scan: the request's choice, else the session's.

    A session with no checkpoint falls back to the default station among
    those the user may operate, unless the user has to pick one.
    """
    principal = current_principal()
    registry = factory_services().checkpoints
    if explicit:
        return select_session_checkpoint(principal, explicit, registry.list_checkpoints())
    checkpoint_id = session.get("checkpoint_id")
    if checkpoint_id:
        return checkpoint_id
    if not requires_checkpoint_selection(principal):
        default = registry.default_checkpoint(selectable_checkpoints(principal, registry.list_checkpoints()))
        if default is not None:
            session["checkpoint_id"] = default.id
            current_app.logger.info("session of %s defaulted to checkpoint %s", principal.user_id, default.id)
            return default.id
    raise CheckpointSelectionRequired()


def require_permission(module: str, action: str = "read"):
    """Decorator to require module permission for a view."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            require_module(current_principal(), module, action)
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
