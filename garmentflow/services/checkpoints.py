"""Checkpoint registry: the scanning stations configured for a factory."""

from flask import current_app

from ..errors import CheckpointNotFound, DuplicateRecord
from ..models import CheckPoint
from ..schemas import CheckPointIn, parse
from ..store import ci_equals


class CheckpointRegistry:
    def __init__(self, store):
        self.store = store

    def list_checkpoints(self) -> list[CheckPoint]:
        # Registry order is creation order; it drives the default station pick.
        return self.store.list_all(CheckPoint, order_by=(CheckPoint.created_at, CheckPoint.id))

    def get(self, checkpoint_id: str) -> CheckPoint:
        cp = self.store.get(CheckPoint, checkpoint_id)
        if cp is None:
            raise CheckpointNotFound(f"Checkpoint {checkpoint_id!r} does not exist.")
        return cp

    def find(self, checkpoint_id: str) -> CheckPoint | None:
        if not checkpoint_id:
            return None
        return self.store.get(CheckPoint, checkpoint_id)

    def create(self, payload) -> CheckPoint:
        data = parse(CheckPointIn, payload)
        self._ensure_unique_name(data.name)
        cp = CheckPoint(id=self.store.next_sequential_id(CheckPoint, "CP"), **data.model_dump())
        with self.store.transaction():
            self.store.insert(cp)
        current_app.logger.info("created checkpoint %s (%s)", cp.id, cp.name)
        return cp

    def update(self, checkpoint_id: str, payload) -> CheckPoint:
        cp = self.get(checkpoint_id)
        data = parse(CheckPointIn, payload)
        self._ensure_unique_name(data.name, exclude_id=cp.id)
        with self.store.transaction():
            self.store.update(cp, **data.model_dump())
        current_app.logger.info("updated checkpoint %s", cp.id)
        return cp

    def delete(self, checkpoint_id: str) -> None:
        cp = self.get(checkpoint_id)
        name = cp.name
        with self.store.transaction():
            self.store.delete(cp)
        current_app.logger.info("deleted checkpoint %s (%s)", checkpoint_id, name)

    def list_entry_points(self, checkpoints=None) -> list[CheckPoint]:
        checkpoints = self.list_checkpoints() if checkpoints is None else checkpoints
        return [cp for cp in checkpoints if cp.is_production_entry]

    def default_checkpoint(self, checkpoints=None) -> CheckPoint | None:
        """First entry point, else the first checkpoint, else None.

        ``checkpoints`` narrows the pick, e.g. to the stations one user may
        operate; it must be in registry order.
        """
        checkpoints = self.list_checkpoints() if checkpoints is None else list(checkpoints)
        entry_points = self.list_entry_points(checkpoints)
        if entry_points:
            return entry_points[0]
        return checkpoints[0] if checkpoints else None

    def _ensure_unique_name(self, name: str, exclude_id: str | None = None):
        conditions = [ci_equals(CheckPoint.name, name)]
        if exclude_id is not None:
            conditions.append(CheckPoint.id != exclude_id)
        if self.store.first(self.store.query(CheckPoint, *conditions)) is not None:
            raise DuplicateRecord(f"A checkpoint named {name!r} already exists.", name=name)
