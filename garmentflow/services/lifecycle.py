"""Bundle lifecycle engine.

A pass is two writes that happen together or not at all: the code's
``status`` becomes the checkpoint name and one ``BundleHistory`` row is
appended.  There is no ordering between checkpoints; any registered
checkpoint may be recorded at any time, and passing the same checkpoint again
appends another row.  Concurrent passes of one bundle are last-writer-wins on
``status`` while every history row is kept.
"""

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import asc, desc

from ..errors import BundleUnassigned, InvalidCheckpoint, ValidationError
from ..models import PASSED, BundleHistory, QrCode, WorkOrder
from ..store import ci_like

HISTORY_SORT_KEYS = {
    "id": BundleHistory.id,
    "qr_code_id": BundleHistory.qr_code_id,
    "work_order_id": BundleHistory.work_order_id,
    "check_point_name": BundleHistory.check_point_name,
    "status": BundleHistory.status,
    "recorded_by": BundleHistory.recorded_by,
    "timestamp": BundleHistory.timestamp,
}


@dataclass
class FoundBundle:
    qr_code: QrCode
    work_order: WorkOrder

    def to_dict(self) -> dict:
        return {
            "qr_code": self.qr_code.to_dict(),
            "work_order": self.work_order.to_dict(),
        }


class BundleLifecycleEngine:
    def __init__(self, store, qr_codes, checkpoints, work_orders):
        self.store = store
        self.qr_codes = qr_codes
        self.checkpoints = checkpoints
        self.work_orders = work_orders

    def find_bundle(self, code: str) -> FoundBundle:
        """Resolve a scanned code to its bundle and work order.  Read only."""
        qr = self.qr_codes.find(code)
        if not qr.is_assigned:
            current_app.logger.warning("scan of unassigned code %s", qr.id)
            raise BundleUnassigned(
                f"QR code {qr.id} is not assigned to any work order.", qr_code_id=qr.id
            )
        work_order = self.work_orders.get(qr.work_order_id)
        return FoundBundle(qr_code=qr, work_order=work_order)

    def confirm_pass(self, qr_code_id: str, checkpoint_id: str, actor: str | None = None,
                     details: str | None = None) -> BundleHistory:
        checkpoint = self.checkpoints.find(checkpoint_id)
        if checkpoint is None:
            current_app.logger.warning("pass rejected: unknown checkpoint %s", checkpoint_id)
            raise InvalidCheckpoint("Invalid checkpoint selected.", checkpoint_id=checkpoint_id)

        bundle = self.find_bundle(qr_code_id)
        record = BundleHistory(
            qr_code_id=bundle.qr_code.id,
            work_order_id=bundle.work_order.work_order_no,
            check_point_name=checkpoint.name,
            status=PASSED,
            recorded_by=actor,
            details=details,
        )
        with self.store.transaction():
            self.qr_codes.update_status(bundle.qr_code, checkpoint.name)
            self.store.insert(record)
        current_app.logger.info(
            "bundle %s passed %s (work order %s, by %s)",
            record.qr_code_id, checkpoint.name, record.work_order_id, actor or "-",
        )
        return record

    def history_for(self, qr_code_id: str) -> list[BundleHistory]:
        """Passes for one code, oldest first."""
        qr = self.qr_codes.find(qr_code_id)
        return self.store.list_all(
            BundleHistory, BundleHistory.qr_code_id == qr.id, order_by=BundleHistory.id
        )

    def history(self, qr_code_id: str | None = None, work_order_id: str | None = None,
                sort_key: str = "timestamp", descending: bool = True,
                limit: int = 50, offset: int = 0) -> list[BundleHistory]:
        if sort_key not in HISTORY_SORT_KEYS:
            raise ValidationError(f"Cannot sort history by {sort_key!r}.")
        stmt = self.store.query(BundleHistory)
        if qr_code_id:
            stmt = stmt.where(ci_like(BundleHistory.qr_code_id, f"%{qr_code_id}%"))
        if work_order_id:
            stmt = stmt.where(ci_like(BundleHistory.work_order_id, f"%{work_order_id}%"))
        direction = desc if descending else asc
        stmt = stmt.order_by(direction(HISTORY_SORT_KEYS[sort_key]), direction(BundleHistory.id))
        stmt = stmt.offset(max(offset, 0)).limit(min(max(limit, 1), 500))
        return self.store.scalars(stmt)
