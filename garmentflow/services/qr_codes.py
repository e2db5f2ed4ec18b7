"""QR code registry: blank bundle labels and their assignment to work orders."""

import random
import string
import time

from flask import current_app
from sqlalchemy import func, select

from ..errors import (
    BundleNotFound,
    BundleSlotTaken,
    CodeAlreadyAssigned,
    InsufficientCodes,
    InvalidQuantity,
    ValidationError,
)
from ..models import UNASSIGNED, QrCode
from ..qr_utils import build_label_workbook, make_qr_png, make_qr_svg
from ..store import ci_equals

MAX_BATCH = 500
MAX_COPIES = 100
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def new_code_id(prefix: str = "BNDL") -> str:
    """``PREFIX-<epoch ms>-<6 random chars>``.

    Uniqueness is probabilistic; the primary key rejects the rare collision.
    """
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=6))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


class QrCodeRegistry:
    def __init__(self, store, work_orders, prefix: str = "BNDL", max_batch: int = MAX_BATCH,
                 max_copies: int = MAX_COPIES):
        self.store = store
        self.work_orders = work_orders
        self.prefix = prefix
        self.max_batch = max_batch
        self.max_copies = max_copies

    def generate(self, count) -> list[QrCode]:
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= self.max_batch:
            current_app.logger.warning("rejected QR generation request for %r codes", count)
            raise InvalidQuantity(
                f"Please enter a number of unique codes between 1 and {self.max_batch}.",
                requested=count,
            )

        start = self._next_seq()
        ids: set[str] = set()
        while len(ids) < count:
            ids.add(new_code_id(self.prefix))

        codes = []
        with self.store.transaction():
            for offset, code_id in enumerate(sorted(ids)):
                codes.append(self.store.insert(
                    QrCode(id=code_id, work_order_id=None, status=UNASSIGNED, seq=start + offset)
                ))
        current_app.logger.info("generated %d QR codes for factory %s", count, self.store.factory_id)
        return codes

    def find(self, code: str) -> QrCode:
        """Case-insensitive exact match on the code id."""
        qr = self.store.first(self.store.query(QrCode, ci_equals(QrCode.id, (code or "").strip())))
        if qr is None:
            raise BundleNotFound(f"QR code {code!r} was not found.")
        return qr

    def list_codes(self, status: str | None = None, work_order_no: str | None = None) -> list[QrCode]:
        conditions = []
        if status:
            conditions.append(QrCode.status == status)
        if work_order_no:
            conditions.append(QrCode.work_order_id == work_order_no)
        return self.store.list_all(QrCode, *conditions, order_by=QrCode.seq)

    def unassigned(self) -> list[QrCode]:
        return self.store.list_all(QrCode, QrCode.work_order_id.is_(None), order_by=QrCode.seq)

    def assign_to_work_order(self, ids, work_order_no: str, bundles=None) -> list[QrCode]:
        """Attach codes to ``work_order_no``.

        ``bundles`` optionally lines up with ``ids`` and carries the size,
        bundle number and quantity fixed at assignment.  Once set those never
        change, and one bundle is covered by at most one code.  Status is left
        untouched: a code stays ``Unassigned`` until its first pass.
        """
        work_order_no = self.work_orders.get(work_order_no).work_order_no
        bundles = list(bundles) if bundles is not None else [None] * len(ids)
        if len(bundles) != len(ids):
            raise InvalidQuantity("Every assigned code needs exactly one bundle.")

        codes = [self.find(i) for i in ids]
        seen = set()
        for qr in codes:
            if qr.id in seen:
                raise ValidationError(f"QR code {qr.id} is listed more than once.", qr_code_id=qr.id)
            seen.add(qr.id)
            if qr.is_assigned and qr.work_order_id != work_order_no:
                raise CodeAlreadyAssigned(
                    f"QR code {qr.id} is already assigned to work order {qr.work_order_id}.",
                    qr_code_id=qr.id,
                    work_order_id=qr.work_order_id,
                )

        slots = set()
        for qr, bundle in zip(codes, bundles):
            if bundle is None:
                continue
            slot = (bundle["size"], bundle["bundle_no"])
            if slot in slots:
                raise ValidationError(f"Bundle {slot[0]}-{slot[1]} is listed more than once.")
            slots.add(slot)
            self._check_bundle(qr, work_order_no, bundle)

        with self.store.transaction():
            for qr, bundle in zip(codes, bundles):
                values = {"work_order_id": work_order_no}
                if bundle is not None:
                    values.update(
                        size=bundle["size"],
                        bundle_no=bundle["bundle_no"],
                        bundle_qty=bundle["quantity"],
                    )
                self.store.update(qr, **values)
        current_app.logger.info("assigned %d QR codes to work order %s", len(codes), work_order_no)
        return codes

    def assign_next_unassigned(self, work_order_no: str, bundles) -> list[QrCode]:
        """Give each bundle the next blank code in registry order."""
        self.work_orders.get(work_order_no)
        bundles = list(bundles)
        available = self.unassigned()
        if len(available) < len(bundles):
            current_app.logger.warning(
                "work order %s needs %d codes, only %d unassigned", work_order_no, len(bundles), len(available)
            )
            raise InsufficientCodes(
                f"{len(bundles)} QR codes are required but only {len(available)} are unassigned.",
                required=len(bundles),
                available=len(available),
            )
        picked = available[:len(bundles)]
        return self.assign_to_work_order([c.id for c in picked], work_order_no, bundles)

    def update_status(self, qr: QrCode, status: str) -> QrCode:
        """Overwrite the status label.  Only the lifecycle engine calls this,
        inside its own transaction."""
        return self.store.update(qr, status=status)

    def render(self, code: str, fmt: str = "png") -> tuple[bytes, str]:
        qr = self.find(code)
        if fmt == "svg":
            return make_qr_svg(qr.id), "image/svg+xml"
        return make_qr_png(qr.id), "image/png"

    def export_labels(self, ids, copies: int = 1) -> bytes:
        if isinstance(copies, bool) or not isinstance(copies, int) or not 1 <= copies <= self.max_copies:
            raise InvalidQuantity(f"Please enter a number of copies between 1 and {self.max_copies}.")
        codes = [self.find(i) for i in ids]
        return build_label_workbook(codes, copies=copies)

    def _check_bundle(self, qr: QrCode, work_order_no: str, bundle: dict) -> None:
        wanted = (bundle["size"], bundle["bundle_no"], bundle["quantity"])
        if qr.bundle_no is not None and (qr.size, qr.bundle_no, qr.bundle_qty) != wanted:
            raise CodeAlreadyAssigned(
                f"QR code {qr.id} already covers bundle {qr.size}-{qr.bundle_no}.",
                qr_code_id=qr.id,
            )
        holder = self.store.first(self.store.query(
            QrCode,
            QrCode.work_order_id == work_order_no,
            QrCode.size == bundle["size"],
            QrCode.bundle_no == bundle["bundle_no"],
            QrCode.id != qr.id,
        ))
        if holder is not None:
            raise BundleSlotTaken(
                f"Bundle {bundle['size']}-{bundle['bundle_no']} of {work_order_no} is already covered by {holder.id}.",
                qr_code_id=holder.id,
            )

    def _next_seq(self) -> int:
        stmt = select(func.max(QrCode.seq)).where(QrCode.factory_id == self.store.factory_id)
        current = self.store.scalar(stmt)
        return (current or 0) + 1
