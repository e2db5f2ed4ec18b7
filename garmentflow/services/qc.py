"""Finish-sewing QC checklists.

QC eligibility is checked against ``status`` (the bundle has passed at least
one checkpoint), not against ``work_order_id`` as scanning does.  Submitting
a checklist only validates and logs it; it never moves the bundle.
"""

from collections import Counter

from flask import current_app

from ..errors import BundleNotEligibleForQc, QcValidationError
from ..models import UNASSIGNED, QcFailureReason
from ..schemas import QcChecklistItem, parse_qc_submission
from .lifecycle import FoundBundle


class QcInspection:
    def __init__(self, store, qr_codes, work_orders):
        self.store = store
        self.qr_codes = qr_codes
        self.work_orders = work_orders

    def find_bundle(self, code: str) -> FoundBundle:
        qr = self.qr_codes.find(code)
        if qr.status == UNASSIGNED:
            current_app.logger.warning("QC lookup of code %s that has not passed a checkpoint", qr.id)
            raise BundleNotEligibleForQc(
                f"QR code {qr.id} has not passed any checkpoint yet.", qr_code_id=qr.id
            )
        return FoundBundle(qr_code=qr, work_order=self.work_orders.get(qr.work_order_id))

    def checklist(self, bundle: FoundBundle) -> list[QcChecklistItem]:
        return [QcChecklistItem() for _ in range(bundle.qr_code.bundle_qty or 0)]

    def failure_reasons(self) -> list[str]:
        rows = self.store.list_all(QcFailureReason, order_by=QcFailureReason.id)
        return [r.reason for r in rows]

    def submit(self, payload) -> dict:
        if not isinstance(payload, dict):
            payload = payload.model_dump()
        submission = parse_qc_submission(payload)
        bundle = self.find_bundle(submission.qr_code_id)

        expected = bundle.qr_code.bundle_qty or 0
        if len(submission.items) != expected:
            raise QcValidationError(
                f"Bundle {bundle.qr_code.id} has {expected} items, got {len(submission.items)}."
            )

        known = set(self.failure_reasons())
        for index, item in enumerate(submission.items):
            if item.is_failed and item.failure_reason not in known:
                raise QcValidationError(
                    f"items.{index}: Unknown failure reason {item.failure_reason!r}.",
                    item=index,
                )

        outcomes = Counter(item.outcome for item in submission.items)
        failures = Counter(item.failure_reason for item in submission.items if item.is_failed)
        summary = {
            "qr_code_id": bundle.qr_code.id,
            "work_order_id": bundle.work_order.work_order_no,
            "total": expected,
            "passed": outcomes["passed"],
            "failed": outcomes["failed"],
            "unset": outcomes["unset"],
            "failures_by_reason": dict(failures),
        }
        current_app.logger.info(
            "QC results for bundle %s: %d passed, %d failed, %d unchecked",
            summary["qr_code_id"], summary["passed"], summary["failed"], summary["unset"],
        )
        return summary
