"""Work order directory: planned production runs that bundles belong to."""

from flask import current_app

from ..errors import DuplicateRecord, WorkOrderMissing
from ..models import WorkOrder
from ..schemas import WorkOrderIn, parse


def bundle_breakdown(sizes, qty_per_bundle: int) -> list[dict]:
    """Split each size quantity into bundles of ``qty_per_bundle``.

    The last bundle of a size takes the remainder and bundle numbers restart
    at 1 for every size.
    """
    bundles = []
    if not sizes or not qty_per_bundle or qty_per_bundle <= 0:
        return bundles
    for entry in sizes:
        remaining = int(entry.get("quantity") or 0)
        counter = 1
        while remaining > 0:
            qty = min(remaining, qty_per_bundle)
            bundles.append({
                "key": f"{entry['size']}-{counter}",
                "size": entry["size"],
                "bundle_no": counter,
                "quantity": qty,
            })
            remaining -= qty
            counter += 1
    return bundles


class WorkOrderDirectory:
    def __init__(self, store):
        self.store = store

    def list_work_orders(self) -> list[WorkOrder]:
        return self.store.list_all(WorkOrder, order_by=WorkOrder.created_at.desc())

    def find(self, work_order_no: str) -> WorkOrder | None:
        if not work_order_no:
            return None
        return self.store.get(WorkOrder, work_order_no, key_column=WorkOrder.work_order_no)

    def get(self, work_order_no: str) -> WorkOrder:
        wo = self.find(work_order_no)
        if wo is None:
            raise WorkOrderMissing(f"Work order {work_order_no!r} does not exist.")
        return wo

    def create(self, payload) -> WorkOrder:
        data = parse(WorkOrderIn, payload)
        if self.find(data.work_order_no) is not None:
            raise DuplicateRecord(f"Work order {data.work_order_no} already exists.")
        wo = WorkOrder(**data.model_dump())
        with self.store.transaction():
            self.store.insert(wo)
        current_app.logger.info(
            "created work order %s (%s, %d pcs)", wo.work_order_no, wo.style_no, wo.total_quantity
        )
        return wo

    def bundles(self, work_order_no: str) -> list[dict]:
        wo = self.get(work_order_no)
        return bundle_breakdown(wo.sizes, wo.qty_per_bundle)

    def find_bundle_slot(self, work_order_no: str, size: str, bundle_no: int) -> dict | None:
        for slot in self.bundles(work_order_no):
            if slot["size"] == size and slot["bundle_no"] == bundle_no:
                return slot
        return None
