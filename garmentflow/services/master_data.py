"""Master-data catalog: workers, machines, production instructions and QC
failure reasons.  Checkpoints have their own registry."""

from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from flask import current_app

from ..errors import RecordNotFound, ValidationError
from ..models import Machine, ProductionInstruction, QcFailureReason, Worker
from ..schemas import MachineIn, ProductionInstructionIn, QcFailureReasonIn, WorkerIn, parse

ALLOWED_UPLOAD_EXT = {".xlsx", ".xls", ".csv"}
WORKER_UPLOAD_COLUMNS = {"name", "position"}


@dataclass(frozen=True)
class Kind:
    model: type
    schema: type
    prefix: str
    label: str


KINDS = {
    "workers": Kind(Worker, WorkerIn, "E", "worker"),
    "machines": Kind(Machine, MachineIn, "MC", "machine"),
    "production-instructions": Kind(ProductionInstruction, ProductionInstructionIn, "PI", "production instruction"),
    "qc-failure-reasons": Kind(QcFailureReason, QcFailureReasonIn, "QCF", "QC failure reason"),
}


class MasterDataCatalog:
    def __init__(self, store):
        self.store = store

    def _kind(self, kind: str) -> Kind:
        try:
            return KINDS[kind]
        except KeyError:
            raise RecordNotFound(f"Unknown master-data type {kind!r}.")

    def list_records(self, kind: str) -> list:
        k = self._kind(kind)
        return self.store.list_all(k.model, order_by=k.model.id)

    def get(self, kind: str, record_id: str):
        k = self._kind(kind)
        obj = self.store.get(k.model, record_id)
        if obj is None:
            raise RecordNotFound(f"{k.label.capitalize()} {record_id!r} does not exist.")
        return obj

    def create(self, kind: str, payload):
        k = self._kind(kind)
        data = parse(k.schema, payload)
        obj = k.model(id=self.store.next_sequential_id(k.model, k.prefix), **data.model_dump())
        with self.store.transaction():
            self.store.insert(obj)
        current_app.logger.info("created %s %s", k.label, obj.id)
        return obj

    def update(self, kind: str, record_id: str, payload):
        k = self._kind(kind)
        obj = self.get(kind, record_id)
        data = parse(k.schema, payload)
        with self.store.transaction():
            self.store.update(obj, **data.model_dump())
        current_app.logger.info("updated %s %s", k.label, record_id)
        return obj

    def delete(self, kind: str, record_id: str) -> None:
        k = self._kind(kind)
        obj = self.get(kind, record_id)
        with self.store.transaction():
            self.store.delete(obj)
        current_app.logger.info("deleted %s %s", k.label, record_id)

    def upload_workers(self, stream, filename: str) -> dict:
        """Bulk add workers from a spreadsheet.

        Rows whose ``hrm_id`` already exists are skipped; rows missing a name
        or position are counted as invalid.
        """
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_UPLOAD_EXT:
            raise ValidationError("Invalid file. Please upload a .xlsx or .csv file.")
        try:
            df = pd.read_csv(stream) if ext == ".csv" else pd.read_excel(stream)
        except Exception as e:
            current_app.logger.warning("worker upload %s unreadable: %s", filename, e)
            raise ValidationError(f"Could not read {filename}: {e}")

        df.columns = [str(c).strip().lower() for c in df.columns]
        missing = WORKER_UPLOAD_COLUMNS - set(df.columns)
        if missing:
            raise ValidationError(f"Missing columns: {', '.join(sorted(missing))}")
        df = df.astype(object).where(pd.notna(df), None)

        existing = {w.hrm_id for w in self.list_records("workers") if w.hrm_id}
        added = skipped = invalid = 0
        skipped_ids: list[str] = []

        with self.store.transaction():
            for row in df.to_dict(orient="records"):
                name = str(row.get("name") or "").strip()
                position = str(row.get("position") or "").strip()
                hrm_id = str(row.get("hrm_id") or "").strip() or None
                if not name or not position:
                    invalid += 1
                    continue
                if hrm_id and hrm_id in existing:
                    skipped += 1
                    if len(skipped_ids) < 10:
                        skipped_ids.append(hrm_id)
                    continue
                self.store.insert(Worker(
                    id=self.store.next_sequential_id(Worker, "E"),
                    hrm_id=hrm_id,
                    name=name,
                    position=position,
                    line=str(row.get("line") or "").strip() or None,
                    status="Active",
                ))
                self.store.session.flush()
                if hrm_id:
                    existing.add(hrm_id)
                added += 1

        current_app.logger.info(
            "worker upload %s: added %d, skipped %d, invalid %d", filename, added, skipped, invalid
        )
        return {"added": added, "skipped": skipped, "invalid": invalid, "skipped_ids": skipped_ids}
