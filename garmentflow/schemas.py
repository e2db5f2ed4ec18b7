"""Request payload schemas.

``parse`` validates a payload and converts pydantic errors into
:class:`garmentflow.errors.ValidationError` so callers only deal with one
error hierarchy.
"""

from datetime import date
from typing import Literal

import pydantic
from pydantic import BaseModel, Field, model_validator

from .errors import QcValidationError, ValidationError

CHECKPOINT_TYPES = ("Pre-production", "Cutting", "Sewing", "QC", "Finishing", "Packing")
ROLES = ("User", "Admin", "System Admin")


def _first_error(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    msg = err["msg"]
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {msg}" if loc else msg


def parse(schema, data, error_cls=ValidationError):
    try:
        return schema.model_validate(data or {})
    except pydantic.ValidationError as e:
        raise error_cls(_first_error(e)) from e


class SizeBreakdown(BaseModel):
    size: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class OperationIn(BaseModel):
    machine_type: str = Field(min_length=1)
    operation_description: str = Field(min_length=1)
    smv: float = Field(gt=0)
    target: int = Field(gt=0)


class WorkOrderIn(BaseModel):
    work_order_no: str = Field(min_length=1)
    style_no: str = Field(min_length=1)
    garment_type: str = Field(min_length=1)
    production_note_no: str = Field(min_length=1)
    shipment_date: date
    sizes: list[SizeBreakdown] = Field(min_length=1)
    qty_per_bundle: int = Field(ge=1)
    start_date: date
    end_date: date
    target_output_qty_per_day: int = Field(ge=1)
    operations: list[OperationIn] = Field(min_length=1)
    production_line: str = Field(min_length=1)
    status: str = "Planned"


class MapCodeRequest(BaseModel):
    code: str = Field(min_length=1)
    size: str
    bundle_no: int = Field(ge=1)


class CheckPointIn(BaseModel):
    name: str = Field(min_length=1)
    type: Literal[CHECKPOINT_TYPES]
    is_production_entry: bool = False
    is_production_exit: bool = False


class WorkerIn(BaseModel):
    name: str = Field(min_length=1)
    hrm_id: str | None = None
    join_date: date | None = None
    status: Literal["Active", "Resigned"] = "Active"
    line: str | None = None
    position: str = Field(min_length=1)


class MachineIn(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    serial_no: str = Field(min_length=1)
    supplier: str | None = None
    purchase_date: date | None = None
    warranty_expiry_date: date | None = None
    is_available: bool = True
    current_line: str | None = None


class ProductionInstructionIn(BaseModel):
    name: str = Field(min_length=1)
    garment_type: str = Field(min_length=1)
    machine_type: str = Field(min_length=1)
    smv: float = Field(gt=0)


class QcFailureReasonIn(BaseModel):
    reason: str = Field(min_length=1)
    description: str = ""
    category: str = Field(min_length=1)


class ModulePermission(BaseModel):
    read: bool = True
    write: bool = False
    delete: bool = False


class UserIn(BaseModel):
    username: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    password: str | None = None
    role: Literal[ROLES] = "User"
    assigned_checkpoints: list[str] = Field(default_factory=list)
    permissions: dict[str, ModulePermission] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _single_checkpoint_for_users(self):
        if self.role == "User" and len(self.assigned_checkpoints) > 1:
            raise ValueError("A User can be assigned at most one checkpoint.")
        return self


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    factory: str | None = None


class SelectCheckpointRequest(BaseModel):
    checkpoint_id: str = Field(min_length=1)


class ScanFindRequest(BaseModel):
    code: str = Field(min_length=1)


class ScanConfirmRequest(BaseModel):
    qr_code_id: str = Field(min_length=1)
    checkpoint_id: str | None = None


class QcChecklistItem(BaseModel):
    """One garment in a QC checklist: unset, passed or failed."""

    is_passed: bool = False
    is_failed: bool = False
    failure_reason: str | None = None

    @model_validator(mode="after")
    def _outcome_is_consistent(self):
        if self.is_passed and self.is_failed:
            raise ValueError("An item cannot be both passed and failed.")
        if self.is_failed and not (self.failure_reason or "").strip():
            raise ValueError("A failure reason is required.")
        return self

    @property
    def outcome(self) -> str:
        if self.is_passed:
            return "passed"
        if self.is_failed:
            return "failed"
        return "unset"

    def mark_passed(self):
        self.is_passed, self.is_failed, self.failure_reason = True, False, None

    def mark_failed(self, reason: str | None = None):
        self.is_failed, self.is_passed = True, False
        if reason is not None:
            self.failure_reason = reason

    def clear(self):
        self.is_passed, self.is_failed, self.failure_reason = False, False, None


class QcSubmission(BaseModel):
    qr_code_id: str = Field(min_length=1)
    items: list[QcChecklistItem]


def parse_qc_submission(data) -> QcSubmission:
    return parse(QcSubmission, data, error_cls=QcValidationError)
