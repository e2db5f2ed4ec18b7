"""Exceptions raised by the garmentflow services.

Every error is scoped to the single operation that raised it.  The API
blueprint turns them into ``{"success": false, "error": ..., "code": ...}``
responses using ``status_code``.
"""


class GarmentFlowError(Exception):
    """Base exception for garmentflow errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str = "", **details):
        self.message = message or (self.__class__.__doc__ or "").strip()
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


# Not found -----------------------------------------------------------------

class NotFoundError(GarmentFlowError):
    """The requested record does not exist."""

    code = "not_found"
    status_code = 404


class BundleNotFound(NotFoundError):
    """No QR code matches the scanned value."""

    code = "bundle_not_found"


class CheckpointNotFound(NotFoundError):
    """Checkpoint does not exist in this factory."""

    code = "checkpoint_not_found"


class WorkOrderMissing(NotFoundError):
    """Could not find the work order associated with this QR code."""

    code = "work_order_missing"


class RecordNotFound(NotFoundError):
    """Master-data record does not exist."""

    code = "record_not_found"


# Invalid state --------------------------------------------------------------

class InvalidStateError(GarmentFlowError):
    """The record exists but is not in a state that allows the operation."""

    code = "invalid_state"
    status_code = 409


class BundleUnassigned(InvalidStateError):
    """This QR code is not assigned to any work order."""

    code = "bundle_unassigned"


class BundleNotEligibleForQc(InvalidStateError):
    """This bundle has not passed any checkpoint yet."""

    code = "bundle_not_eligible_for_qc"


class CodeAlreadyAssigned(InvalidStateError):
    """This QR code is already assigned to another work order."""

    code = "code_already_assigned"


class BundleSlotTaken(InvalidStateError):
    """Another QR code already covers this bundle."""

    code = "bundle_slot_taken"


class InsufficientCodes(InvalidStateError):
    """Not enough unassigned QR codes to cover every bundle."""

    code = "insufficient_codes"


class CheckpointSelectionRequired(InvalidStateError):
    """Select a checkpoint before scanning."""

    code = "checkpoint_selection_required"


# Validation -----------------------------------------------------------------

class ValidationError(GarmentFlowError):
    """Input failed validation."""

    code = "validation_error"
    status_code = 400


class InvalidQuantity(ValidationError):
    """Quantity is outside the allowed range."""

    code = "invalid_quantity"


class InvalidCheckpoint(ValidationError):
    """Invalid checkpoint selected."""

    code = "invalid_checkpoint"


class QcValidationError(ValidationError):
    """QC checklist failed validation."""

    code = "qc_validation_error"


class DuplicateRecord(ValidationError):
    """A record with the same key already exists."""

    code = "duplicate_record"


# Dependencies and identity ---------------------------------------------------

class DependencyError(GarmentFlowError):
    """A backing service (store, identity provider, AI service) failed."""

    code = "dependency_error"
    status_code = 503


class AuthenticationRequired(GarmentFlowError):
    """Log in first."""

    code = "authentication_required"
    status_code = 401


class PermissionDenied(GarmentFlowError):
    """You do not have access to this module."""

    code = "permission_denied"
    status_code = 403
