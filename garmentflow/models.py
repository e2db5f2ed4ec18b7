"""Database models for the garment production tracker.

Every table carries a ``factory_id`` so that one database can serve several
factories; the :class:`garmentflow.store.FactoryStore` adds that filter to
every query.  Master-data tables use ``(factory_id, id)`` as their primary
key because their human-readable ids (``CP-001``, ``E-001``...) are only
unique inside one factory.  QR code ids are globally unique on their own.
"""

from datetime import date, datetime, timezone

from . import db

UNASSIGNED = "Unassigned"
PASSED = "Passed"


def utcnow():
    return datetime.now(timezone.utc)


def fmt_value(v):
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


class FactoryScoped:
    """Mixin for rows that belong to one factory."""

    factory_id = db.Column(db.String(40), primary_key=True)

    def to_dict(self) -> dict:
        return {
            c.name: fmt_value(getattr(self, c.name))
            for c in self.__table__.columns
            if c.name != "factory_id"
        }


class CheckPoint(FactoryScoped, db.Model):
    """A station where a bundle's passage is recorded.

    ``name`` doubles as the status label written onto a :class:`QrCode`
    when a bundle passes, so it is unique inside a factory.
    """

    __tablename__ = "checkpoints"
    __table_args__ = (
        db.UniqueConstraint("factory_id", "name", name="uq_checkpoints_factory_name"),
    )
    id = db.Column(db.String(40), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(40), nullable=False)
    is_production_entry = db.Column(db.Boolean, nullable=False, default=False)
    is_production_exit = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class QrCode(db.Model):
    """A bundle identifier printed as a QR label.

    Blank stock has ``work_order_id = None`` and ``status = "Unassigned"``.
    After assignment ``status`` only ever takes the name of the last
    checkpoint passed.
    """

    __tablename__ = "qrcodes"
    id = db.Column(db.String(64), primary_key=True)
    factory_id = db.Column(db.String(40), nullable=False, index=True)
    work_order_id = db.Column(db.String(64), nullable=True, index=True)
    status = db.Column(db.String(120), nullable=False, default=UNASSIGNED)
    size = db.Column(db.String(40))
    bundle_no = db.Column(db.Integer)
    bundle_qty = db.Column(db.Integer)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    seq = db.Column(db.Integer, nullable=False, default=0, index=True)

    @property
    def is_assigned(self) -> bool:
        return self.work_order_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "status": self.status,
            "size": self.size,
            "bundle_no": self.bundle_no,
            "bundle_qty": self.bundle_qty,
            "created_at": fmt_value(self.created_at),
        }


class WorkOrder(FactoryScoped, db.Model):
    __tablename__ = "work_orders"
    work_order_no = db.Column(db.String(64), primary_key=True)
    style_no = db.Column(db.String(120), nullable=False)
    garment_type = db.Column(db.String(120), nullable=False)
    production_note_no = db.Column(db.String(120))
    production_line = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(40), default="Planned")
    sizes = db.Column(db.JSON, nullable=False, default=list)
    operations = db.Column(db.JSON, nullable=False, default=list)
    qty_per_bundle = db.Column(db.Integer, nullable=False)
    target_output_qty_per_day = db.Column(db.Integer)
    shipment_date = db.Column(db.Date)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    @property
    def total_quantity(self) -> int:
        return sum(int(s.get("quantity") or 0) for s in self.sizes or [])


class BundleHistory(db.Model):
    """Append-only log of checkpoint passes.

    Rows are never updated.  ``id`` is monotonic so it also gives the
    chronological order of passes for one code.
    """

    __tablename__ = "bundle_history"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    factory_id = db.Column(db.String(40), nullable=False, index=True)
    qr_code_id = db.Column(db.String(64), nullable=False, index=True)
    work_order_id = db.Column(db.String(64), nullable=False, index=True)
    check_point_name = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(40), nullable=False, default=PASSED)
    details = db.Column(db.Text)
    recorded_by = db.Column(db.String(120))
    timestamp = db.Column(db.DateTime(timezone=True), default=utcnow, index=True, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "qr_code_id": self.qr_code_id,
            "work_order_id": self.work_order_id,
            "check_point_name": self.check_point_name,
            "status": self.status,
            "details": self.details,
            "recorded_by": self.recorded_by,
            "timestamp": fmt_value(self.timestamp),
        }


class User(FactoryScoped, db.Model):
    """A login.  ``assigned_checkpoints`` and ``permissions`` are ignored for
    System Admins; see :mod:`garmentflow.services.roles`."""

    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("factory_id", "username", name="uq_users_factory_username"),
    )
    id = db.Column(db.String(40), primary_key=True)
    username = db.Column(db.String(120), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="User")
    assigned_checkpoints = db.Column(db.JSON, nullable=False, default=list)
    permissions = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.pop("password_hash", None)
        return data


class Worker(FactoryScoped, db.Model):
    __tablename__ = "workers"
    id = db.Column(db.String(40), primary_key=True)
    hrm_id = db.Column(db.String(64), index=True)
    name = db.Column(db.String(120), nullable=False)
    join_date = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default="Active")
    line = db.Column(db.String(120))
    position = db.Column(db.String(120), nullable=False)


class Machine(FactoryScoped, db.Model):
    __tablename__ = "machines"
    id = db.Column(db.String(40), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(120), nullable=False)
    serial_no = db.Column(db.String(120), nullable=False)
    supplier = db.Column(db.String(120))
    purchase_date = db.Column(db.Date)
    warranty_expiry_date = db.Column(db.Date)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    current_line = db.Column(db.String(120))

    @property
    def in_warranty(self) -> bool:
        return bool(self.warranty_expiry_date and self.warranty_expiry_date > date.today())

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["in_warranty"] = self.in_warranty
        return data


class ProductionInstruction(FactoryScoped, db.Model):
    __tablename__ = "production_instructions"
    id = db.Column(db.String(40), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    garment_type = db.Column(db.String(120), nullable=False)
    machine_type = db.Column(db.String(120), nullable=False)
    smv = db.Column(db.Float, nullable=False)


class QcFailureReason(FactoryScoped, db.Model):
    __tablename__ = "qc_failure_reasons"
    id = db.Column(db.String(40), primary_key=True)
    reason = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(120), nullable=False)
