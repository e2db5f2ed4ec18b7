from datetime import datetime, time, timezone
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file
from sqlalchemy import func, select

from . import auth
from .auth import factory_services, require_permission
from .errors import GarmentFlowError, ValidationError
from .models import UNASSIGNED, BundleHistory, QrCode, WorkOrder
from .schemas import (
    LoginRequest,
    MapCodeRequest,
    ScanConfirmRequest,
    ScanFindRequest,
    SelectCheckpointRequest,
    parse,
)

api = Blueprint("api", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@api.errorhandler(GarmentFlowError)
def handle_garmentflow_error(e: GarmentFlowError):
    return jsonify(e.to_dict()), e.status_code


def payload() -> dict:
    return request.get_json(silent=True) or {}


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a whole number.")


# -------------------------------------------------------------------
# Session
# -------------------------------------------------------------------
@api.post("/login")
def login():
    data = parse(LoginRequest, payload())
    return jsonify({"success": True, **auth.login(data.username, data.password, data.factory)})


@api.post("/logout")
def logout():
    auth.logout()
    return jsonify({"success": True})


@api.get("/session")
def get_session():
    return jsonify({"success": True, **auth.session_payload()})


@api.post("/session/checkpoint")
def select_checkpoint():
    data = parse(SelectCheckpointRequest, payload())
    return jsonify({"success": True, **auth.choose_checkpoint(data.checkpoint_id)})


# -------------------------------------------------------------------
# QR codes
# -------------------------------------------------------------------
@api.post("/qrcodes/generate")
@require_permission("generate-qr-code", "write")
def generate_codes():
    codes = factory_services().qr_codes.generate(payload().get("count"))
    return jsonify({"success": True, "codes": [c.to_dict() for c in codes]}), 201


@api.get("/qrcodes")
@require_permission("generate-qr-code", "read")
def list_codes():
    codes = factory_services().qr_codes.list_codes(
        status=request.args.get("status"),
        work_order_no=request.args.get("work_order"),
    )
    return jsonify([c.to_dict() for c in codes])


@api.get("/qrcodes/export")
@require_permission("generate-qr-code", "read")
def export_codes():
    ids = [i.strip() for i in (request.args.get("ids") or "").split(",") if i.strip()]
    if not ids:
        raise ValidationError("No QR codes selected to export.")
    content = factory_services().qr_codes.export_labels(ids, copies=int_arg("copies", 1))
    return send_file(
        BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="qr_labels.xlsx",
    )


@api.get("/qrcodes/<code>")
@require_permission("generate-qr-code", "read")
def get_code(code):
    return jsonify(factory_services().qr_codes.find(code).to_dict())


@api.get("/qrcodes/<code>/image")
@require_permission("generate-qr-code", "read")
def code_image(code):
    fmt = (request.args.get("format") or "png").lower()
    if fmt not in ("png", "svg"):
        raise ValidationError("format must be png or svg.")
    content, mimetype = factory_services().qr_codes.render(code, fmt)
    return send_file(BytesIO(content), mimetype=mimetype, download_name=f"{code}.{fmt}")


# -------------------------------------------------------------------
# Work orders
# -------------------------------------------------------------------
@api.get("/work-orders")
@require_permission("work-orders", "read")
def list_work_orders():
    return jsonify([wo.to_dict() for wo in factory_services().work_orders.list_work_orders()])


@api.post("/work-orders")
@require_permission("work-orders", "write")
def create_work_order():
    wo = factory_services().work_orders.create(payload())
    return jsonify({"success": True, "work_order": wo.to_dict()}), 201


@api.get("/work-orders/<work_order_no>")
@require_permission("work-orders", "read")
def get_work_order(work_order_no):
    services = factory_services()
    wo = services.work_orders.get(work_order_no)
    codes = services.qr_codes.list_codes(work_order_no=wo.work_order_no)
    return jsonify({**wo.to_dict(), "qr_codes": [c.to_dict() for c in codes]})


@api.get("/work-orders/<work_order_no>/bundles")
@require_permission("work-orders", "read")
def work_order_bundles(work_order_no):
    return jsonify(factory_services().work_orders.bundles(work_order_no))


@api.post("/work-orders/<work_order_no>/assign")
@require_permission("work-orders", "write")
def assign_codes(work_order_no):
    """Assign blank codes to the work order's bundle breakdown.

    With ``{"ids": [...]}`` the listed codes are used in order; otherwise the
    next unassigned codes in the registry are picked.
    """
    services = factory_services()
    bundles = services.work_orders.bundles(work_order_no)
    ids = payload().get("ids")
    if ids:
        if not isinstance(ids, list) or len(ids) != len(bundles):
            raise ValidationError(f"Provide exactly {len(bundles)} QR code ids.")
        codes = services.qr_codes.assign_to_work_order(ids, work_order_no, bundles)
    else:
        codes = services.qr_codes.assign_next_unassigned(work_order_no, bundles)
    return jsonify({"success": True, "assigned": [c.to_dict() for c in codes]})


@api.post("/work-orders/<work_order_no>/map")
@require_permission("work-orders", "write")
def map_code(work_order_no):
    services = factory_services()
    data = parse(MapCodeRequest, payload())
    slot = services.work_orders.find_bundle_slot(work_order_no, data.size, data.bundle_no)
    if slot is None:
        raise ValidationError(f"Work order {work_order_no} has no bundle {data.size}-{data.bundle_no}.")
    (qr,) = services.qr_codes.assign_to_work_order([data.code], work_order_no, [slot])
    return jsonify({"success": True, "qr_code": qr.to_dict(), "bundle_key": slot["key"]})


# -------------------------------------------------------------------
# Checkpoint scanning
# -------------------------------------------------------------------
@api.post("/scan/find")
@require_permission("check-point-scanning", "read")
def scan_find():
    data = parse(ScanFindRequest, payload())
    bundle = factory_services().lifecycle.find_bundle(data.code)
    return jsonify({"success": True, **bundle.to_dict()})


@api.post("/scan/confirm")
@require_permission("check-point-scanning", "write")
def scan_confirm():
    data = parse(ScanConfirmRequest, payload())
    checkpoint_id = auth.active_checkpoint_id(data.checkpoint_id)
    record = factory_services().lifecycle.confirm_pass(
        data.qr_code_id, checkpoint_id, actor=auth.current_user().display_name
    )
    return jsonify({
        "success": True,
        "record": record.to_dict(),
        "message": f'Bundle {record.qr_code_id} status updated to "{record.check_point_name}".',
    })


@api.get("/checkpoints/default")
@require_permission("check-point-scanning", "read")
def default_checkpoint():
    cp = factory_services().checkpoints.default_checkpoint()
    return jsonify(cp.to_dict() if cp else None)


# -------------------------------------------------------------------
# Finish-sewing QC
# -------------------------------------------------------------------
@api.post("/qc/find")
@require_permission("finish-sewing-qc", "read")
def qc_find():
    services = factory_services()
    data = parse(ScanFindRequest, payload())
    bundle = services.qc.find_bundle(data.code)
    return jsonify({
        "success": True,
        **bundle.to_dict(),
        "items": [item.model_dump() for item in services.qc.checklist(bundle)],
        "failure_reasons": services.qc.failure_reasons(),
    })


@api.post("/qc/submit")
@require_permission("finish-sewing-qc", "write")
def qc_submit():
    summary = factory_services().qc.submit(payload())
    return jsonify({"success": True, "summary": summary})


# -------------------------------------------------------------------
# Bundle history
# -------------------------------------------------------------------
@api.get("/history")
@require_permission("tracking", "read")
def history():
    page = max(int_arg("page", 1), 1)
    per = min(max(int_arg("per", 50), 1), 200)
    rows = factory_services().lifecycle.history(
        qr_code_id=request.args.get("qr_code_id"),
        work_order_id=request.args.get("work_order_id"),
        sort_key=request.args.get("sort", "timestamp"),
        descending=(request.args.get("direction", "descending") != "ascending"),
        limit=per,
        offset=(page - 1) * per,
    )
    return jsonify({"success": True, "rows": [r.to_dict() for r in rows]})


# -------------------------------------------------------------------
# Checkpoint registry
# -------------------------------------------------------------------
@api.get("/checkpoints")
@require_permission("master-data", "read")
def list_checkpoints():
    return jsonify([cp.to_dict() for cp in factory_services().checkpoints.list_checkpoints()])


@api.post("/checkpoints")
@require_permission("master-data", "write")
def create_checkpoint():
    cp = factory_services().checkpoints.create(payload())
    return jsonify({"success": True, "checkpoint": cp.to_dict()}), 201


@api.get("/checkpoints/<checkpoint_id>")
@require_permission("master-data", "read")
def get_checkpoint(checkpoint_id):
    return jsonify(factory_services().checkpoints.get(checkpoint_id).to_dict())


@api.put("/checkpoints/<checkpoint_id>")
@require_permission("master-data", "write")
def update_checkpoint(checkpoint_id):
    cp = factory_services().checkpoints.update(checkpoint_id, payload())
    return jsonify({"success": True, "checkpoint": cp.to_dict()})


@api.delete("/checkpoints/<checkpoint_id>")
@require_permission("master-data", "delete")
def delete_checkpoint(checkpoint_id):
    factory_services().checkpoints.delete(checkpoint_id)
    return jsonify({"success": True})


# -------------------------------------------------------------------
# Other master data
# -------------------------------------------------------------------
@api.post("/master-data/workers/upload")
@require_permission("master-data", "write")
def upload_workers():
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError("No file selected.")
    summary = factory_services().master_data.upload_workers(f.stream, f.filename)
    return jsonify({"success": True, **summary})


@api.get("/master-data/<kind>")
@require_permission("master-data", "read")
def list_master_data(kind):
    return jsonify([r.to_dict() for r in factory_services().master_data.list_records(kind)])


@api.post("/master-data/<kind>")
@require_permission("master-data", "write")
def create_master_data(kind):
    record = factory_services().master_data.create(kind, payload())
    return jsonify({"success": True, "record": record.to_dict()}), 201


@api.get("/master-data/<kind>/<record_id>")
@require_permission("master-data", "read")
def get_master_data(kind, record_id):
    return jsonify(factory_services().master_data.get(kind, record_id).to_dict())


@api.put("/master-data/<kind>/<record_id>")
@require_permission("master-data", "write")
def update_master_data(kind, record_id):
    record = factory_services().master_data.update(kind, record_id, payload())
    return jsonify({"success": True, "record": record.to_dict()})


@api.delete("/master-data/<kind>/<record_id>")
@require_permission("master-data", "delete")
def delete_master_data(kind, record_id):
    factory_services().master_data.delete(kind, record_id)
    return jsonify({"success": True})


# -------------------------------------------------------------------
# Users
# -------------------------------------------------------------------
@api.get("/users")
@require_permission("user-management", "read")
def list_users():
    return jsonify([u.to_dict() for u in factory_services().users.list_users()])


@api.post("/users")
@require_permission("user-management", "write")
def create_user():
    user = factory_services().users.create(payload())
    return jsonify({"success": True, "user": user.to_dict()}), 201


@api.put("/users/<user_id>")
@require_permission("user-management", "write")
def update_user(user_id):
    user = factory_services().users.update(user_id, payload())
    return jsonify({"success": True, "user": user.to_dict()})


@api.delete("/users/<user_id>")
@require_permission("user-management", "delete")
def delete_user(user_id):
    factory_services().users.delete(user_id)
    return jsonify({"success": True})


# -------------------------------------------------------------------
# AI tools
# -------------------------------------------------------------------
@api.post("/ai/optimize-schedule")
@require_permission("ai-tools", "read")
def ai_optimize_schedule():
    result = current_app.extensions["prompt_completion"].optimize_production_schedule(payload())
    return jsonify({"success": True, "result": result.model_dump()})


@api.post("/ai/predict-bottlenecks")
@require_permission("ai-tools", "read")
def ai_predict_bottlenecks():
    result = current_app.extensions["prompt_completion"].predict_production_bottlenecks(payload())
    return jsonify({"success": True, "result": result.model_dump()})


# -------------------------------------------------------------------
# Dashboard
# -------------------------------------------------------------------
@api.get("/dashboard-stats")
@require_permission("dashboard", "read")
def dashboard_stats():
    store = factory_services().store
    start_of_day = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)

    by_status = store.rows(
        select(QrCode.status, func.count().label("c"))
        .where(QrCode.factory_id == store.factory_id, QrCode.work_order_id.is_not(None))
        .group_by(QrCode.status)
    )
    return jsonify({
        "totalCodes": store.count(QrCode),
        "unassignedCodes": store.count(QrCode, QrCode.status == UNASSIGNED),
        "activeWorkOrders": store.count(WorkOrder, WorkOrder.status != "Completed"),
        "passesToday": store.count(BundleHistory, BundleHistory.timestamp >= start_of_day),
        "bundleStatus": {status: count for status, count in by_status},
    })
