from garmentflow import create_app, db
from garmentflow.auth import factory_services

app = create_app()

CHECKPOINTS = [
    {"name": "Cutting Table", "type": "Pre-production", "is_production_entry": True},
    {"name": "Sewing Line 1 Input", "type": "Sewing"},
    {"name": "QC Station 1", "type": "Sewing"},
    {"name": "Finishing Station", "type": "Finishing"},
    {"name": "Packing Area", "type": "Packing", "is_production_exit": True},
]

FAILURE_REASONS = [
    {"reason": "Broken Stitch", "description": "A stitch that is broken or not continuous.", "category": "Sewing Defect"},
    {"reason": "Skipped Stitch", "description": "A stitch that has been missed by the needle.", "category": "Sewing Defect"},
    {"reason": "Fabric Hole", "description": "A hole or tear in the fabric.", "category": "Fabric Flaw"},
    {"reason": "Incorrect Measurement", "description": "Garment dimensions do not match the spec sheet.", "category": "Measurement Error"},
    {"reason": "Poor Pressing", "description": "Garment is not neatly pressed or has creases.", "category": "Finishing Issue"},
]

with app.app_context():
    db.drop_all()
    db.create_all()
    services = factory_services(app.config["DEFAULT_FACTORY_ID"])

    for cp in CHECKPOINTS:
        services.checkpoints.create(cp)
    for reason in FAILURE_REASONS:
        services.master_data.create("qc-failure-reasons", reason)

    services.users.create({"username": "sysadmin", "display_name": "System Admin",
                           "password": "admin123", "role": "System Admin"})
    services.users.create({
        "username": "supervisor", "display_name": "Line Supervisor", "password": "super123",
        "role": "Admin", "assigned_checkpoints": ["CP-002", "CP-003"],
        "permissions": {"check-point-scanning": {"read": True, "write": True},
                        "finish-sewing-qc": {"read": True, "write": True}},
    })
    services.users.create({
        "username": "cutter", "display_name": "Cutting Operator", "password": "cut123",
        "role": "User", "assigned_checkpoints": ["CP-001"],
        "permissions": {"check-point-scanning": {"read": True, "write": True}},
    })

    services.work_orders.create({
        "work_order_no": "WO-00125",
        "style_no": "ST-501",
        "garment_type": "T-Shirt",
        "production_note_no": "PPN-001",
        "shipment_date": "2026-12-15",
        "sizes": [{"size": "S", "quantity": 40}, {"size": "M", "quantity": 60}, {"size": "L", "quantity": 50}],
        "qty_per_bundle": 20,
        "start_date": "2026-11-01",
        "end_date": "2026-11-30",
        "target_output_qty_per_day": 300,
        "operations": [{"machine_type": "Overlock Machine", "operation_description": "Sleeve Join",
                        "smv": 0.75, "target": 80}],
        "production_line": "Line 1 - T-Shirts",
    })

    bundles = services.work_orders.bundles("WO-00125")
    services.qr_codes.generate(len(bundles) + 10)
    services.qr_codes.assign_next_unassigned("WO-00125", bundles)

    print("Database initialized.")
