import pytest

from garmentflow import create_app, db
from garmentflow.services import build_services

FACTORY = "DMF"

CHECKPOINTS = [
    {"name": "Cutting Table", "type": "Pre-production", "is_production_entry": True},
    {"name": "Sewing Line 1 Input", "type": "Sewing"},
    {"name": "QC Station 1", "type": "QC"},
]


def _work_order(no="WO-00125", sizes=None, qty_per_bundle=20):
    return {
        "work_order_no": no,
        "style_no": "ST-501",
        "garment_type": "T-Shirt",
        "production_note_no": "PPN-001",
        "shipment_date": "2026-12-15",
        "sizes": sizes or [{"size": "M", "quantity": 100}],
        "qty_per_bundle": qty_per_bundle,
        "start_date": "2026-11-01",
        "end_date": "2026-11-30",
        "target_output_qty_per_day": 300,
        "operations": [{"machine_type": "Overlock Machine", "operation_description": "Sleeve Join",
                        "smv": 0.75, "target": 80}],
        "production_line": "Line 1 - T-Shirts",
    }


@pytest.fixture()
def app():
    app = create_app(testing=True)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def services(app):
    return build_services(db.session, FACTORY, app.config)


@pytest.fixture()
def work_order_payload():
    return _work_order


@pytest.fixture()
def checkpoints(services):
    """CP-001 Cutting Table (entry), CP-002 Sewing Line 1 Input, CP-003 QC Station 1."""
    return [services.checkpoints.create(cp) for cp in CHECKPOINTS]


@pytest.fixture()
def assigned(services, checkpoints):
    """Work order WO-00125 (100 x M in bundles of 20) with its five codes assigned."""
    services.work_orders.create(_work_order())
    services.qr_codes.generate(10)
    codes = services.qr_codes.assign_next_unassigned("WO-00125", services.work_orders.bundles("WO-00125"))
    return codes


@pytest.fixture()
def client(app):
    return app.test_client()
