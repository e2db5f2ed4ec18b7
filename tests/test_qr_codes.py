import io
import re

import openpyxl
import pytest

from garmentflow import db
from garmentflow.errors import (
    BundleNotFound,
    BundleSlotTaken,
    CodeAlreadyAssigned,
    InvalidQuantity,
    ValidationError,
    WorkOrderMissing,
)
from garmentflow.models import UNASSIGNED
from garmentflow.services import build_services
from garmentflow.services.qr_codes import new_code_id


def test_code_id_format():
    assert re.fullmatch(r"BNDL-\d{13}-[A-Z0-9]{6}", new_code_id())


@pytest.mark.parametrize("count", [1, 500])
def test_generate_accepts_bounds(services, count):
    codes = services.qr_codes.generate(count)
    assert len(codes) == count
    assert len({c.id for c in codes}) == count
    assert all(c.status == UNASSIGNED and c.work_order_id is None for c in codes)


@pytest.mark.parametrize("count", [0, 501, -1, "5", 2.5, True, None])
def test_generate_rejects_bad_counts(services, count):
    with pytest.raises(InvalidQuantity):
        services.qr_codes.generate(count)
    assert services.qr_codes.list_codes() == []


def test_generate_appends_in_registry_order(services):
    first = services.qr_codes.generate(3)
    second = services.qr_codes.generate(2)
    listed = [c.id for c in services.qr_codes.list_codes()]
    assert listed[:3] == [c.id for c in first]
    assert listed[3:] == [c.id for c in second]


def test_find_is_case_insensitive(services):
    (code,) = services.qr_codes.generate(1)
    assert services.qr_codes.find(code.id.lower()).id == code.id
    assert services.qr_codes.find(f"  {code.id}  ").id == code.id


def test_find_unknown_code(services):
    with pytest.raises(BundleNotFound):
        services.qr_codes.find("BNDL-0-NOPE00")


def test_codes_are_scoped_to_factory(app, services):
    (code,) = services.qr_codes.generate(1)
    other = build_services(db.session, "OTHER", app.config)
    with pytest.raises(BundleNotFound):
        other.qr_codes.find(code.id)


def test_assign_keeps_status_unassigned(services, work_order_payload):
    services.work_orders.create(work_order_payload(sizes=[{"size": "S", "quantity": 15}], qty_per_bundle=10))
    services.qr_codes.generate(2)
    codes = services.qr_codes.assign_next_unassigned("WO-00125", services.work_orders.bundles("WO-00125"))
    assert [(c.size, c.bundle_no, c.bundle_qty) for c in codes] == [("S", 1, 10), ("S", 2, 5)]
    assert all(c.work_order_id == "WO-00125" and c.status == UNASSIGNED for c in codes)


def test_assign_rejects_code_of_other_work_order(services, assigned, work_order_payload):
    services.work_orders.create(work_order_payload(no="WO-00200"))
    with pytest.raises(CodeAlreadyAssigned):
        services.qr_codes.assign_to_work_order([assigned[0].id], "WO-00200")
    assert services.qr_codes.find(assigned[0].id).work_order_id == "WO-00125"


def test_assign_requires_existing_work_order(services):
    (code,) = services.qr_codes.generate(1)
    with pytest.raises(WorkOrderMissing):
        services.qr_codes.assign_to_work_order([code.id], "WO-404")
    with pytest.raises(WorkOrderMissing):
        services.qr_codes.assign_next_unassigned("WO-404", [{"size": "M", "bundle_no": 1, "quantity": 5}])
    assert services.qr_codes.find(code.id).work_order_id is None


def test_assign_rejects_repeated_code(services, work_order_payload):
    services.work_orders.create(work_order_payload(sizes=[{"size": "S", "quantity": 15}], qty_per_bundle=10))
    a, _ = services.qr_codes.generate(2)
    with pytest.raises(ValidationError):
        services.qr_codes.assign_to_work_order([a.id, a.id], "WO-00125", services.work_orders.bundles("WO-00125"))
    assert len(services.qr_codes.unassigned()) == 2


def test_assign_rejects_repeated_bundle(services, work_order_payload):
    services.work_orders.create(work_order_payload(sizes=[{"size": "S", "quantity": 15}], qty_per_bundle=10))
    a, b = services.qr_codes.generate(2)
    first = services.work_orders.bundles("WO-00125")[0]
    with pytest.raises(ValidationError):
        services.qr_codes.assign_to_work_order([a.id, b.id], "WO-00125", [first, first])
    assert len(services.qr_codes.unassigned()) == 2


def test_assigned_bundle_cannot_move(services, assigned):
    second = services.work_orders.find_bundle_slot("WO-00125", "M", 2)
    with pytest.raises(CodeAlreadyAssigned):
        services.qr_codes.assign_to_work_order([assigned[0].id], "WO-00125", [second])
    code = services.qr_codes.find(assigned[0].id)
    assert (code.size, code.bundle_no, code.bundle_qty) == ("M", 1, 20)


def test_bundle_covered_by_one_code(services, assigned):
    blank = services.qr_codes.unassigned()[0]
    first = services.work_orders.find_bundle_slot("WO-00125", "M", 1)
    with pytest.raises(BundleSlotTaken):
        services.qr_codes.assign_to_work_order([blank.id], "WO-00125", [first])
    assert services.qr_codes.find(blank.id).work_order_id is None

    with pytest.raises(BundleSlotTaken):
        services.qr_codes.assign_next_unassigned("WO-00125", services.work_orders.bundles("WO-00125"))
    assert len(services.qr_codes.unassigned()) == 5


def test_reassigning_same_bundle_is_accepted(services, assigned):
    first = services.work_orders.find_bundle_slot("WO-00125", "M", 1)
    (code,) = services.qr_codes.assign_to_work_order([assigned[0].id], "WO-00125", [first])
    assert (code.work_order_id, code.size, code.bundle_no) == ("WO-00125", "M", 1)
    assert len(services.qr_codes.list_codes(work_order_no="WO-00125")) == 5


def test_render_png_and_svg(services):
    (code,) = services.qr_codes.generate(1)
    png, mimetype = services.qr_codes.render(code.id, "png")
    assert mimetype == "image/png" and png.startswith(b"\x89PNG")
    svg, mimetype = services.qr_codes.render(code.id, "svg")
    assert mimetype == "image/svg+xml" and b"svg" in svg


def test_export_labels_repeats_copies(services):
    codes = services.qr_codes.generate(2)
    content = services.qr_codes.export_labels([c.id for c in codes], copies=3)
    ws = openpyxl.load_workbook(io.BytesIO(content)).active
    rows = list(ws.iter_rows(min_row=2, values_only=True))
    assert len(rows) == 6
    assert [r[1] for r in rows[:3]] == [1, 2, 3]
    assert rows[0][0] == codes[0].id


@pytest.mark.parametrize("copies", [0, 101])
def test_export_labels_rejects_copies(services, copies):
    (code,) = services.qr_codes.generate(1)
    with pytest.raises(InvalidQuantity):
        services.qr_codes.export_labels([code.id], copies=copies)
