import pytest

from garmentflow.errors import DuplicateRecord, InsufficientCodes, ValidationError, WorkOrderMissing
from garmentflow.services.work_orders import bundle_breakdown


def test_breakdown_splits_each_size():
    bundles = bundle_breakdown([{"size": "S", "quantity": 45}, {"size": "M", "quantity": 20}], 20)
    assert [(b["key"], b["quantity"]) for b in bundles] == [
        ("S-1", 20),
        ("S-2", 20),
        ("S-3", 5),
        ("M-1", 20),
    ]


@pytest.mark.parametrize("sizes,qty", [([], 20), ([{"size": "S", "quantity": 10}], 0), (None, 10)])
def test_breakdown_empty(sizes, qty):
    assert bundle_breakdown(sizes, qty) == []


def test_create_and_get(services, work_order_payload):
    wo = services.work_orders.create(work_order_payload(sizes=[{"size": "S", "quantity": 30},
                                                               {"size": "L", "quantity": 12}]))
    assert wo.total_quantity == 42
    assert services.work_orders.get("WO-00125").style_no == "ST-501"
    assert [b["key"] for b in services.work_orders.bundles("WO-00125")] == ["S-1", "S-2", "L-1"]
    assert services.work_orders.find_bundle_slot("WO-00125", "S", 2)["quantity"] == 10
    assert services.work_orders.find_bundle_slot("WO-00125", "XL", 1) is None


def test_create_duplicate(services, work_order_payload):
    services.work_orders.create(work_order_payload())
    with pytest.raises(DuplicateRecord):
        services.work_orders.create(work_order_payload())


def test_create_requires_sizes(services, work_order_payload):
    payload = work_order_payload()
    payload["sizes"] = []
    with pytest.raises(ValidationError):
        services.work_orders.create(payload)


def test_missing_work_order(services):
    with pytest.raises(WorkOrderMissing):
        services.work_orders.get("WO-404")


def test_assign_needs_enough_blank_codes(services, work_order_payload):
    services.work_orders.create(work_order_payload())
    services.qr_codes.generate(3)
    with pytest.raises(InsufficientCodes) as exc:
        services.qr_codes.assign_next_unassigned("WO-00125", services.work_orders.bundles("WO-00125"))
    assert exc.value.details == {"required": 5, "available": 3}
    assert len(services.qr_codes.unassigned()) == 3
