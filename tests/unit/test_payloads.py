from datetime import datetime

import pytest

from errors import InvalidRequest
from payloads import EntryCreate, InvoiceRequest, LoginRequest, PaymentCreate, ServiceCreate, UserCreate


def test_invoice_request_reports_every_missing_id():
    with pytest.raises(InvalidRequest) as exc:
        InvoiceRequest.parse(None, "")
    assert exc.value.violations == ["farmerId is required", "userId is required"]
    assert exc.value.status_code == 400


def test_invoice_request_accepts_numeric_strings():
    req = InvoiceRequest.parse("7", 3)
    assert req == InvoiceRequest(farmer_id=7, user_id=3)


@pytest.mark.parametrize("bad", ["abc", "0", -4, True, "1.5"])
def test_invoice_request_rejects_non_positive_ids(bad):
    with pytest.raises(InvalidRequest) as exc:
        InvoiceRequest.parse(bad, 1)
    assert exc.value.violations == ["farmerId must be a positive integer"]


def test_entry_create_collects_all_violations():
    with pytest.raises(InvalidRequest) as exc:
        EntryCreate.parse({"hours": "-1", "entryDate": "yesterday"})
    assert exc.value.violations == [
        "farmerId is required",
        "serviceId is required",
        "userId is required",
        "hours must be zero or more",
        "entryDate must be an ISO-8601 date",
    ]
    assert exc.value.to_dict()["error"].startswith("Missing required fields")


def test_entry_create_defaults():
    req = EntryCreate.parse({"farmerId": 1, "serviceId": 2, "userId": 3, "hours": 0})
    assert req.hours == 0.0
    assert req.amount_received == 0.0
    assert req.remark == ""
    assert req.entry_date is None


def test_entry_create_parses_iso_dates():
    req = EntryCreate.parse({
        "farmerId": 1, "serviceId": 2, "userId": 3, "hours": "2.5",
        "entryDate": "2025-01-10T09:15:00",
        "remark": "  Back field ",
    })
    assert req.entry_date == datetime(2025, 1, 10, 9, 15)
    assert req.hours == 2.5
    assert req.remark == "Back field"


def test_entry_create_accepts_javascript_utc_dates():
    req = EntryCreate.parse({
        "farmerId": 1, "serviceId": 2, "userId": 3, "hours": 1,
        "entryDate": "2025-01-10T09:15:00.000Z",
    })
    assert req.entry_date is not None
    assert req.entry_date.tzinfo is None


def test_payment_amount_must_be_positive():
    with pytest.raises(InvalidRequest) as exc:
        PaymentCreate.parse({"farmerId": 1, "userId": 1, "amount": 0})
    assert exc.value.violations == ["amount must be greater than zero"]


def test_service_requires_type_and_rate():
    with pytest.raises(InvalidRequest) as exc:
        ServiceCreate.parse({})
    assert exc.value.violations == ["type is required", "rate is required"]


@pytest.mark.parametrize("value", ["inf", "-inf", "nan", "Infinity", float("inf")])
@pytest.mark.parametrize(
    "parser, payload, key",
    [
        (EntryCreate, {"farmerId": 1, "serviceId": 2, "userId": 3}, "hours"),
        (ServiceCreate, {"type": "Plough"}, "rate"),
        (PaymentCreate, {"farmerId": 1, "userId": 1}, "amount"),
    ],
)
def test_non_finite_numbers_are_rejected(parser, payload, key, value):
    with pytest.raises(InvalidRequest) as exc:
        parser.parse({**payload, key: value})
    assert exc.value.violations == [f"{key} must be a number"]


def test_login_requires_both_fields():
    with pytest.raises(InvalidRequest) as exc:
        LoginRequest.parse({"username": "asha"})
    assert exc.value.violations == ["password"]


def test_user_create_driver_needs_admin():
    with pytest.raises(InvalidRequest) as exc:
        UserCreate.parse({"username": "dev", "password": "secret1", "fullName": "Dev"})
    assert exc.value.violations == ["adminId is required for drivers"]


def test_user_create_admin_cannot_report_to_admin():
    with pytest.raises(InvalidRequest) as exc:
        UserCreate.parse({
            "username": "asha", "password": "secret1", "fullName": "Asha",
            "role": "admin", "adminId": 4,
        })
    assert exc.value.violations == ["admins cannot report to another admin"]


def test_user_create_rejects_unknown_role_and_short_password():
    with pytest.raises(InvalidRequest) as exc:
        UserCreate.parse({"username": "x", "password": "123", "fullName": "X", "role": "owner"})
    assert "password must be at least 6 characters" in exc.value.violations
    assert "role must be one of: admin, driver" in exc.value.violations
