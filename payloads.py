# payloads.py
"""
Typed request bodies.

Each parse() collects every problem with the payload before raising a
single InvalidRequest, so clients see all missing fields at once.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from errors import InvalidRequest
from models import ROLES, ROLE_ADMIN, ROLE_DRIVER


# -----------------------------
# Field helpers
# -----------------------------
def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_id(payload: dict, key: str, errors: list[str], required: bool = True) -> Optional[int]:
    value = payload.get(key)
    if _is_blank(value):
        if required:
            errors.append(f"{key} is required")
        return None
    if isinstance(value, bool):
        errors.append(f"{key} must be a positive integer")
        return None
    try:
        num = int(str(value).strip())
    except ValueError:
        errors.append(f"{key} must be a positive integer")
        return None
    if num <= 0:
        errors.append(f"{key} must be a positive integer")
        return None
    return num


def _to_float(payload: dict, key: str, errors: list[str], *, required: bool, default: float = 0.0,
              allow_zero: bool = True) -> float:
    value = payload.get(key)
    if _is_blank(value):
        if required:
            errors.append(f"{key} is required")
        return float(default)
    if isinstance(value, bool):
        errors.append(f"{key} must be a number")
        return float(default)
    try:
        num = float(str(value).strip())
    except ValueError:
        errors.append(f"{key} must be a number")
        return float(default)
    if not math.isfinite(num):
        errors.append(f"{key} must be a number")
        return float(default)
    if num < 0 or (num == 0 and not allow_zero):
        errors.append(f"{key} must be {'zero or more' if allow_zero else 'greater than zero'}")
    return num


def _to_text(payload: dict, key: str, errors: list[str], required: bool = False) -> str:
    value = payload.get(key)
    if _is_blank(value):
        if required:
            errors.append(f"{key} is required")
        return ""
    return str(value).strip()


def _to_datetime(payload: dict, key: str, errors: list[str]) -> Optional[datetime]:
    value = payload.get(key)
    if _is_blank(value):
        return None
    raw = str(value).strip()
    # JavaScript's toISOString() ends with "Z"
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        errors.append(f"{key} must be an ISO-8601 date")
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


# -----------------------------
# Requests
# -----------------------------
@dataclass(frozen=True)
class InvoiceRequest:
    farmer_id: int
    user_id: int

    @classmethod
    def parse(cls, farmer_id, user_id) -> "InvoiceRequest":
        errors: list[str] = []
        fid = _to_id({"farmerId": farmer_id}, "farmerId", errors)
        uid = _to_id({"userId": user_id}, "userId", errors)
        if errors:
            raise InvalidRequest(errors)
        return cls(farmer_id=fid, user_id=uid)


@dataclass(frozen=True)
class FarmerCreate:
    name: str
    contact: str

    @classmethod
    def parse(cls, payload: dict) -> "FarmerCreate":
        errors: list[str] = []
        name = _to_text(payload, "name", errors, required=True)
        contact = _to_text(payload, "contact", errors)
        if errors:
            raise InvalidRequest(errors)
        return cls(name=name, contact=contact)


@dataclass(frozen=True)
class ServiceCreate:
    type: str
    rate: float

    @classmethod
    def parse(cls, payload: dict) -> "ServiceCreate":
        errors: list[str] = []
        type_ = _to_text(payload, "type", errors, required=True)
        rate = _to_float(payload, "rate", errors, required=True)
        if errors:
            raise InvalidRequest(errors)
        return cls(type=type_, rate=rate)


@dataclass(frozen=True)
class EntryCreate:
    farmer_id: int
    service_id: int
    user_id: int
    hours: float
    amount_received: float
    remark: str
    entry_date: Optional[datetime]

    @classmethod
    def parse(cls, payload: dict) -> "EntryCreate":
        errors: list[str] = []
        farmer_id = _to_id(payload, "farmerId", errors)
        service_id = _to_id(payload, "serviceId", errors)
        user_id = _to_id(payload, "userId", errors)
        hours = _to_float(payload, "hours", errors, required=True)
        amount_received = _to_float(payload, "amountReceived", errors, required=False)
        remark = _to_text(payload, "remark", errors)
        entry_date = _to_datetime(payload, "entryDate", errors)
        if errors:
            raise InvalidRequest(errors, "Missing required fields")
        return cls(
            farmer_id=farmer_id,
            service_id=service_id,
            user_id=user_id,
            hours=hours,
            amount_received=amount_received,
            remark=remark,
            entry_date=entry_date,
        )


@dataclass(frozen=True)
class PaymentCreate:
    farmer_id: int
    user_id: int
    amount: float
    remark: str
    payment_date: Optional[datetime]

    @classmethod
    def parse(cls, payload: dict) -> "PaymentCreate":
        errors: list[str] = []
        farmer_id = _to_id(payload, "farmerId", errors)
        user_id = _to_id(payload, "userId", errors)
        amount = _to_float(payload, "amount", errors, required=True, allow_zero=False)
        remark = _to_text(payload, "remark", errors)
        payment_date = _to_datetime(payload, "paymentDate", errors)
        if errors:
            raise InvalidRequest(errors, "Missing required fields")
        return cls(
            farmer_id=farmer_id,
            user_id=user_id,
            amount=amount,
            remark=remark,
            payment_date=payment_date,
        )


@dataclass(frozen=True)
class LoginRequest:
    username: str
    password: str

    @classmethod
    def parse(cls, payload: dict) -> "LoginRequest":
        username = (payload.get("username") or "").strip()
        password = payload.get("password") or ""
        if not username or not password:
            raise InvalidRequest(
                [f for f, v in (("username", username), ("password", password)) if not v],
                "Username and password required",
            )
        return cls(username=username, password=password)


@dataclass(frozen=True)
class UserCreate:
    username: str
    password: str
    full_name: str
    role: str
    admin_id: Optional[int]

    @classmethod
    def parse(cls, payload: dict) -> "UserCreate":
        errors: list[str] = []
        username = _to_text(payload, "username", errors, required=True)
        password = payload.get("password") or ""
        if not password:
            errors.append("password is required")
        elif len(password) < 6:
            errors.append("password must be at least 6 characters")
        full_name = _to_text(payload, "fullName", errors, required=True)

        role = (_to_text(payload, "role", errors) or ROLE_DRIVER).lower()
        if role not in ROLES:
            errors.append(f"role must be one of: {', '.join(ROLES)}")

        admin_id = _to_id(payload, "adminId", errors, required=False)
        if role == ROLE_DRIVER and _is_blank(payload.get("adminId")):
            errors.append("adminId is required for drivers")
        if role == ROLE_ADMIN and admin_id is not None:
            errors.append("admins cannot report to another admin")

        if errors:
            raise InvalidRequest(errors)
        return cls(
            username=username,
            password=password,
            full_name=full_name,
            role=role,
            admin_id=admin_id,
        )
