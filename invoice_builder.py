# invoice_builder.py
"""
Builds a farmer's invoice for a requesting user.

Entries are filtered by who is asking: a driver sees only the work they
recorded, an admin sees their own work plus that of the drivers reporting
to them. Payments are never filtered; every payment against the farmer
counts towards the balance.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from errors import InternalError, NoData, NotFound
from models import ROLE_ADMIN, ROLE_DRIVER
from payloads import InvoiceRequest
from pdf_service import hours_to_hhmm, invoice_filename, render_invoice_pdf
from stores import EntryLine, PaymentLine, Visibility

PDF_CONTENT_TYPE = "application/pdf"


# -----------------------------
# Requester roles
# -----------------------------
@dataclass(frozen=True)
class Admin:
    id: int


@dataclass(frozen=True)
class Driver:
    id: int
    reports_to: Optional[int]


Requester = Union[Admin, Driver]


def resolve_requester(user) -> Requester:
    role = (user.role or "").strip().lower()
    if role == ROLE_ADMIN:
        return Admin(id=user.id)
    if role == ROLE_DRIVER:
        return Driver(id=user.id, reports_to=user.admin_id)
    raise InternalError(f"User {user.id} has unknown role {user.role!r}")


def visibility_for(requester: Requester) -> Visibility:
    if isinstance(requester, Admin):
        return Visibility(user_id=requester.id, include_reports=True)
    return Visibility(user_id=requester.id)


# -----------------------------
# Results
# -----------------------------
@dataclass
class InvoiceSummary:
    farmer_id: int
    farmer_name: str
    farmer_contact: str
    requester: Requester
    entries: list[EntryLine] = field(default_factory=list)
    payments: list[PaymentLine] = field(default_factory=list)

    # Totals are kept unrounded; formatting rounds.
    @property
    def total_cost(self) -> float:
        return sum((e.cost for e in self.entries), 0.0)

    @property
    def total_paid(self) -> float:
        return sum((p.amount for p in self.payments), 0.0)

    @property
    def balance(self) -> float:
        return self.total_cost - self.total_paid

    def to_dict(self) -> dict:
        return {
            "farmer": {"id": self.farmer_id, "name": self.farmer_name, "contact": self.farmer_contact},
            "entries": [
                {
                    "id": e.id,
                    "entryDate": e.entry_date.isoformat(),
                    "serviceType": e.service_type,
                    "hours": e.hours,
                    "time": hours_to_hhmm(e.hours),
                    "rate": e.rate,
                    "cost": round(e.cost, 2),
                    "remark": e.remark,
                }
                for e in self.entries
            ],
            "payments": [
                {
                    "id": p.id,
                    "paymentDate": p.payment_date.isoformat(),
                    "amount": p.amount,
                    "remark": p.remark,
                }
                for p in self.payments
            ],
            "totalCost": round(self.total_cost, 2),
            "totalPaid": round(self.total_paid, 2),
            "balance": round(self.balance, 2),
        }


@dataclass
class InvoiceDocument:
    filename: str
    content: bytes
    summary: InvoiceSummary
    page_count: int
    content_type: str = PDF_CONTENT_TYPE


# -----------------------------
# Building
# -----------------------------
def _from_store(fetch, *args):
    try:
        return fetch(*args)
    except SQLAlchemyError as e:
        raise InternalError(str(e)) from e


def summarize_invoice(store, farmer_id, requesting_user_id) -> InvoiceSummary:
    req = InvoiceRequest.parse(farmer_id, requesting_user_id)

    farmer = _from_store(store.fetch_farmer, req.farmer_id)
    if farmer is None:
        raise NotFound("Farmer not found")

    user = _from_store(store.fetch_user, req.user_id)
    if user is None:
        raise NotFound("User not found")

    requester = resolve_requester(user)
    entries = _from_store(store.fetch_entries, req.farmer_id, visibility_for(requester))
    if not entries:
        raise NoData("No entries found for this farmer")

    payments = _from_store(store.fetch_payments, req.farmer_id)

    return InvoiceSummary(
        farmer_id=farmer.id,
        farmer_name=farmer.name,
        farmer_contact=farmer.contact or "",
        requester=requester,
        entries=list(entries),
        payments=list(payments),
    )


def build_invoice(
    store,
    farmer_id,
    requesting_user_id,
    *,
    org_name: str,
    footer_text: str = "Thank you",
    generated_at: datetime | None = None,
) -> InvoiceDocument:
    """
    Produces the complete PDF in memory. Errors are raised before any bytes
    exist, so callers never see a partial document.
    """
    summary = summarize_invoice(store, farmer_id, requesting_user_id)
    generated_at = generated_at or datetime.now()

    buf = io.BytesIO()
    pages = render_invoice_pdf(
        summary,
        buf,
        org_name=org_name,
        footer_text=footer_text,
        generated_at=generated_at,
    )
    return InvoiceDocument(
        filename=invoice_filename(summary.farmer_name, generated_at),
        content=buf.getvalue(),
        summary=summary,
        page_count=pages,
    )
