# stores.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import aliased

from errors import InternalError
from models import Farmer, Payment, Service, ServiceEntry, User


@dataclass(frozen=True)
class Visibility:
    """Whose entries a requester may see: their own, plus their drivers' when include_reports."""
    user_id: int
    include_reports: bool = False


@dataclass(frozen=True)
class EntryLine:
    id: int
    entry_date: datetime
    service_type: str
    hours: float
    rate: float
    remark: str

    @property
    def cost(self) -> float:
        return self.hours * self.rate


@dataclass(frozen=True)
class PaymentLine:
    id: int
    payment_date: datetime
    amount: float
    remark: str


def _number(row, field: str) -> float:
    value = getattr(row, field)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InternalError(f"malformed {field} in row {row.id}: {value!r}") from e


def apply_visibility(stmt, visibility: Visibility):
    """
    Narrows a statement over ServiceEntry to the entries `visibility` allows:
    the user's own, plus entries by users whose admin_id is the user when
    include_reports is set.
    """
    if not visibility.include_reports:
        return stmt.where(ServiceEntry.user_id == visibility.user_id)
    creator = aliased(User)
    return stmt.outerjoin(creator, ServiceEntry.user_id == creator.id).where(
        or_(
            ServiceEntry.user_id == visibility.user_id,
            creator.admin_id == visibility.user_id,
        )
    )


class SqlStore:
    """
    Read side used by invoices. Wraps one SQLAlchemy session; the caller
    owns the session's lifetime.
    """

    def __init__(self, session):
        self.session = session

    def fetch_farmer(self, farmer_id: int) -> Farmer | None:
        return self.session.get(Farmer, farmer_id)

    def fetch_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def fetch_entries(self, farmer_id: int, visibility: Visibility) -> list[EntryLine]:
        stmt = (
            select(
                ServiceEntry.id,
                ServiceEntry.entry_date,
                Service.type,
                ServiceEntry.hours,
                Service.rate,
                ServiceEntry.remark,
            )
            .join(Service, ServiceEntry.service_id == Service.id)
            .where(ServiceEntry.farmer_id == farmer_id)
            .order_by(ServiceEntry.entry_date.desc(), ServiceEntry.id.desc())
        )
        stmt = apply_visibility(stmt, visibility)

        return [
            EntryLine(
                id=row.id,
                entry_date=row.entry_date,
                service_type=row.type,
                hours=_number(row, "hours"),
                rate=_number(row, "rate"),
                remark=row.remark or "",
            )
            for row in self.session.execute(stmt)
        ]

    def fetch_payments(self, farmer_id: int) -> list[PaymentLine]:
        stmt = (
            select(Payment.id, Payment.payment_date, Payment.amount, Payment.remark)
            .where(Payment.farmer_id == farmer_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return [
            PaymentLine(
                id=row.id,
                payment_date=row.payment_date,
                amount=_number(row, "amount"),
                remark=row.remark or "",
            )
            for row in self.session.execute(stmt)
        ]
