# models.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    create_engine,
    String,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)

ROLE_ADMIN = "admin"
ROLE_DRIVER = "driver"
ROLES = (ROLE_ADMIN, ROLE_DRIVER)


def _now() -> datetime:
    return datetime.now()


# -----------------------------
# SQLAlchemy base
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Tables
# -----------------------------
class Farmer(Base):
    __tablename__ = "farmers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    contact: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    entries: Mapped[list["ServiceEntry"]] = relationship(back_populates="farmer")
    payments: Mapped[list["Payment"]] = relationship(back_populates="farmer")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "contact": self.contact}


class User(Base):
    """
    A person who records work. Drivers point at the admin they report to
    through admin_id; admins leave it empty. Only one level deep.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'driver')", name="ck_users_role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_DRIVER)
    admin_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "fullName": self.full_name,
            "role": self.role,
            "adminId": self.admin_id,
        }


class Service(Base):
    """Kind of tractor work with its hourly rate. Rate edits apply to old entries too."""
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(120), nullable=False)
    rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type, "rate": self.rate}


class ServiceEntry(Base):
    __tablename__ = "hisaab_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    farmer_id: Mapped[int] = mapped_column(ForeignKey("farmers.id"), nullable=False, index=True)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    amount_received: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    remark: Mapped[str] = mapped_column(String, nullable=False, default="")
    entry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_now, index=True)

    farmer: Mapped["Farmer"] = relationship(back_populates="entries")
    service: Mapped["Service"] = relationship()
    user: Mapped[Optional["User"]] = relationship()


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    farmer_id: Mapped[int] = mapped_column(ForeignKey("farmers.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_now, index=True)
    remark: Mapped[str] = mapped_column(String, nullable=False, default="")

    farmer: Mapped["Farmer"] = relationship(back_populates="payments")
    user: Mapped["User"] = relationship()


# -----------------------------
# Engine / Session factory
# -----------------------------
def make_engine(db_url: str, echo: bool = False):
    """
    Create SQLAlchemy engine.
    Note: SQLite path must exist (instance/ folder). db_init.py / create_app create it.
    """
    kwargs = {}
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every session sees the same in-memory database
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return create_engine(db_url, echo=echo, future=True, **kwargs)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)
