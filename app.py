# app.py
import io
from datetime import datetime
from pathlib import Path

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from flask_login import (
    LoginManager, UserMixin, login_user, logout_user,
    login_required, current_user
)
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased
from werkzeug.security import generate_password_hash, check_password_hash

from config import Config
from errors import HisaabError, InvalidRequest, NotFound, Unauthorized
from invoice_builder import build_invoice, summarize_invoice
from models import (
    Base, make_engine, make_session_factory,
    Farmer, Payment, Service, ServiceEntry, User, ROLE_ADMIN
)
from payloads import (
    EntryCreate, FarmerCreate, LoginRequest, PaymentCreate, ServiceCreate, UserCreate
)
from stores import SqlStore, Visibility, apply_visibility

login_manager = LoginManager()


# -----------------------------
# Flask-Login user wrapper
# -----------------------------
class AppUser(UserMixin):
    def __init__(self, user_id: int, username: str):
        self.id = str(user_id)
        self.username = username


@login_manager.unauthorized_handler
def _unauthorized():
    raise Unauthorized("Login required")


# -----------------------------
# Helpers
# -----------------------------
def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _ensure_dirs(db_url: str):
    # SQLite file databases need their folder to exist
    prefix = "sqlite:///"
    if db_url.startswith(prefix) and db_url != "sqlite:///:memory:":
        Path(db_url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def _requesting_user_id():
    user_id = (request.args.get("userId") or "").strip()
    if user_id:
        return user_id
    if current_user.is_authenticated:
        return current_user.get_id()
    return None


def _entry_row(entry: ServiceEntry) -> dict:
    return {
        "id": entry.id,
        "farmer_id": entry.farmer_id,
        "service_id": entry.service_id,
        "user_id": entry.user_id,
        "hours": entry.hours,
        "amount_received": entry.amount_received,
        "remark": entry.remark,
        "entry_date": entry.entry_date.isoformat(),
    }


def _payment_row(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "farmer_id": payment.farmer_id,
        "user_id": payment.user_id,
        "amount": payment.amount,
        "payment_date": payment.payment_date.isoformat(),
        "remark": payment.remark,
    }


def _entries_query():
    return (
        select(
            ServiceEntry.id,
            ServiceEntry.farmer_id,
            ServiceEntry.service_id,
            ServiceEntry.user_id,
            Farmer.name.label("farmer_name"),
            Service.type.label("service_type"),
            ServiceEntry.hours,
            Service.rate,
            ServiceEntry.amount_received,
            ServiceEntry.entry_date,
            ServiceEntry.remark,
        )
        .join(Farmer, ServiceEntry.farmer_id == Farmer.id)
        .join(Service, ServiceEntry.service_id == Service.id)
        .order_by(ServiceEntry.entry_date.desc(), ServiceEntry.id.desc())
    )


def _entries_json(rows, with_cost: bool = False) -> list[dict]:
    out = []
    for r in rows:
        item = {
            "id": r.id,
            "farmer_id": r.farmer_id,
            "service_id": r.service_id,
            "user_id": r.user_id,
            "farmer_name": r.farmer_name,
            "service_type": r.service_type,
            "hours": r.hours,
            "rate": r.rate,
            "amount_received": r.amount_received,
            "entry_date": r.entry_date.isoformat(),
            "remark": r.remark,
        }
        if with_cost:
            item["cost"] = r.hours * r.rate
        out.append(item)
    return out


def _payments_query():
    recorder = aliased(User)
    stmt = (
        select(
            Payment.id,
            Payment.farmer_id,
            Payment.user_id,
            Payment.amount,
            Payment.payment_date,
            Payment.remark,
            Farmer.name.label("farmer_name"),
            recorder.full_name.label("user_name"),
        )
        .join(Farmer, Payment.farmer_id == Farmer.id)
        .join(recorder, Payment.user_id == recorder.id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
    )
    return stmt, recorder


def _payments_json(rows) -> list[dict]:
    return [
        {
            "id": r.id,
            "farmer_id": r.farmer_id,
            "user_id": r.user_id,
            "amount": r.amount,
            "payment_date": r.payment_date.isoformat(),
            "remark": r.remark,
            "farmer_name": r.farmer_name,
            "user_name": r.user_name,
        }
        for r in rows
    ]


def _admin_or_404(session, admin_id: int) -> User:
    admin = session.get(User, admin_id)
    if not admin or admin.role != ROLE_ADMIN:
        raise NotFound("Admin not found")
    return admin


# -----------------------------
# App factory
# -----------------------------
def create_app(config_overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    db_url = app.config["SQLALCHEMY_DATABASE_URI"]
    _ensure_dirs(db_url)

    CORS(app, supports_credentials=True)
    login_manager.init_app(app)

    engine = make_engine(db_url, echo=app.config["SQLALCHEMY_ECHO"])
    Base.metadata.create_all(engine)

    SessionLocal = make_session_factory(engine)
    app.extensions["hisaab_sessions"] = SessionLocal

    def db_session():
        return SessionLocal()

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            uid = int(user_id)
        except (TypeError, ValueError):
            return None
        with db_session() as s:
            u = s.get(User, uid)
            if not u:
                return None
            return AppUser(u.id, u.username)

    # -----------------------------
    # Errors
    # -----------------------------
    def handle_hisaab_error(e: HisaabError):
        if e.status_code >= 500:
            print(f"[ERROR] {request.method} {request.path}: {e.message}", flush=True)
        return jsonify(e.to_dict()), e.status_code

    def handle_db_error(e: SQLAlchemyError):
        print(f"[DB ERROR] {request.method} {request.path}: {e!r}", flush=True)
        return jsonify({"error": str(e)}), 500

    app.register_error_handler(HisaabError, handle_hisaab_error)
    app.register_error_handler(SQLAlchemyError, handle_db_error)

    # -----------------------------
    # Index
    # -----------------------------
    @app.route("/")
    def index():
        return "Tractor Hisaab API is running!"

    # -----------------------------
    # Auth routes
    # -----------------------------
    @app.route("/auth/login", methods=["POST"])
    def login():
        req = LoginRequest.parse(_json_body())
        with db_session() as s:
            u = s.execute(select(User).where(User.username == req.username)).scalar_one_or_none()
            if not u or not check_password_hash(u.password_hash, req.password):
                raise Unauthorized("Invalid credentials")
            login_user(AppUser(u.id, u.username))
            return jsonify(u.to_dict())

    @app.route("/auth/logout", methods=["POST"])
    @login_required
    def logout():
        logout_user()
        return jsonify({"ok": True})

    @app.route("/auth/create-user", methods=["POST"])
    def create_user():
        req = UserCreate.parse(_json_body())
        with db_session() as s:
            taken = s.execute(select(User).where(User.username == req.username)).scalar_one_or_none()
            if taken:
                raise InvalidRequest("That username is already taken")
            if req.admin_id is not None:
                _admin_or_404(s, req.admin_id)

            u = User(
                username=req.username,
                password_hash=generate_password_hash(req.password),
                full_name=req.full_name,
                role=req.role,
                admin_id=req.admin_id,
            )
            s.add(u)
            s.commit()
            return jsonify(u.to_dict()), 201

    # -----------------------------
    # Farmers
    # -----------------------------
    @app.route("/farmers", methods=["GET"])
    def farmers_list():
        with db_session() as s:
            farmers = s.execute(select(Farmer).order_by(Farmer.name)).scalars().all()
            return jsonify([f.to_dict() for f in farmers])

    @app.route("/farmers", methods=["POST"])
    def farmer_create():
        req = FarmerCreate.parse(_json_body())
        with db_session() as s:
            farmer = Farmer(name=req.name, contact=req.contact)
            s.add(farmer)
            s.commit()
            return jsonify(farmer.to_dict()), 201

    # -----------------------------
    # Services
    # -----------------------------
    @app.route("/services", methods=["GET"])
    def services_list():
        with db_session() as s:
            services = s.execute(select(Service).order_by(Service.type)).scalars().all()
            return jsonify([svc.to_dict() for svc in services])

    @app.route("/services", methods=["POST"])
    def service_create():
        req = ServiceCreate.parse(_json_body())
        with db_session() as s:
            svc = Service(type=req.type, rate=req.rate)
            s.add(svc)
            s.commit()
            return jsonify(svc.to_dict()), 201

    # -----------------------------
    # Entries
    # -----------------------------
    @app.route("/entries", methods=["POST"])
    def entry_create():
        req = EntryCreate.parse(_json_body())
        with db_session() as s:
            if not s.get(Farmer, req.farmer_id):
                raise NotFound("Farmer not found")
            if not s.get(Service, req.service_id):
                raise NotFound("Service not found")
            if not s.get(User, req.user_id):
                raise NotFound("User not found")

            entry = ServiceEntry(
                farmer_id=req.farmer_id,
                service_id=req.service_id,
                user_id=req.user_id,
                hours=req.hours,
                amount_received=req.amount_received,
                remark=req.remark,
                entry_date=req.entry_date or datetime.now(),
            )
            s.add(entry)
            s.commit()
            return jsonify(_entry_row(entry)), 201

    @app.route("/entries", methods=["GET"])
    def entries_list():
        with db_session() as s:
            rows = s.execute(_entries_query()).all()
            return jsonify(_entries_json(rows))

    @app.route("/entries/user/<int:user_id>")
    def entries_for_user(user_id: int):
        with db_session() as s:
            rows = s.execute(_entries_query().where(ServiceEntry.user_id == user_id)).all()
            return jsonify(_entries_json(rows))

    @app.route("/entries/admin/<int:admin_id>")
    def entries_for_admin(admin_id: int):
        with db_session() as s:
            _admin_or_404(s, admin_id)
            stmt = apply_visibility(_entries_query(), Visibility(user_id=admin_id, include_reports=True))
            rows = s.execute(stmt).all()
            return jsonify(_entries_json(rows, with_cost=True))

    @app.route("/entries/farmer/<int:farmer_id>/user/<int:user_id>")
    def entries_for_farmer_and_user(farmer_id: int, user_id: int):
        with db_session() as s:
            stmt = _entries_query().where(
                ServiceEntry.farmer_id == farmer_id,
                ServiceEntry.user_id == user_id,
            )
            rows = s.execute(stmt).all()
            return jsonify(_entries_json(rows, with_cost=True))

    # -----------------------------
    # Payments
    # -----------------------------
    @app.route("/payments", methods=["POST"])
    def payment_create():
        req = PaymentCreate.parse(_json_body())
        with db_session() as s:
            if not s.get(Farmer, req.farmer_id):
                raise NotFound("Farmer not found")
            if not s.get(User, req.user_id):
                raise NotFound("User not found")

            payment = Payment(
                farmer_id=req.farmer_id,
                user_id=req.user_id,
                amount=req.amount,
                remark=req.remark,
                payment_date=req.payment_date or datetime.now(),
            )
            s.add(payment)
            s.commit()
            return jsonify(_payment_row(payment)), 201

    @app.route("/payments/farmer/<int:farmer_id>")
    def payments_for_farmer(farmer_id: int):
        stmt, _ = _payments_query()
        with db_session() as s:
            rows = s.execute(stmt.where(Payment.farmer_id == farmer_id)).all()
            return jsonify(_payments_json(rows))

    @app.route("/payments/admin/<int:admin_id>")
    def payments_for_admin(admin_id: int):
        stmt, recorder = _payments_query()
        with db_session() as s:
            _admin_or_404(s, admin_id)
            stmt = stmt.where(or_(recorder.id == admin_id, recorder.admin_id == admin_id))
            rows = s.execute(stmt).all()
            return jsonify(_payments_json(rows))

    # -----------------------------
    # Invoices
    # -----------------------------
    @app.route("/invoices/farmer/<farmer_id>")
    def invoice_pdf(farmer_id):
        user_id = _requesting_user_id()
        with db_session() as s:
            doc = build_invoice(
                SqlStore(s),
                farmer_id,
                user_id,
                org_name=app.config["ORG_NAME"],
                footer_text=app.config["INVOICE_FOOTER_TEXT"],
            )

        print(
            f"[INVOICE] farmer={farmer_id} user={user_id} entries={len(doc.summary.entries)} "
            f"pages={doc.page_count} balance={doc.summary.balance:.2f}",
            flush=True,
        )
        return send_file(
            io.BytesIO(doc.content),
            as_attachment=True,
            download_name=doc.filename,
            mimetype=doc.content_type,
        )

    @app.route("/invoices/farmer/<farmer_id>/summary")
    def invoice_summary(farmer_id):
        with db_session() as s:
            summary = summarize_invoice(SqlStore(s), farmer_id, _requesting_user_id())
            return jsonify(summary.to_dict())

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
