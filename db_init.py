# db_init.py
from pathlib import Path

from sqlalchemy import select
from werkzeug.security import generate_password_hash

from config import Config
from models import Base, User, ROLE_ADMIN, make_engine, make_session_factory


def _bootstrap_first_admin(SessionLocal) -> str | None:
    """Creates INITIAL_ADMIN_USERNAME as an admin if set and not taken. Returns the username created."""
    username = (Config.INITIAL_ADMIN_USERNAME or "").strip()
    password = Config.INITIAL_ADMIN_PASSWORD or ""
    if not username or not password:
        return None

    with SessionLocal() as s:
        exists = s.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if exists:
            return None
        s.add(User(
            username=username,
            password_hash=generate_password_hash(password),
            full_name=username,
            role=ROLE_ADMIN,
        ))
        s.commit()
    return username


def main():
    # Ensure instance/ exists for SQLite local dev
    if Config.SQLALCHEMY_DATABASE_URI.startswith("sqlite:///"):
        Path(Config.SQLALCHEMY_DATABASE_URI[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    # Ensure exports/ exists for bulk invoice PDFs
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)

    created = _bootstrap_first_admin(make_session_factory(engine))

    print("✅ Database initialized.")
    print(f"DB: {Config.SQLALCHEMY_DATABASE_URI}")
    print(f"Exports dir: {Config.EXPORTS_DIR}")
    if created:
        print(f"Admin user created: {created}")


if __name__ == "__main__":
    main()
