from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from models import Farmer, Payment, Service, ServiceEntry, User

PASSWORD = "secret1"


@pytest.fixture
def app():
    return create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SQLALCHEMY_ECHO": False,
        "ORG_NAME": "Tipaniya Farm Services",
        "INVOICE_FOOTER_TEXT": "Thank you",
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sessions(app):
    return app.extensions["hisaab_sessions"]


@pytest.fixture
def ledger(sessions):
    """
    Two admins. `driver` and `driver2` report to `admin`; `outsider`
    reports to `other_admin`. Ramesh has work from all of them and one
    payment of 800; Suresh has nothing.
    """
    pw = generate_password_hash(PASSWORD)
    with sessions() as s:
        admin = User(username="admin", password_hash=pw, full_name="Asha Admin", role="admin")
        other_admin = User(username="other", password_hash=pw, full_name="Omkar Admin", role="admin")
        s.add_all([admin, other_admin])
        s.flush()

        driver = User(username="driver", password_hash=pw, full_name="Dev Driver", role="driver", admin_id=admin.id)
        driver2 = User(username="driver2", password_hash=pw, full_name="Dinesh Driver", role="driver", admin_id=admin.id)
        outsider = User(username="outsider", password_hash=pw, full_name="Om Driver", role="driver", admin_id=other_admin.id)

        ramesh = Farmer(name="Ramesh", contact="9876543210")
        suresh = Farmer(name="Suresh", contact="")
        plough = Service(type="Plough", rate=500.0)
        harrow = Service(type="Harrow", rate=300.0)
        s.add_all([driver, driver2, outsider, ramesh, suresh, plough, harrow])
        s.flush()

        def entry(user, service, hours, day, remark=""):
            e = ServiceEntry(
                farmer_id=ramesh.id,
                service_id=service.id,
                user_id=user.id,
                hours=hours,
                remark=remark,
                entry_date=datetime(2025, 1, day, 9, 0),
            )
            s.add(e)
            return e

        e_plough = entry(driver, plough, 2.0, 10, "North field")
        e_harrow = entry(driver, harrow, 1.5, 12)
        e_admin = entry(admin, plough, 1.0, 5)
        e_driver2 = entry(driver2, harrow, 0.5, 8)
        e_outsider = entry(outsider, plough, 3.0, 15)

        s.add(Payment(
            farmer_id=ramesh.id,
            user_id=driver.id,
            amount=800.0,
            payment_date=datetime(2025, 1, 20, 17, 30),
            remark="Cash",
        ))
        s.flush()

        ids = SimpleNamespace(
            admin=admin.id,
            other_admin=other_admin.id,
            driver=driver.id,
            driver2=driver2.id,
            outsider=outsider.id,
            ramesh=ramesh.id,
            suresh=suresh.id,
            plough=plough.id,
            harrow=harrow.id,
            e_plough=e_plough.id,
            e_harrow=e_harrow.id,
            e_admin=e_admin.id,
            e_driver2=e_driver2.id,
            e_outsider=e_outsider.id,
        )
        s.commit()
    return ids
