from __future__ import annotations

import pytest

import bulk_generate_invoices
from config import Config
from models import Base, make_engine, make_session_factory


@pytest.fixture
def sessions(tmp_path, monkeypatch):
    db_url = f"sqlite:///{(tmp_path / 'hisaab.db').as_posix()}"
    monkeypatch.setattr(Config, "SQLALCHEMY_DATABASE_URI", db_url)
    monkeypatch.setattr(Config, "SQLALCHEMY_ECHO", False)
    monkeypatch.setattr(Config, "EXPORTS_DIR", (tmp_path / "exports").as_posix())
    engine = make_engine(db_url)
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


def test_writes_one_pdf_per_farmer_with_entries(tmp_path, ledger, capsys):
    out_dir = tmp_path / "out"
    code = bulk_generate_invoices.main(["--user-id", str(ledger.driver), "--out-dir", str(out_dir)])

    assert code == 0
    pdfs = sorted(out_dir.glob("*.pdf"))
    assert len(pdfs) == 1
    assert pdfs[0].name.startswith("invoice_Ramesh_")
    assert pdfs[0].read_bytes().startswith(b"%PDF")

    output = capsys.readouterr().out
    assert "DONE  Ramesh" in output
    assert "SKIP  Suresh (no visible entries)" in output
    assert "Generated: 1" in output


def test_defaults_to_exports_dir_by_year(tmp_path, ledger):
    code = bulk_generate_invoices.main(["--user-id", str(ledger.admin), "--farmer-id", str(ledger.ramesh)])

    assert code == 0
    assert len(list((tmp_path / "exports").glob("*/invoice_Ramesh_*.pdf"))) == 1


def test_unknown_user_fails_every_farmer(tmp_path, ledger, capsys):
    code = bulk_generate_invoices.main(["--user-id", "999", "--out-dir", str(tmp_path / "out")])

    assert code == 1
    output = capsys.readouterr().out
    assert "FAIL  Ramesh  (User not found)" in output
    assert "Failed:    2" in output
