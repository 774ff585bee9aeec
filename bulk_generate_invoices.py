# bulk_generate_invoices.py
import argparse
import os
from datetime import datetime
from pathlib import Path

from sqlalchemy import select

from config import Config
from errors import HisaabError, NoData
from invoice_builder import build_invoice
from models import Base, make_engine, make_session_factory, Farmer
from stores import SqlStore


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Write invoice PDFs for every farmer a user can see.")
    parser.add_argument("--user-id", type=int, required=True, help="Requesting user (admin or driver).")
    parser.add_argument("--farmer-id", type=int, default=None, help="Only this farmer.")
    parser.add_argument("--out-dir", type=str, default="", help="Defaults to EXPORTS_DIR/<year>.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    out_dir = Path(args.out_dir or os.path.join(Config.EXPORTS_DIR, datetime.now().strftime("%Y")))
    out_dir.mkdir(parents=True, exist_ok=True)

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    with SessionLocal() as s:
        q = select(Farmer.id, Farmer.name).order_by(Farmer.name)
        if args.farmer_id is not None:
            q = q.where(Farmer.id == args.farmer_id)
        farmers = s.execute(q).all()

        if not farmers:
            print("No farmers found for the given filter.")
            return 0

        total = len(farmers)
        generated = 0
        skipped = 0
        failed = 0
        store = SqlStore(s)

        for i, (farmer_id, farmer_name) in enumerate(farmers, start=1):
            try:
                doc = build_invoice(
                    store,
                    farmer_id,
                    args.user_id,
                    org_name=Config.ORG_NAME,
                    footer_text=Config.INVOICE_FOOTER_TEXT,
                )
            except NoData:
                skipped += 1
                print(f"[{i}/{total}] SKIP  {farmer_name} (no visible entries)")
                continue
            except HisaabError as e:
                failed += 1
                print(f"[{i}/{total}] FAIL  {farmer_name}  ({e.message})")
                continue

            path = out_dir / doc.filename
            path.write_bytes(doc.content)
            generated += 1
            print(f"[{i}/{total}] DONE  {farmer_name} -> {path} (balance {doc.summary.balance:.2f})")

    print("\n✅ Bulk invoice generation complete.")
    print(f"Generated: {generated}")
    print(f"Skipped:   {skipped}")
    print(f"Failed:    {failed}")
    print(f"Exports:   {out_dir}")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
