# backend/propledger/cli/__main__.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy import select

from propledger.cli.seed_demo import seed_demo
from propledger.db import Base, SessionLocal, engine
from propledger.logging_config import configure_logging
from propledger.models import Appliance
from propledger.services.appliance_state import reconcile_appliance_rollups

log = logging.getLogger("propledger.cli")


def _init_db(args: argparse.Namespace) -> None:
    Base.metadata.create_all(bind=engine)
    print({"ok": True, "tables": sorted(Base.metadata.tables)})


def _seed_demo(args: argparse.Namespace) -> None:
    out = seed_demo(
        user_email=args.user_email,
        user_name=args.user_name,
        password=args.password,
        create_sample_property=(not args.no_sample_property),
    )
    print(
        {
            "ok": True,
            "user_email": out.user_email,
            "sample_property_id": out.property_id,
            "sample_appliance_id": out.appliance_id,
        }
    )


def _reconcile(args: argparse.Namespace) -> None:
    db = SessionLocal()
    try:
        ids = [int(x) for x in db.scalars(select(Appliance.id).order_by(Appliance.id)).all()]
        drifted = [aid for aid in ids if reconcile_appliance_rollups(db, appliance_id=aid)]
        if args.dry_run:
            db.rollback()
        else:
            db.commit()
    except Exception:
        db.rollback()
        log.exception("reconcile failed")
        raise
    finally:
        db.close()

    print({"ok": True, "checked": len(ids), "drifted": drifted, "applied": not args.dry_run})


def main(argv: list[str] | None = None) -> None:
    configure_logging()

    p = argparse.ArgumentParser(prog="propledger")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("init-db", help="create all tables (dev only; use alembic for deployments)")
    s.set_defaults(func=_init_db)

    s = sub.add_parser("seed-demo", help="create a demo user with one property and appliance")
    s.add_argument("--user-email", default="demo@propledger.local")
    s.add_argument("--user-name", default="Demo")
    s.add_argument("--password", default=None)
    s.add_argument("--no-sample-property", action="store_true")
    s.set_defaults(func=_seed_demo)

    s = sub.add_parser("reconcile", help="recompute maintenance rollups for every appliance")
    s.add_argument("--dry-run", action="store_true")
    s.set_defaults(func=_reconcile)

    args = p.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
