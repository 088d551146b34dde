# backend/app/cli/__main__.py
from __future__ import annotations

import argparse
from dataclasses import asdict

from app.cli.seed_demo import seed_demo
from app.db import session_scope
from app.logging_config import configure_logging
from app.middleware.request_id import new_request_id, request_id_scope
from app.services.reminders import send_monthly_reminders


def _seed(args: argparse.Namespace) -> None:
    out = seed_demo(
        manager_phone=args.manager_phone,
        tenant_phone=args.tenant_phone,
        password=args.password,
        property_name=args.property_name,
        floors=args.floors,
        occupy_first_floor=(not args.no_tenant),
    )
    print({"ok": True, **asdict(out)})


def _send_reminders(args: argparse.Namespace) -> None:
    with session_scope() as db, request_id_scope(new_request_id("cli-")):
        out = send_monthly_reminders(db, force=args.force)
    print({"ok": True, **asdict(out)})


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m app.cli")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("seed-demo", help="create a demo manager, tenant, property and floors")
    s.add_argument("--manager-phone", default="01700000001")
    s.add_argument("--tenant-phone", default="01700000002")
    s.add_argument("--password", default="demo-password")
    s.add_argument("--property-name", default="Demo House")
    s.add_argument("--floors", type=int, default=3)
    s.add_argument("--no-tenant", action="store_true")
    s.set_defaults(func=_seed)

    r = sub.add_parser("send-reminders", help="run the monthly rent reminder job once")
    r.add_argument("--force", action="store_true", help="run even if this month was already sent")
    r.set_defaults(func=_send_reminders)

    args = p.parse_args()
    configure_logging()
    args.func(args)


if __name__ == "__main__":
    main()
