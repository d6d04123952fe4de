#!/usr/bin/env python3
"""
Re-run the signal pipeline over stored, matched signals (oldest first).

Runs in-process (no Redis/Celery, no auth tokens). Safe to repeat: records
already created from a signal are not created again.

Usage (from backend/; use the project venv):
  ./.venv/bin/python scripts/reprocess_signals.py --user-id 1

Common examples:
  # Only signals linked to one application
  ./.venv/bin/python scripts/reprocess_signals.py --user-id 1 --application-id 42

  # Signals received in a date window
  ./.venv/bin/python scripts/reprocess_signals.py --user-email me@example.com --after 2026-01-01 --before 2026-03-31
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime

# Ensure backend app is importable when run as script from backend or project root
_script_dir = os.path.dirname(os.path.abspath(__file__))
_backend = os.path.dirname(_script_dir)
if _backend not in sys.path:
    sys.path.insert(0, _backend)

from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models import User
from app.services.reprocess_service import ReprocessOptions, run_reprocess_signals


def _parse_dt(value: str | None) -> datetime | None:
    if not value or not value.strip():
        return None
    try:
        dt = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Reprocess stored signals through the pipeline.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--user-id", type=int, default=None, help="User id to reprocess (required)")
    parser.add_argument("--user-email", type=str, default=None, help="Resolve user_id by email")
    parser.add_argument("--application-id", type=int, default=None, help="Only signals linked to this application")
    parser.add_argument("--limit", type=int, default=500, help="Max signals to process (default: 500)")
    parser.add_argument("--after", type=str, default=None, help="Only signals with email_date >= this date")
    parser.add_argument("--before", type=str, default=None, help="Only signals with email_date <= this date")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline details")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    db: Session = SessionLocal()
    try:
        user_id = args.user_id
        if args.user_email:
            u = db.query(User).filter(User.email == args.user_email.strip().lower()).first()
            if not u:
                print(f"User not found for --user-email: {args.user_email}", file=sys.stderr)
                return 2
            user_id = u.id
            print(f"Resolved --user-email to user_id={user_id}")

        if not user_id:
            print("ERROR: --user-id (or --user-email) is required", file=sys.stderr)
            return 2

        options = ReprocessOptions(
            application_id=args.application_id,
            after_date=_parse_dt(args.after),
            before_date=_parse_dt(args.before),
            limit=args.limit,
        )

        def on_progress(processed: int, total: int, message: str):
            print(f"[{processed}/{total}] {message}", flush=True)

        print(
            "Reprocess starting:",
            f"user_id={user_id}",
            f"application_id={options.application_id}",
            f"after={args.after}",
            f"before={args.before}",
            f"limit={options.limit}",
        )

        result = run_reprocess_signals(db, user_id=user_id, options=options, on_progress=on_progress)
        print("Reprocess done:", result)
        return 0 if int(result.get("errors", 0) or 0) == 0 else 1
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
