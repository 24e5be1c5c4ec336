"""Operator command that runs the email retry sweeper once."""

from __future__ import annotations

import argparse
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.application.use_cases.notifications import NotificationService
from app.config import get_settings
from app.infrastructure.database import SessionLocal, initialize_database


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the sweep."""

    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Requeue due failed emails and attempt pending ones.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.notification_sweep_batch_size,
        help=f"Rows handled per pass (default: {settings.notification_sweep_batch_size})",
    )
    parser.add_argument(
        "--retry-all-failed",
        action="store_true",
        help="Also retry every retryable failed email from the last 7 days, ignoring backoff.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    return parser.parse_args()


def main() -> None:
    """Run a single sweep and print its outcome."""

    args = parse_args()
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if args.batch_size <= 0:
        raise SystemExit("--batch-size must be positive.")

    initialize_database()

    service = NotificationService(
        settings=settings.model_copy(
            update={"notification_sweep_batch_size": args.batch_size}
        )
    )
    try:
        result = service.run_sweep()
        retried = None
        if args.retry_all_failed:
            session = SessionLocal()
            try:
                retried = service.retry_all_failed(session)
            finally:
                session.close()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Database error while sweeping the outbox: {exc}") from exc
    finally:
        service.shutdown()

    print(
        "Sweep finished:\n"
        f"  Requeued: {result.requeued}\n"
        f"  Attempted: {result.attempted}\n"
        f"  Sent: {result.sent}\n"
        f"  Skipped: {result.skipped}"
    )
    if retried is not None:
        print(f"  Retried failed emails sent: {retried}")


if __name__ == "__main__":
    main()
