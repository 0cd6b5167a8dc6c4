"""CLI entry point for the daily automation runner.

Intended to be invoked by cron (or any scheduler) several times a day; runs
before the start hour are no-ops and repeat runs the same day are skipped.

Usage:
    python -m tenancy.cli.run_automation
    python -m tenancy.cli.run_automation --landlord 12 --now 2025-06-02T09:00

Exit Codes:
    0 - Success: every landlord ran or was legitimately skipped
    1 - Failure: bad arguments or a landlord's run failed

Logging:
    LOG_LEVEL level logs to both stdout and LOG_FILE
"""

import argparse
import sys
from datetime import datetime

from tenancy.services.config import get_settings
from tenancy.services.errors import AlreadyRunError, TenancyError
from tenancy.services.logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the daily tenancy automation.")
    parser.add_argument("--landlord", type=int, help="Run only for this landlord id")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        help="Local time to run as (ISO format, default: now)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the automation CLI.

    1. Set up logging
    2. Load configuration
    3. Run the batch for one landlord or all of them
    4. Print one summary line per landlord

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    settings = get_settings()
    logger = setup_logging(settings.log_file, settings.log_level)
    logger.info("Starting daily automation...")

    from tenancy.services import SessionLocal
    from tenancy.services.automation_service import AutomationResult, AutomationService

    now = args.now or datetime.now()
    db = SessionLocal()
    try:
        service = AutomationService(db)
        if args.landlord is not None:
            try:
                results = [service.run_for_landlord(args.landlord, now)]
            except AlreadyRunError:
                results = [
                    AutomationResult(
                        landlord_id=args.landlord,
                        run_date=now.date(),
                        skipped_reason="already ran today",
                    )
                ]
        else:
            results = service.run_all(now)

        for result in results:
            print(result.summary())

        failed = [r for r in results if r.skipped_reason and r.skipped_reason.startswith("failed")]
        return 1 if failed else 0

    except KeyboardInterrupt:
        logger.warning("Automation interrupted by user")
        return 1
    except TenancyError as e:
        logger.error(f"Automation failed: {e.message}")
        return 1
    except Exception as e:
        logger.error(f"Automation failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
