"""
Bin Duty Dashboard — Entry Point.

    python main.py remind [--message TEXT]   weekly reminder (run from cron)
    python main.py status                    print the dashboard snapshot
    python main.py bootstrap-admin EMAIL     create the first superuser
"""

import argparse
import asyncio
import logging
import sys

from src.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.core.engine import DutyEngine
from src.core.errors import DutyError
from src.data.models import Actor, DispatchStatus, Role

# Identity used for the scheduled reminder; it needs dispatch rights only.
SCHEDULER_ACTOR = Actor(email="scheduler", role=Role.EDITOR)


async def _run(args: argparse.Namespace) -> int:
    engine = DutyEngine.from_settings()

    if args.command == "remind":
        report = await engine.dispatcher.send_reminder(SCHEDULER_ACTOR, args.message)
        print(f"Reminder {report.status.value}: {len(report.details)} delivery attempt(s)")
        return 2 if report.status == DispatchStatus.FAILED else 0

    if args.command == "status":
        snapshot = engine.dashboard()
        print(f"On duty:        {snapshot.current_duty}")
        print(f"Next:           {snapshot.next_in_rotation}")
        print(f"Last reminder:  {snapshot.last_reminder_run}")
        print(f"Last activity:  {snapshot.last_log}")
        return 0

    if args.command == "bootstrap-admin":
        admin = await engine.admins.bootstrap_superuser(args.email)
        if admin is None:
            print("Admins already exist; nothing to do.")
        else:
            print(f"Superuser {admin.email} created.")
        return 0

    return 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Bin duty rotation engine")
    sub = parser.add_subparsers(dest="command", required=True)
    remind = sub.add_parser("remind", help="send the reminder to the resident on duty")
    remind.add_argument("--message", default=None, help="custom text instead of the template")
    sub.add_parser("status", help="show the dashboard snapshot")
    bootstrap = sub.add_parser("bootstrap-admin", help="create the first superuser")
    bootstrap.add_argument("email")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(_run(args)))
    except DutyError as exc:
        logging.getLogger(__name__).error("%s failed: %s", args.command, exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
