"""CLI interface for the certification workflow."""

import sys
from typing import List, Optional
from uuid import UUID

from .common.logger import setup_logger
from .core.config import get_settings
from .core.workflow.errors import WorkflowError
from .db.session import get_session_factory, init_db
from .db.store import SqlWorkflowStore
from .services.workflow import build_dispatcher

USAGE = """Usage: python -m certification <command>

Commands:
  init-db                    Create the database tables
  dispatch [limit]           Deliver pending outbound messages
  history <application_id>   Print the status history of an application
"""


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the certification CLI."""
    args = sys.argv[1:] if argv is None else argv
    if not args or args[0] in ("-h", "--help"):
        print(USAGE, file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logger(settings)
    command = args[0]

    if command == "init-db":
        init_db()
        print("Database tables created")
        return 0

    store = SqlWorkflowStore(get_session_factory())

    if command == "dispatch":
        limit = int(args[1]) if len(args) > 1 else settings.dispatch_batch_size
        report = build_dispatcher(store, settings).dispatch_pending(limit=limit)
        print(f"Delivered: {report.delivered}")
        print(f"Retrying: {report.retrying}")
        print(f"Failed: {report.failed}")
        return 0 if report.failed == 0 else 2

    if command == "history":
        if len(args) < 2:
            print("Usage: python -m certification history <application_id>", file=sys.stderr)
            return 1
        try:
            application_id = UUID(args[1])
            store.get_application(application_id)
            history = store.list_history(application_id)
        except ValueError:
            print(f"Error: invalid application id {args[1]!r}", file=sys.stderr)
            return 1
        except WorkflowError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        for entry in history:
            from_status = entry.from_status.value if entry.from_status else "-"
            line = f"{entry.sequence:>3}  {entry.changed_at:%Y-%m-%dT%H:%M:%S}  {from_status} -> {entry.to_status.value}  ({entry.changed_by})"
            if entry.reason:
                line += f"  {entry.reason}"
            print(line)
        return 0

    print(f"Unknown command: {command}\n", file=sys.stderr)
    print(USAGE, file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
