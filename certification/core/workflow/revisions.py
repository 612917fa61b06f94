"""Free-versus-paid revision accounting.

Single source of truth for the revision quota. An application's
``revision_count_current`` only ever grows, by exactly one per revision edge.
"""

from dataclasses import replace

from .models import Application
from .statuses import ApplicationStatus


class RevisionCounter:
    """Counts revisions and decides whether the next one is free."""

    def is_free_revision(self, app: Application) -> bool:
        """
        Whether the revision about to be taken is inside the free quota.

        The revision being requested is the ``revision_count_current + 1``-th,
        so with ``max_free_revisions = 2`` the first and second are free and
        the third is charged.
        """
        return app.revision_count_current + 1 <= app.max_free_revisions

    def remaining_free_revisions(self, app: Application) -> int:
        return max(0, app.max_free_revisions - app.revision_count_current)

    def on_revision_requested(self, app: Application) -> Application:
        """Return ``app`` with the revision count incremented by one."""
        return replace(app, revision_count_current=app.revision_count_current + 1)

    def revision_target(self, app: Application) -> ApplicationStatus:
        """Status a revision edge commits to for this application."""
        if self.is_free_revision(app):
            return ApplicationStatus.REVISION_REQUESTED
        return ApplicationStatus.REJECTED_PAYMENT_REQUIRED
