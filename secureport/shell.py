"""
Application shell.

Holds the state a front end renders from and turns user commands into
backend calls:

- SessionContext: immutable (identity, profile, selected view) triple,
  replaced wholesale on sign-in, sign-out and profile reload
- Auth events: the identity provider pushes SignedIn / SignedOut onto a
  queue; `run()` (or `process_pending()`) is the single consumer and handles
  one event to completion before taking the next
- Commands return Ok(value) | Err(kind, message). An Err never changes the
  current view; it only raises an error notification that disappears after
  `settings.notification_seconds`

Drive the shell either with `run()` as a background task or by calling
`process_pending()` after commands, never both.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from secureport.auth.context import SessionContext
from secureport.auth.identity import AuthEvent, Identity, SignedIn, SignedOut
from secureport.config import settings
from secureport.errors import AppError, AuthorizationError, Err, ErrorKind, Ok, Result, capture
from secureport.policy import (
    Permission,
    View,
    available_views,
    can_manage_users,
    can_view_aggregate_reports,
    check_permission,
)
from secureport.profiles.schemas import UserProfile
from secureport.reports.csv_export import export_filename, export_reports_csv
from secureport.reports.filters import filter_reports
from secureport.reports.schemas import ReportFilter, ReportFormData, SecurityReport
from secureport.services import IncidentBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    kind: str  # "success" | "error"
    message: str
    shown_at: float

    def visible(self, now: float) -> bool:
        return now - self.shown_at < settings.notification_seconds


@dataclass
class DashboardState:
    reports: list[SecurityReport] = field(default_factory=list)
    filters: ReportFilter = field(default_factory=ReportFilter)

    @property
    def filtered(self) -> list[SecurityReport]:
        return filter_reports(self.reports, self.filters)


class ApplicationShell:
    def __init__(self, backend: IncidentBackend, clock: Callable[[], float] = time.monotonic):
        self.backend = backend
        self.clock = clock
        self.context = SessionContext()
        self.dashboard = DashboardState()
        self.users: list[UserProfile] = []
        self.is_submitting = False
        self._notification: Optional[Notification] = None
        self._events = backend.identity.subscribe()
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Restore an existing session (if any) and preload visible reports."""
        identity = await self.backend.identity.get_current_identity()
        if identity is not None:
            self.context = await self._context_for(identity)
            if can_view_aggregate_reports(self.context.profile):
                await self.refresh_reports(announce=False)

    async def run(self) -> None:
        """Consume auth events forever; cancel the task to stop."""
        self._running = True
        try:
            while True:
                event = await self._events.get()
                try:
                    await self._handle(event)
                finally:
                    self._events.task_done()
        finally:
            self._running = False

    async def process_pending(self) -> None:
        """Handle every queued auth event, in order, then return."""
        if self._running:
            raise RuntimeError("process_pending() cannot be used while run() is consuming events")
        while not self._events.empty():
            event = self._events.get_nowait()
            try:
                await self._handle(event)
            finally:
                self._events.task_done()

    async def _handle(self, event: AuthEvent) -> None:
        if isinstance(event, SignedIn):
            try:
                self.context = await self._context_for(event.session.identity)
            except AppError as exc:
                logger.warning("Profile load failed after sign-in kind=%s", exc.kind.value)
                self.context = SessionContext(identity=event.session.identity)
                self._notify("error", exc.message)
            logger.info("Signed in identity_id=%s view=%s", event.session.identity.id, self.context.view.value)
        elif isinstance(event, SignedOut):
            self.context = SessionContext()
            self.dashboard = DashboardState()
            self.users = []
            logger.info("Signed out")

    async def _context_for(self, identity: Identity, selected: View = View.REPORT) -> SessionContext:
        profile = await self.backend.load_profile(identity.id)
        return SessionContext(identity=identity, profile=profile, selected_view=selected)

    async def reload_profile(self) -> Optional[UserProfile]:
        """Re-read the current profile so role changes apply from the next render."""
        if self.context.identity is None:
            return None
        self.context = await self._context_for(self.context.identity, self.context.selected_view)
        return self.context.profile

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    @property
    def view(self) -> View:
        return self.context.view

    @property
    def navigation(self) -> list[View]:
        if self.context.identity is None:
            return [View.SIGN_IN]
        return available_views(self.context.profile)

    def notification(self, now: Optional[float] = None) -> Optional[Notification]:
        """The notification to display right now, if any."""
        note = self._notification
        if note is None:
            return None
        if not note.visible(self.clock() if now is None else now):
            self._notification = None
            return None
        return note

    def _notify(self, kind: str, message: str) -> None:
        self._notification = Notification(kind=kind, message=message, shown_at=self.clock())

    async def _command(
        self,
        action: Awaitable[Any],
        success_message: Optional[str] = None,
    ) -> Result:
        result = await capture(action)
        if isinstance(result, Err):
            logger.info("Command failed kind=%s", result.kind.value)
            self._notify("error", result.message)
        elif success_message:
            self._notify("success", success_message)
        return result

    def _require_profile(self) -> UserProfile:
        if self.context.profile is None:
            raise AuthorizationError("Complete your profile first")
        return self.context.profile

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> Result:
        return await self._command(self.backend.identity.sign_up(email, password))

    async def sign_in(self, email: str, password: str) -> Result:
        return await self._command(self.backend.identity.sign_in(email, password))

    async def sign_out(self) -> Result:
        return await self._command(self.backend.identity.sign_out())

    async def complete_profile(self, role: Any, region: Any) -> Result:
        async def action() -> UserProfile:
            if self.context.identity is None:
                raise AuthorizationError("Sign in first")
            profile = await self.backend.setup_profile(self.context.identity, role, region)
            self.context = replace(self.context, profile=profile, selected_view=View.REPORT)
            return profile

        return await self._command(action())

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def select_view(self, view: View) -> Result:
        if view not in self.navigation:
            return Err(ErrorKind.authorization, f"View '{view.value}' is not available")
        self.context = replace(self.context, selected_view=view)
        return Ok(view)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def submit_report(self, form: ReportFormData) -> Result:
        async def action() -> SecurityReport:
            submitter = self._require_profile()
            self.is_submitting = True
            try:
                report = await self.backend.submit_report(form, submitter)
            finally:
                self.is_submitting = False
            if can_view_aggregate_reports(submitter):
                self.dashboard.reports = [report] + self.dashboard.reports
                self.context = replace(self.context, selected_view=View.DASHBOARD)
            return report

        return await self._command(action(), "Security report submitted successfully!")

    async def refresh_reports(self, announce: bool = True) -> Result:
        """
        Reload the dashboard. The profile is re-read first; a viewer that has
        lost aggregate access gets an empty list and no backend query.
        """
        async def action() -> list[SecurityReport]:
            profile = await self.reload_profile()
            if not can_view_aggregate_reports(profile):
                self.dashboard.reports = []
                return []
            self.dashboard.reports = await self.backend.fetch_reports(profile)
            return self.dashboard.reports

        if not can_view_aggregate_reports(self.context.profile):
            return Ok([])
        return await self._command(action(), "Reports refreshed successfully!" if announce else None)

    def set_filters(self, flt: ReportFilter) -> list[SecurityReport]:
        self.dashboard.filters = flt
        return self.dashboard.filtered

    def export_csv(self, today: Optional[date] = None) -> Result:
        """CSV of the loaded dashboard reports as (filename, text)."""
        try:
            check_permission(self.context.profile, Permission.EXPORT_REPORTS)
        except AuthorizationError as exc:
            self._notify("error", exc.message)
            return Err(exc.kind, exc.message)
        text = export_reports_csv(self.dashboard.reports)
        self._notify("success", "Reports exported to CSV successfully!")
        return Ok((export_filename(today or date.today()), text))

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def load_users(self) -> Result:
        async def action() -> list[UserProfile]:
            self.users = await self.backend.list_users(self._require_profile())
            return self.users

        return await self._command(action())

    async def _after_user_change(self, target_id: str) -> None:
        if self.context.identity is not None and target_id == self.context.identity.id:
            await self.reload_profile()
        if can_manage_users(self.context.profile):
            self.users = await self.backend.list_users(self.context.profile)
        else:
            self.users = []

    async def create_user(self, email: str, password: str, role: Any, region: Any = None) -> Result:
        async def action() -> UserProfile:
            created = await self.backend.create_user(self._require_profile(), email, password, role, region)
            await self._after_user_change(created.id)
            return created

        return await self._command(action(), "User created successfully!")

    async def update_user(self, target_id: str, role: Any, region: Any = None) -> Result:
        async def action() -> UserProfile:
            updated = await self.backend.update_user(self._require_profile(), target_id, role, region)
            await self._after_user_change(target_id)
            return updated

        return await self._command(action(), "User updated successfully!")

    async def delete_user(self, target_id: str) -> Result:
        async def action() -> None:
            await self.backend.delete_user(self._require_profile(), target_id)
            await self._after_user_change(target_id)

        return await self._command(action(), "User deleted successfully!")
