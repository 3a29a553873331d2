"""Per-instance (shell) or per-request (HTTP) session context."""
from dataclasses import dataclass
from typing import Optional

from secureport.auth.identity import Identity
from secureport.policy import View, resolve_view
from secureport.profiles.schemas import UserProfile


@dataclass(frozen=True)
class SessionContext:
    """
    Everything access decisions depend on. Never mutated: build a new one
    (dataclasses.replace) whenever the identity, profile or view changes.
    """
    identity: Optional[Identity] = None
    profile: Optional[UserProfile] = None
    selected_view: View = View.REPORT

    @property
    def view(self) -> View:
        """The view to render, re-validated against the current profile."""
        if self.identity is None:
            return View.SIGN_IN
        return resolve_view(self.profile, self.selected_view)
