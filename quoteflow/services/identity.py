"""Identity oracle answering ownership questions for negotiation calls."""

from __future__ import annotations

from sqlalchemy.orm import Session

from quoteflow.core.exceptions import AuthorizationError
from quoteflow.models.project import Advisor, Project


class IdentityOracle:
    """Ownership checks backed by the project and advisor ledger rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def controls_project(self, user_id: str, project_id: str) -> bool:
        project = self.db.get(Project, project_id)
        return project is not None and project.owner_id == user_id

    def is_consultant(self, user_id: str, advisor_id: str | None) -> bool:
        if advisor_id is None:
            return False
        advisor = self.db.get(Advisor, advisor_id)
        return advisor is not None and advisor.user_id == user_id

    def require_project_owner(self, user_id: str, project_id: str) -> None:
        if not self.controls_project(user_id, project_id):
            raise AuthorizationError("Not authorized - must be project owner.")

    def require_consultant(self, user_id: str, advisor_id: str | None) -> None:
        if not self.is_consultant(user_id, advisor_id):
            raise AuthorizationError("Not authorized - must be the consultant for this negotiation.")
