from __future__ import annotations

from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from quoteflow.models import Advisor, Base, Project, Proposal, ProposalLineItem, ProposalVersion
from quoteflow.services.line_item_ledger import LineItemLedger
from quoteflow.services.proposal_service import ProposalService
from quoteflow.services.versioning_service import LineItemDraft

OWNER_ID = "owner-user-1"
CONSULTANT_USER_ID = "consultant-user-1"

DEFAULT_ITEMS = (
    LineItemDraft(name="Core build", unit_price=Decimal("8000.00"), category="build"),
    LineItemDraft(name="Extended support", unit_price=Decimal("2000.00"), category="support", is_optional=True),
)


@dataclass
class SeededProposal:
    project: Project
    advisor: Advisor
    proposal: Proposal
    version: ProposalVersion
    items: list[ProposalLineItem]

    def item(self, name: str) -> ProposalLineItem:
        return next(item for item in self.items if item.name == name)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'quoteflow_test.db'}")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def db_session_override(session_factory):
    """Replacement for database.db.get_db_session bound to the test database."""

    @contextmanager
    def _get_db_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    return _get_db_session


@pytest.fixture
def seed_proposal(db) -> Callable[..., SeededProposal]:
    def _seed(
        line_items=DEFAULT_ITEMS,
        price: Decimal = Decimal("10000.00"),
        project: Project | None = None,
        advisor: Advisor | None = None,
        timeline_days: int = 30,
    ) -> SeededProposal:
        if project is None:
            project = Project(name="Office fit-out", owner_id=OWNER_ID)
            db.add(project)
        if advisor is None:
            advisor = Advisor(company_name="Acme Consulting", user_id=CONSULTANT_USER_ID)
            db.add(advisor)
        db.commit()

        proposal = ProposalService(db=db).submit_proposal(
            project_id=project.id,
            advisor_id=advisor.id,
            price=price,
            timeline_days=timeline_days,
            line_items=line_items,
            supplier_name="Acme",
            created_by=CONSULTANT_USER_ID,
        )
        version = db.get(ProposalVersion, proposal.current_version_id)
        items = LineItemLedger(db=db).list_for_version(proposal.id)
        return SeededProposal(project=project, advisor=advisor, proposal=proposal, version=version, items=items)

    return _seed
