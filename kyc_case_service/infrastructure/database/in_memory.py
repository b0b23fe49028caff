# In-process repositories, selected with CASE_STORE_BACKEND=memory and used by the API tests
import asyncio
import datetime
import logging
from typing import Dict, List, Optional

from kyc_case_service.app.models import CaseDB, PartyDB
from kyc_case_service.app.service.exceptions import CaseNotFoundError, PartyNotFoundError, VersionConflictError
from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository, AbstractPartyRepository

logger = logging.getLogger(__name__)


class InMemoryCaseRepository(AbstractCaseRepository):
    def __init__(self):
        self._cases: Dict[str, CaseDB] = {}
        self._lock = asyncio.Lock()

    async def load_case(self, case_id: str) -> CaseDB:
        case = self._cases.get(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)
        return case.model_copy(deep=True)

    async def save_case(self, case: CaseDB) -> CaseDB:
        async with self._lock:
            current = self._cases.get(case.case_id)
            if current is None:
                raise CaseNotFoundError(case.case_id)
            if current.version != case.version:
                raise VersionConflictError(case.case_id, case.version, current.version)
            saved = case.model_copy(deep=True, update={
                "version": case.version + 1,
                "updated_at": datetime.datetime.now(datetime.UTC),
            })
            self._cases[case.case_id] = saved
        return saved.model_copy(deep=True)

    async def create_case(self, case: CaseDB) -> CaseDB:
        async with self._lock:
            self._cases[case.case_id] = case.model_copy(deep=True)
        return case

    async def delete_case(self, case_id: str) -> None:
        async with self._lock:
            if self._cases.pop(case_id, None) is None:
                raise CaseNotFoundError(case_id)

    async def list_cases(self, limit: int = 50, skip: int = 0, status: Optional[str] = None) -> List[CaseDB]:
        cases = [c for c in self._cases.values() if status is None or c.status == status]
        cases.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in cases[skip:skip + limit]]


class InMemoryPartyRepository(AbstractPartyRepository):
    def __init__(self, parties: Optional[List[PartyDB]] = None):
        self._parties: Dict[str, PartyDB] = {p.party_id: p for p in (parties or [])}

    async def load_party_catalog(self) -> List[PartyDB]:
        return sorted(self._parties.values(), key=lambda p: p.name)

    async def get_party(self, party_id: str) -> PartyDB:
        party = self._parties.get(party_id)
        if party is None:
            raise PartyNotFoundError(party_id)
        return party

    async def get_parties(self, party_ids: List[str]) -> List[PartyDB]:
        return [self._parties[pid] for pid in party_ids if pid in self._parties]

    async def find_party_by_name(self, name: str) -> Optional[PartyDB]:
        wanted = name.strip().lower()
        return next((p for p in self._parties.values() if p.name.lower() == wanted), None)

    async def save_party(self, party: PartyDB) -> PartyDB:
        self._parties[party.party_id] = party
        return party
