from abc import ABC, abstractmethod
from typing import List, Optional

from kyc_case_service.app.models import CaseDB, PartyDB


class AbstractCaseRepository(ABC):
    @abstractmethod
    async def load_case(self, case_id: str) -> CaseDB:
        """
        Loads a case by id.

        Raises:
            CaseNotFoundError: no case with this id exists.
        """
        pass

    @abstractmethod
    async def save_case(self, case: CaseDB) -> CaseDB:
        """
        Persists `case` if the stored version still equals `case.version`.

        Returns the saved case with its version incremented by one.

        Raises:
            CaseNotFoundError: the case no longer exists.
            VersionConflictError: another writer saved the case since it was loaded.
        """
        pass

    @abstractmethod
    async def create_case(self, case: CaseDB) -> CaseDB:
        pass

    @abstractmethod
    async def delete_case(self, case_id: str) -> None:
        pass

    @abstractmethod
    async def list_cases(self, limit: int = 50, skip: int = 0, status: Optional[str] = None) -> List[CaseDB]:
        pass


class AbstractPartyRepository(ABC):
    @abstractmethod
    async def load_party_catalog(self) -> List[PartyDB]:
        """Returns every party known to the system."""
        pass

    @abstractmethod
    async def get_party(self, party_id: str) -> PartyDB:
        """
        Raises:
            PartyNotFoundError: no party with this id exists.
        """
        pass

    @abstractmethod
    async def get_parties(self, party_ids: List[str]) -> List[PartyDB]:
        """Returns the parties that exist among `party_ids`; unknown ids are skipped."""
        pass

    @abstractmethod
    async def find_party_by_name(self, name: str) -> Optional[PartyDB]:
        """Case-insensitive exact match on the party name."""
        pass

    @abstractmethod
    async def save_party(self, party: PartyDB) -> PartyDB:
        pass
