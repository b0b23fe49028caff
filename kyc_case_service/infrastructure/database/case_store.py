# Case and party persistence on MongoDB (Motor)
import datetime
import logging
import re
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from kyc_case_service.app.models import CaseDB, PartyDB
from kyc_case_service.app.service.exceptions import CaseNotFoundError, PartyNotFoundError, VersionConflictError
from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository, AbstractPartyRepository

logger = logging.getLogger(__name__)

CASES_COLLECTION = "cases"
PARTIES_COLLECTION = "parties"


def _to_document(model) -> dict:
    # camelCase keys and JSON-safe values, matching the HTTP representation
    return model.model_dump(mode="json", by_alias=True)


class MongoCaseRepository(AbstractCaseRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[CASES_COLLECTION]

    async def ensure_indexes(self):
        await self.collection.create_index([("caseId", ASCENDING)], unique=True)
        await self.collection.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])

    async def load_case(self, case_id: str) -> CaseDB:
        doc = await self.collection.find_one({"caseId": case_id})
        if doc is None:
            raise CaseNotFoundError(case_id)
        return CaseDB.model_validate(doc)

    async def save_case(self, case: CaseDB) -> CaseDB:
        saved = case.model_copy(update={
            "version": case.version + 1,
            "updated_at": datetime.datetime.now(datetime.UTC),
        })
        result = await self.collection.replace_one(
            {"caseId": case.case_id, "version": case.version},
            _to_document(saved),
        )
        if result.matched_count == 0:
            current = await self.collection.find_one({"caseId": case.case_id}, {"version": 1})
            if current is None:
                raise CaseNotFoundError(case.case_id)
            logger.warning(f"Version conflict saving case {case.case_id}: expected {case.version}, found {current.get('version')}.")
            raise VersionConflictError(case.case_id, case.version, current.get("version"))
        logger.info(f"Case {case.case_id} saved at version {saved.version}.")
        return saved

    async def create_case(self, case: CaseDB) -> CaseDB:
        await self.collection.insert_one(_to_document(case))
        logger.info(f"Case {case.case_id} created.")
        return case

    async def delete_case(self, case_id: str) -> None:
        result = await self.collection.delete_one({"caseId": case_id})
        if result.deleted_count == 0:
            raise CaseNotFoundError(case_id)
        logger.info(f"Case {case_id} deleted.")

    async def list_cases(self, limit: int = 50, skip: int = 0, status: Optional[str] = None) -> List[CaseDB]:
        query = {"status": status} if status else {}
        cursor = self.collection.find(query).sort("createdAt", DESCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [CaseDB.model_validate(doc) for doc in docs]


class MongoPartyRepository(AbstractPartyRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[PARTIES_COLLECTION]

    async def ensure_indexes(self):
        await self.collection.create_index([("partyId", ASCENDING)], unique=True)
        await self.collection.create_index([("name", ASCENDING)])

    async def load_party_catalog(self) -> List[PartyDB]:
        docs = await self.collection.find({}).sort("name", ASCENDING).to_list(length=None)
        return [PartyDB.model_validate(doc) for doc in docs]

    async def get_party(self, party_id: str) -> PartyDB:
        doc = await self.collection.find_one({"partyId": party_id})
        if doc is None:
            raise PartyNotFoundError(party_id)
        return PartyDB.model_validate(doc)

    async def get_parties(self, party_ids: List[str]) -> List[PartyDB]:
        docs = await self.collection.find({"partyId": {"$in": list(party_ids)}}).to_list(length=None)
        return [PartyDB.model_validate(doc) for doc in docs]

    async def find_party_by_name(self, name: str) -> Optional[PartyDB]:
        doc = await self.collection.find_one({"name": {"$regex": f"^{re.escape(name.strip())}$", "$options": "i"}})
        return PartyDB.model_validate(doc) if doc else None

    async def save_party(self, party: PartyDB) -> PartyDB:
        saved = party.model_copy(update={"updated_at": datetime.datetime.now(datetime.UTC)})
        await self.collection.replace_one({"partyId": party.party_id}, _to_document(saved), upsert=True)
        logger.info(f"Party {party.party_id} upserted.")
        return saved
