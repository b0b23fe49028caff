from .base import CamelModel, Address
from .case_db import (
    CaseDB, EntityData, CasePartyLink, AccountDB, CaseDocumentLink,
    Submission, Comment, ActivityLog,
)
from .party_db import PartyDB
from .user import User, SYSTEM_USER

__all__ = [
    "CamelModel",
    "Address",
    "CaseDB",
    "EntityData",
    "CasePartyLink",
    "AccountDB",
    "CaseDocumentLink",
    "Submission",
    "Comment",
    "ActivityLog",
    "PartyDB",
    "User",
    "SYSTEM_USER",
]
