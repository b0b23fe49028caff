# Pydantic models for case notification events
from pydantic import BaseModel, Field
from typing import List, Optional
import datetime
import uuid


class EventMetaData(BaseModel):
    correlation_id: Optional[str] = None
    causation_id: Optional[str] = None # command_id of the command that produced the event
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None


class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str # To be overridden by specific events
    aggregate_id: str # case_id, or party_id for party events
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    version: int = 1 # Aggregate version after the change
    payload: BaseModel
    metadata: EventMetaData = Field(default_factory=EventMetaData)
    payload_model_name: Optional[str] = None


# --- Payloads ---
class CaseCreatedEventPayload(BaseModel):
    entity_name: str
    entity_type: str
    risk_level: str
    status: str

class CaseStatusChangedEventPayload(BaseModel):
    action: str
    previous_status: str
    new_status: str
    risk_level: str
    details: Optional[str] = None

class CaseDeletedEventPayload(BaseModel):
    deleted_by: str

class SubmissionStatusChangedEventPayload(BaseModel):
    requirement_id: str
    submission_id: str
    previous_status: Optional[str] = None
    new_status: str

class SubmissionsExpiredEventPayload(BaseModel):
    submission_ids: List[str]

class PartyLinkedEventPayload(BaseModel):
    party_id: str
    relationship_type: str
    is_primary: bool

class AccountChangedEventPayload(BaseModel):
    account_id: str
    previous_status: Optional[str] = None
    new_status: str

class DocumentRequirementsDeterminedEventPayload(BaseModel):
    requirement_ids: List[str]


# --- Events ---
class CaseCreatedEvent(BaseEvent):
    event_type: str = "CaseCreated"
    payload: CaseCreatedEventPayload
    payload_model_name: str = "CaseCreatedEventPayload"

class CaseStatusChangedEvent(BaseEvent):
    event_type: str = "CaseStatusChanged"
    payload: CaseStatusChangedEventPayload
    payload_model_name: str = "CaseStatusChangedEventPayload"

class CaseDeletedEvent(BaseEvent):
    event_type: str = "CaseDeleted"
    payload: CaseDeletedEventPayload
    payload_model_name: str = "CaseDeletedEventPayload"

class SubmissionStatusChangedEvent(BaseEvent):
    event_type: str = "SubmissionStatusChanged"
    payload: SubmissionStatusChangedEventPayload
    payload_model_name: str = "SubmissionStatusChangedEventPayload"

class SubmissionsExpiredEvent(BaseEvent):
    event_type: str = "SubmissionsExpired"
    payload: SubmissionsExpiredEventPayload
    payload_model_name: str = "SubmissionsExpiredEventPayload"

class PartyLinkedEvent(BaseEvent):
    event_type: str = "PartyLinked"
    payload: PartyLinkedEventPayload
    payload_model_name: str = "PartyLinkedEventPayload"

class AccountChangedEvent(BaseEvent):
    event_type: str = "AccountChanged"
    payload: AccountChangedEventPayload
    payload_model_name: str = "AccountChangedEventPayload"

class DocumentRequirementsDeterminedEvent(BaseEvent):
    event_type: str = "DocumentRequirementsDetermined"
    payload: DocumentRequirementsDeterminedEventPayload
    payload_model_name: str = "DocumentRequirementsDeterminedEventPayload"
