import datetime
import uuid
from typing import Optional, List

from pydantic import Field

from .base import CamelModel, Address, PLACEHOLDER_ADDRESS
from .enums import PartyType, ResidencyStatus


class PartyDB(CamelModel): # A person or organisation referenced by one or more cases
    party_id: str = Field(default_factory=lambda: f"P-{uuid.uuid4().hex[:10].upper()}")
    name: str
    type: PartyType = PartyType.INDIVIDUAL

    # Individual-specific
    residency_status: Optional[ResidencyStatus] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    occupation: Optional[str] = None
    employer: Optional[str] = None

    # Corporate-specific
    registration_number: Optional[str] = None
    incorporation_country: Optional[str] = None

    email: Optional[str] = None
    phone: Optional[str] = None
    address: Address = Field(default_factory=lambda: Address(**PLACEHOLDER_ADDRESS))

    is_pep: bool = Field(default=False, alias="isPEP")
    is_sanctioned: bool = False
    risk_score: Optional[int] = None
    risk_factors: List[str] = Field(default_factory=list)

    source_of_wealth: Optional[str] = None
    source_of_funds: Optional[str] = None

    created_by: str = "System"
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
