from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for persisted records: snake_case attributes, camelCase on the wire and in Mongo."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(CamelModel):
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str # ISO country code


PLACEHOLDER_ADDRESS = {
    "line1": "Address to be updated",
    "city": "Singapore",
    "postal_code": "000000",
    "country": "SG",
}
