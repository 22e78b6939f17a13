"""
Pydantic models for API request/response validation and documentation.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


# Request Models
class SyncRequest(BaseModel):
    """Request model for starting a background price sync."""

    set_id: Optional[str] = Field(None, description="Only sync this set (e.g. 'op-13')")
    card: Optional[str] = Field(None, description="Only sync cards whose id contains this text")
    db_aliases: bool = Field(False, description="Read set aliases from the set_mappings table")
    skip_last_sales: bool = Field(False, description="Do not fetch latest sales")
    debug: bool = Field(False, description="Log every match decision")

    class Config:
        json_schema_extra = {"example": {"set_id": "op-13", "card": None}}


class ConfirmMappingRequest(BaseModel):
    """Human confirmation of a card -> product binding."""

    product_id: int = Field(..., description="TCGplayer product id", gt=0)
    mapped_by: Optional[str] = Field(None, description="Who made the fix")

    class Config:
        json_schema_extra = {"example": {"product_id": 539501, "mapped_by": "admin"}}


# Response Models
class SetSummary(BaseModel):
    id: str
    name: str = ""
    card_count: int = 0
    aliases: List[str] = Field(default_factory=list)


class SetListResponse(BaseModel):
    sets: List[SetSummary]
    total_cards: int


class SyncStartResponse(BaseModel):
    status: str = Field(..., description="'started'")
    message: str


class SyncStatusResponse(BaseModel):
    running: bool
    last_result: Optional[dict] = Field(None, description="Stats of the last finished run")
    last_error: Optional[str] = None


class MappingResponse(BaseModel):
    card_id: str
    tcgplayer_product_id: Optional[int] = None
    manually_mapped: bool
    mapped_by: Optional[str] = None
