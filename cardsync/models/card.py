"""
Catalog records produced by the publisher-site scraper.
"""

from enum import Enum
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ArtStyle(str, Enum):
    """Print treatment of a card or marketplace product."""

    standard = "standard"
    alternate = "alternate"
    manga = "manga"
    super_alt = "super"
    red_super = "red-super"
    wanted = "wanted"
    treasure = "treasure"
    full_art = "full-art"
    jolly_roger = "jolly-roger"
    reprint = "reprint"


class Card(BaseModel):
    """One printing/variant of a card. Read-only for the sync pipeline."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(..., description="Card id, e.g. 'OP13-118' or 'OP13-118_p4'")
    base_id: str = Field(..., alias="baseId", description="Physical card number shared by all variants")
    set_id: str = Field("", alias="setId")
    name: str = ""
    is_parallel: bool = Field(False, alias="isParallel")
    art_style: Optional[ArtStyle] = Field(None, alias="artStyle")
    variant_code: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("variantCode", "variant", "variant_code"),
    )

    @field_validator("art_style", mode="before")
    @classmethod
    def _unknown_style_is_none(cls, value):
        # Scraper may emit styles this pipeline does not know about
        if value is None or isinstance(value, ArtStyle):
            return value
        try:
            return ArtStyle(str(value).lower())
        except ValueError:
            return None


class CardSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    cards: List[Card] = Field(default_factory=list)


class Catalog(BaseModel):
    """The whole catalog file: `{"sets": [...], "lastUpdated": "..."}`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sets: List[CardSet] = Field(default_factory=list)
    last_updated: Optional[str] = Field(None, alias="lastUpdated")

    @property
    def card_count(self) -> int:
        return sum(len(s.cards) for s in self.sets)
