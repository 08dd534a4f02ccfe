import enum
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


SEARCH_PATH = "/api/v2/search"
DEFAULT_PAGE_SIZE = 100


class MatchingMethod(enum.StrEnum):
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTSWITH"
    EXACT = "EXACT"
    TAG_PATH = "TAGPATH"


class SearchCondition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    value: str
    matching_method: MatchingMethod = Field(
        default=MatchingMethod.EXACT, alias="matchingMethod"
    )
    negative: bool = False


class SearchSort(BaseModel):
    field: str
    ascending: bool = True


class SearchParams(BaseModel):
    """Request body of a search call"""

    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    query: list[SearchCondition] = Field(default_factory=list)
    sort: SearchSort | None = None


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[Any] = Field(default_factory=list)
    more_items: bool = Field(default=False, alias="moreItems")


class SearchEnvelope(BaseModel):
    response: SearchResult


@dataclass(frozen=True)
class SearchPage:
    items: list[Any]
    """Raw JSON items, decoded by the caller into its own entity type
    """
    more_items: bool
    next_offset: int
