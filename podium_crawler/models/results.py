from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class _CamelModel(BaseModel):
    """Persisted and served documents use camelCase keys (``scrapedAt``, ``ageGroup``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class PodiumEntry(_CamelModel):
    rank: str = Field(..., description="Rank as printed on the page, e.g. '1'")
    name: str = Field(..., description="Athlete name, or 'A & B' for a two-person team")
    time: str = Field(..., description="Finish time as printed, e.g. '1:02:10'")


class ResultRecord(_CamelModel):
    key: str = Field(..., description="Composite key: city-year[-doubles]-gender-ageGroup")
    event_name: str
    gender: str
    competition_type: str = Field(..., description="'Solo' or 'Double'")
    year: int
    age_group: str
    source_url: str
    podium: List[PodiumEntry] = Field(default_factory=list, max_length=3)
    scraped_at: str


class CacheSnapshot(_CamelModel):
    scraped_at: Optional[str] = None
    count: int = 0
    records: List[ResultRecord] = Field(default_factory=list)


class RestoreRequest(BaseModel):
    records: List[ResultRecord] = Field(default_factory=list)
