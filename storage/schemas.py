"""Pydantic records handed out by the store and serialized by the API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class RecordBase(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


class ParcelRecord(RecordBase):
    id: int
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    address: Optional[str] = None
    vacant_flag: Optional[str] = None
    vacant_rank: Optional[float] = None
    zipcode: Optional[str] = None
    council_district: Optional[str] = None
    zoning_base_district: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class CommentRecord(RecordBase):
    id: int
    parcel_id: int
    author_id: int
    content: str
    upvotes: int = 0
    downvotes: int = 0
    created_at: datetime

    @computed_field(alias="netScore")
    @property
    def net_score(self) -> int:
        return self.upvotes - self.downvotes


class NeighborRecord(RecordBase):
    parcel_id: int
    neighbor_ids: list[int]
