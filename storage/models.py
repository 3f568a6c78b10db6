"""SQLAlchemy models for parcels, resident comments and neighbor sets."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.database import Base


class Parcel(Base):
    """A vacant land parcel loaded from the city's vacancy indicator points."""

    __tablename__ = "parcels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    longitude: Mapped[float | None] = mapped_column(Float)
    latitude: Mapped[float | None] = mapped_column(Float)
    address: Mapped[str | None] = mapped_column(Text)
    vacant_flag: Mapped[str | None] = mapped_column(String(50))
    vacant_rank: Mapped[float | None] = mapped_column(Float)
    zipcode: Mapped[str | None] = mapped_column(String(10))
    council_district: Mapped[str | None] = mapped_column(String(10))
    zoning_base_district: Mapped[str | None] = mapped_column(String(20))

    comments: Mapped[list["Comment"]] = relationship("Comment", back_populates="parcel")

    def __repr__(self) -> str:
        return f"<Parcel {self.id}: {self.address}>"


class Comment(Base):
    """Resident feedback left on a parcel. Vote counts only ever go up."""

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parcel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("parcels.id"), nullable=False, index=True
    )
    author_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, nullable=False
    )

    parcel: Mapped["Parcel"] = relationship("Parcel", back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment {self.id} on parcel {self.parcel_id}>"


class NeighborSet(Base):
    """Nearest parcels for one parcel, nearest first. Rebuilt by the batch job."""

    __tablename__ = "neighbors"

    parcel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("parcels.id"), primary_key=True
    )
    neighbor_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )
