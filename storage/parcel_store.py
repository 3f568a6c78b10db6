import logging
import sys
from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storage.exceptions import NotFoundError, StorageError
from storage.models import Comment, NeighborSet, Parcel
from storage.schemas import CommentRecord, NeighborRecord, ParcelRecord

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

VoteType = Literal["upvote", "downvote"]


class ParcelStore(BaseModel):
    """
    Keyed store for parcels, comments and neighbor sets.

    Every public method opens its own session so the store can be shared
    across worker threads. SQLAlchemy errors surface as StorageError; there
    is no retry here.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_factory: sessionmaker

    # Parcels

    def list_parcels(self) -> list[ParcelRecord]:
        """Parcels with both coordinates present."""
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    select(Parcel)
                    .where(Parcel.latitude.is_not(None), Parcel.longitude.is_not(None))
                    .order_by(Parcel.id)
                ).all()
                return [ParcelRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list parcels: {e}")
            raise StorageError("Failed to list parcels") from e

    def get_parcel(self, parcel_id: int) -> ParcelRecord:
        try:
            with self.session_factory() as session:
                row = session.get(Parcel, parcel_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch parcel {parcel_id}: {e}")
            raise StorageError(f"Failed to fetch parcel {parcel_id}") from e

        if row is None:
            raise NotFoundError("Parcel", parcel_id)
        return ParcelRecord.model_validate(row)

    def add_parcels(self, records: Iterable[ParcelRecord]) -> dict[str, int]:
        """Insert parcels whose id is not stored yet. Existing ids are skipped."""
        records = list(records)
        counts = {"created": 0, "skipped": 0}
        if not records:
            return counts

        try:
            with self.session_factory() as session:
                existing_ids = set(
                    session.scalars(
                        select(Parcel.id).where(Parcel.id.in_([r.id for r in records]))
                    ).all()
                )
                for record in records:
                    if record.id in existing_ids:
                        counts["skipped"] += 1
                        continue
                    session.add(Parcel(**record.model_dump()))
                    existing_ids.add(record.id)
                    counts["created"] += 1
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to add parcel batch: {e}")
            raise StorageError("Failed to add parcels") from e

        return counts

    def clear_parcels(self) -> int:
        """Administrative reset: drop every parcel with its comments and neighbors."""
        try:
            with self.session_factory() as session:
                session.execute(delete(NeighborSet))
                session.execute(delete(Comment))
                result = session.execute(delete(Parcel))
                session.commit()
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Failed to clear parcels: {e}")
            raise StorageError("Failed to clear parcels") from e

    # Comments

    def list_comments(self, parcel_ids: Iterable[int]) -> list[CommentRecord]:
        parcel_ids = list(parcel_ids)
        if not parcel_ids:
            return []
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    select(Comment).where(Comment.parcel_id.in_(parcel_ids))
                ).all()
                return [CommentRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list comments for parcels {parcel_ids}: {e}")
            raise StorageError("Failed to list comments") from e

    def count_comments(self, parcel_ids: Iterable[int]) -> int:
        parcel_ids = list(parcel_ids)
        if not parcel_ids:
            return 0
        try:
            with self.session_factory() as session:
                return session.scalar(
                    select(func.count(Comment.id)).where(
                        Comment.parcel_id.in_(parcel_ids)
                    )
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to count comments for parcels {parcel_ids}: {e}")
            raise StorageError("Failed to count comments") from e

    def create_comment(
        self, parcel_id: int, author_id: int, content: str
    ) -> CommentRecord:
        try:
            with self.session_factory() as session:
                if session.get(Parcel, parcel_id) is None:
                    raise NotFoundError("Parcel", parcel_id)
                comment = Comment(
                    parcel_id=parcel_id, author_id=author_id, content=content
                )
                session.add(comment)
                session.commit()
                session.refresh(comment)
                return CommentRecord.model_validate(comment)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create comment on parcel {parcel_id}: {e}")
            raise StorageError("Failed to create comment") from e

    def add_comments(self, comments: Iterable[dict]) -> int:
        """Bulk insert for seeding; each dict may carry vote counts and created_at."""
        comments = list(comments)
        if not comments:
            return 0
        try:
            with self.session_factory() as session:
                session.add_all([Comment(**comment) for comment in comments])
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to add {len(comments)} comments: {e}")
            raise StorageError("Failed to add comments") from e
        return len(comments)

    def vote(self, comment_id: int, vote_type: VoteType) -> CommentRecord:
        """Increment one vote counter in a single UPDATE so concurrent votes never overwrite each other."""
        if vote_type == "upvote":
            column = Comment.upvotes
        elif vote_type == "downvote":
            column = Comment.downvotes
        else:
            raise ValueError(f"Invalid vote type: {vote_type}")

        try:
            with self.session_factory() as session:
                result = session.execute(
                    update(Comment)
                    .where(Comment.id == comment_id)
                    .values({column: column + 1})
                )
                if result.rowcount == 0:
                    session.rollback()
                    raise NotFoundError("Comment", comment_id)
                session.commit()
                return CommentRecord.model_validate(session.get(Comment, comment_id))
        except SQLAlchemyError as e:
            logger.error(f"Failed to {vote_type} comment {comment_id}: {e}")
            raise StorageError(f"Failed to {vote_type} comment") from e

    # Neighbor sets

    def get_neighbor_ids(self, parcel_id: int) -> list[int]:
        """Nearest-first neighbor ids, or an empty list when none were built."""
        try:
            with self.session_factory() as session:
                row = session.get(NeighborSet, parcel_id)
                return list(row.neighbor_ids) if row else []
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch neighbors for parcel {parcel_id}: {e}")
            raise StorageError("Failed to fetch neighbors") from e

    def upsert_neighbors(
        self, parcel_id: int, neighbor_ids: list[int]
    ) -> Literal["created", "updated"]:
        try:
            with self.session_factory() as session:
                row = session.get(NeighborSet, parcel_id)
                if row is None:
                    session.add(
                        NeighborSet(parcel_id=parcel_id, neighbor_ids=list(neighbor_ids))
                    )
                    outcome = "created"
                else:
                    row.neighbor_ids = list(neighbor_ids)
                    outcome = "updated"
                session.commit()
                return outcome
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to upsert neighbors for parcel {parcel_id}") from e

    def list_neighbor_sets(self) -> list[NeighborRecord]:
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    select(NeighborSet).order_by(NeighborSet.parcel_id)
                ).all()
                return [NeighborRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list neighbor sets: {e}")
            raise StorageError("Failed to list neighbor sets") from e
