import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from geo.distance import haversine_km_many
from storage.schemas import ParcelRecord
from utils.tiny_file_handler import load_json_file

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)


class NeighborBuildReport(BaseModel):
    total: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    failed_ids: list[int] = Field(default_factory=list)


class NeighborIndexBuilder(BaseModel):
    """
    Offline batch job that stores, for every parcel with coordinates, the ids
    of its ``top_k`` nearest parcels by great-circle distance.

    Brute force: each parcel is measured against the full coordinate set, so
    a full run is O(n^2). Batches run one after another; parcels inside a
    batch are handled on a thread pool. A failure on one parcel is logged and
    counted without touching the others.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    store: Any
    top_k: int = 10
    batch_size: int = 100
    max_workers: int = 8

    _ids: np.ndarray = PrivateAttr(default=None)
    _lats: np.ndarray = PrivateAttr(default=None)
    _lons: np.ndarray = PrivateAttr(default=None)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        try:
            config = load_json_file("config.json")
            neighbor_config = config.get("neighbors", {})
            for key in ("top_k", "batch_size", "max_workers"):
                if key not in kwargs and key in neighbor_config:
                    setattr(self, key, int(neighbor_config[key]))
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load neighbor config, using defaults: {e}")

        if self.top_k < 0 or self.batch_size < 1 or self.max_workers < 1:
            raise ValueError(
                "top_k must be >= 0 and batch_size/max_workers must be >= 1"
            )

    def _load_coordinates(self, parcels: list[ParcelRecord]) -> list[ParcelRecord]:
        indexed = [p for p in parcels if p.has_coordinates]
        skipped = len(parcels) - len(indexed)
        if skipped:
            logger.info(f"Skipping {skipped} parcels without coordinates")

        # Duplicate ids would make a parcel its own neighbor
        unique = {p.id: p for p in indexed}
        indexed = sorted(unique.values(), key=lambda p: p.id)

        self._ids = np.array([p.id for p in indexed], dtype=np.int64)
        self._lats = np.array([p.latitude for p in indexed], dtype=float)
        self._lons = np.array([p.longitude for p in indexed], dtype=float)
        return indexed

    def nearest_neighbors(self, parcel: ParcelRecord) -> list[int]:
        """Ids of the closest other parcels, nearest first, ties by id ascending."""
        distances = haversine_km_many(
            parcel.latitude, parcel.longitude, self._lats, self._lons
        )
        others = self._ids != parcel.id
        candidate_ids = self._ids[others]
        candidate_distances = distances[others]

        # lexsort keys are applied last-to-first: distance, then id
        order = np.lexsort((candidate_ids, candidate_distances))
        return [int(i) for i in candidate_ids[order][: self.top_k]]

    def _process_parcel(self, parcel: ParcelRecord) -> str:
        neighbor_ids = self.nearest_neighbors(parcel)
        return self.store.upsert_neighbors(parcel.id, neighbor_ids)

    def build(self, parcels: list[ParcelRecord]) -> NeighborBuildReport:
        """Compute and upsert the neighbor set of every parcel with coordinates."""
        indexed = self._load_coordinates(parcels)
        report = NeighborBuildReport(total=len(indexed))

        if not indexed:
            logger.info("No parcels with coordinates found; nothing to index.")
            return report

        logger.info(
            f"Calculating {self.top_k} nearest neighbors for {len(indexed)} parcels"
        )
        num_batches = (len(indexed) + self.batch_size - 1) // self.batch_size

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for batch_number, start in enumerate(
                range(0, len(indexed), self.batch_size), start=1
            ):
                batch = indexed[start : start + self.batch_size]
                future_to_parcel = {
                    executor.submit(self._process_parcel, parcel): parcel
                    for parcel in batch
                }

                for future in as_completed(future_to_parcel):
                    parcel = future_to_parcel[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        logger.error(f"Error processing parcel {parcel.id}: {e}")
                        report.failed += 1
                        report.failed_ids.append(parcel.id)
                        continue

                    report.processed += 1
                    if outcome == "created":
                        report.created += 1
                    else:
                        report.updated += 1

                logger.info(f"Completed batch {batch_number} / {num_batches}")

        report.failed_ids.sort()
        logger.info(
            f"Neighbor index complete: processed={report.processed} "
            f"created={report.created} updated={report.updated} failed={report.failed}"
        )
        return report
