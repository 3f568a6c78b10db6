"""Step 02 — Build Neighbors: recompute every parcel's nearest-parcel list."""

import logging
import sys

from geo.neighbor_index import NeighborBuildReport, NeighborIndexBuilder
from steps import open_store

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

STAGE = "build_neighbors"


def run(config: dict) -> NeighborBuildReport:
    """Full batch rebuild; safe to re-run after a partial failure."""
    store = open_store(config)
    parcels = store.list_parcels()

    if not parcels:
        logger.warning("No parcels with coordinates found! Load parcels first.")
        return NeighborBuildReport()

    logger.info(f"Found {len(parcels)} parcels with coordinates")
    builder = NeighborIndexBuilder(store=store)
    report = builder.build(parcels)

    total_neighbor_sets = len(store.list_neighbor_sets())
    logger.info(f"Total neighbor records in database: {total_neighbor_sets}")
    return report
