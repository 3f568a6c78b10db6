"""Step 01 — Load Parcels: bulk load vacancy indicator points into the store."""

import logging
import sys

import pandas as pd
from pydantic import ValidationError

from steps import open_store
from storage.schemas import ParcelRecord
from utils.tiny_file_handler import load_json_file

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

STAGE = "load_parcels"
BATCH_SIZE = 100

PROPERTY_COLUMNS = {
    "properties.objectid": "id",
    "properties.address": "address",
    "properties.vacant_flag": "vacant_flag",
    "properties.vacant_rank": "vacant_rank",
    "properties.zipcode": "zipcode",
    "properties.councildistrict": "council_district",
    "properties.zoningbasedistrict": "zoning_base_district",
}
TEXT_FIELDS = {"address", "vacant_flag", "zipcode", "council_district", "zoning_base_district"}


def _as_text(value):
    if value is None:
        return None
    # Numeric columns with gaps come back from pandas as floats
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() or None


def _coordinate(coords, index: int):
    # GeoJSON points are [longitude, latitude]
    if isinstance(coords, (list, tuple)) and len(coords) >= 2:
        return coords[index]
    return None


def parse_parcel_features(features: list[dict]) -> tuple[list[ParcelRecord], int]:
    """Turn GeoJSON point features into parcel records.

    Returns:
        (records, error_count) where errors are features without a usable id.
    """
    if not features:
        return [], 0

    df = pd.json_normalize(features)
    coords = df["geometry.coordinates"] if "geometry.coordinates" in df else pd.Series(
        [None] * len(df)
    )
    df["longitude"] = coords.apply(lambda c: _coordinate(c, 0))
    df["latitude"] = coords.apply(lambda c: _coordinate(c, 1))

    df = df.rename(columns=PROPERTY_COLUMNS)
    df = df.reindex(columns=list(PROPERTY_COLUMNS.values()) + ["longitude", "latitude"])
    df = df.astype(object).where(pd.notna(df), None)

    records = []
    errors = 0
    for row in df.to_dict(orient="records"):
        row = {
            key: _as_text(value) if key in TEXT_FIELDS else value
            for key, value in row.items()
        }
        try:
            records.append(ParcelRecord(**row))
        except ValidationError as e:
            logger.error(f"Skipping feature with objectid {row.get('id')}: {e.error_count()} errors")
            errors += 1

    return records, errors


def run(config: dict) -> dict:
    """Read the GeoJSON file and insert parcels that are not stored yet."""
    geojson_path = config.get("parcels_geojson", "Vacant_Indicators_Points.geojson")

    geojson = load_json_file(geojson_path)
    if not geojson:
        raise FileNotFoundError(f"Parcel file not found or empty: {geojson_path}")

    features = geojson.get("features", [])
    logger.info(f"Found {len(features)} features to process")

    records, errors = parse_parcel_features(features)
    store = open_store(config)

    totals = {"created": 0, "skipped": 0, "errors": errors}
    for start in range(0, len(records), BATCH_SIZE):
        counts = store.add_parcels(records[start : start + BATCH_SIZE])
        totals["created"] += counts["created"]
        totals["skipped"] += counts["skipped"]
        logger.info(
            f"Processed {min(start + BATCH_SIZE, len(records))} / {len(records)} parcels..."
        )

    logger.info(
        f"Parcel upload complete: {totals['created']} created, "
        f"{totals['skipped']} skipped (already exists), {totals['errors']} errors"
    )
    return totals
