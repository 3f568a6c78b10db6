"""Pipeline step runners, one module per stage."""

import logging
import sys

from storage.database import create_db_engine, create_session_factory, init_db
from storage.parcel_store import ParcelStore

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)


def open_store(config: dict) -> ParcelStore:
    """Connect to the configured database, creating tables on first use.

    Called internally by every step that reads or writes parcels.
    """
    engine = create_db_engine(config.get("database_url"))
    init_db(engine)
    logger.info(f"Using database {engine.url.render_as_string(hide_password=True)}")
    return ParcelStore(session_factory=create_session_factory(engine))
