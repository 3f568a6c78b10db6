"""Process-wide store and summary orchestrator shared by all route handlers."""

from comment_aggregator.summary_orchestrator import SummaryOrchestrator
from storage.database import create_db_engine, create_session_factory, init_db
from storage.parcel_store import ParcelStore

_store: ParcelStore | None = None
_orchestrator: SummaryOrchestrator | None = None


def init_services(database_url: str | None = None) -> None:
    """
    Create the engine, tables, store and orchestrator.
    Called once from the FastAPI lifespan startup.
    """
    global _store, _orchestrator
    engine = create_db_engine(database_url)
    init_db(engine)
    _store = ParcelStore(session_factory=create_session_factory(engine))
    _orchestrator = SummaryOrchestrator(store=_store)


def close_services() -> None:
    global _store, _orchestrator
    _store = None
    _orchestrator = None


def get_store() -> ParcelStore:
    """FastAPI dependency. Raises if init_services() was never called."""
    if _store is None:
        raise RuntimeError("Parcel store not initialised; call init_services() at startup")
    return _store


def get_orchestrator() -> SummaryOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("Summary orchestrator not initialised; call init_services() at startup")
    return _orchestrator
