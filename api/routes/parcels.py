from fastapi import APIRouter, Depends

from api.services import get_store
from storage.parcel_store import ParcelStore
from storage.schemas import ParcelRecord

router = APIRouter()


@router.get("/parcels", response_model=list[ParcelRecord])
def list_parcels(store: ParcelStore = Depends(get_store)):
    """Every parcel with coordinates, for the map layer."""
    return store.list_parcels()


@router.get("/parcels/{parcel_id}/neighbors")
def get_neighbors(parcel_id: int, store: ParcelStore = Depends(get_store)):
    """Nearest-first neighbor ids; empty until the neighbor job has run."""
    store.get_parcel(parcel_id)
    return {"neighborIds": store.get_neighbor_ids(parcel_id)}
