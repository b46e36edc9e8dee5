from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.auth import require_admin
from storefront.db.store import Store
from storefront.dependencies import get_store
from storefront.exceptions import NotFoundError
from storefront.ratelimit import RL30, RL100, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import Artist, ArtistUpdate

router = APIRouter(route_class=GuardedRoute)

_public = [Depends(RateLimit(RL100))]
_admin = [Depends(RateLimit(RL30)), Depends(require_admin)]


@router.get("/artists", response_model=list[Artist], dependencies=_public)
def list_artists(store: Store = Depends(get_store)) -> list[Artist]:
    return store.list_artists()


@router.get("/artist/{artist_id}", response_model=Artist, dependencies=_public)
def get_artist(artist_id: int, store: Store = Depends(get_store)) -> Artist:
    artist = store.get_artist(artist_id)
    if artist is None:
        raise NotFoundError("artist", artist_id)
    return artist


@router.post(
    "/artist", response_model=Artist, status_code=status.HTTP_201_CREATED, dependencies=_admin
)
def create_artist(artist: Artist, store: Store = Depends(get_store)) -> Artist:
    return store.create_artist(artist)


@router.patch("/artist/{artist_id}", response_model=Artist, dependencies=_admin)
def update_artist(
    artist_id: int, patch: ArtistUpdate, store: Store = Depends(get_store)
) -> Artist:
    artist = store.update_artist(artist_id, patch)
    if artist is None:
        raise NotFoundError("artist", artist_id)
    return artist


@router.delete("/artist/{artist_id}", dependencies=_admin)
def delete_artist(artist_id: int, store: Store = Depends(get_store)) -> JSONResponse:
    if not store.delete_artist(artist_id):
        raise NotFoundError("artist", artist_id)
    return JSONResponse(status_code=status.HTTP_410_GONE, content="Gone")
