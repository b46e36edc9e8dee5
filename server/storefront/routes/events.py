# Shows and featured artists. Reads are public, writes admin-only.

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.auth import require_admin
from storefront.db.store import Store
from storefront.dependencies import get_store
from storefront.exceptions import NotFoundError
from storefront.ratelimit import RL30, RL100, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import Event, EventUpdate, FeaturedArtist, FeaturedArtistUpdate

router = APIRouter(route_class=GuardedRoute)

_public = [Depends(RateLimit(RL100))]
_admin = [Depends(RateLimit(RL30)), Depends(require_admin)]


# ── Events ───────────────────────────────────────────────────────────────────


@router.get("/events", response_model=list[Event], dependencies=_public)
def list_events(store: Store = Depends(get_store)) -> list[Event]:
    return store.list_events()


@router.get("/event/{event_id}", response_model=Event, dependencies=_public)
def get_event(event_id: int, store: Store = Depends(get_store)) -> Event:
    item = store.get_event(event_id)
    if item is None:
        raise NotFoundError("event", event_id)
    return item


@router.post(
    "/event", response_model=Event, status_code=status.HTTP_201_CREATED, dependencies=_admin
)
def create_event(item: Event, store: Store = Depends(get_store)) -> Event:
    return store.create_event(item)


@router.patch("/event/{event_id}", response_model=Event, dependencies=_admin)
def update_event(event_id: int, patch: EventUpdate, store: Store = Depends(get_store)) -> Event:
    item = store.update_event(event_id, patch)
    if item is None:
        raise NotFoundError("event", event_id)
    return item


@router.delete("/event/{event_id}", dependencies=_admin)
def delete_event(event_id: int, store: Store = Depends(get_store)) -> JSONResponse:
    if not store.delete_event(event_id):
        raise NotFoundError("event", event_id)
    return JSONResponse(status_code=status.HTTP_410_GONE, content="Gone")


# ── Featured artists ─────────────────────────────────────────────────────────


@router.get("/featured_artists", response_model=list[FeaturedArtist], dependencies=_public)
def list_featured_artists(store: Store = Depends(get_store)) -> list[FeaturedArtist]:
    """Featured artists in display order (by sequence)."""
    return store.list_featured_artists()


@router.post(
    "/featured_artist",
    response_model=FeaturedArtist,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
def create_featured_artist(
    featured: FeaturedArtist, store: Store = Depends(get_store)
) -> FeaturedArtist:
    return store.create_featured_artist(featured)


@router.patch(
    "/featured_artist/{featured_id}", response_model=FeaturedArtist, dependencies=_admin
)
def update_featured_artist(
    featured_id: int, patch: FeaturedArtistUpdate, store: Store = Depends(get_store)
) -> FeaturedArtist:
    featured = store.update_featured_artist(featured_id, patch)
    if featured is None:
        raise NotFoundError("featured artist", featured_id)
    return featured


@router.delete("/featured_artist/{featured_id}", dependencies=_admin)
def delete_featured_artist(featured_id: int, store: Store = Depends(get_store)) -> JSONResponse:
    if not store.delete_featured_artist(featured_id):
        raise NotFoundError("featured artist", featured_id)
    return JSONResponse(status_code=status.HTTP_410_GONE, content="Gone")
