from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from storefront.auth import SessionStore, sign_in
from storefront.db.store import Store
from storefront.dependencies import get_sessions, get_store
from storefront.ratelimit import RL5, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import SessionToken

router = APIRouter(route_class=GuardedRoute)

# auto_error=False: missing credentials get the same 401 challenge as bad ones
_basic = HTTPBasic(auto_error=False)


@router.post(
    "/signin",
    response_model=SessionToken,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(RateLimit(RL5))],
)
async def signin(
    credentials: HTTPBasicCredentials | None = Depends(_basic),
    store: Store = Depends(get_store),
    sessions: SessionStore = Depends(get_sessions),
) -> SessionToken:
    """Exchange Basic credentials for a bearer token valid for one hour."""
    # bcrypt.checkpw blocks for the full hash cost
    token = await run_in_threadpool(sign_in, store, sessions, credentials)
    return SessionToken(token=token)
