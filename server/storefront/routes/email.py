from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.dependencies import get_mailer
from storefront.ratelimit import RL5, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import EmailRequest
from storefront.services.email import Mailer

router = APIRouter(route_class=GuardedRoute)


@router.post("/email", dependencies=[Depends(RateLimit(RL5))])
async def send_email(body: EmailRequest, mailer: Mailer = Depends(get_mailer)) -> JSONResponse:
    """Relay a booking inquiry from the contact form."""
    await mailer.send_inquiry(body)
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content="message sent")
