# Product and event images. Upload/delete are admin-only; downloads public.

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse, Response

from storefront.auth import require_admin
from storefront.config import Settings
from storefront.dependencies import get_image_store, get_settings_dep
from storefront.exceptions import ImageError
from storefront.ratelimit import RL10, RL100, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import ImageUploadResponse
from storefront.services.images import ImageStore

router = APIRouter(route_class=GuardedRoute)

_admin = [Depends(RateLimit(RL10)), Depends(require_admin)]


@router.post(
    "/image",
    response_model=ImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
async def upload_image(
    image: UploadFile | None = File(None),
    key: str = Form(""),
    images: ImageStore = Depends(get_image_store),
    settings: Settings = Depends(get_settings_dep),
) -> ImageUploadResponse:
    """Multipart upload: `image` (JPEG file) stored under `key`."""
    if image is None:
        raise ImageError("IMAGE_FILE_ERROR")
    # One byte past the cap is enough to reject; never buffer a huge upload.
    data = await image.read(settings.max_image_bytes + 1)
    name = await images.upload(key, data)
    return ImageUploadResponse(key=key, object_name=name, url=images.public_url(key))


@router.get("/image/{key}", dependencies=[Depends(RateLimit(RL100))])
async def download_image(key: str, images: ImageStore = Depends(get_image_store)) -> Response:
    data = await images.download(key)
    return Response(content=data, media_type="image/jpeg")


@router.delete("/image/{key}", dependencies=_admin)
async def delete_image(key: str, images: ImageStore = Depends(get_image_store)) -> JSONResponse:
    await images.delete(key)
    return JSONResponse(status_code=status.HTTP_410_GONE, content="Gone")
