# Merch catalogue. Listing is public; single-product reads and all writes
# are admin-only. Images come from the matching Stripe product.
# Handlers are sync: FastAPI runs them on the threadpool next to the
# blocking Store and Stripe SDK calls.

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.auth import require_admin
from storefront.db.store import Store
from storefront.dependencies import get_gateway, get_store
from storefront.exceptions import NotFoundError
from storefront.ratelimit import RL30, RL100, RateLimit
from storefront.routing import GuardedRoute
from storefront.schemas import Product, ProductUpdate
from storefront.services.payments import StripeGateway

router = APIRouter(route_class=GuardedRoute)

_admin = [Depends(RateLimit(RL30)), Depends(require_admin)]


def _with_image(product: Product, gateway: StripeGateway) -> Product:
    return product.model_copy(update={"image_url": gateway.product_image(product.id)})


@router.get(
    "/products", response_model=list[Product], dependencies=[Depends(RateLimit(RL100))]
)
def list_products(
    store: Store = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
) -> list[Product]:
    return [_with_image(p, gateway) for p in store.list_products()]


@router.get("/product/{product_id}", response_model=Product, dependencies=_admin)
def get_product(
    product_id: str,
    store: Store = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
) -> Product:
    product = store.get_product(product_id)
    if product is None:
        raise NotFoundError("product", product_id)
    return _with_image(product, gateway)


@router.post(
    "/product",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
def create_product(product: Product, store: Store = Depends(get_store)) -> Product:
    return store.create_product(product)


@router.patch("/product/{product_id}", response_model=Product, dependencies=_admin)
def update_product(
    product_id: str, patch: ProductUpdate, store: Store = Depends(get_store)
) -> Product:
    product = store.update_product(product_id, patch)
    if product is None:
        raise NotFoundError("product", product_id)
    return product


@router.delete("/product/{product_id}", dependencies=_admin)
def delete_product(product_id: str, store: Store = Depends(get_store)) -> JSONResponse:
    if not store.delete_product(product_id):
        raise NotFoundError("product", product_id)
    return JSONResponse(status_code=status.HTTP_410_GONE, content="Gone")
