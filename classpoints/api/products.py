from fastapi import APIRouter, Depends, Query

from classpoints.api.deps import get_services, require_teacher
from classpoints.schemas.common import ok
from classpoints.schemas.products import ProductBatchStatus, ProductCreate, ProductUpdate
from classpoints.services.container import ServiceContainer

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
def list_products(
    active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    services: ServiceContainer = Depends(get_services),
):
    products = services.products.list(active=active, search=search)
    return ok({"products": [product.to_json() for product in products], "total": len(products)})


@router.get("/statistics", dependencies=[Depends(require_teacher)])
def statistics(services: ServiceContainer = Depends(get_services)):
    return ok(services.products.statistics())


@router.post("/batch-status", dependencies=[Depends(require_teacher)])
def batch_status(payload: ProductBatchStatus, services: ServiceContainer = Depends(get_services)):
    return ok(services.products.batch_status(payload.product_ids, payload.is_active), message="Batch update finished")


@router.get("/{product_id}")
def get_product(product_id: str, services: ServiceContainer = Depends(get_services)):
    return ok(services.products.get(product_id).to_json())


@router.get("/{product_id}/stock")
def check_stock(
    product_id: str,
    quantity: int = Query(1, ge=1, le=1000),
    services: ServiceContainer = Depends(get_services),
):
    return ok(services.products.check_stock(product_id, quantity))


@router.post("", status_code=201, dependencies=[Depends(require_teacher)])
def create_product(payload: ProductCreate, services: ServiceContainer = Depends(get_services)):
    product = services.products.create(
        payload.name, payload.price, payload.stock, payload.description, payload.image_url
    )
    return ok(product.to_json(), message="Product created")


@router.put("/{product_id}", dependencies=[Depends(require_teacher)])
def update_product(product_id: str, payload: ProductUpdate, services: ServiceContainer = Depends(get_services)):
    product = services.products.update(product_id, payload.model_dump(exclude_none=True))
    return ok(product.to_json(), message="Product updated")


@router.delete("/{product_id}", dependencies=[Depends(require_teacher)])
def delete_product(product_id: str, services: ServiceContainer = Depends(get_services)):
    product = services.products.delete(product_id)
    return ok(product.to_json(), message="Product deleted")
