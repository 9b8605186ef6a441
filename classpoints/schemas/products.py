from pydantic import Field

from classpoints.schemas.common import RequestModel


class ProductCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: int = Field(..., ge=0, le=100_000)
    stock: int = Field(..., ge=0, le=100_000)
    description: str = Field(default="", max_length=500)
    image_url: str = Field(default="", max_length=500)


class ProductUpdate(RequestModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    price: int | None = Field(default=None, ge=0, le=100_000)
    stock: int | None = Field(default=None, ge=0, le=100_000)
    description: str | None = Field(default=None, max_length=500)
    image_url: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class ProductBatchStatus(RequestModel):
    product_ids: list[str] = Field(..., min_length=1, max_length=50)
    is_active: bool
