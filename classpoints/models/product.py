from datetime import datetime

from pydantic import Field

from classpoints.models.common import StoredModel, new_id, utcnow


class Product(StoredModel):
    id: str = Field(default_factory=lambda: new_id("product"))
    name: str = Field(..., min_length=1, max_length=100)
    price: int = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    description: str = Field(default="", max_length=500)
    image_url: str = Field(default="", max_length=500)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None


class ProductsDocument(StoredModel):
    products: list[Product] = Field(default_factory=list)

    def find(self, product_id: str) -> Product | None:
        for product in self.products:
            if product.id == product_id:
                return product
        return None
