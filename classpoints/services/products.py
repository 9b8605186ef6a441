from __future__ import annotations

import logging
from typing import Any

from classpoints.core.exceptions import ProductNameExists, ProductNotFound, ValidationError
from classpoints.db.documents import ORDERS, PRODUCTS
from classpoints.db.store import JsonStore
from classpoints.models import Product, ProductsDocument
from classpoints.models.common import utcnow
from classpoints.services.events import EventBus
from classpoints.services.reservations import pending_count

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 5
MAX_BATCH_PRODUCTS = 50

_EDITABLE = ("name", "price", "stock", "description", "image_url", "is_active")


def _name_taken(document: ProductsDocument, name: str, exclude_id: str | None = None) -> bool:
    folded = name.strip().casefold()
    return any(
        product.is_active and product.id != exclude_id and product.name.strip().casefold() == folded
        for product in document.products
    )


class ProductService:
    def __init__(self, store: JsonStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def list(self, active: bool | None = None, search: str | None = None) -> list[Product]:
        products = self.store.read(PRODUCTS).products
        if active is not None:
            products = [product for product in products if product.is_active == active]
        if search:
            keyword = search.strip().casefold()
            products = [
                product
                for product in products
                if keyword in product.name.casefold() or keyword in product.description.casefold()
            ]
        return sorted(products, key=lambda product: product.created_at, reverse=True)

    def get(self, product_id: str) -> Product:
        product = self.store.read(PRODUCTS).find(product_id)
        if product is None:
            raise ProductNotFound(details={"productId": product_id})
        return product

    def create(
        self,
        name: str,
        price: int,
        stock: int,
        description: str = "",
        image_url: str = "",
    ) -> Product:
        name = name.strip()
        if not name:
            raise ValidationError("Product name is required", code="INVALID_PRODUCT_NAME")

        with self.store.transaction(PRODUCTS):
            document = self.store.read(PRODUCTS)
            if _name_taken(document, name):
                raise ProductNameExists(details={"name": name})
            product = Product(
                name=name,
                price=price,
                stock=stock,
                description=description.strip(),
                image_url=image_url.strip(),
            )
            document.products.append(product)
            self.store.write(PRODUCTS, document)

        logger.info("Created product %s (%s) price=%s stock=%s", product.name, product.id, price, stock)
        self.bus.product_updated("created", product.to_json())
        return product

    def update(self, product_id: str, changes: dict[str, Any]) -> Product:
        changes = {key: value for key, value in changes.items() if key in _EDITABLE and value is not None}
        if not changes:
            raise ValidationError("Nothing to update", code="NO_UPDATE_DATA")
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("Product name is required", code="INVALID_PRODUCT_NAME")

        with self.store.transaction(PRODUCTS):
            document = self.store.read(PRODUCTS)
            product = document.find(product_id)
            if product is None:
                raise ProductNotFound(details={"productId": product_id})
            becomes_active = changes.get("is_active", product.is_active)
            name = changes.get("name", product.name)
            if becomes_active and _name_taken(document, name, exclude_id=product_id):
                raise ProductNameExists(details={"name": name})
            for key, value in changes.items():
                setattr(product, key, value)
            product.updated_at = utcnow()
            self.store.write(PRODUCTS, document)

        logger.info("Updated product %s: %s", product_id, ", ".join(sorted(changes)))
        self.bus.product_updated("updated", product.to_json())
        return product

    def delete(self, product_id: str) -> Product:
        with self.store.transaction(PRODUCTS):
            document = self.store.read(PRODUCTS)
            product = document.find(product_id)
            if product is None:
                raise ProductNotFound(details={"productId": product_id})
            product.is_active = False
            product.updated_at = utcnow()
            self.store.write(PRODUCTS, document)

        logger.info("Deactivated product %s (%s)", product.name, product.id)
        self.bus.product_updated("deleted", product.to_json())
        return product

    def batch_status(self, product_ids: list[str], is_active: bool) -> dict[str, Any]:
        if not product_ids:
            raise ValidationError("Product ids are required", code="INVALID_PRODUCT_IDS")
        if len(product_ids) > MAX_BATCH_PRODUCTS:
            raise ValidationError(
                f"At most {MAX_BATCH_PRODUCTS} products per batch", code="TOO_MANY_PRODUCTS"
            )

        updated, failed = [], []
        with self.store.transaction(PRODUCTS):
            document = self.store.read(PRODUCTS)
            for product_id in product_ids:
                product = document.find(product_id)
                if product is None:
                    failed.append({"productId": product_id, "code": ProductNotFound.code})
                    continue
                if is_active and not product.is_active and _name_taken(document, product.name, exclude_id=product.id):
                    failed.append({"productId": product_id, "code": ProductNameExists.code})
                    continue
                product.is_active = is_active
                product.updated_at = utcnow()
                updated.append(product)
            if updated:
                self.store.write(PRODUCTS, document)

        for product in updated:
            self.bus.product_updated("updated", product.to_json())
        logger.info("Batch status %s: %s updated, %s failed", is_active, len(updated), len(failed))
        return {
            "succeeded": [product.to_json() for product in updated],
            "failed": failed,
            "successCount": len(updated),
            "failedCount": len(failed),
        }

    def check_stock(self, product_id: str, quantity: int = 1) -> dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be positive", code="INVALID_QUANTITY")
        product = self.get(product_id)
        reserved = pending_count(self.store.read(ORDERS), product_id)
        available = max(0, product.stock - reserved)
        return {
            "productId": product.id,
            "name": product.name,
            "isActive": product.is_active,
            "stock": product.stock,
            "reserved": reserved,
            "available": available,
            "quantity": quantity,
            "sufficient": product.is_active and available >= quantity,
        }

    def statistics(self) -> dict[str, Any]:
        products = self.store.read(PRODUCTS).products
        active = [product for product in products if product.is_active]
        return {
            "total": len(products),
            "active": len(active),
            "inactive": len(products) - len(active),
            "outOfStock": sum(1 for product in active if product.stock == 0),
            "lowStock": sum(1 for product in active if 0 < product.stock <= LOW_STOCK_THRESHOLD),
            "totalValue": sum(product.price * product.stock for product in active),
        }
