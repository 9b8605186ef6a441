from datetime import datetime
from enum import Enum

from pydantic import Field

from classpoints.models.common import StoredModel, new_id, utcnow


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Order(StoredModel):
    id: str = Field(default_factory=lambda: new_id("order"))
    student_id: str
    product_id: str
    status: OrderStatus = OrderStatus.PENDING
    price: int = Field(..., ge=0)
    product_name: str = ""
    reserved_at: datetime = Field(default_factory=utcnow)
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING


class OrdersDocument(StoredModel):
    orders: list[Order] = Field(default_factory=list)

    def find(self, order_id: str) -> Order | None:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def pending(self) -> list[Order]:
        return [order for order in self.orders if order.is_pending]
