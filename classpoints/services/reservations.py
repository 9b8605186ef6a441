from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from classpoints.core.exceptions import (
    DuplicateReservation,
    InsufficientPoints,
    InvalidOrderStatus,
    OrderNotFound,
    OutOfStock,
    ProductInactive,
    ProductNotFound,
    StudentNotFound,
)
from classpoints.db.documents import ORDERS, POINTS, PRODUCTS, STUDENTS
from classpoints.db.store import JsonStore
from classpoints.models import Order, OrdersDocument, OrderStatus, RecordKind
from classpoints.models.common import utcnow
from classpoints.services.events import EventBus
from classpoints.services.ledger import Ledger

logger = logging.getLogger(__name__)


def pending_count(orders: OrdersDocument, product_id: str) -> int:
    return sum(1 for order in orders.orders if order.is_pending and order.product_id == product_id)


class ReservationEngine:
    """Order state machine: pending -> confirmed | cancelled."""

    def __init__(self, store: JsonStore, ledger: Ledger, bus: EventBus):
        self.store = store
        self.ledger = ledger
        self.bus = bus

    def reserve(self, student_id: str, product_id: str) -> Order:
        with self.store.transaction(STUDENTS, PRODUCTS, ORDERS):
            students = self.store.read(STUDENTS)
            student = students.find(student_id)
            if student is None:
                raise StudentNotFound(details={"studentId": student_id})

            product = self.store.read(PRODUCTS).find(product_id)
            if product is None:
                raise ProductNotFound(details={"productId": product_id})
            if not product.is_active:
                raise ProductInactive(details={"productId": product_id})

            orders = self.store.read(ORDERS)
            available = product.stock - pending_count(orders, product_id)
            if available <= 0:
                raise OutOfStock(details={"productId": product_id, "stock": product.stock})
            if student.balance < product.price:
                raise InsufficientPoints(
                    details={"required": product.price, "balance": student.balance}
                )
            for order in orders.orders:
                if order.is_pending and order.student_id == student_id and order.product_id == product_id:
                    raise DuplicateReservation(details={"orderId": order.id})

            order = Order(
                student_id=student_id,
                product_id=product_id,
                price=product.price,
                product_name=product.name,
            )
            # freeze: not recorded in the ledger until confirmation
            student.balance -= product.price
            orders.orders.append(order)
            self.store.write(ORDERS, orders)
            self.store.write(STUDENTS, students)
            balance = student.balance

        logger.info("Order %s reserved: %s -> %s for %s points", order.id, student_id, product_id, order.price)
        self.bus.order_updated("created", order.to_json())
        self.bus.points_updated(
            {"studentId": student_id, "points": -order.price, "newBalance": balance, "type": "freeze", "orderId": order.id}
        )
        return order

    def confirm(self, order_id: str, operator_id: str) -> Order:
        with self.store.transaction(STUDENTS, PRODUCTS, ORDERS, POINTS):
            orders = self.store.read(ORDERS)
            order = orders.find(order_id)
            if order is None:
                raise OrderNotFound(details={"orderId": order_id})
            if not order.is_pending:
                raise InvalidOrderStatus(details={"orderId": order_id, "status": order.status.value})

            products = self.store.read(PRODUCTS)
            product = products.find(order.product_id)
            if product is None or not product.is_active:
                raise ProductNotFound(details={"productId": order.product_id})
            if product.stock < 1:
                raise OutOfStock(details={"productId": product.id, "stock": product.stock})

            if self.store.read(STUDENTS).find(order.student_id) is None:
                raise StudentNotFound(details={"studentId": order.student_id})

            if order.price > 0:
                # the balance was already lowered at reserve time, so skip the projection
                self.ledger.append(
                    order.student_id,
                    -order.price,
                    f"purchase {order.product_name or product.name}",
                    operator_id,
                    RecordKind.PURCHASE,
                    project_balance=False,
                )

            product.stock -= 1
            product.updated_at = utcnow()
            order.status = OrderStatus.CONFIRMED
            order.confirmed_at = utcnow()
            self.store.write(PRODUCTS, products)
            self.store.write(ORDERS, orders)

        logger.info("Order %s confirmed by %s, %s stock now %s", order_id, operator_id, product.id, product.stock)
        self.bus.order_updated("confirmed", order.to_json())
        self.bus.product_updated("updated", product.to_json())
        return order

    def cancel(self, order_id: str, operator_id: str | None = None) -> Order:
        with self.store.transaction(STUDENTS, ORDERS):
            orders = self.store.read(ORDERS)
            order = orders.find(order_id)
            if order is None:
                raise OrderNotFound(details={"orderId": order_id})
            if not order.is_pending:
                raise InvalidOrderStatus(details={"orderId": order_id, "status": order.status.value})

            students = self.store.read(STUDENTS)
            student = students.find(order.student_id)
            balance = None
            if student is None:
                logger.warning("Cancelling order %s of deleted student %s", order_id, order.student_id)
            else:
                student.balance += order.price
                balance = student.balance

            order.status = OrderStatus.CANCELLED
            order.cancelled_at = utcnow()
            self.store.write(ORDERS, orders)
            if student is not None:
                self.store.write(STUDENTS, students)

        logger.info("Order %s cancelled by %s", order_id, operator_id or "system")
        self.bus.order_updated("cancelled", order.to_json())
        if balance is not None:
            self.bus.points_updated(
                {"studentId": order.student_id, "points": order.price, "newBalance": balance, "type": "unfreeze", "orderId": order.id}
            )
        return order

    def get(self, order_id: str) -> Order:
        order = self.store.read(ORDERS).find(order_id)
        if order is None:
            raise OrderNotFound(details={"orderId": order_id})
        return order

    def list(self, status: OrderStatus | None = None, student_id: str | None = None) -> list[Order]:
        orders = [
            order
            for order in self.store.read(ORDERS).orders
            if (status is None or order.status == status) and (student_id is None or order.student_id == student_id)
        ]
        orders.sort(key=lambda order: order.reserved_at, reverse=True)
        return orders

    def details(self, order: Order) -> dict[str, Any]:
        student = self.store.read(STUDENTS).find(order.student_id)
        product = self.store.read(PRODUCTS).find(order.product_id)
        data = order.to_json()
        data["student"] = (
            {"id": student.id, "name": student.name, "class": student.class_name, "balance": student.balance}
            if student
            else None
        )
        data["product"] = (
            {"id": product.id, "name": product.name, "price": product.price, "stock": product.stock, "isActive": product.is_active}
            if product
            else None
        )
        return data

    def pending_with_details(self) -> list[dict[str, Any]]:
        return [self.details(order) for order in self.list(status=OrderStatus.PENDING)]

    def frozen_of(self, student_id: str) -> int:
        return sum(order.price for order in self.store.read(ORDERS).pending() if order.student_id == student_id)

    def statistics(self, now: datetime | None = None) -> dict[str, Any]:
        orders = self.store.read(ORDERS).orders
        now = now or utcnow()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = now - timedelta(days=7)
        counts = {status: 0 for status in OrderStatus}
        for order in orders:
            counts[order.status] += 1
        return {
            "total": len(orders),
            "pending": counts[OrderStatus.PENDING],
            "confirmed": counts[OrderStatus.CONFIRMED],
            "cancelled": counts[OrderStatus.CANCELLED],
            "todayOrders": sum(1 for order in orders if order.reserved_at >= day_start),
            "weekOrders": sum(1 for order in orders if order.reserved_at >= week_start),
            "frozenPoints": sum(order.price for order in orders if order.is_pending),
        }
