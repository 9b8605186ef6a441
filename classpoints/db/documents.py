from dataclasses import dataclass
from typing import Callable

from classpoints.models import (
    OrdersDocument,
    PointsDocument,
    ProductsDocument,
    StudentsDocument,
    SystemConfig,
    TeachersDocument,
)
from classpoints.models.common import StoredModel


@dataclass(frozen=True)
class Collection:
    name: str
    filename: str
    model: type[StoredModel]
    default: Callable[[], StoredModel]
    # position in the global lock order
    order: int


STUDENTS = Collection("students", "students.json", StudentsDocument, StudentsDocument, 0)
PRODUCTS = Collection("products", "products.json", ProductsDocument, ProductsDocument, 1)
ORDERS = Collection("orders", "orders.json", OrdersDocument, OrdersDocument, 2)
POINTS = Collection("points", "points.json", PointsDocument, PointsDocument, 3)
CONFIG = Collection("config", "config.json", SystemConfig, SystemConfig, 4)
TEACHERS = Collection("teachers", "teachers.json", TeachersDocument, TeachersDocument, 5)

ALL_COLLECTIONS = (STUDENTS, PRODUCTS, ORDERS, POINTS, CONFIG, TEACHERS)
