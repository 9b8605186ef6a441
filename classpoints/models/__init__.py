from classpoints.models.order import Order, OrdersDocument, OrderStatus
from classpoints.models.point_record import PointRecord, PointsDocument, RecordKind
from classpoints.models.product import Product, ProductsDocument
from classpoints.models.student import Student, StudentsDocument
from classpoints.models.system_config import SystemConfig
from classpoints.models.teacher import TeacherAccount, TeachersDocument

__all__ = [
    "Order",
    "OrdersDocument",
    "OrderStatus",
    "PointRecord",
    "PointsDocument",
    "RecordKind",
    "Product",
    "ProductsDocument",
    "Student",
    "StudentsDocument",
    "SystemConfig",
    "TeacherAccount",
    "TeachersDocument",
]
