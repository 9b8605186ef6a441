from fastapi import APIRouter

from classpoints.api import auth, config, orders, points, products, sse, students, system

api_router = APIRouter()
api_router.include_router(system.router)
api_router.include_router(auth.router)
api_router.include_router(points.router)
api_router.include_router(students.router)
api_router.include_router(products.router)
api_router.include_router(orders.router)
api_router.include_router(config.router)
api_router.include_router(sse.router)
