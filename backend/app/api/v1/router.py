from fastapi import APIRouter

from app.api.v1 import employees, requests, services

api_router = APIRouter()

api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(services.router, prefix="/services", tags=["services"])
api_router.include_router(requests.router, prefix="/requests", tags=["requests"])
