# routers/__init__.py
from fastapi import APIRouter

from . import assembly, auth, bins, locations, qc, users

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(assembly.router)
api_router.include_router(qc.router)
api_router.include_router(bins.router)
api_router.include_router(locations.router)
