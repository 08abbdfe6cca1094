from fastapi import APIRouter
from app.api.v1.endpoints import admin, analytics, parcels, reports, vessels, voyage_allocations

api_router = APIRouter()

# Register resource routes
api_router.include_router(vessels.router, prefix="/vessels", tags=["vessels"])
api_router.include_router(parcels.router, prefix="/parcels", tags=["parcels"])
api_router.include_router(voyage_allocations.router, prefix="/voyage-allocations", tags=["voyage-allocations"])

# Reporting and operations
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
