from fastapi import APIRouter

from tourledger.routers import analytics, forecast, health, invoices, trip_batches, trips

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(trip_batches.router, prefix="/trip-batches", tags=["Trip Batches"])
api_router.include_router(invoices.router, prefix="/trip-batches", tags=["Invoices"])
api_router.include_router(trips.router, tags=["Trips"])
api_router.include_router(forecast.router, prefix="/forecast", tags=["Forecast"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
