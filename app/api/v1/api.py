from fastapi import APIRouter

from app.api.v1.endpoints import admin, bookings, dashboard, lessons, ratings, tutors

api_router = APIRouter()

api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(lessons.router, prefix="/lessons", tags=["lessons"])
api_router.include_router(ratings.router, prefix="/ratings", tags=["ratings"])
api_router.include_router(tutors.router, prefix="/tutors", tags=["tutors"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
