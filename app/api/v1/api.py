from fastapi import APIRouter
from app.api.v1.endpoints import attendance, shifts, biometric, location, notifications

api_router = APIRouter()

# Register routes
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(shifts.router, prefix="/shifts", tags=["Shifts"])
api_router.include_router(biometric.router, prefix="/biometric", tags=["Biometric"])
api_router.include_router(location.router, prefix="/location", tags=["Location"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
