from fastapi import APIRouter
from app.api.v1.endpoints import attendance, events, schedules, flags, network

api_router = APIRouter()

# Register routes
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["Schedules"])
api_router.include_router(flags.router, prefix="/flags", tags=["Integrity Flags"])
api_router.include_router(network.router, prefix="/network", tags=["Network"])
