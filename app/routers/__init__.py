from fastapi import APIRouter

from .device_router import router as device_router
from .enrollment_router import router as enrollment_router
from .events_router import router as events_router

api_router = APIRouter()


api_router.include_router(
   enrollment_router,
   prefix="/api",
   tags=["Enrollment"]
)

api_router.include_router(
   device_router,
   prefix="/api",
   tags=["Capture device"]
)

api_router.include_router(
   events_router,
   tags=["Events"]
)
