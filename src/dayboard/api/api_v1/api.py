from fastapi import APIRouter

from dayboard.api.api_v1.endpoints import billing, routines, subscription

api_router = APIRouter()
api_router.include_router(routines.router, prefix="/routines", tags=["routines"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
api_router.include_router(billing.router, prefix="/stripe", tags=["billing"])
