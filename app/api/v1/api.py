# app/api/v1/api.py
from fastapi import APIRouter

from app.api.v1.endpoints import leads, sequences, audit

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(leads.router, prefix="/leads")
api_router_v1.include_router(sequences.router, prefix="/sequences")
api_router_v1.include_router(audit.router, prefix="/audit")
