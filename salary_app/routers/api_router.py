from fastapi import APIRouter
from salary_app.routers import salary_structures

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(salary_structures.router, tags=["Salary Structures"])
