# src/router/routers.py

from fastapi import FastAPI
from src.auth.auth_controller import router as auth_router
from src.modules.user.user_controller import router as user_router
from src.modules.doctors.doctors_controller import router as doctors_router
from src.modules.patients.patients_controller import router as patients_router
from src.modules.prescriptions.prescriptions_controller import router as prescriptions_router

def include_routers(app: FastAPI) -> None:
    """Include all API routers in the FastAPI application."""
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(doctors_router)
    app.include_router(patients_router)
    app.include_router(prescriptions_router)
