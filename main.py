import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import app.models  # ensure models are registered
from app.core import config
from app.core.exceptions import BackOfficeError
from app.utils.database import engine, Base
from app.initial_data import init_seed

from app.routers import (
    accounting_router,
    loan_products_router,
    loans_router,
    members_router,
    membership_router,
    settings_router,
    withdrawals_router,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cooperative Back Office API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackOfficeError)
def back_office_error_handler(request: Request, exc: BackOfficeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.requirement, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
app.include_router(members_router.router)
app.include_router(membership_router.router)
app.include_router(loan_products_router.router)
app.include_router(loans_router.router)
app.include_router(withdrawals_router.router)
app.include_router(accounting_router.router)
app.include_router(settings_router.router)


@app.on_event("startup")
def on_startup():
    # DEV ONLY – OK for now
    Base.metadata.create_all(bind=engine)

    logger.info("🔄 Running initial database seeding…")
    init_seed()
    logger.info("✅ Seeding complete.")


@app.get("/")
def root():
    return {"message": "Cooperative Back Office is running!!", "currency": config.CURRENCY}
