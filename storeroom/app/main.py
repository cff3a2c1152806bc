import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeroom.app.api.v1.router import router as v1_router
from storeroom.app.core.config import settings
from storeroom.services.errors import PersistenceFailure, StoreError

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(v1_router, prefix=settings.API_V1_STR)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if isinstance(exc, PersistenceFailure):
        logger.error("%s %s: transaction aborted (%s)", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def body_validation_handler(request: Request, exc: RequestValidationError):
    # même contrat que ValidationError : 400, pas le 422 par défaut
    logger.info("%s %s -> 400: invalid payload", request.method, request.url.path)
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
