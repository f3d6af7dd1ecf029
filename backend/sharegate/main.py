import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sharegate.api.api_v1.api import api_router
from sharegate.api.api_v1.endpoints import downloads
from sharegate.core.config import settings
from sharegate.core.errors import ERROR_MESSAGES, ErrorCategory, InternalError, ShareError, generate_error_id
from sharegate.db.base import Base
from sharegate.db.session import engine

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
# Public download endpoint lives at the root, next to the link pages it serves
app.include_router(downloads.router, tags=["downloads"])

@app.get("/")
def read_root():
    return {"message": "Welcome to Sharegate API"}

@app.exception_handler(ShareError)
async def share_error_handler(request: Request, exc: ShareError):
    if isinstance(exc, InternalError):
        logger.error(
            "Internal error [%s] on %s %s: %s",
            exc.error_id, request.method, request.url.path, exc.message,
            exc_info=exc.original_error,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = generate_error_id()
    logger.error("Unhandled error [%s] on %s %s", error_id, request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": ERROR_MESSAGES[ErrorCategory.INTERNAL_ERROR],
            "reason": ErrorCategory.INTERNAL_ERROR.value,
            "errorId": error_id,
        },
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation Error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"message": "Validation Error", "detail": jsonable_encoder(exc.errors())},
    )

@app.on_event("startup")
async def startup_event():
    # Create tables for development (in production use migrations)
    Base.metadata.create_all(bind=engine)
    logger.debug("Registered Routes:")
    for route in app.routes:
        if hasattr(route, "path"):
            logger.debug("  %s", route.path)

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8899)
