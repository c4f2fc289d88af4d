import os
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.endpoints import auth
from app.api.endpoints import records
from app.core import errors
from app.core.config import settings
from app.db.session import init_db

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title="Child Health Booklet API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

app.add_exception_handler(errors.ApiError, errors.api_error_handler)
app.add_exception_handler(HTTPException, errors.http_error_handler)
app.add_exception_handler(RequestValidationError, errors.request_validation_handler)
app.add_exception_handler(Exception, errors.unhandled_error_handler)

# Include API routes
app.include_router(auth.router, prefix=f"{settings.API_V1_STR}/auth", tags=["auth"])
app.include_router(records.router, prefix=f"{settings.API_V1_STR}/records", tags=["records"])


@app.get(f"{settings.API_V1_STR}/health")
async def health(db: AsyncSession = Depends(deps.get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"success": False, "status": "unhealthy", "database": "disconnected", "error": str(e)},
        )
    return {"success": True, "status": "healthy", "database": "connected"}


if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 5001))

    logger.info(f"Starting application at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
