import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import router
from backend.core.config import config
from backend.core.tracing_config import init_tracing
from backend.database.db import NeonDatabase

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("intake_api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_tracing()
    logger.info("[brand] whitelisted brands: %s", list(config.BRANDS))
    if NeonDatabase.is_configured():
        NeonDatabase.init()
    else:
        logger.info("DATABASE_URL not set, persistence disabled")
    yield
    await NeonDatabase.dispose()


app = FastAPI(title="Legal Intake Assistant API", lifespan=lifespan)

# Add CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "status": "online",
        "message": "Legal Intake Assistant API is running",
        "timestamp": str(datetime.utcnow()),
        "endpoints": {
            "init": "/api/v1/chat/init",
            "stream": "/api/v1/chat/stream",
            "message": "/api/v1/chat/message",
            "health": "/api/v1/health",
        },
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
