"""FastAPI application entry point."""

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cli.logging_config import setup_logging
from conversation.errors import TurnError, invalid_request, unexpected_error
from web.deps import get_config
from web.routes import conversation, profiles

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logging(json_mode=config.logging.json_mode, level=config.logging.level)
    logger.info("web.startup", provider=config.llm.provider)
    yield
    logger.info("web.shutdown")


app = FastAPI(
    title="Skin Passport",
    version="0.1.0",
    lifespan=lifespan,
)

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TurnError)
async def turn_error_handler(request: Request, exc: TurnError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("web.invalid_request", path=request.url.path)
    err = invalid_request(technical=str(exc.errors()))
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("web.unhandled_error", path=request.url.path)
    err = unexpected_error(exc)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


app.include_router(conversation.router)
app.include_router(profiles.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
