import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskhub import models  # noqa: F401  (registers tables on Base.metadata)
from taskhub.core.config import settings
from taskhub.core.database import engine, Base
from taskhub.core.logging_setup import configure_logging
from taskhub.routers import auth, tasks

configure_logging(settings.LOG_LEVEL, sql_echo=settings.SQL_ECHO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Taskhub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(tasks.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Details go to the log only.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Taskhub API started")


@app.on_event("shutdown")
async def shutdown():
    await engine.dispose()


@app.get("/")
async def root():
    return {"message": "Taskhub API is running"}


def run():
    import uvicorn

    uvicorn.run("taskhub.main:app", host="0.0.0.0", port=settings.API_PORT)
