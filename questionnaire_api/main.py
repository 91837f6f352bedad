# questionnaire_api/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from questionnaire_api import __version__
from questionnaire_api.api.schema import create_graphql_router
from questionnaire_api.core.config import settings
from questionnaire_api.core.logging import get_logger, setup_logging
from questionnaire_api.db.session import check_db_connection

GRAPHQL_PATH = "/graphql"

setup_logging()
log = get_logger("main")

app = FastAPI(
    title=settings.APP_NAME,
    description="GraphQL API for school questionnaires",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(create_graphql_router(), prefix=GRAPHQL_PATH)


@app.get("/health")
def health_root():
    return {"status": "ok", "message": "API is running"}


@app.get("/api/v1/health/db")
def health_db():
    return {"db": "ok" if check_db_connection() else "error"}


@app.get("/")
def root():
    return {
        "message": "Questionnaire API",
        "version": __version__,
        "docs": "/docs",
        "graphql": GRAPHQL_PATH,
    }


log.info("%s started (env=%s), GraphQL at %s", settings.APP_NAME, settings.ENV, GRAPHQL_PATH)
