# herbchain/main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from herbchain.batch_service import BatchService
from herbchain.blockchain_client import LedgerClient
from herbchain.config import get_settings
from herbchain.database import StageEventStore, get_database
from herbchain.ipfs_handler import ReportStorage
from ml.report_analysis import ReportAnalyzer
# ROUTERS
from routes.ai import router as ai_router
from routes.batches import router as batch_router

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level_name: str) -> None:
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, level_name.upper(), logging.INFO))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # missing or mistyped request fields answer 400
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    mongo_client = None

    if app.state.batch_service is None:
        mongo_client, database = get_database(settings)
        app.state.batch_service = BatchService(
            ledger=LedgerClient.from_settings(settings),
            store=StageEventStore.from_database(database),
            reports=ReportStorage.from_settings(settings),
        )
        logger.info("Batch service ready (database %s)", settings.mongo_db)

    if app.state.report_analyzer is None:
        app.state.report_analyzer = ReportAnalyzer.from_settings(settings)

    yield

    if mongo_client is not None:
        mongo_client.close()


def create_app(batch_service: BatchService | None = None,
               report_analyzer: ReportAnalyzer | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Herb Provenance API", lifespan=lifespan)
    app.state.batch_service = batch_service
    app.state.report_analyzer = report_analyzer
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # ================= CORS =================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins) or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ================= ROUTERS =================
    app.include_router(batch_router)
    app.include_router(ai_router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Welcome to the Ayurveda API"

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("herbchain.main:app", host="0.0.0.0", port=get_settings().port)
