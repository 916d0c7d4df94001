import asyncio
import logging
from typing import Callable

from fastapi import FastAPI, Query, status
from fastapi.responses import JSONResponse

from .config import HarnessConfig
from .models import RunReport, RunResponse
from .runner import SetupFunction, run_tests

logger = logging.getLogger(__name__)

SetupFactory = Callable[[], SetupFunction]


class HarnessServer:
    """Holds the state of the last and the in-flight run."""

    def __init__(self, setup_factory: SetupFactory, config: HarnessConfig):
        self.setup_factory = setup_factory
        self.config = config
        self.last_report: RunReport | None = None
        self.last_error: str | None = None
        self.active_run: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.active_run is not None and not self.active_run.done()

    async def run(self) -> RunReport:
        try:
            report = await run_tests(
                self.setup_factory(), separator=self.config.name_separator
            )
        except Exception as e:
            logger.error("Harness run failed: %s", e)
            self.last_error = str(e) or type(e).__name__
            raise
        self.last_report = report
        self.last_error = None
        return report

    def start(self) -> asyncio.Task:
        task = asyncio.create_task(self.run())
        task.add_done_callback(_retrieve_exception)
        self.active_run = task
        return task


def _retrieve_exception(task: asyncio.Task) -> None:
    # Failures are kept on HarnessServer.last_error and logged by run().
    if not task.cancelled():
        task.exception()


def create_app(
    setup_factory: SetupFactory, config: HarnessConfig | None = None
) -> FastAPI:
    """Create FastAPI app that runs a suite on demand and serves its results."""

    app = FastAPI(title="DataStore Harness", version="0.1.0")
    server = HarnessServer(setup_factory, config or HarnessConfig())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "datastore-harness"}

    @app.get("/results")
    async def results() -> JSONResponse:
        if server.last_error is not None:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=RunResponse.error(
                    f"Last run failed: {server.last_error}"
                ).model_dump(),
            )
        if server.last_report is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content=RunResponse.error("No run has completed yet").model_dump(),
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=RunResponse.completed(server.last_report).model_dump(),
        )

    @app.post("/run")
    async def trigger_run(wait: bool = Query(default=False)) -> JSONResponse:
        if server.running:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=RunResponse.error("A run is already in progress").model_dump(),
            )

        logger.info("Run triggered (wait=%s)", wait)
        run = server.start()

        if not wait:
            return JSONResponse(
                status_code=status.HTTP_200_OK,
                content=RunResponse.started().model_dump(),
            )

        try:
            report = await run
        except Exception as e:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=RunResponse.error(f"Run failed: {e}").model_dump(),
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=RunResponse.completed(report).model_dump(),
        )

    return app


def serve(
    setup_factory: SetupFactory,
    config: HarnessConfig | None = None,
    host: str = "0.0.0.0",
) -> None:
    """Start the results server."""
    import uvicorn

    config = config or HarnessConfig()
    app = create_app(setup_factory, config)
    logger.info("Starting harness server on %s:%d", host, config.port)
    uvicorn.run(app, host=host, port=config.port)


