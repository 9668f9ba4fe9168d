from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meshgen.config import Settings, settings as default_settings
from meshgen.logger import setup_logger
from meshgen.routers import health, jobs
from meshgen.services.downloader import Downloader
from meshgen.services.event_stream import EventStreamProtocol
from meshgen.services.job_manager import JobManager
from meshgen.services.job_runner import JobRunner
from meshgen.services.pipeline import PipelineOrchestrator
from meshgen.services.remote_client import RemoteCallClient
from meshgen.utils.file_utils import ensure_data_dirs


def build_orchestrator(
    settings: Settings, store: JobManager, client: RemoteCallClient
) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        store,
        client,
        settings.OUTPUT_DIR,
        protocol=EventStreamProtocol(client, stream_timeout=settings.STREAM_TIMEOUT_SECONDS),
        downloader=Downloader(
            client,
            max_attempts=settings.DOWNLOAD_MAX_ATTEMPTS,
            backoff_seconds=settings.DOWNLOAD_BACKOFF_SECONDS,
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: JobManager | None = None,
    client: RemoteCallClient | None = None,
) -> FastAPI:
    settings = settings or default_settings
    store = store or JobManager()
    client = client or RemoteCallClient(
        settings.REMOTE_BASE_URL,
        verify_tls=settings.REMOTE_VERIFY_TLS,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    orchestrator = build_orchestrator(settings, store, client)
    runner = JobRunner(orchestrator.run, max_concurrent=settings.MAX_CONCURRENT_JOBS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logger(settings.LOG_LEVEL)
        ensure_data_dirs(settings)
        yield
        client.close()

    app = FastAPI(title="Mesh Generation Backend", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.job_manager = store
    app.state.job_runner = runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=default_settings.PORT)
