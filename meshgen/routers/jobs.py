import logging
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from meshgen.config import Settings
from meshgen.models.job import JobCreated, JobStatus, JobSummary
from meshgen.services.job_manager import JobManager
from meshgen.services.job_runner import JobRunner
from meshgen.utils.file_utils import save_upload

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/tiff", "image/webp"}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> JobManager:
    return request.app.state.job_manager


def get_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


@router.post("/jobs", response_model=JobCreated, status_code=201)
async def create_job(
    # A plain form string in the image field is a client error, not a 422
    image: UploadFile | str | None = File(None),
    settings: Settings = Depends(get_settings),
    store: JobManager = Depends(get_store),
    runner: JobRunner = Depends(get_runner),
):
    if image is None or isinstance(image, str):
        raise HTTPException(status_code=400, detail="No file uploaded")
    if image.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {image.content_type}. Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}",
        )

    # The job is only registered once its source image is on disk
    job_id = str(uuid4())
    content = await image.read()
    try:
        image_path = save_upload(image.filename, content, settings.UPLOAD_DIR / job_id)
    except OSError as exc:
        logger.error("Could not store upload for job %s: %s", job_id, exc)
        raise HTTPException(status_code=500, detail="Could not store upload") from exc
    job = store.create_job(id=job_id, source_image_path=str(image_path))

    runner.submit(job.id)
    logger.info("Job %s created from %s (%d bytes)", job.id, image_path.name, len(content))
    return JobCreated(job_id=job.id, status=job.status)


@router.get("/jobs", response_model=list[JobSummary])
async def list_jobs(store: JobManager = Depends(get_store)):
    return [JobSummary.from_job(job) for job in store.list_jobs()]


@router.get("/jobs/{job_id}", response_model=JobSummary)
async def get_job(job_id: str, store: JobManager = Depends(get_store)):
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobSummary.from_job(job)


@router.get("/jobs/{job_id}/file")
async def serve_model(job_id: str, store: JobManager = Depends(get_store)):
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.status != JobStatus.COMPLETED or job.output_path is None:
        raise HTTPException(status_code=404, detail="Model not ready")

    model_path = Path(job.output_path)
    if not model_path.exists():
        raise HTTPException(status_code=404, detail="Model not found")

    return FileResponse(
        path=str(model_path),
        media_type="model/gltf-binary",
        filename=model_path.name,
    )
