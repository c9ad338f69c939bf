"""
HTTP surface for the ingestion pipeline.

- POST /mega    multipart form {email, password, mode, filePath, file}
- GET  /health
"""
import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from .models import Credentials, IngestConfig, UploadRequest
from .orchestrator import IngestionPipeline
from .services.workspace import LocalWorkspace

logger = logging.getLogger(__name__)


def create_app(
    pipeline: Optional[IngestionPipeline] = None,
    config: Optional[IngestConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        pipeline: Pre-built pipeline (tests inject fakes here)
        config: Used to build workspace and pipeline when none is given
    """
    if pipeline is None:
        config = config or IngestConfig.from_env()
        workspace = LocalWorkspace(config.workspace_root).ensure()
        pipeline = IngestionPipeline(workspace, config=config)

    app = FastAPI(title="mediaingest")
    app.state.pipeline = pipeline

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/mega")
    async def ingest(
        email: Optional[str] = Form(None),
        password: Optional[str] = Form(None),
        mode: Optional[str] = Form(None),
        filePath: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
    ):
        staged_path = None
        original_name = None
        if file is not None:
            staged_path = await asyncio.to_thread(pipeline.workspace.stage_stream, file.file)
            original_name = file.filename
            await file.close()

        credentials = None
        if email or password:
            credentials = Credentials(email=email or "", password=password or "")

        request = UploadRequest(
            credentials=credentials,
            destination_path=filePath,
            mode=mode,
            staged_path=staged_path,
            original_name=original_name,
        )
        result = await pipeline.run(request)
        if not result.success:
            logger.warning("POST /mega -> %s (%s)", result.http_status, result.error)
        return JSONResponse(status_code=result.http_status, content=result.to_dict())

    return app
