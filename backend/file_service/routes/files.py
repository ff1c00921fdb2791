"""Files API routes."""
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, File as FastAPIFile, Request, Response, UploadFile
from fastapi.responses import StreamingResponse

from file_service.errors import InvalidRequest
from file_service.schemas.file import FileResponse
from file_service.services.file_service import FileService

router = APIRouter(prefix="/api/files", tags=["files"])


def get_file_service(request: Request) -> FileService:
    """FastAPI dependency returning the app-owned coordinator."""
    return request.app.state.file_service


def _parse_file_id(file_id: str) -> int:
    try:
        return int(file_id)
    except ValueError:
        raise InvalidRequest("invalid file id")


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size


@router.get("", response_model=list[FileResponse])
async def list_files(service: FileService = Depends(get_file_service)):
    """List all uploaded files, most recent first."""
    return await service.list_files()


@router.post("", response_model=FileResponse, status_code=201)
async def upload_file(
    file: Optional[UploadFile] = FastAPIFile(None),
    service: FileService = Depends(get_file_service),
):
    """Upload a file to object storage and create its record."""
    if file is None:
        raise InvalidRequest("field 'file' is required")

    try:
        return await service.upload(
            filename=file.filename or "unnamed",
            content=file.file,
            size=_upload_size(file),
            content_type=file.content_type,
        )
    finally:
        await file.close()


@router.post("/analyze", response_model=FileResponse, status_code=201)
async def upload_and_analyze_file(
    file: Optional[UploadFile] = FastAPIFile(None),
    service: FileService = Depends(get_file_service),
):
    """Upload a file, generate its AI overview and create the record with it."""
    if file is None:
        raise InvalidRequest("field 'file' is required")

    try:
        return await service.upload_and_analyze(
            filename=file.filename or "unnamed",
            content=file.file,
            size=_upload_size(file),
            content_type=file.content_type,
        )
    finally:
        await file.close()


@router.get("/{file_id}", response_model=FileResponse)
async def get_file_metadata(file_id: str, service: FileService = Depends(get_file_service)):
    """Get file metadata by ID."""
    return await service.get_file(_parse_file_id(file_id))


@router.get("/{file_id}/download")
async def download_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Stream a file's bytes from object storage."""
    record, stream = await service.open_download(_parse_file_id(file_id))
    return StreamingResponse(
        stream.iter_chunks(),
        media_type=record.mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.name)}"},
    )


@router.post("/{file_id}/analyze", response_model=FileResponse)
async def analyze_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Generate an AI overview of the file's content and store it as its resume."""
    return await service.analyze(_parse_file_id(file_id))


@router.delete("/{file_id}", status_code=204)
async def delete_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Delete a file from object storage, then its record."""
    await service.delete(_parse_file_id(file_id))
    return Response(status_code=204)
