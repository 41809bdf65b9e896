"""Uploads router - cleaning photos, deposit evidence and general files."""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from homestay.core.config import get_settings
from homestay.core.errors import ValidationError
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, get_current_user, require_capability
from homestay.services.storage import StorageService, UploadCategory, get_storage_service

router = APIRouter(prefix="/uploads", tags=["uploads"])

settings = get_settings()

can_upload = require_capability(Capability.UPLOADS_WRITE)


async def _store_all(
    storage: StorageService,
    category: UploadCategory,
    files: list[UploadFile],
    max_files: int,
) -> dict:
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > max_files:
        raise ValidationError(f"Maximum {max_files} files per upload")

    stored = []
    for upload in files:
        content = await upload.read()
        stored.append(
            await storage.store(category, upload.filename or "upload", upload.content_type, content)
        )
    return {
        "urls": [f.url for f in stored],
        "files": [
            {"url": f.url, "name": f.original_name, "size": f.size, "content_type": f.content_type}
            for f in stored
        ],
    }


@router.post("/cleaning-photos")
async def upload_cleaning_photos(
    files: list[UploadFile] = File(...),
    storage: StorageService = Depends(get_storage_service),
    current_user: AuthenticatedUser = Depends(can_upload),
):
    data = await _store_all(storage, UploadCategory.CLEANING_PHOTOS, files, settings.max_files_per_upload)
    return {"success": True, "data": data, "message": f"{len(data['urls'])} file(s) uploaded"}


@router.post("/deposit-evidence")
async def upload_deposit_evidence(
    files: list[UploadFile] = File(...),
    storage: StorageService = Depends(get_storage_service),
    current_user: AuthenticatedUser = Depends(can_upload),
):
    data = await _store_all(storage, UploadCategory.DEPOSIT_EVIDENCE, files, settings.max_files_per_upload)
    return {"success": True, "data": data, "message": f"{len(data['urls'])} file(s) uploaded"}


@router.post("/general")
async def upload_general(
    file: UploadFile = File(...),
    storage: StorageService = Depends(get_storage_service),
    current_user: AuthenticatedUser = Depends(can_upload),
):
    data = await _store_all(storage, UploadCategory.GENERAL, [file], 1)
    return {"success": True, "data": data["files"][0], "message": "File uploaded"}


@router.get("/{object_path:path}")
async def get_upload(
    object_path: str,
    storage: StorageService = Depends(get_storage_service),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    content, media_type = await storage.read(object_path)
    return Response(content=content, media_type=media_type)
