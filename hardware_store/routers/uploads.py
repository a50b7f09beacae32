import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from ..deps import AppContext, get_context, get_current_user
from ..errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["uploads"])

MAX_FILES_PER_REQUEST = 10


def _read_valid(upload: UploadFile, storage) -> bytes:
    filename = upload.filename or ""
    if not storage.is_allowed(filename):
        raise ValidationError(
            f"File type not allowed for {filename or 'upload'}. Allowed: {', '.join(storage.allowed_formats)}"
        )
    content = upload.file.read()
    if not content:
        raise ValidationError(f"{filename} is empty")
    if len(content) > storage.max_file_size:
        raise ValidationError(f"{filename} exceeds the {storage.max_file_size} byte limit")
    return content


@router.post("/file")
def upload_file(
    file: UploadFile = File(...), user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    content = _read_valid(file, ctx.storage)
    result = ctx.storage.upload(content, file.filename)
    logger.info("User %s uploaded %s", user["_id"], result.get("public_id"))
    return {"file": result}


@router.post("/files")
def upload_files(
    files: List[UploadFile] = File(...),
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    if len(files) > MAX_FILES_PER_REQUEST:
        raise ValidationError(f"At most {MAX_FILES_PER_REQUEST} files per request")
    contents = [(_read_valid(f, ctx.storage), f.filename) for f in files]
    uploaded = [ctx.storage.upload(content, filename) for content, filename in contents]
    return {"files": uploaded, "count": len(uploaded)}


@router.get("/file/{public_id:path}/urls")
def image_urls(
    public_id: str,
    width: int = 800,
    height: int = 600,
    format: str = "auto",
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    storage = ctx.storage
    custom = {"w": str(width), "h": str(height), "f": format, "c": "fill", "g": "auto"}
    return {
        "public_id": public_id,
        "urls": {
            "original": storage.image_url(public_id),
            "thumbnail": storage.thumbnail_url(public_id),
            "custom": storage.image_url(public_id, custom),
            "responsive": storage.responsive_urls(public_id),
        },
    }


@router.get("/file/{public_id:path}")
def file_info(public_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return {"file": ctx.storage.resource(public_id)}


@router.delete("/file/{public_id:path}")
def delete_file(public_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.storage.destroy(public_id)
    return {"message": "File deleted", "public_id": public_id}
