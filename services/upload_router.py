"""
Upload Router

Stores images pasted into the editor and returns a public URL for them.
"""
import logging
import random
import time
from pathlib import Path

from fastapi import APIRouter, Depends, File, Request, UploadFile

from config import Settings
from models import User
from services.dependencies import get_app_settings, get_current_user
from services.errors import InvalidInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["upload"])


def unique_filename(original: str) -> str:
    """Millisecond timestamp plus a random suffix, keeping the original extension."""
    suffix = Path(original or "").suffix
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"


@router.post("/upload")
async def upload_image(
    request: Request,
    image: UploadFile = File(None),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
):
    if image is None:
        raise InvalidInput("Please upload a file")

    data = await image.read()
    if len(data) > settings.max_file_size:
        raise InvalidInput(f"File exceeds the {settings.max_file_size} byte limit")

    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    filename = unique_filename(image.filename)
    with open(settings.uploads_dir / filename, "wb") as out_f:
        out_f.write(data)

    logger.info(f"User {current_user.id} uploaded {filename} ({len(data)} bytes)")
    return {"url": f"{request.base_url}uploads/{filename}"}
