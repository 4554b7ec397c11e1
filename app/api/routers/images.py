from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.api.deps import get_blob_store
from app.core.config import settings
from app.services.blob_store import BinaryObjectStore

router = APIRouter(tags=["images"])


@router.get("/image/{image_id}")
def get_image(image_id: str, store: BinaryObjectStore = Depends(get_blob_store)):
    # objects never change after upload
    image = store.get(image_id.strip().lower())
    return StreamingResponse(
        image.chunks,
        media_type=image.content_type,
        headers={"Cache-Control": settings.image_cache_control},
    )
