"""
Image upload endpoint.

POST /upload — store one image and return the absolute URL it is served from.
"""
import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status

from app.models.schemas import ImageUploadResponse
from app.services.image_store import ImageRejectedError, ImageStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload", response_model=ImageUploadResponse, status_code=status.HTTP_200_OK)
async def upload_image(
    request: Request,
    image: UploadFile = File(...),
) -> ImageUploadResponse:
    """
    Upload a JPEG, PNG, GIF or WEBP image.

    - Max file size: 50 MB (configurable via MAX_IMAGE_SIZE)
    - Stored under a unique name; the returned URL is absolute
    """
    try:
        stored = await ImageStore().store(image, base_url=str(request.base_url))
    except ImageRejectedError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
    except Exception as exc:
        logger.exception(f"Unexpected error storing image {image.filename!r}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process image upload: {exc}",
        )

    return ImageUploadResponse(image_url=stored.url, filename=stored.filename)
