import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from meetingroom.schemas.upload import UploadResponse
from meetingroom.utils.auth import Actor, get_current_user
from meetingroom.utils.file_storage import UploadRejected, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/uploads",
    tags=["uploads"],
)


@router.post("/", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_attachment(
    file: UploadFile = File(...),
    current_user: Actor = Depends(get_current_user),
):
    """Store a booking attachment and return the reference to put on the booking."""
    try:
        stored = save_upload(file.file, file.filename)
    except UploadRejected as e:
        logger.error(f"Upload rejected for {current_user.email}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return stored._asdict()
