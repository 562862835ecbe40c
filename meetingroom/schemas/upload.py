from pydantic import BaseModel


class UploadResponse(BaseModel):
    url: str
    original_name: str
    size: int
