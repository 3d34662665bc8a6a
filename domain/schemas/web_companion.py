# domain/schemas/web_companion.py
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.entities.web_companion import UploadStatus, WebCompanionUpload


class UploadCompletion(BaseModel):
    """Partial update delivered by a completion callback. Omitted fields mean "no change"
    except ``error``, which is cleared when absent."""
    processed_url: Optional[str] = Field(None, description="URL of the processed image")
    status: Optional[UploadStatus] = Field(None, description="Outcome, defaults to processed")
    error: Optional[str] = Field(None, description="Failure reason")
    image_index: Optional[int] = Field(None, description="Position of the image in the capture sequence")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("status")
    def validate_terminal_status(cls, value):
        """A completion can only report an outcome, never put an upload back to pending."""
        if value is UploadStatus.PENDING:
            raise ValueError("Completion status must be 'processed' or 'failed'")
        return value


class CompleteUploadRequest(UploadCompletion):
    upload_id: Optional[str] = Field(None, description="Identifier of the upload being completed")

    def to_patch(self) -> UploadCompletion:
        return UploadCompletion(**self.model_dump(exclude={"upload_id"}))


class UploadResponse(BaseModel):
    success: bool = True
    upload: WebCompanionUpload


class UploadListResponse(BaseModel):
    success: bool = True
    uploads: List[WebCompanionUpload] = Field(default_factory=list)
    total: int = 0
