####################################
# --- Request/response schemas --- #
####################################

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

UPLOAD_RESULT_OK = "OK"


class UploadResult(BaseModel):
    """Response model for `POST /file/upload`."""
    fid: str = Field(description="The storage key assigned to the upload.")
    result: str = Field(default=UPLOAD_RESULT_OK, description="Status marker of the upload.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "fid": "1000000045",
                "result": "OK",
            }
        }
    )


class HealthResponse(BaseModel):
    """Response model for `GET /health`."""
    status: str
    components: Dict[str, str]
    ready: bool
