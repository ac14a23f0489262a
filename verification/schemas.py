import re
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, StrictInt, field_validator

from config import MAX_STORAGE_PATH_LENGTH, MAX_SUBMISSION_ID, STORAGE_PATH_REGEX

storage_path_regex = re.compile(STORAGE_PATH_REGEX, re.IGNORECASE)


class AnalyzeRequest(BaseModel):
    submission_id: StrictInt = Field(gt=0, le=MAX_SUBMISSION_ID)
    id_image_path: str = Field(max_length=MAX_STORAGE_PATH_LENGTH)
    selfie_image_path: str = Field(max_length=MAX_STORAGE_PATH_LENGTH)

    @field_validator("id_image_path", "selfie_image_path")
    @classmethod
    def check_storage_path(cls, v: str) -> str:
        if not storage_path_regex.fullmatch(v):
            raise ValueError("Invalid storage path")
        return v

    @field_validator("submission_id", mode="before")
    @classmethod
    def integral_float_id(cls, v: Any) -> Any:
        # JSON numbers like 12.0 are integers to JavaScript clients
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class StatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]


class Credentials(BaseModel):
    email: str
    password: str


class SignUpRequest(Credentials):
    role: str = "user"


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Render pydantic errors as "field: message" lines"""
    details = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        details.append(f"{loc}: {err.get('msg', 'Invalid value')}")
    return details
