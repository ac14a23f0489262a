import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from PIL import Image, UnidentifiedImageError

from config import settings, SUPPORTED_CONTENT_TYPES, SUPPORTED_IMAGE_FORMATS
from .auth import AuthUser
from .errors import GatewayError, InvalidInput, KYCError, PayloadTooLarge
from .schemas import AnalyzeRequest
from .scoring import image_quality_label
from .store import DocumentStorage, SubmissionStore
from .utils import get_file_extension, is_image_file

logger = logging.getLogger(__name__)


@dataclass
class UploadedImage:
    filename: str
    content_type: Optional[str]
    data: bytes


def validate_image(image: UploadedImage, label: str) -> None:
    """
    Reject uploads that are empty, too large, not JPG/PNG/WEBP by name and
    content type, or that do not decode as one of those formats.
    """
    if not image.data:
        raise InvalidInput(f"{label} is empty")

    if len(image.data) > settings.MAX_UPLOAD_BYTES:
        max_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise PayloadTooLarge(f"File size must be less than {max_mb}MB")

    if not is_image_file(image.filename):
        raise InvalidInput(f"{label} must be a JPG, PNG, or WEBP image")

    content_type = (image.content_type or "").lower()
    if content_type not in SUPPORTED_CONTENT_TYPES:
        raise InvalidInput(f"{label} must be a JPG, PNG, or WEBP image")

    try:
        with Image.open(io.BytesIO(image.data)) as img:
            image_format = img.format
            img.verify()
    except Image.DecompressionBombError as e:
        raise InvalidInput(f"{label} has too many pixels", details=str(e))
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidInput(f"{label} is not a readable image", details=str(e))

    if image_format not in SUPPORTED_IMAGE_FORMATS:
        raise InvalidInput(f"{label} must be a JPG, PNG, or WEBP image")


def storage_path(user_id: str, kind: str, filename: str, timestamp_ms: int) -> str:
    """<user_id>/<kind>_<timestamp>.<ext>"""
    ext = get_file_extension(filename).lstrip(".")
    return f"{user_id}/{kind}_{timestamp_ms}.{ext}"


def submit_documents(user: AuthUser,
                     id_document: UploadedImage,
                     selfie: UploadedImage,
                     store: SubmissionStore,
                     storage: DocumentStorage,
                     analyze: Callable[[AuthUser, AnalyzeRequest], Dict[str, Any]],
                     timestamp_ms: Optional[int] = None) -> Dict[str, Any]:
    """
    Upload both images, record a pending submission and analyse it.

    Uploads, the row insert and the analysis are independent steps; a failed
    analysis leaves the submission pending so it can be analysed again.
    """
    validate_image(id_document, "ID document")
    validate_image(selfie, "Selfie")

    timestamp_ms = timestamp_ms or int(time.time() * 1000)
    id_path = storage_path(user.id, "id", id_document.filename, timestamp_ms)
    selfie_path = storage_path(user.id, "selfie", selfie.filename, timestamp_ms)

    storage.upload(id_path, id_document.data, id_document.content_type)
    storage.upload(selfie_path, selfie.data, selfie.content_type)

    submission = store.create(user.id, id_path, selfie_path)
    logger.info("Submission %s created for user %s", submission.get("id"), user.id)

    response: Dict[str, Any] = {"submission": submission, "analysis": None}
    try:
        analysis = analyze(user, AnalyzeRequest(
            submission_id=submission["id"],
            id_image_path=id_path,
            selfie_image_path=selfie_path,
        ))
    except KYCError as e:
        logger.error("AI analysis failed for submission %s: %s", submission.get("id"), e.message)
        response["analysis_error"] = e.message
        return response
    except Exception:
        logger.exception("AI analysis failed for submission %s", submission.get("id"))
        response["analysis_error"] = GatewayError.message
        return response

    response["analysis"] = analysis
    response["image_quality"] = image_quality_label(analysis.get("image_quality_score"))
    return response
