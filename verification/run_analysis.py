import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from config import settings
from .auth import AuthUser
from .errors import Forbidden, InvalidInput, NotFound, PersistenceError, RateLimited
from .gateway import AIGateway
from .schemas import AnalyzeRequest
from .scoring import build_ai_scores, build_result
from .store import DocumentStorage, SubmissionStore
from .utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

FUNCTION_NAME = "analyze-kyc"


def recently_analyzed(submission: Dict[str, Any], now: datetime) -> bool:
    """True when the row already holds scores younger than the cooldown"""
    ai_scores = submission.get("ai_scores")
    if not isinstance(ai_scores, dict) or not ai_scores:
        return False
    updated_at = parse_timestamp(submission.get("updated_at"))
    if updated_at is None:
        return False
    return now - updated_at < timedelta(seconds=settings.REANALYSIS_COOLDOWN_SECONDS)


def audit(action: str, user: AuthUser, submission_id: int, **extra: Any) -> None:
    record = {
        "timestamp": utc_now().isoformat(),
        "function": FUNCTION_NAME,
        "user_id": user.id,
        "submission_id": submission_id,
        "action": action,
    }
    record.update(extra)
    logger.info("audit %s", record)


def run_analysis(user: AuthUser,
                 request: AnalyzeRequest,
                 store: SubmissionStore,
                 storage: DocumentStorage,
                 gateway: AIGateway,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Analyse one submission end to end.

    Cross-checks the request against the stored row, refuses re-analysis
    inside the cooldown, signs both image paths, runs OCR, face comparison and
    fraud detection through the AI gateway, persists the merged scores and
    returns the caller-facing result.
    """
    submission_id = request.submission_id

    # Step 1: Load and cross-check the submission
    submission = store.get(submission_id)
    if submission is None:
        logger.error("Submission not found: %s", submission_id)
        raise NotFound("Submission not found")

    if submission.get("user_id") != user.id:
        logger.error("Unauthorized access attempt by user %s for submission %s", user.id, submission_id)
        raise Forbidden("Unauthorized access to submission")

    if submission.get("id_image_url") != request.id_image_path:
        logger.error("ID image path mismatch for submission %s", submission_id)
        raise InvalidInput("ID image path mismatch")

    if submission.get("selfie_image_url") != request.selfie_image_path:
        logger.error("Selfie path mismatch for submission %s", submission_id)
        raise InvalidInput("Selfie path mismatch")

    # Step 2: Cooldown between analyses
    if recently_analyzed(submission, now or utc_now()):
        logger.info("Rate limit exceeded for submission: %s", submission_id)
        raise RateLimited("Analysis already performed recently. Please wait before retrying.")

    audit("analysis_started", user, submission_id)

    # Step 3: Short-lived URLs the gateway can fetch
    id_image_url = storage.signed_url(request.id_image_path, settings.SIGNED_URL_TTL)
    selfie_image_url = storage.signed_url(request.selfie_image_path, settings.SIGNED_URL_TTL)

    # Step 4: AI analysis, one call at a time
    extracted_data = gateway.extract_document(id_image_url)
    face_analysis = gateway.compare_faces(id_image_url, selfie_image_url)
    fraud_analysis = gateway.assess_fraud(id_image_url)

    # Step 5: Merge and persist
    ai_scores = build_ai_scores(face_analysis, fraud_analysis)
    result = build_result(extracted_data, face_analysis, fraud_analysis)

    try:
        store.save_analysis(submission_id, extracted_data, ai_scores)
    except Exception as e:
        logger.error("Error updating submission %s: %s", submission_id, e)
        raise PersistenceError(details=str(e))

    audit(
        "analysis_completed", user, submission_id,
        results={
            "similarity_score": ai_scores["similarity_score"],
            "fraud_score": ai_scores["fraud_score"],
            "face_match": result["face_match"],
            "fraud_detected": result["fraud_detected"],
        },
    )

    return result
