import logging
from typing import Any, Dict, List, Optional

from config import settings
from .errors import Conflict, NotFound, StorageError
from .scoring import fraud_risk_badge, match_badge, to_score
from .store import DocumentStorage, SubmissionStore

logger = logging.getLogger(__name__)


def _scores(submission: Dict[str, Any]) -> Dict[str, Any]:
    ai_scores = submission.get("ai_scores")
    return ai_scores if isinstance(ai_scores, dict) else {}


def summarize(submission: Dict[str, Any]) -> Dict[str, Any]:
    """Dashboard row for one submission"""
    ai_scores = _scores(submission)
    fraud_score = to_score(ai_scores.get("fraud_score"))
    similarity = ai_scores.get("similarity_score")

    return {
        "id": submission.get("id"),
        "user_id": submission.get("user_id"),
        "status": submission.get("status"),
        "created_at": submission.get("created_at"),
        "similarity_score": to_score(similarity) if similarity else None,
        "fraud_score": fraud_score,
        "fraud_risk": fraud_risk_badge(fraud_score),
    }


def list_submissions(store: SubmissionStore) -> List[Dict[str, Any]]:
    return [summarize(row) for row in store.list_all()]


def _review_url(storage: DocumentStorage, path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    try:
        return storage.signed_url(path, settings.REVIEW_SIGNED_URL_TTL)
    except StorageError as e:
        logger.error("Failed to create signed URL: %s", e.details)
        return None


def submission_detail(store: SubmissionStore,
                      storage: DocumentStorage,
                      submission_id: int) -> Dict[str, Any]:
    """Everything an admin needs to decide on one submission"""
    submission = store.get(submission_id)
    if submission is None:
        raise NotFound("Submission not found")

    ai_scores = _scores(submission)
    extracted = submission.get("extracted_data")
    similarity = to_score(ai_scores.get("similarity_score"))
    fraud_score = to_score(ai_scores.get("fraud_score"))

    return {
        "submission": submission,
        "id_image_url": _review_url(storage, submission.get("id_image_url")),
        "selfie_image_url": _review_url(storage, submission.get("selfie_image_url")),
        "similarity_score": similarity,
        "match": match_badge(similarity),
        "match_confidence": ai_scores.get("match_confidence"),
        "fraud_score": fraud_score,
        "fraud_risk": fraud_risk_badge(fraud_score),
        "ai_recommendation": ai_scores.get("ai_recommendation"),
        "fraud_indicators": ai_scores.get("fraud_indicators") or [],
        "extracted_data": extracted if isinstance(extracted, dict) else {},
    }


def update_status(store: SubmissionStore, submission_id: int, status: str) -> Dict[str, Any]:
    submission = store.get(submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    if submission.get("status") == status:
        raise Conflict(f"Submission is already {status}")

    updated = store.set_status(submission_id, status)
    logger.info("Submission %s %s", submission_id, status)
    return updated or {**submission, "status": status}
