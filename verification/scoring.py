from typing import Any, Dict, List, Optional

from config import settings

LEVELS = ("low", "medium", "high")


def to_score(val: Any, default: int = 0) -> int:
    """Coerce a model-reported score to an integer in 0..100"""
    if val is None or isinstance(val, bool):
        return default
    try:
        if isinstance(val, (int, float)):
            v = float(val)
        else:
            v = float(str(val).strip().replace("%", ""))
    except (ValueError, OverflowError):
        return default
    if v != v:  # NaN
        return default
    return int(round(max(0.0, min(100.0, v))))


def to_bool(val: Any, default: bool = False) -> bool:
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        return bool(val)
    if isinstance(val, str):
        s = val.strip().lower()
        if s in ("true", "yes", "y", "1"):
            return True
        if s in ("false", "no", "n", "0"):
            return False
    return default


def to_level(val: Any, default: str) -> str:
    if isinstance(val, str) and val.strip().lower() in LEVELS:
        return val.strip().lower()
    return default


def to_indicators(val: Any) -> List[str]:
    if isinstance(val, str):
        return [val.strip()] if val.strip() else []
    if isinstance(val, list):
        return [str(item).strip() for item in val if item is not None and str(item).strip()]
    return []


def _text_or_none(val: Any) -> Optional[str]:
    if val is None:
        return None
    text = str(val).strip()
    return text or None


def build_ai_scores(face: Dict[str, Any], fraud: Dict[str, Any]) -> Dict[str, Any]:
    """Merge face and fraud analyses into the stored ai_scores object"""
    fraud_detected = to_bool(fraud.get("is_fraudulent"))
    notes = face.get("notes")

    return {
        "similarity_score": to_score(face.get("similarity_score")),
        "match_confidence": to_level(face.get("confidence_level"), "low"),
        "features_analyzed": str(notes) if notes else "",
        "fraud_score": to_score(fraud.get("fraud_risk_score")),
        "risk_level": to_level(fraud.get("confidence"), "medium"),
        "fraud_indicators": to_indicators(fraud.get("fraud_indicators")),
        "ai_recommendation": "reject" if fraud_detected else "review",
    }


def build_result(extracted: Dict[str, Any],
                 face: Dict[str, Any],
                 fraud: Dict[str, Any]) -> Dict[str, Any]:
    """Build the analysis result returned to the submitting user"""
    fraud_detected = to_bool(fraud.get("is_fraudulent"))
    fraud_reason = None
    if fraud_detected:
        indicators = to_indicators(fraud.get("fraud_indicators"))
        fraud_reason = ", ".join(indicators) if indicators else "Suspicious document detected"

    return {
        "image_quality_score": to_score(
            face.get("image_quality_score"), settings.DEFAULT_IMAGE_QUALITY
        ),
        "extracted_data": {
            "name": _text_or_none(extracted.get("name")),
            "dob": _text_or_none(extracted.get("date_of_birth")),
            "id_number": _text_or_none(extracted.get("id_number")),
        },
        "face_match": to_bool(face.get("match")),
        "face_match_confidence": to_score(face.get("similarity_score")),
        "fraud_detected": fraud_detected,
        "fraud_reason": fraud_reason,
    }


# ------------------------
# Review badges
# ------------------------
def fraud_risk_badge(score: Any) -> str:
    score = to_score(score)
    if score < settings.FRAUD_LOW_BELOW:
        return "low"
    if score < settings.FRAUD_MEDIUM_BELOW:
        return "medium"
    return "high"


def match_badge(score: Any) -> str:
    score = to_score(score)
    if score >= settings.MATCH_HIGH_FROM:
        return "high"
    if score >= settings.MATCH_MEDIUM_FROM:
        return "medium"
    return "low"


def image_quality_label(score: Any) -> str:
    score = to_score(score)
    if score >= settings.QUALITY_EXCELLENT_FROM:
        return "Excellent"
    if score >= settings.QUALITY_GOOD_FROM:
        return "Good"
    return "Poor"
