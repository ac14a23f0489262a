import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from config import settings
from .errors import GatewayError
from .utils import extract_json_object

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Extract all text from this ID document. Return the data as JSON with fields: "
    "name, date_of_birth, id_number, expiry_date, nationality. "
    "If any field is not visible, use null."
)

FACE_PROMPT = (
    "Compare the faces in these two images. The first is from an ID document, "
    "the second is a selfie. Also rate the image quality (0-100). Return JSON with: "
    "similarity_score (0-100), match (boolean), confidence_level (low/medium/high), "
    "image_quality_score (0-100), notes (any observations)."
)

FRAUD_PROMPT = (
    "Analyze this ID document for signs of tampering or fraud. Return JSON with: "
    "fraud_risk_score (0-100), is_fraudulent (boolean), fraud_indicators (array of strings), "
    "confidence (low/medium/high)."
)


class AIGateway:
    """
    Sends KYC images to a multimodal model behind an OpenAI-compatible
    chat completions gateway and scrapes JSON out of the replies.
    """

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.client = client or OpenAI(
            api_key=settings.AI_GATEWAY_API_KEY,
            base_url=settings.AI_GATEWAY_URL,
            timeout=settings.AI_TIMEOUT,
        )
        self.model = model or settings.AI_MODEL

    def build_messages(self, prompt: str, image_urls: List[str]) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for url in image_urls:
            content.append({"type": "image_url", "image_url": {"url": url}})
        return [{"role": "user", "content": content}]

    def complete(self, prompt: str, image_urls: List[str]) -> Optional[str]:
        """Run one chat completion and return the reply text"""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(prompt, image_urls),
                max_tokens=settings.AI_MAX_TOKENS,
                temperature=settings.AI_TEMPERATURE,
            )
        except OpenAIError as e:
            logger.error("AI gateway request failed: %s", e)
            raise GatewayError(details=str(e))

        if not response.choices:
            raise GatewayError(details="AI gateway returned no choices")
        return response.choices[0].message.content

    def extract_document(self, id_image_url: str) -> Dict[str, Any]:
        """OCR the ID document"""
        logger.info("Starting OCR analysis")
        text = self.complete(OCR_PROMPT, [id_image_url])
        extracted = extract_json_object(text, "raw_text")
        if "raw_text" in extracted:
            logger.error("Failed to parse OCR JSON")
        return extracted

    def compare_faces(self, id_image_url: str, selfie_image_url: str) -> Dict[str, Any]:
        """Score face similarity between the ID photo and the selfie"""
        logger.info("Starting face similarity analysis")
        text = self.complete(FACE_PROMPT, [id_image_url, selfie_image_url])
        analysis = extract_json_object(text, "raw_response")
        if "raw_response" in analysis:
            logger.error("Failed to parse face analysis JSON")
        return analysis

    def assess_fraud(self, id_image_url: str) -> Dict[str, Any]:
        """Score tampering / fraud risk of the ID document"""
        logger.info("Starting fraud detection analysis")
        text = self.complete(FRAUD_PROMPT, [id_image_url])
        analysis = extract_json_object(text, "raw_response")
        if "raw_response" in analysis:
            logger.error("Failed to parse fraud analysis JSON")
        return analysis
