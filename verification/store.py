import logging
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from config import settings
from .errors import StorageError
from .utils import utc_now

logger = logging.getLogger(__name__)


def create_service_client() -> Client:
    """Supabase client with the service role key (bypasses RLS)"""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def create_auth_client() -> Client:
    """Fresh client for sign-up / login; its session is discarded after the request"""
    key = settings.SUPABASE_ANON_KEY or settings.SUPABASE_SERVICE_ROLE_KEY
    return create_client(settings.SUPABASE_URL, key)


class SubmissionStore:
    """
    Reads and writes rows of the submissions table
    """

    def __init__(self, client: Client, table: Optional[str] = None):
        self.client = client
        self.table = table or settings.SUBMISSIONS_TABLE

    def get(self, submission_id: int) -> Optional[Dict[str, Any]]:
        result = (
            self.client.table(self.table)
            .select("*")
            .eq("id", submission_id)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return rows[0] if rows else None

    def list_all(self) -> List[Dict[str, Any]]:
        result = (
            self.client.table(self.table)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        return result.data or []

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        result = (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data or []

    def create(self, user_id: str, id_image_path: str, selfie_image_path: str) -> Dict[str, Any]:
        result = (
            self.client.table(self.table)
            .insert({
                "user_id": user_id,
                "id_image_url": id_image_path,
                "selfie_image_url": selfie_image_path,
                "status": "pending",
            })
            .execute()
        )
        return result.data[0]

    def save_analysis(self,
                      submission_id: int,
                      extracted_data: Dict[str, Any],
                      ai_scores: Dict[str, Any]) -> None:
        (
            self.client.table(self.table)
            .update({
                "extracted_data": extracted_data,
                "ai_scores": ai_scores,
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", submission_id)
            .execute()
        )

    def set_status(self, submission_id: int, status: str) -> Optional[Dict[str, Any]]:
        result = (
            self.client.table(self.table)
            .update({"status": status})
            .eq("id", submission_id)
            .execute()
        )
        rows = result.data or []
        return rows[0] if rows else None


class DocumentStorage:
    """
    Private bucket holding uploaded ID documents and selfies
    """

    def __init__(self, client: Client, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.STORAGE_BUCKET

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.storage.from_(self.bucket).upload(
                path,
                data,
                file_options={"content-type": content_type},
            )
        except Exception as e:
            logger.error("Storage upload failed for %s: %s", path, e)
            raise StorageError("Failed to upload document", details=str(e))
        return path

    def signed_url(self, path: str, expires_in: int) -> str:
        try:
            url_data = self.client.storage.from_(self.bucket).create_signed_url(path, expires_in)
        except Exception as e:
            logger.error("Error creating signed URL for %s: %s", path, e)
            raise StorageError(details=str(e))

        signed = url_data.get("signedURL") or url_data.get("signedUrl")
        if not signed:
            raise StorageError(details=f"No signed URL returned for {path}")
        return signed
