import os

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("AI_GATEWAY_API_KEY", "gateway-key")

import io
import itertools
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import app as app_module
from verification.gateway import AIGateway

USER_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"
OTHER_USER_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
ADMIN_ID = "16fd2706-8baf-433b-82eb-8c7fada847da"

USER_TOKEN = "user-token"
OTHER_TOKEN = "other-token"
ADMIN_TOKEN = "admin-token"

OCR_REPLY = """Here is the extracted data:
```json
{"name": "Jane Doe", "date_of_birth": "1990-04-12", "id_number": "X1234567",
 "expiry_date": "2030-01-01", "nationality": "CA"}
```"""

FACE_REPLY = (
    '{"similarity_score": 91, "match": true, "confidence_level": "high", '
    '"image_quality_score": 84, "notes": "Same jawline and eye spacing"}'
)

FRAUD_REPLY = (
    '{"fraud_risk_score": 12, "is_fraudulent": false, '
    '"fraud_indicators": [], "confidence": "low"}'
)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ------------------------
# Supabase fake
# ------------------------
class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = row
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def execute(self):
        error = self.db.failures.get((self.table, self.op))
        if error:
            raise Exception(error)

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = {
                "id": next(self.db.ids),
                "extracted_data": None,
                "ai_scores": None,
                "created_at": now_iso(),
                "updated_at": now_iso(),
            }
            row.update(self.payload)
            rows.append(row)
            return SimpleNamespace(data=[dict(row)])

        matched = [r for r in rows if all(r.get(c) == v for c, v in self.filters)]

        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_n is not None:
            matched = matched[:self.limit_n]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeBucket:
    def __init__(self, objects, name):
        self.objects = objects
        self.name = name

    def upload(self, path, file, file_options=None):
        if path in self.objects:
            raise Exception("The resource already exists")
        self.objects[path] = (file, (file_options or {}).get("content-type"))
        return SimpleNamespace(path=path)

    def create_signed_url(self, path, expires_in):
        if path not in self.objects:
            raise Exception("Object not found")
        return {"signedURL": f"https://storage.test/{self.name}/{path}?expires_in={expires_in}"}


class FakeStorage:
    def __init__(self):
        self.buckets = {}

    def from_(self, bucket):
        return FakeBucket(self.buckets.setdefault(bucket, {}), bucket)


class FakeAuth:
    def __init__(self, db):
        self.db = db
        self.tokens = {}
        self.accounts = {}

    def get_user(self, jwt):
        if jwt not in self.tokens:
            raise Exception("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=self.tokens[jwt])

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.accounts:
            raise Exception("User already registered")
        user = SimpleNamespace(id=str(uuid.uuid4()), email=email)
        self.accounts[email] = (credentials["password"], user)
        role = credentials.get("options", {}).get("data", {}).get("role", "user")
        # Mirrors the database trigger that creates the role row
        self.db.tables.setdefault("user_roles", []).append({"user_id": user.id, "role": role})
        token = f"token-{user.id}"
        self.tokens[token] = user
        return SimpleNamespace(
            user=user,
            session=SimpleNamespace(access_token=token, refresh_token=f"refresh-{user.id}"),
        )

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise Exception("Invalid login credentials")
        user = account[1]
        token = f"token-{user.id}"
        self.tokens[token] = user
        return SimpleNamespace(
            user=user,
            session=SimpleNamespace(access_token=token, refresh_token=f"refresh-{user.id}"),
        )


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.failures = {}
        self.ids = itertools.count(1)
        self.storage = FakeStorage()
        self.auth = FakeAuth(self)

    def table(self, name):
        return FakeQuery(self, name)

    def add_user(self, user_id, token, admin=False, email=None):
        self.auth.tokens[token] = SimpleNamespace(id=user_id, email=email or f"{token}@example.com")
        self.tables.setdefault("user_roles", []).append(
            {"user_id": user_id, "role": "admin" if admin else "user"}
        )

    def add_submission(self, **fields):
        row = {
            "id": next(self.ids),
            "status": "pending",
            "extracted_data": None,
            "ai_scores": None,
            "created_at": now_iso(),
            "updated_at": now_iso(),
        }
        row.update(fields)
        self.tables.setdefault("submissions", []).append(row)
        return row

    def put_object(self, path, data=b"image", bucket="kyc-documents"):
        self.storage.buckets.setdefault(bucket, {})[path] = (data, "image/jpeg")

    def submission(self, submission_id):
        for row in self.tables.get("submissions", []):
            if row["id"] == submission_id:
                return row
        return None


# ------------------------
# AI gateway fake
# ------------------------
class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))]
        )


class FakeOpenAI:
    def __init__(self, replies=None):
        self.completions = FakeCompletions(
            replies if replies is not None else [OCR_REPLY, FACE_REPLY, FRAUD_REPLY]
        )
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


def make_image(fmt="PNG", size=(32, 32)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 120, 40)).save(buffer, fmt)
    return buffer.getvalue()


# ------------------------
# Fixtures
# ------------------------
@pytest.fixture
def supabase():
    db = FakeSupabase()
    db.add_user(USER_ID, USER_TOKEN)
    db.add_user(OTHER_USER_ID, OTHER_TOKEN)
    db.add_user(ADMIN_ID, ADMIN_TOKEN, admin=True)
    return db


@pytest.fixture
def fake_ai():
    return FakeOpenAI()


@pytest.fixture
def gateway(fake_ai):
    return AIGateway(client=fake_ai, model="test-model")


@pytest.fixture
def client(supabase, gateway):
    overrides = app_module.app.dependency_overrides
    overrides[app_module.get_supabase] = lambda: supabase
    overrides[app_module.get_auth_client] = lambda: supabase
    overrides[app_module.get_gateway] = lambda: gateway
    with TestClient(app_module.app) as test_client:
        yield test_client
    overrides.clear()


def auth_header(token: str):
    return {"Authorization": f"Bearer {token}"}
