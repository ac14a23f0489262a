from fastapi import FastAPI, File, UploadFile, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import logging
from functools import lru_cache
from typing import Optional

from config import settings
from verification.auth import AuthUser, authenticate, is_admin, session_info, sign_in, sign_up
from verification.errors import Forbidden, InvalidInput, KYCError, PayloadTooLarge
from verification.gateway import AIGateway
from verification.intake import UploadedImage, submit_documents
from verification.review import list_submissions, submission_detail, update_status
from verification.run_analysis import run_analysis
from verification.schemas import (
    AnalyzeRequest, Credentials, SignUpRequest, StatusUpdate, format_validation_errors
)
from verification.store import (
    DocumentStorage, SubmissionStore, create_auth_client, create_service_client
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("kyc-review")


app = FastAPI(
    title="KYC Review Service",
    description="KYC submission intake, AI-assisted analysis and admin review",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


# ------------------------
# Error rendering
# ------------------------
@app.exception_handler(KYCError)
async def kyc_error_handler(request: Request, exc: KYCError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input parameters", "details": format_validation_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


# ------------------------
# Dependencies
# ------------------------
@lru_cache
def get_supabase():
    return create_service_client()


def get_auth_client():
    return create_auth_client()


@lru_cache
def get_gateway() -> AIGateway:
    return AIGateway()


def current_user(authorization: Optional[str] = Header(None),
                 client=Depends(get_supabase)) -> AuthUser:
    return authenticate(client, authorization)


def require_admin(user: AuthUser = Depends(current_user),
                  client=Depends(get_supabase)) -> AuthUser:
    if not is_admin(client, user.id):
        logger.error("Admin access denied for user %s", user.id)
        raise Forbidden("Admin access required")
    return user


# ------------------------
# Auth / session gate
# ------------------------
@app.post("/auth/signup", status_code=201)
def signup(payload: SignUpRequest,
           auth_client=Depends(get_auth_client),
           client=Depends(get_supabase)):
    return sign_up(auth_client, client, payload.email, payload.password, payload.role)


@app.post("/auth/login")
def login(payload: Credentials,
          auth_client=Depends(get_auth_client),
          client=Depends(get_supabase)):
    return sign_in(auth_client, client, payload.email, payload.password)


@app.get("/auth/session")
def session(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return session_info(client, user)


# ------------------------
# Submission intake
# ------------------------
@app.post("/submissions", status_code=201)
def create_submission(
    id_document: UploadFile = File(...),
    selfie: UploadFile = File(...),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
    gateway: AIGateway = Depends(get_gateway),
):
    """
    Upload an ID document and a selfie, then run the AI analysis.
    Accepts JPG / PNG / WEBP up to 10MB each.
    """
    store = SubmissionStore(client)
    storage = DocumentStorage(client)

    def analyze(caller: AuthUser, request: AnalyzeRequest):
        return run_analysis(caller, request, store, storage, gateway)

    # One byte past the limit is enough for validate_image to reject it
    limit = settings.MAX_UPLOAD_BYTES + 1
    return submit_documents(
        user,
        UploadedImage(id_document.filename, id_document.content_type, id_document.file.read(limit)),
        UploadedImage(selfie.filename, selfie.content_type, selfie.file.read(limit)),
        store,
        storage,
        analyze,
    )


@app.get("/submissions")
def my_submissions(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return {"submissions": SubmissionStore(client).list_for_user(user.id)}


# ------------------------
# Analysis function
# ------------------------
@app.post("/functions/analyze-kyc")
async def analyze_kyc(request: Request,
                      client=Depends(get_supabase),
                      gateway: AIGateway = Depends(get_gateway)):
    logger.info("KYC Analysis request received")

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.MAX_REQUEST_BYTES:
        raise PayloadTooLarge()

    user = await run_in_threadpool(authenticate, client, request.headers.get("authorization"))
    logger.info("User authenticated: %s", user.id)

    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Invalid JSON body")

    try:
        payload = AnalyzeRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidInput(details=format_validation_errors(e.errors()))

    return await run_in_threadpool(
        run_analysis, user, payload, SubmissionStore(client), DocumentStorage(client), gateway
    )


# ------------------------
# Admin review
# ------------------------
@app.get("/admin/submissions")
def admin_submissions(admin: AuthUser = Depends(require_admin), client=Depends(get_supabase)):
    return {"submissions": list_submissions(SubmissionStore(client))}


@app.get("/admin/submissions/{submission_id}")
def admin_submission(submission_id: int,
                     admin: AuthUser = Depends(require_admin),
                     client=Depends(get_supabase)):
    return submission_detail(SubmissionStore(client), DocumentStorage(client), submission_id)


@app.post("/admin/submissions/{submission_id}/status")
def admin_set_status(submission_id: int,
                     payload: StatusUpdate,
                     admin: AuthUser = Depends(require_admin),
                     client=Depends(get_supabase)):
    logger.info("Admin %s sets submission %s to %s", admin.id, submission_id, payload.status)
    return update_status(SubmissionStore(client), submission_id, payload.status)


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "kyc-review"
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
