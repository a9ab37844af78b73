# activity_routes.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

import config
from activity_logger import ActivityLogger, EventKind, get_activity_logger, save_signup_profile
from database import get_session
from errors import ConfigurationError, SinkWriteError, ValidationError
from schemas import EmailRequest, LoginLogRequest, SignupRequest

logger = logging.getLogger(__name__)

router = APIRouter()
debug_router = APIRouter()


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _check_email(email: str, activity: ActivityLogger) -> dict:
    email = email.strip()
    if not email:
        raise ValidationError("Email is required")
    return {"exists": activity.email_exists(email)}


# ---------------------------
# Signup lookups
# ---------------------------
@router.post("/api/check-user-exists")
def check_user_exists(body: EmailRequest, activity: ActivityLogger = Depends(get_activity_logger)):
    return _check_email(body.email, activity)


@router.post("/api/check-email-exists")
def check_email_exists(body: EmailRequest, activity: ActivityLogger = Depends(get_activity_logger)):
    return _check_email(body.email, activity)


@router.get("/api/check-email-exists")
def check_email_exists_get(email: str = "", activity: ActivityLogger = Depends(get_activity_logger)):
    return _check_email(email, activity)


# ---------------------------
# Activity logging
# ---------------------------
@router.post("/api/log-login")
def log_login(body: LoginLogRequest, request: Request,
              activity: ActivityLogger = Depends(get_activity_logger)):
    ip_address = client_ip(request)
    result = activity.log_event(
        EventKind.LOGIN, {"email": body.email.strip(), "name": body.name.strip(), "ip_address": ip_address}
    )
    if not result.success:
        raise SinkWriteError("Failed to log login")
    return {"success": True}


@router.post("/api/log-login-info")
def log_login_info(body: EmailRequest, request: Request,
                   activity: ActivityLogger = Depends(get_activity_logger)):
    result = activity.log_event(
        EventKind.LOGIN_INFO, {"email": body.email.strip(), "ip_address": client_ip(request)}
    )
    if not result.success:
        raise SinkWriteError("Failed to log login info")
    return {"success": True}


@router.post("/api/user-data")
def save_user_data(body: SignupRequest, db: Session = Depends(get_session),
                   activity: ActivityLogger = Depends(get_activity_logger)):
    if not config.sheets_configured():
        logger.error("Missing required Google Sheets environment variables")
        raise ConfigurationError("Google Sheets configuration is missing")

    payload = {k: (v.strip() if isinstance(v, str) else v) for k, v in body.model_dump().items()}
    activity.validate(EventKind.SIGNUP, payload)

    # sheet first so a failed append leaves no users row behind
    result = activity.log_event(EventKind.SIGNUP, payload)
    if not result.success:
        raise SinkWriteError("Failed to save user data to spreadsheet")
    save_signup_profile(db, payload)
    return {"success": True}


@router.get("/api/ensure-sheet-structure")
def ensure_sheet_structure(activity: ActivityLogger = Depends(get_activity_logger)):
    result = activity.ensure_structure()
    if not result.success:
        return JSONResponse({"success": False, "error": result.error}, status_code=500)
    return {"success": True, "message": "Sheet structure has been verified or created"}


# ---------------------------
# Debug harnesses (only mounted when ENABLE_DEBUG_ROUTES is set)
# ---------------------------
@debug_router.get("/api/manual-log")
def manual_log(email: str = "test@example.com", message: str = "Test message from manual logger",
               activity: ActivityLogger = Depends(get_activity_logger)):
    logger.info(f"Manual logger: logging message for {email}")
    result = activity.log_event(EventKind.CHAT_QUESTION, {"email": email, "question": message})
    return {"success": True, "message": "Manual logger executed successfully", "result": result.to_dict()}


@debug_router.get("/api/debug-sheets")
def debug_sheets(activity: ActivityLogger = Depends(get_activity_logger)):
    question = f"This is a debug test at {datetime.now(timezone.utc).isoformat()}"
    result = activity.log_event(EventKind.CHAT_QUESTION, {"email": "debug-test@example.com", "question": question})
    return {"success": result.success, "message": "Debug test completed", "result": result.to_dict()}
