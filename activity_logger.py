# activity_logger.py
"""Single entry point for signup, login and chat-question activity rows.

Every caller (routes, chat, debug harnesses) goes through ActivityLogger.
A write failure is logged and reported in the returned LogResult; it is
never raised past log_event(). Missing required fields are the exception:
they raise ValidationError before the sink is touched.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from sqlmodel import Session

from errors import AppError, SinkWriteError, ValidationError
from models import SignupUser
from sheets import SheetsSink

logger = logging.getLogger(__name__)

IST = timezone(timedelta(hours=5, minutes=30), "IST")


def ist_timestamp(now: Optional[datetime] = None) -> Dict[str, str]:
    """Current time in India Standard Time, split for spreadsheet columns"""
    now = (now or datetime.now(timezone.utc)).astimezone(IST)
    return {
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%I:%M:%S %p") + " IST",
    }


class EventKind(str, Enum):
    SIGNUP = "signup"
    LOGIN = "login"
    LOGIN_INFO = "login_info"
    CHAT_QUESTION = "chat_question"


@dataclass(frozen=True)
class SheetLayout:
    title: str
    headers: Tuple[str, ...]
    fields: Tuple[str, ...]
    required: Tuple[str, ...]
    required_message: str

    def row(self, payload: dict, stamp: Dict[str, str]) -> list:
        values = {**payload, **stamp}
        return [str(values.get(f) or "") for f in self.fields]


LAYOUTS: Dict[EventKind, SheetLayout] = {
    EventKind.SIGNUP: SheetLayout(
        title="Sheet1",
        headers=("Name", "Email", "Username", "Organization", "Purpose", "Date", "Time"),
        fields=("name", "email", "username", "organization", "purpose", "date", "time"),
        required=("email", "name"),
        required_message="Email and name are required",
    ),
    EventKind.LOGIN: SheetLayout(
        title="User Logins",
        headers=("Email", "Name", "Date", "Time", "IP Address"),
        fields=("email", "name", "date", "time", "ip_address"),
        required=("email", "name"),
        required_message="Email and name are required",
    ),
    EventKind.LOGIN_INFO: SheetLayout(
        title="Login Info",
        headers=("Email", "IP Address", "Date", "Time"),
        fields=("email", "ip_address", "date", "time"),
        required=("email",),
        required_message="Email is required",
    ),
    EventKind.CHAT_QUESTION: SheetLayout(
        title="User Chats",
        headers=("Email", "Question", "Date", "Time"),
        fields=("email", "question", "date", "time"),
        required=("email", "question"),
        required_message="Email and question are required",
    ),
}

SIGNUP_EMAIL_COLUMN = 2  # column B of Sheet1


@dataclass
class LogResult:
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.error:
            data["error"] = self.error
        return data


class ActivityLogger:
    def __init__(self, sink_factory: Callable[[], SheetsSink] = SheetsSink.from_config):
        self._sink_factory = sink_factory
        self._sink = None
        # titles verified by this process; dropped again when an append to them fails
        self._ready = set()

    def sink(self):
        if self._sink is None:
            self._sink = self._sink_factory()
        return self._sink

    def validate(self, kind, payload: dict) -> SheetLayout:
        layout = LAYOUTS[EventKind(kind)]
        missing = [f for f in layout.required if not str(payload.get(f) or "").strip()]
        if missing:
            raise ValidationError(layout.required_message)
        return layout

    def log_event(self, kind, payload: dict) -> LogResult:
        """Append one row for this event. Never raises on sink failure."""
        layout = self.validate(kind, payload)
        row = layout.row(payload, ist_timestamp())

        try:
            sink = self.sink()
            if layout.title not in self._ready:
                try:
                    self._ensure_sheet(sink, layout)
                except Exception as e:
                    # the append below may still succeed
                    logger.warning(f"⚠️ Could not verify sheet '{layout.title}': {e}")
            sink.append_row(layout.title, row)
        except Exception as e:
            self._ready.discard(layout.title)
            logger.error(f"Failed to log {EventKind(kind).value} for {payload.get('email')}: {e}", exc_info=True)
            return LogResult(False, "Activity log sink unavailable")

        logger.info(f"Logged {EventKind(kind).value} for {payload.get('email')}")
        return LogResult(True)

    def ensure_structure(self) -> LogResult:
        """Create missing sheets and empty header rows. Safe to call repeatedly."""
        try:
            sink = self.sink()
            titles = set(sink.sheet_titles())
            for layout in LAYOUTS.values():
                self._ensure_sheet(sink, layout, titles)
        except Exception as e:
            logger.error(f"Error ensuring sheet structure: {e}", exc_info=True)
            return LogResult(False, "Failed to verify sheet structure")
        return LogResult(True)

    def _ensure_sheet(self, sink, layout: SheetLayout, titles=None):
        if titles is None:
            titles = set(sink.sheet_titles())
        if layout.title not in titles:
            logger.info(f"Creating sheet '{layout.title}'")
            sink.add_sheet(layout.title, len(layout.headers))
            titles.add(layout.title)

        header = sink.read_header(layout.title, len(layout.headers))
        if not any(str(cell).strip() for cell in header):
            sink.write_header(layout.title, list(layout.headers))
        elif [str(cell).strip() for cell in header] != list(layout.headers):
            # row 1 may be data; leave it alone
            logger.warning(f"⚠️ Unexpected header in '{layout.title}': {header}")
        self._ready.add(layout.title)

    def email_exists(self, email: str) -> bool:
        """Whether email appears in the signup sheet's email column"""
        title = LAYOUTS[EventKind.SIGNUP].title
        try:
            emails = self.sink().read_column(title, SIGNUP_EMAIL_COLUMN)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error checking if user exists: {e}", exc_info=True)
            raise SinkWriteError("Failed to check if user exists") from e

        exists = email in emails
        logger.info(f"Checking if email {email} exists in {title}: {exists}")
        return exists


def save_signup_profile(db: Session, payload: dict) -> SignupUser:
    """Persist the signup row in the Credential Store's users table"""
    stamp = ist_timestamp()
    user = SignupUser(
        name=payload.get("name") or "",
        email=payload["email"],
        username=payload.get("username") or "",
        organization=payload.get("organization") or "",
        purpose=payload.get("purpose") or "",
        signup_date=stamp["date"],
        signup_time=stamp["time"],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


activity_logger = ActivityLogger()


def get_activity_logger() -> ActivityLogger:
    return activity_logger
