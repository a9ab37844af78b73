# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# Credential Store (Supabase Postgres in production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./repochat.db")

# Session
SESSION_SECRET = os.getenv("SESSION_SECRET", os.getenv("NEXTAUTH_SECRET", ""))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session-token")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(30 * 24 * 3600)))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

# Auth gate
PROTECTED_PATH = os.getenv("PROTECTED_PATH", "/repositories")
LOGIN_PATH = os.getenv("LOGIN_PATH", "/login")

# OAuth providers
GITHUB_ID = os.getenv("GITHUB_ID")
GITHUB_SECRET = os.getenv("GITHUB_SECRET")
GITLAB_CLIENT_ID = os.getenv("GITLAB_CLIENT_ID")
GITLAB_CLIENT_SECRET = os.getenv("GITLAB_CLIENT_SECRET")
GITLAB_URL = os.getenv("GITLAB_URL", "https://gitlab.com")
OAUTH_REDIRECT_BASE = os.getenv("OAUTH_REDIRECT_BASE", "http://localhost:8000")

# Google Sheets (Activity Log Sink)
GOOGLE_SHEETS_CLIENT_EMAIL = os.getenv("GOOGLE_SHEETS_CLIENT_EMAIL")
GOOGLE_SHEETS_PRIVATE_KEY = (os.getenv("GOOGLE_SHEETS_PRIVATE_KEY") or "").replace("\\n", "\n")
GOOGLE_SHEETS_ID = os.getenv("GOOGLE_SHEETS_ID")

# OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


def sheets_configured() -> bool:
    return bool(GOOGLE_SHEETS_CLIENT_EMAIL and GOOGLE_SHEETS_PRIVATE_KEY and GOOGLE_SHEETS_ID)

# /api/manual-log and /api/debug-sheets
ENABLE_DEBUG_ROUTES = os.getenv("ENABLE_DEBUG_ROUTES", "false").lower() == "true"
