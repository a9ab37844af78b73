# auth_gate.py
import logging
from typing import Optional
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

import config
from session_tokens import decode_session, token_from_request

logger = logging.getLogger(__name__)


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Redirects unauthenticated requests for the protected page to sign-in.

    Only a request whose path is exactly ``protected_path`` is inspected.
    Everything else passes through untouched, signed in or not.
    """

    def __init__(self, app, protected_path: Optional[str] = None, login_path: Optional[str] = None):
        super().__init__(app)
        self.protected_path = protected_path or config.PROTECTED_PATH
        self.login_path = login_path or config.LOGIN_PATH

    async def dispatch(self, request, call_next):
        if request.url.path != self.protected_path:
            return await call_next(request)

        session = decode_session(token_from_request(request))
        if session is None:
            original = request.url.path
            if request.url.query:
                original = f"{original}?{request.url.query}"
            logger.info(f"Unauthenticated request to {original}, redirecting to {self.login_path}")
            return RedirectResponse(
                f"{self.login_path}?{urlencode({'callbackUrl': original})}",
                status_code=307,
            )

        request.state.session = session
        return await call_next(request)
