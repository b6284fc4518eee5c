import base64
import binascii
import hashlib
import hmac
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from mcp_registry.config import Config, get_config
from mcp_registry.models.errors import ErrorCode
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)

AUTH_COOKIE_NAME = "mcp_registry_auth"
COOKIE_MAX_AGE = 7 * 24 * 60 * 60
AUTH_REALM = 'Basic realm="MCP Registry"'

# Successful Basic logins on this route also hand out the session cookie.
COOKIE_ISSUING_PATH = "/api/registry/servers"


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def create_auth_cookie(secret: str, now: float | None = None) -> str:
    """Cookie value: base64("authenticated:<issued_at>:<hmac>")."""
    payload = f"authenticated:{int(now if now is not None else time.time())}"
    token = f"{payload}:{_sign(payload, secret)}"
    return base64.b64encode(token.encode()).decode()


def is_valid_auth_cookie(value: str, secret: str, now: float | None = None) -> bool:
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False

    payload, _, signature = decoded.rpartition(":")
    prefix, _, issued_at = payload.partition(":")
    if prefix != "authenticated" or not issued_at.isdigit():
        return False
    if not secrets.compare_digest(signature, _sign(payload, secret)):
        return False

    age = (now if now is not None else time.time()) - int(issued_at)
    return 0 <= age <= COOKIE_MAX_AGE


def parse_basic_credentials(header: str) -> tuple[str, str] | None:
    """Extract (username, password) from an `Authorization: Basic ...` header."""
    if not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[6:], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def _error_response(message: str, code: ErrorCode, status_code: int) -> JSONResponse:
    headers = {"WWW-Authenticate": AUTH_REALM} if status_code == 401 else None
    return JSONResponse(
        content={"error": message, "code": code.value}, status_code=status_code, headers=headers
    )


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """
    HTTP Basic authentication for the registry API.

    A request is let through when it carries a valid `mcp_registry_auth`
    cookie or Basic credentials matching REGISTRY_USERNAME / REGISTRY_PASSWORD.
    """

    def __init__(
        self, app: ASGIApp, exclude_paths: list[str] | None = None, config: Config | None = None
    ) -> None:
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or [])
        self.config = config or get_config()

        logger.info("basic_auth_middleware_initialized", exclude_paths=sorted(self.exclude_paths))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exclude_paths or request.method == "OPTIONS":
            return await call_next(request)

        username = self.config.registry_username
        password = self.config.registry_password.get_secret_value() if self.config.registry_password else None
        if not username or not password:
            logger.error("basic_auth_not_configured")
            return _error_response("Server configuration error", ErrorCode.INTERNAL_ERROR, 500)

        cookie = request.cookies.get(AUTH_COOKIE_NAME)
        if cookie and is_valid_auth_cookie(cookie, password):
            request.state.auth_method = "cookie"
            return self._with_security_headers(await call_next(request))

        authorization_header = request.headers.get("authorization")
        if not authorization_header or not authorization_header.startswith("Basic "):
            return _error_response("Unauthorized", ErrorCode.UNAUTHORIZED, 401)

        credentials = parse_basic_credentials(authorization_header)
        if credentials is None or not (
            secrets.compare_digest(credentials[0].encode(), username.encode())
            and secrets.compare_digest(credentials[1].encode(), password.encode())
        ):
            logger.warning("basic_auth_rejected", path=request.url.path)
            return _error_response("Invalid credentials", ErrorCode.UNAUTHORIZED, 401)

        request.state.auth_method = "basic"
        response = await call_next(request)

        if request.method == "GET" and request.url.path == COOKIE_ISSUING_PATH and response.status_code < 400:
            response.set_cookie(
                AUTH_COOKIE_NAME,
                create_auth_cookie(password),
                max_age=COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
            )
        return self._with_security_headers(response)

    @staticmethod
    def _with_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
