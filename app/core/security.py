import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.exceptions import ArtMarketException, PayloadTooLargeError, RateLimitedError
from app.core.rate_limit import RateLimitRule

logger = logging.getLogger(__name__)

# =============================================================================
# Header hardening
# =============================================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; "
        "img-src 'self' data: https:; "
        "script-src 'self'; connect-src 'self'; frame-src 'none'; "
        "object-src 'none'; upgrade-insecure-requests"
    ),
}

UPLOADS_PREFIX = "/uploads"


class SecurityHeadersMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Uploaded images are consumed cross-origin by the frontend
        path = scope.get("path", "")
        resource_policy = (
            "cross-origin" if path.startswith(UPLOADS_PREFIX) else "same-origin"
        )

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in SECURITY_HEADERS.items():
                    headers[name] = value
                headers["Cross-Origin-Resource-Policy"] = resource_policy
                if "server" in headers:
                    del headers["server"]
            await send(message)

        await self.app(scope, receive, send_with_headers)


# =============================================================================
# Request interceptor pipeline
# =============================================================================


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    client_ip: str
    headers: Headers

    @property
    def content_length(self) -> Optional[int]:
        raw = self.headers.get("content-length")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    @classmethod
    def from_scope(cls, scope: Scope, trust_proxy: bool = False) -> "RequestContext":
        headers = Headers(scope=scope)
        client = scope.get("client")
        client_ip = client[0] if client else "unknown"
        if trust_proxy:
            # Only the hop appended by our proxy is trustworthy
            forwarded = headers.get("x-forwarded-for", "")
            hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
            if hops:
                client_ip = hops[-1]
        return cls(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/"),
            client_ip=client_ip,
            headers=headers,
        )


class RequestInterceptor:
    """One step of the pipeline: return an exception to short-circuit."""

    async def intercept(self, ctx: RequestContext) -> Optional[ArtMarketException]:
        raise NotImplementedError

    def wrap_receive(self, ctx: RequestContext, receive: Receive) -> Receive:
        """Hook for interceptors that need to watch the body as it streams in."""
        return receive


class BodySizeLimit(RequestInterceptor):
    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes

    async def intercept(self, ctx: RequestContext) -> Optional[ArtMarketException]:
        length = ctx.content_length
        if length is not None and length > self.max_bytes:
            logger.warning(f"Rejected {length} byte body on {ctx.method} {ctx.path}")
            return PayloadTooLargeError(self.max_bytes)
        return None

    def wrap_receive(self, ctx: RequestContext, receive: Receive) -> Receive:
        # Chunked bodies declare no length, so count what actually arrives
        received = 0

        async def counting_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    logger.warning(
                        f"Rejected streamed body over {self.max_bytes} bytes "
                        f"on {ctx.method} {ctx.path}"
                    )
                    raise PayloadTooLargeError(self.max_bytes)
            return message

        return counting_receive


class RateLimit(RequestInterceptor):
    def __init__(self, rules: Sequence[RateLimitRule]):
        self.rules = list(rules)

    async def intercept(self, ctx: RequestContext) -> Optional[ArtMarketException]:
        if ctx.method == "OPTIONS":
            return None
        for rule in self.rules:
            if not rule.matches(ctx.method, ctx.path):
                continue
            result = rule.limiter.hit(f"{rule.name}:{ctx.client_ip}")
            if not result.allowed:
                logger.warning(
                    f"Rate limit '{rule.name}' exceeded by {ctx.client_ip} "
                    f"on {ctx.method} {ctx.path}"
                )
                return RateLimitedError(result.retry_after, result.limit)
        return None


class InterceptorPipeline:
    """Runs interceptors in order; the first rejection answers the request."""

    def __init__(
        self,
        app: ASGIApp,
        interceptors: Sequence[RequestInterceptor],
        trust_proxy: bool = False,
    ):
        self.app = app
        self.interceptors: List[RequestInterceptor] = list(interceptors)
        self.trust_proxy = trust_proxy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ctx = RequestContext.from_scope(scope, trust_proxy=self.trust_proxy)
        for interceptor in self.interceptors:
            rejection = await interceptor.intercept(ctx)
            if rejection is not None:
                response = rejection.to_response()
                await response(scope, receive, send)
                return
            receive = interceptor.wrap_receive(ctx, receive)

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except PayloadTooLargeError as e:
            if response_started:
                raise
            await e.to_response()(scope, receive, send)


# =============================================================================
# Sanitization
# =============================================================================

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME_RE = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_OBJECT_RE = re.compile(r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>", re.IGNORECASE)
_EMBED_RE = re.compile(r"<embed\b[^<]*(?:(?!</embed>)<[^<]*)*</embed>", re.IGNORECASE)
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)

_BODY_PATTERNS = (
    _SCRIPT_RE,
    _JS_PROTOCOL_RE,
    _INLINE_HANDLER_RE,
    _IFRAME_RE,
    _OBJECT_RE,
    _EMBED_RE,
)
_QUERY_PATTERNS = (_SCRIPT_RE, _JS_PROTOCOL_RE, _INLINE_HANDLER_RE)


def strip_script_vectors(value: str, patterns=_BODY_PATTERNS) -> str:
    for pattern in patterns:
        value = pattern.sub("", value)
    return value


def sanitize_value(value: Any, key: Optional[str] = None) -> Any:
    """Recursively strip script vectors from every string, passwords excepted."""
    if isinstance(value, str):
        if key and "password" in key.lower():
            return value
        return strip_script_vectors(value)
    if isinstance(value, dict):
        return {k: sanitize_value(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_value(v, key) for v in value]
    return value


class SanitizeMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        query_string = scope.get("query_string", b"")
        if query_string:
            scope["query_string"] = self._sanitize_query(query_string)

        content_type = Headers(scope=scope).get("content-type", "")
        if "application/json" not in content_type:
            await self.app(scope, receive, send)
            return

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away before the body was complete
                await self.app(scope, receive, send)
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        body = self._sanitize_json(body)
        scope["headers"] = [
            (name, value)
            for name, value in scope["headers"]
            if name.lower() != b"content-length"
        ] + [(b"content-length", str(len(body)).encode("latin-1"))]

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    @staticmethod
    def _sanitize_query(query_string: bytes) -> bytes:
        pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
        cleaned = [(k, strip_script_vectors(v, _QUERY_PATTERNS)) for k, v in pairs]
        if cleaned == pairs:
            return query_string
        return urlencode(cleaned).encode("latin-1")

    @staticmethod
    def _sanitize_json(body: bytes) -> bytes:
        if not body:
            return body
        try:
            data = json.loads(body)
        except ValueError:
            # Left for the framework to reject as malformed
            return body
        cleaned = sanitize_value(data)
        if cleaned == data:
            return body
        return json.dumps(cleaned).encode("utf-8")
