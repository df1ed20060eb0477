"""
Gateway error taxonomy

Every failure the gateway can surface, with the HTTP status it maps to.
"""

from enum import Enum
from typing import Optional


class GatewayErrorCode(str, Enum):
    DOMAIN_NOT_ALLOWED = "domain_not_allowed"
    NOT_FOUND = "not_found"
    FORBIDDEN_UPSTREAM = "forbidden_upstream"
    RATE_LIMITED_UPSTREAM = "rate_limited_upstream"
    SERVICE_UNAVAILABLE_UPSTREAM = "service_unavailable_upstream"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"
    PDF = "pdf"
    TOO_LARGE = "too_large"
    EXTRACTION_FAILED = "extraction_failed"
    BUSY = "busy"
    MISSING_QUERY = "missing_query"
    MISSING_URL = "missing_url"
    UPSTREAM_MISCONFIGURED = "upstream_misconfigured"
    ALLOW_LIST_EMPTY = "allow_list_empty"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"


STATUS_BY_CODE = {
    GatewayErrorCode.DOMAIN_NOT_ALLOWED: 403,
    GatewayErrorCode.NOT_FOUND: 404,
    GatewayErrorCode.FORBIDDEN_UPSTREAM: 403,
    GatewayErrorCode.RATE_LIMITED_UPSTREAM: 429,
    GatewayErrorCode.SERVICE_UNAVAILABLE_UPSTREAM: 503,
    GatewayErrorCode.UNSUPPORTED_CONTENT_TYPE: 415,
    GatewayErrorCode.PDF: 415,
    GatewayErrorCode.TOO_LARGE: 413,
    GatewayErrorCode.EXTRACTION_FAILED: 422,
    GatewayErrorCode.BUSY: 429,
    GatewayErrorCode.MISSING_QUERY: 400,
    GatewayErrorCode.MISSING_URL: 400,
    GatewayErrorCode.UPSTREAM_MISCONFIGURED: 500,
    GatewayErrorCode.ALLOW_LIST_EMPTY: 503,
    GatewayErrorCode.UPSTREAM_ERROR: 500,
    GatewayErrorCode.TIMEOUT: 500,
}

# Upstream statuses passed through as-is; anything else becomes a 500
_UPSTREAM_CODES = {
    403: GatewayErrorCode.FORBIDDEN_UPSTREAM,
    404: GatewayErrorCode.NOT_FOUND,
    429: GatewayErrorCode.RATE_LIMITED_UPSTREAM,
    503: GatewayErrorCode.SERVICE_UNAVAILABLE_UPSTREAM,
}

# Status-only fallback for clients that receive no code field
_CODE_BY_STATUS = {
    400: GatewayErrorCode.MISSING_URL,
    403: GatewayErrorCode.FORBIDDEN_UPSTREAM,
    404: GatewayErrorCode.NOT_FOUND,
    413: GatewayErrorCode.TOO_LARGE,
    415: GatewayErrorCode.UNSUPPORTED_CONTENT_TYPE,
    422: GatewayErrorCode.EXTRACTION_FAILED,
    429: GatewayErrorCode.RATE_LIMITED_UPSTREAM,
    503: GatewayErrorCode.SERVICE_UNAVAILABLE_UPSTREAM,
}


class GatewayError(Exception):
    """A classified gateway failure."""

    def __init__(self, code: GatewayErrorCode, message: str = "", url: Optional[str] = None):
        self.code = GatewayErrorCode(code)
        self.message = message or self.code.value.replace("_", " ")
        self.url = url
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return STATUS_BY_CODE[self.code]

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code.value}
        if self.url:
            body["url"] = self.url
        return body

    @classmethod
    def from_upstream_status(cls, status: int, url: Optional[str] = None) -> "GatewayError":
        code = _UPSTREAM_CODES.get(status, GatewayErrorCode.UPSTREAM_ERROR)
        return cls(code, f"Upstream HTTP {status}", url=url)

    @classmethod
    def from_response(cls, status: int, body: Optional[dict] = None, url: Optional[str] = None) -> "GatewayError":
        """Rebuild an error from a gateway HTTP response (client side)."""
        body = body if isinstance(body, dict) else {}
        message = str(body.get("error") or f"HTTP {status}")
        raw_code = body.get("code")
        try:
            code = GatewayErrorCode(raw_code)
        except ValueError:
            if status == 415 and "pdf" in message.lower():
                code = GatewayErrorCode.PDF
            else:
                code = _CODE_BY_STATUS.get(status, GatewayErrorCode.UPSTREAM_ERROR)
        return cls(code, message, url=body.get("url") or url)
