"""Security headers for responses served by the framework stage.

Applies the usual hardening headers (MIME sniffing, clickjacking, referrer
leakage, cross-origin isolation). No Content-Security-Policy is set: the
proxied pages load scripts from their own alternate prefixes and would break
under a strict policy.
"""

from dataclasses import dataclass
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


@dataclass(frozen=True)
class SecurityHeadersConfig:
    x_content_type_options: str = "nosniff"
    x_frame_options: str = "SAMEORIGIN"
    referrer_policy: str = "no-referrer"
    cross_origin_opener_policy: str = "same-origin"
    cross_origin_resource_policy: str = "same-origin"
    origin_agent_cluster: str = "?1"
    x_dns_prefetch_control: str = "off"
    x_download_options: str = "noopen"
    x_permitted_cross_domain_policies: str = "none"
    x_xss_protection: str = "0"
    strict_transport_security: Optional[str] = "max-age=15552000; includeSubDomains"

    def items(self) -> list[tuple[str, str]]:
        headers = [
            ("X-Content-Type-Options", self.x_content_type_options),
            ("X-Frame-Options", self.x_frame_options),
            ("Referrer-Policy", self.referrer_policy),
            ("Cross-Origin-Opener-Policy", self.cross_origin_opener_policy),
            ("Cross-Origin-Resource-Policy", self.cross_origin_resource_policy),
            ("Origin-Agent-Cluster", self.origin_agent_cluster),
            ("X-DNS-Prefetch-Control", self.x_dns_prefetch_control),
            ("X-Download-Options", self.x_download_options),
            ("X-Permitted-Cross-Domain-Policies", self.x_permitted_cross_domain_policies),
            ("X-XSS-Protection", self.x_xss_protection),
        ]
        if self.strict_transport_security:
            headers.append(("Strict-Transport-Security", self.strict_transport_security))
        return headers


class SecurityHeadersMiddleware:
    """Add security headers to every HTTP response and drop ``X-Powered-By``.

    Usage::

        app.add_middleware(SecurityHeadersMiddleware)
    """

    def __init__(self, app: ASGIApp, config: Optional[SecurityHeadersConfig] = None):
        self.app = app
        self.config = config or SecurityHeadersConfig()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.config.items():
                    headers.setdefault(name, value)
                if "x-powered-by" in headers:
                    del headers["x-powered-by"]
            await send(message)

        await self.app(scope, receive, send_with_headers)
