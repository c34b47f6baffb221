"""ZeptoMail implementation of EmailProvider.

Renders a Jinja2 template per EmailTemplate kind and posts it to the
ZeptoMail HTTP API. Any failure (template error, missing token, non-2xx,
transport error) is logged and raised as DeliveryError so callers can
report it without touching state they already persisted.
"""

import os
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from config import EmailSettings
from errors import DeliveryError
from infrastructure.email.protocol import EmailTemplate
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

# template kind -> (subject, html template, plain-text template)
_TEMPLATES = {
    EmailTemplate.VERIFY_EMAIL: (
        "Verify your email - Parley",
        "verify_email.html",
        "verify_email.txt",
    ),
    EmailTemplate.RESET_PASSWORD: (
        "Reset your password - Parley",
        "reset_password.html",
        "reset_password.txt",
    ),
}


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_url: str = "https://parley.chat",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_url = app_url
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def send(
        self,
        to_address: str,
        template_kind: EmailTemplate,
        payload: Mapping[str, Any],
    ) -> None:
        subject, html_name, text_name = _TEMPLATES[EmailTemplate(template_kind)]
        context = {"app_url": self._app_url, **payload}
        try:
            html_body = self._jinja.get_template(html_name).render(**context)
            text_body = self._jinja.get_template(text_name).render(**context)
        except TemplateError as e:
            log.error(
                "email_render_failed",
                template=html_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeliveryError("email could not be rendered") from e
        await self._send(
            to_address, payload.get("user_name"), subject, html_body, text_body
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> None:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            raise DeliveryError("email delivery is not configured")

        body: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            body["textbody"] = text_body

        auth = self._settings.zepto_api_token
        if not auth.startswith("Zoho-enczapikey "):
            auth = f"Zoho-enczapikey {auth}"

        headers = {"Authorization": auth, "Content-Type": "application/json"}

        try:
            response = await self._http.post(_ZEPTO_API_URL, json=body, headers=headers)
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeliveryError("email could not be sent") from e

        if response.status_code not in (200, 201, 202):
            log.error(
                "email_send_failed",
                to_email=to_email,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            raise DeliveryError(
                "email could not be sent", details={"status_code": response.status_code}
            )

        log.info("email_sent_success", to_email=to_email, subject=subject)
