"""
portfolio_ops.clients.n8n

HTTP client boundary for the n8n image-copies webhook.

Responsibilities:
- Post an image as multipart form data together with its source and owner uid.
- Classify the reply: generated image bytes, JSON, or plain text.
- Surface non-2xx replies as `N8nRelayError` with the decoded payload.
- Surface transport failures (connect, timeout) as `N8nUnavailableError`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from portfolio_ops.settings import Settings


class N8nRelayError(Exception):
    def __init__(self, status: int, payload: Any) -> None:
        super().__init__(f"n8n responded with status {status}")
        self.status = status
        self.payload = payload


class N8nUnavailableError(Exception):
    """The webhook could not be reached or did not answer in time."""


@dataclass(frozen=True, slots=True)
class N8nReply:
    status: int
    content_type: str
    body: bytes
    payload: Any

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


def _decode(content_type: str, body: bytes) -> Any:
    if content_type.startswith("image/"):
        return {"contentType": content_type, "sizeBytes": len(body)}
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


class N8nWebhookClient:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    async def send_image(
        self,
        *,
        data: bytes,
        file_name: str,
        content_type: str,
        source: str,
        uid: str,
    ) -> N8nReply:
        try:
            r = await self._http.post(
                self._settings.n8n_copy_webhook_url,
                files={"image": (file_name, data, content_type)},
                data={"source": source, "uid": uid},
                timeout=self._settings.n8n_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise N8nUnavailableError(
                f"Could not reach the n8n webhook ({type(e).__name__})."
            ) from e
        reply_type = r.headers.get("content-type", "").split(";")[0].strip().lower()
        payload = _decode(reply_type, r.content)
        if not r.is_success:
            raise N8nRelayError(r.status_code, payload)
        return N8nReply(
            status=r.status_code, content_type=reply_type, body=r.content, payload=payload
        )


# --- Module Notes -----------------------------------------------------------
# The webhook URL is absolute, so the shared AsyncClient needs no base_url.
