import asyncio
import random
from typing import Any

from fastapi import status as http_status
import httpx
from pydantic import BaseModel

from app.core.config import brevo_logger, settings
from app.core.exceptions.types import AppException


class Contact(BaseModel):
    email: str
    name: str | None = None


class ListContact(BaseModel):
    to: list[Contact]


class BrevoService:
    """
    Thin async client for Brevo's transactional email endpoint.

    Transient failures (5xx, 429, timeouts and transport errors) are retried
    with exponential backoff and jitter; other 4xx responses fail at once.
    Every failure surfaces as an ``AppException``.
    """

    _base_url: str = settings.BREVO_BASE_URL
    _api_key: str = settings.BREVO_API_KEY
    _sender_email: str = settings.BREVO_SENDER_EMAIL
    _sender_name: str = settings.BREVO_SENDER_NAME
    _client: httpx.AsyncClient | None = None

    _BACKOFF_BASE: float = 1.0
    _BACKOFF_MAX: float = 10.0
    _JITTER: float = 0.2  # +/-20%
    _TIMEOUT: float = 15.0

    @classmethod
    def _init_client(cls) -> None:
        """Create the shared HTTP client if it does not exist yet."""
        if cls._client is None:
            cls._client = httpx.AsyncClient(
                base_url=cls._base_url,
                timeout=httpx.Timeout(cls._TIMEOUT),
            )
            brevo_logger.info("Brevo HTTP client initialized")

    @classmethod
    async def aclose(cls) -> None:
        """Close the shared HTTP client. Safe to call when it was never opened."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
            finally:
                cls._client = None
                brevo_logger.info("Brevo HTTP client closed")

    @classmethod
    async def init(
        cls,
        api_key: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
    ) -> None:
        """
        Configure credentials and sender, then (re)open the HTTP client.

        Args:
            api_key (str | None): Brevo API key. Unchanged when None.
            sender_email (str | None): Default sender address. Unchanged when None.
            sender_name (str | None): Default sender name. Unchanged when None.
        """
        if api_key is not None:
            cls._api_key = api_key
        if sender_email is not None:
            cls._sender_email = sender_email
        if sender_name is not None:
            cls._sender_name = sender_name
        await cls.aclose()
        cls._init_client()

    @classmethod
    def _compute_backoff(
        cls, attempt: int, err_headers: httpx.Headers | None = None
    ) -> float:
        """
        Seconds to wait before retry number ``attempt`` (1-based).

        Honors Brevo's ``x-sib-ratelimit-reset`` header when present and
        parseable; otherwise ``_BACKOFF_BASE * 2**(attempt-1)`` capped at
        ``_BACKOFF_MAX`` with multiplicative jitter.
        """
        if err_headers and "x-sib-ratelimit-reset" in err_headers:
            try:
                return float(err_headers.get("x-sib-ratelimit-reset"))
            except ValueError:
                pass  # Fall back to computed backoff
        base = min(cls._BACKOFF_BASE * (2 ** (attempt - 1)), cls._BACKOFF_MAX)
        jitter = random.uniform(1 - cls._JITTER, 1 + cls._JITTER)
        return base * jitter

    @classmethod
    def _auth_headers(cls, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "api-key": cls._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _body(response: httpx.Response) -> dict[str, Any] | str:
        """JSON body of ``response``, or its raw text."""
        try:
            return response.json()
        except ValueError:
            return response.text

    @classmethod
    async def _request(
        cls,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        max_attempts: int = 3,
    ) -> dict[str, Any] | str:
        """
        Call the Brevo API, retrying transient failures.

        Args:
            method: HTTP method.
            endpoint: Path relative to ``BREVO_BASE_URL``.
            json: Optional JSON body.
            headers: Extra headers merged over the auth headers.
            max_attempts: Initial try plus retries.

        Returns:
            dict[str, Any] | str: The JSON body, or the raw text when the
            response is not JSON.

        Raises:
            AppException: Immediately on a non-retriable 4xx (with Brevo's
                status). After the last attempt, 429 for rate limiting, 502
                for 5xx responses and 503 for timeouts or transport errors.
        """
        if cls._client is None:
            cls._init_client()
        assert cls._client is not None

        attempt = 0
        while True:
            attempt += 1
            last_try = attempt >= max_attempts

            try:
                response = await cls._client.request(
                    method, endpoint, headers=cls._auth_headers(headers), json=json
                )
                response.raise_for_status()

            except httpx.HTTPStatusError as exc:
                code = exc.response.status_code
                err_body = cls._body(exc.response)

                if code != 429 and code < 500:
                    brevo_logger.error(
                        f"Brevo rejected {method} {endpoint}: {code} {err_body}"
                    )
                    raise AppException(
                        message=f"HTTP error {code}: {err_body}", status_code=code
                    ) from exc

                if last_try:
                    brevo_logger.error(
                        f"Brevo still failing after {attempt} attempts: "
                        f"{code} {err_body}"
                    )
                    raise AppException(
                        message=f"Brevo error after retries: {code}",
                        status_code=(
                            http_status.HTTP_429_TOO_MANY_REQUESTS
                            if code == 429
                            else http_status.HTTP_502_BAD_GATEWAY
                        ),
                    ) from exc

                wait = cls._compute_backoff(
                    attempt, exc.response.headers if code == 429 else None
                )
                brevo_logger.warning(
                    f"Brevo returned {code} (attempt {attempt}/{max_attempts}), "
                    f"retrying in {wait:.1f}s"
                )

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if last_try:
                    brevo_logger.error(
                        f"Brevo unreachable after {attempt} attempts: {exc}"
                    )
                    raise AppException(
                        message="Brevo network error after retries",
                        status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
                    ) from exc

                wait = cls._compute_backoff(attempt)
                brevo_logger.warning(
                    f"Brevo request failed (attempt {attempt}/{max_attempts}): {exc}; "
                    f"retrying in {wait:.1f}s"
                )

            else:
                body = cls._body(response)
                brevo_logger.info(f"Brevo accepted {method} {endpoint}: {body}")
                return body

            await asyncio.sleep(wait)

    @classmethod
    async def send_transactional_email(
        cls,
        subject: str,
        to: ListContact,
        htmlContent: str | None = None,
        textContent: str | None = None,
        sender: Contact | None = None,
    ) -> dict[str, Any] | str:
        """
        Send one transactional email.

        Args:
            subject: Subject line.
            to: Recipients.
            htmlContent: HTML body.
            textContent: Plain text body.
            sender: Overrides the configured sender.

        Returns:
            The Brevo response (normally ``{"messageId": ...}``).

        Raises:
            ValueError: If neither body is given or there is no recipient.
            AppException: If Brevo rejects the request or stays unreachable.
        """
        if not htmlContent and not textContent:
            raise ValueError("Either htmlContent or textContent must be provided")
        if not to.to:
            raise ValueError("At least one recipient must be provided")

        sender = sender or Contact(email=cls._sender_email, name=cls._sender_name)
        payload: dict[str, Any] = {
            "sender": sender.model_dump(exclude_none=True),
            "subject": subject,
            **to.model_dump(exclude_none=True),
        }
        if textContent:
            payload["textContent"] = textContent
        if htmlContent:
            payload["htmlContent"] = htmlContent

        return await cls._request("POST", "/smtp/email", json=payload)
