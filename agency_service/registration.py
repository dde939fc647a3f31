"""HTTP client for the external tax registration status API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union
from urllib.parse import quote

import httpx

from .models import RegistrationState, RegistrationStatus

logger = logging.getLogger("agencies.registration")


class RegistrationProviderError(RuntimeError):
    """Raised when the registration API is unreachable or misbehaves."""


@dataclass(frozen=True)
class RegistrationSettings:
    """Connection settings for the registration status API."""

    base_url: str = "http://localhost:8081"
    timeout: float = 10.0
    verify: Union[bool, str] = True


class StatusProvider(Protocol):
    def lookup(self, tax_id: str) -> Optional[RegistrationStatus]:
        ...


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Registration API base URL must not be empty")
    return cleaned.rstrip("/")


def _optional_str(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    return str(value)


def parse_registration_status(payload: object) -> RegistrationStatus:
    """Build a :class:`RegistrationStatus` from a decoded JSON body."""

    if not isinstance(payload, dict):
        raise RegistrationProviderError("Registration API returned an unexpected response payload")

    try:
        tax_id = str(payload["taxId"])
        raw_status = payload["status"]
    except KeyError as exc:
        raise RegistrationProviderError("Registration API response was missing required fields") from exc

    try:
        status = RegistrationState(raw_status)
    except ValueError as exc:
        raise RegistrationProviderError(
            f"Registration API returned an unknown status {raw_status!r}"
        ) from exc

    return RegistrationStatus(
        name=_optional_str(payload, "name"),
        legal_name=_optional_str(payload, "legalName"),
        tax_id=tax_id,
        status=status,
    )


class RegistrationStatusProvider:
    """Look up the registration status of a tax ID with a single blocking GET."""

    def __init__(self, settings: RegistrationSettings) -> None:
        self._base_url = _normalize_base_url(settings.base_url)
        self._timeout = settings.timeout
        self._verify = settings.verify

    @property
    def base_url(self) -> str:
        return self._base_url

    def lookup(self, tax_id: str) -> Optional[RegistrationStatus]:
        cleaned = (tax_id or "").strip()
        if not cleaned:
            raise ValueError("Tax ID must not be empty")

        url = f"{self._base_url}/situacao-cadastral/{quote(cleaned, safe='')}"
        logger.debug("Requesting registration status from %s", url)

        try:
            response = httpx.get(url, timeout=self._timeout, verify=self._verify)
        except httpx.RequestError as exc:
            raise RegistrationProviderError(f"Failed to contact registration API: {exc}") from exc

        if response.status_code == 404:
            logger.info("Registration API has no record for tax ID %s", cleaned)
            return None
        if response.status_code >= 400:
            raise RegistrationProviderError(
                f"Registration API request failed with status {response.status_code}"
            )
        if response.status_code == 204 or not response.content.strip():
            logger.info("Registration API returned no body for tax ID %s", cleaned)
            return None

        try:
            data = response.json()
        except ValueError as exc:
            raise RegistrationProviderError("Registration API returned an invalid response") from exc

        if data is None:
            logger.info("Registration API returned null for tax ID %s", cleaned)
            return None
        return parse_registration_status(data)


__all__ = [
    "RegistrationProviderError",
    "RegistrationSettings",
    "RegistrationStatusProvider",
    "StatusProvider",
    "parse_registration_status",
]
