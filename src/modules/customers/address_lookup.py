"""Postal-code (CEP) lookup backed by the public ViaCEP API.

Best effort: every failure mode (malformed CEP, timeout, HTTP error,
unknown CEP, unexpected body) resolves to ``None`` and is logged; callers
keep whatever the user typed.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

import httpx
import structlog
from decouple import config

from modules.customers.dtos import ResolvedAddress

logger = structlog.get_logger(__name__)

VIACEP_BASE_URL = config("VIACEP_BASE_URL", default="https://viacep.com.br/ws")
ADDRESS_LOOKUP_TIMEOUT = config("ADDRESS_LOOKUP_TIMEOUT", default=5.0, cast=float)


class IAddressLookup(Protocol):
    def resolve(self, postal_code: str) -> Optional[ResolvedAddress]: ...


def normalize_postal_code(postal_code: str) -> str:
    return re.sub(r"\D", "", postal_code or "")


class ViaCepAddressLookup:
    """``IAddressLookup`` over ViaCEP (``GET {base}/{cep}/json/``)."""

    def __init__(
        self,
        base_url: str = VIACEP_BASE_URL,
        timeout: float = ADDRESS_LOOKUP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def resolve(self, postal_code: str) -> Optional[ResolvedAddress]:
        cep = normalize_postal_code(postal_code)
        log = logger.bind(postal_code=cep)
        if len(cep) != 8:
            log.debug("address_lookup.invalid_postal_code")
            return None

        try:
            response = self._client.get(f"/{cep}/json/")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("address_lookup.failed", error=str(exc))
            return None

        if not isinstance(data, dict) or data.get("erro"):
            log.info("address_lookup.not_found")
            return None

        log.info("address_lookup.resolved")
        return ResolvedAddress(
            postal_code=cep,
            city=data.get("localidade") or "",
            street=data.get("logradouro") or "",
            district=data.get("bairro") or "",
            state=data.get("uf") or "",
        )

    def close(self) -> None:
        self._client.close()
