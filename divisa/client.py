"""
Client for the currency-conversion endpoint of the business API.

POST <api_url>/divisa with {"desde", "a", "cantidad"} and read back
{"resultado"}. Amounts are always converted from USD.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from django.conf import settings


logger = logging.getLogger(__name__)


class DivisaError(Exception):
    """Raised when a conversion cannot be obtained."""
    pass


class ConfigurationError(DivisaError):
    """Raised when the API base URL is not configured."""
    pass


@dataclass
class ApiConfig:
    """Connection settings for the business API."""
    base_url: str = ''
    client_id: str = ''
    client_secret: str = ''
    timeout: float = 10.0

    @classmethod
    def from_settings(cls) -> 'ApiConfig':
        urls = getattr(settings, 'ORGM_URLS', {})
        cloudflare = getattr(settings, 'ORGM_CLOUDFLARE', {})
        return cls(
            base_url=urls.get('apis', ''),
            client_id=cloudflare.get('CF_ACCESS_CLIENT_ID', ''),
            client_secret=cloudflare.get('CF_ACCESS_CLIENT_SECRET', ''),
        )

    def headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'accept': 'application/json',
            'CF-Access-Client-Id': self.client_id,
            'CF-Access-Client-Secret': self.client_secret,
        }


class DivisaClient:
    """Converts USD amounts into another currency."""

    SOURCE_CURRENCY = 'USD'
    DEFAULT_TARGET = 'DOP'

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or ApiConfig.from_settings()
        self.session = session or requests.Session()

    def convert(self, to_currency: str = DEFAULT_TARGET, amount: float = 1.0) -> float:
        """Convert ``amount`` USD into ``to_currency``.

        Amounts below 1 are raised to 1 and an empty currency means DOP.

        Raises:
            ConfigurationError: no API URL configured
            DivisaError: transport failure, non-200 status or bad payload
        """
        if not self.config.base_url:
            raise ConfigurationError("error getting API URL (ORGM_API_URL)")

        to_currency = to_currency or self.DEFAULT_TARGET
        if amount < 1:
            amount = 1.0

        payload = {
            'desde': self.SOURCE_CURRENCY,
            'a': to_currency,
            'cantidad': float(amount),
        }
        url = self.config.base_url.rstrip('/') + '/divisa'
        logger.debug("Converting %s USD to %s via %s", amount, to_currency, url)

        try:
            response = self.session.post(
                url,
                json=payload,
                headers=self.config.headers(),
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise DivisaError(f"error making request: {e}") from e

        if response.status_code != 200:
            logger.warning("Currency API answered %s for %s", response.status_code, to_currency)
            raise DivisaError(f"API returned status code {response.status_code}")

        try:
            return float(response.json()['resultado'])
        except (ValueError, KeyError, TypeError) as e:
            raise DivisaError(f"error decoding response: {e}") from e
