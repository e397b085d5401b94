"""BTC/fiat rate averaged over several independent price APIs."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from app.config import AppConfig
from domain.rates import AggregatedRate, RateSample, parse_rate

logger = logging.getLogger(__name__)


class ProviderFailure(Exception):
    """A single provider returned nothing usable; never leaves this module."""


class AllProvidersFailure(RuntimeError):
    """No provider produced a valid sample in this refresh."""

    def __init__(self, currency: str = "PLN"):
        super().__init__(f"Failed to fetch BTC/{currency} rate from all sources")


@dataclass(frozen=True)
class RateProvider:
    name: str
    url: str
    path: Tuple[str, ...]

    @classmethod
    def from_config(cls, raw: Dict[str, Any]) -> "RateProvider":
        path = raw.get("path") or ()
        if isinstance(path, str):
            path = tuple(part for part in path.split(".") if part)
        return cls(name=str(raw["name"]), url=str(raw["url"]), path=tuple(str(p) for p in path))

    def extract(self, payload: Any) -> float:
        """Walk the nested field path; any missing or malformed step is a provider failure."""
        node = payload
        for key in self.path:
            if not isinstance(node, dict) or key not in node:
                raise ProviderFailure(f"missing field {'.'.join(self.path)}")
            node = node[key]
        rate = parse_rate(node)
        if rate is None:
            raise ProviderFailure(f"invalid rate {node!r}")
        return rate


def average_rate(samples: Iterable[RateSample], currency: str = "PLN") -> AggregatedRate:
    """Equal-weight mean of the valid samples."""
    valid = [sample for sample in samples if sample.is_valid]
    if not valid:
        raise AllProvidersFailure(currency)
    # Divide first so large quotes cannot overflow the running sum.
    mean = sum(sample.rate / len(valid) for sample in valid)
    return AggregatedRate(rate=mean, providers=tuple(sample.provider for sample in valid))


class RateAggregator:
    def __init__(
        self,
        providers: Sequence[RateProvider],
        currency: str = "PLN",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.providers = list(providers)
        self.currency = currency
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> "RateAggregator":
        providers = [RateProvider.from_config(raw) for raw in config.rate_providers]
        return cls(providers, currency=config.rate_currency, timeout=config.rate_timeout_seconds, **kwargs)

    async def _fetch_one(self, client: httpx.AsyncClient, provider: RateProvider) -> RateSample:
        try:
            response = await client.get(provider.url)
            response.raise_for_status()
            rate = provider.extract(response.json())
        except httpx.HTTPStatusError as exc:
            logger.warning("Failed to fetch from %s: %s", provider.name, exc.response.status_code)
            return RateSample(provider=provider.name, error=f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError, ProviderFailure) as exc:
            # ValueError covers undecodable JSON bodies.
            logger.warning("Error fetching from %s: %s", provider.name, exc)
            return RateSample(provider=provider.name, error=str(exc) or exc.__class__.__name__)
        logger.debug("Fetched rate from %s: %s %s/BTC", provider.name, rate, self.currency)
        return RateSample(provider=provider.name, rate=rate)

    async def fetch_samples(self) -> List[RateSample]:
        """Query every provider concurrently and wait for all of them."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return list(await asyncio.gather(*(self._fetch_one(client, p) for p in self.providers)))

    async def fetch_rate(self) -> AggregatedRate:
        samples = await self.fetch_samples()
        aggregated = average_rate(samples, self.currency)
        logger.info(
            "Average BTC/%s rate: %.2f (from %d sources)",
            self.currency,
            aggregated.rate,
            aggregated.sources,
        )
        return aggregated
