"""
Catalog Providers - sources of raw product records.

Providers return RawProduct records exactly as scraped (strings such as
"$29.99", "15%", "12.5k"); the parse helpers below turn them into numbers
for the scorer. Provider failures surface as ProviderUnavailable (or
QuotaExceeded) so the scorer can skip the provider and continue.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Config
from ..core.errors import ProviderUnavailable, from_http_error
from ..core.models import RawProduct

logger = logging.getLogger(__name__)


# ============================================================================
# Parsing helpers
# ============================================================================

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    'beauty': ['beauty', 'makeup', 'skincare', 'cosmetic', 'serum', 'cream', 'mask'],
    'health': ['health', 'wellness', 'supplement', 'vitamin', 'detox', 'cleanse'],
    'fitness': ['fitness', 'workout', 'protein', 'gym', 'exercise', 'muscle'],
    'tech': ['tech', 'gadget', 'device', 'phone', 'electronic', 'smart', 'wireless'],
    'home': ['home', 'kitchen', 'house', 'cleaning', 'organization', 'decor'],
    'fashion': ['fashion', 'clothing', 'shoes', 'accessories', 'jewelry', 'style'],
}

RawValue = Union[str, float, int, None]


def normalize_product_name(name: Optional[str]) -> str:
    """
    Build the merge key for a product name.

    Lowercases, drops everything but ASCII letters, digits and whitespace,
    collapses whitespace and truncates to 50 characters, so "LED Mirror!"
    and "led  mirror" share a key.
    """
    if not name:
        return ''
    normalized = re.sub(r'[^a-z0-9\s]', '', name.lower())
    normalized = re.sub(r'\s+', ' ', normalized).strip()
    return normalized[:50]


def _as_text(value: RawValue) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_price(value: RawValue) -> Optional[float]:
    """'$1,299.99' -> 1299.99; None when no number is present."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = _as_text(value)
    if text is None:
        return None
    match = re.search(r'\d+\.?\d*', text.replace(',', ''))
    return float(match.group(0)) if match else None


def parse_percentage(value: RawValue) -> Optional[float]:
    """'15%' -> 15.0, '-12.5%' -> -12.5."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = _as_text(value)
    if text is None:
        return None
    match = re.search(r'-?\d+\.?\d*', text.replace(',', ''))
    return float(match.group(0)) if match else None


def parse_number(value: RawValue) -> Optional[int]:
    """
    Counts with k/m suffixes: '12.5k' -> 12500, '1.2M' -> 1200000.

    A suffix only counts directly after the number, so '5000/month' is 5000.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    text = _as_text(value)
    if text is None:
        return None

    match = re.search(r'(\d+\.?\d*)\s*([km])?(?![a-z])', text.lower().replace(',', ''))
    if not match:
        return None
    multiplier = {'k': 1000, 'm': 1000000}.get(match.group(2), 1)
    return int(float(match.group(1)) * multiplier)


def parse_rating(value: RawValue) -> Optional[float]:
    """Ratings above 5 are assumed to be on a 10-point scale."""
    rating = parse_percentage(value)
    if rating is None:
        return None
    if rating > 5:
        rating = rating / 2
    return rating


def categorize_product(name: str) -> str:
    name_lower = (name or '').lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in name_lower for keyword in keywords):
            return category
    return 'other'


def _to_raw_product(provider: str, record: Union[RawProduct, Dict[str, Any]]) -> RawProduct:
    if isinstance(record, RawProduct):
        return record
    known = {k: v for k, v in record.items() if k in RawProduct.model_fields and k != 'provider'}
    return RawProduct(provider=provider, **known)


# ============================================================================
# Providers
# ============================================================================

class CatalogProvider(ABC):
    """A source of raw product records (FastMoss, KoloData, TikTok Shop...)."""
    name: str

    @abstractmethod
    async def list(self, category: Optional[str] = None, limit: int = 50) -> List[RawProduct]:
        """
        Fetch raw product records.

        Raises:
            ProviderUnavailable: If the source cannot be reached
            QuotaExceeded: If the source refused for quota reasons
        """
        ...


class StaticCatalogProvider(CatalogProvider):
    """Provider over a fixed record list, e.g. a JSON export of a scrape."""

    def __init__(self, name: str, records: Iterable[Union[RawProduct, Dict[str, Any]]]):
        self.name = name
        self.records = [_to_raw_product(name, r) for r in records]

    @classmethod
    def from_json(cls, path: Union[str, Path], name: Optional[str] = None) -> "StaticCatalogProvider":
        """
        Load records from a JSON file holding a list or {"products": [...]}.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        with open(path, 'r') as f:
            data = json.load(f)

        if isinstance(data, dict):
            data = data.get('products', [])

        return cls(name or path.stem, data)

    async def list(self, category: Optional[str] = None, limit: int = 50) -> List[RawProduct]:
        records = self.records
        if category:
            wanted = category.lower()
            records = [
                r for r in records
                if (r.category or categorize_product(r.name or '')).lower() == wanted
            ]
        return records[:limit]


class HttpCatalogProvider(CatalogProvider):
    """
    Provider backed by a product-discovery HTTP API.

    GET {base_url}/products?category=...&limit=... returning a JSON list of
    product objects (or {"products": [...]}). Transport failures are retried
    with exponential backoff; HTTP errors are not.
    """

    def __init__(
        self,
        name: str,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.name = name
        self.base_url = (base_url or Config.CATALOG_API_URL).rstrip('/')
        self.api_key = api_key or Config.CATALOG_API_KEY
        self.timeout = timeout
        self._transport = transport

        if not self.base_url:
            raise ValueError("Catalog API URL not found. Set CATALOG_API_URL environment variable.")

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'
        return headers

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _fetch(self, params: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/products",
                params=params,
                headers=self._headers()
            )
            response.raise_for_status()
            return response.json()

    async def list(self, category: Optional[str] = None, limit: int = 50) -> List[RawProduct]:
        params: Dict[str, Any] = {'limit': limit}
        if category:
            params['category'] = category

        try:
            payload = await self._fetch(params)
        except httpx.HTTPError as e:
            raise from_http_error(e, self.name) from e
        except ValueError as e:
            raise ProviderUnavailable(f"{self.name} returned invalid JSON: {e}", provider=self.name) from e

        if isinstance(payload, dict):
            payload = payload.get('products', [])

        records = []
        for entry in payload:
            try:
                records.append(_to_raw_product(self.name, entry))
            except (ValidationError, AttributeError) as e:
                logger.warning(f"{self.name}: skipping malformed record: {e}")

        logger.info(f"{self.name}: fetched {len(records)} products")
        return records[:limit]
