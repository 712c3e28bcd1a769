"""
Census ACS API Service

Fetches education and income aggregates per ZIP Code Tabulation Area from
the Census Bureau's ACS 5-year API.

- ZIPs are deduplicated and requested in batches (URL length limits)
- Each batch walks an ordered list of transport endpoints (direct, proxies)
- A batch that fails outright is retried as smaller sub-batches
- A batch that still fails is dropped; the rest of the fetch continues

Data source: https://api.census.gov/data/2022/acs/acs5
"""

import asyncio
import logging
import math
from typing import Any, Iterable, Optional
from urllib.parse import quote

import httpx

from app.models.schemas import CensusData, CensusMetadata, CensusPayload
from app.services.census_cache_service import CacheCounters
from app.utils.async_utils import run_with_timeout
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# ACS Variables
# =============================================================================

# Bachelor's, Master's, Professional, Doctorate
EDUCATION_VARIABLES = ["B15003_022E", "B15003_023E", "B15003_024E", "B15003_025E"]

# $100k-124,999, $125k-149,999, $150k-199,999, $200k+
INCOME_VARIABLES = ["B19001_014E", "B19001_015E", "B19001_016E", "B19001_017E"]

MEDIAN_INCOME_VARIABLE = "B19013_001E"

ZIP_COLUMN = "zip code tabulation area"
NAME_COLUMN = "NAME"

# A ZIP qualifies for a criterion at or above this many people/households
CLASSIFICATION_THRESHOLD = 1000


class CensusFetchError(Exception):
    """Every transport endpoint failed for a request."""


def chunk(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _to_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return number


def _to_median(value: Any) -> Optional[float]:
    """Median income, or None when missing. Census uses negative sentinels for suppressed values."""
    number = _to_number(value)
    if number <= 0:
        return None
    return number


def classify(total_higher_ed: float, total_high_income: float) -> tuple[bool, bool]:
    return total_higher_ed >= CLASSIFICATION_THRESHOLD, total_high_income >= CLASSIFICATION_THRESHOLD


def build_payload(
    zip_code: str,
    name: str,
    total_higher_ed: float,
    total_high_income: float,
    median_income: Optional[float],
    fetched_at: Optional[str] = None,
) -> CensusPayload:
    has_education, has_income = classify(total_higher_ed, total_high_income)
    education_value = max(total_higher_ed, CLASSIFICATION_THRESHOLD)
    income_value = max(total_high_income, CLASSIFICATION_THRESHOLD)

    return CensusPayload(
        data=CensusData(
            higher_education=total_higher_ed,
            high_income_households=total_high_income,
            median_income=median_income,
        ),
        metadata=CensusMetadata(
            zip=zip_code,
            name=name,
            fetched_at=fetched_at or utc_now().isoformat(),
            has_education=has_education,
            has_income=has_income,
            education_value=education_value,
            income_value=income_value,
            combined_value=math.sqrt(education_value) * 0.5 + math.sqrt(income_value) * 0.5,
        ),
    )


def parse_response(data: Any, requested_zips: Iterable[str]) -> dict[str, CensusPayload]:
    """
    Parse a Census table (header row followed by data rows) into payloads.

    Rows for ZIPs that were not requested are ignored. Anything that is not a
    table parses to an empty result.
    """
    if not isinstance(data, list) or len(data) < 1 or not isinstance(data[0], list):
        return {}

    headers = data[0]

    def index_of(column: str) -> int:
        return headers.index(column) if column in headers else -1

    zip_idx = index_of(ZIP_COLUMN)
    if zip_idx == -1:
        return {}

    name_idx = index_of(NAME_COLUMN)
    education_idx = [index_of(v) for v in EDUCATION_VARIABLES]
    income_idx = [index_of(v) for v in INCOME_VARIABLES]
    median_idx = index_of(MEDIAN_INCOME_VARIABLE)

    pending = set(requested_zips)
    fetched_at = utc_now().isoformat()
    results: dict[str, CensusPayload] = {}

    for row in data[1:]:
        if not isinstance(row, list) or len(row) != len(headers):
            continue

        zip_code = str(row[zip_idx])
        if zip_code not in pending:
            continue

        total_higher_ed = sum(_to_number(row[i]) for i in education_idx if i != -1)
        total_high_income = sum(_to_number(row[i]) for i in income_idx if i != -1)
        median_income = _to_median(row[median_idx]) if median_idx != -1 else None
        name = str(row[name_idx]) if name_idx != -1 else "Unknown"

        results[zip_code] = build_payload(
            zip_code, name, total_higher_ed, total_high_income, median_income, fetched_at
        )
        pending.discard(zip_code)

    return results


# =============================================================================
# API Client
# =============================================================================

class CensusAPIClient:
    """Batched Census ACS client with endpoint fallback."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.census.gov/data/2022/acs/acs5",
        endpoint_prefixes: Optional[list[str]] = None,
        batch_size: int = 30,
        min_batch_size: int = 5,
        timeout_seconds: float = 30.0,
        counters: Optional[CacheCounters] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.endpoint_prefixes = endpoint_prefixes or [""]
        self.batch_size = batch_size
        self.min_batch_size = min_batch_size
        self.timeout_seconds = timeout_seconds
        self.counters = counters or CacheCounters()
        self._transport = transport
        self._endpoint_index = 0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    def build_url(self, zip_codes: list[str]) -> str:
        variables = ",".join(EDUCATION_VARIABLES + INCOME_VARIABLES + [MEDIAN_INCOME_VARIABLE])
        url = (
            f"{self.base_url}?get={NAME_COLUMN},{variables}"
            f"&for=zip%20code%20tabulation%20area:{','.join(zip_codes)}"
        )
        if self.api_key:
            url += f"&key={self.api_key}"
        return url

    @staticmethod
    def wrap_url(url: str, prefix: str) -> str:
        """Route url through a proxy prefix. An empty prefix is a direct request."""
        if not prefix:
            return url
        return f"{prefix}{quote(url, safe='')}"

    async def _get_json(self, client: httpx.AsyncClient, url: str) -> Any:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()

    async def fetch_with_fallback(self, client: httpx.AsyncClient, url: str) -> Any:
        """
        Request url, advancing through the endpoint list on each failure.

        The endpoint that last succeeded is tried first on the next request.

        Raises:
            CensusFetchError: If every endpoint failed
        """
        attempts = len(self.endpoint_prefixes)
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            prefix = self.endpoint_prefixes[self._endpoint_index]
            self.counters.api_calls += 1
            try:
                return await run_with_timeout(
                    self._get_json(client, self.wrap_url(url, prefix)),
                    timeout=self.timeout_seconds,
                    task_name="census_fetch",
                )
            except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, ValueError) as e:
                last_error = e
                logger.warning(f"Fetch attempt {attempt + 1} failed: {e!r}")
                if attempt < attempts - 1:
                    self._endpoint_index = (self._endpoint_index + 1) % attempts
                    logger.info(f"Switching to endpoint {self._endpoint_index + 1}/{attempts}")

        raise CensusFetchError(f"All {attempts} endpoints failed") from last_error

    async def fetch_batch(self, client: httpx.AsyncClient, zip_codes: list[str]) -> dict[str, CensusPayload]:
        """
        Fetch one batch. A failed batch larger than min_batch_size is retried
        as sub-batches; sub-batch failures are logged and skipped.

        Raises:
            CensusFetchError: If a batch at or below min_batch_size fails
        """
        if not zip_codes:
            return {}

        try:
            logger.info(f"Fetching batch of {len(zip_codes)} ZIP codes...")
            data = await self.fetch_with_fallback(client, self.build_url(zip_codes))
            return parse_response(data, zip_codes)

        except CensusFetchError:
            if len(zip_codes) <= self.min_batch_size:
                raise

            logger.info("Trying with smaller batch size...")
            results: dict[str, CensusPayload] = {}
            for small_batch in chunk(zip_codes, self.min_batch_size):
                try:
                    results.update(await self.fetch_batch(client, small_batch))
                except CensusFetchError as e:
                    logger.error(f"Small batch failed: {e}")
            return results

    async def fetch_many(self, zip_codes: Iterable[str]) -> dict[str, CensusPayload]:
        """
        Fetch payloads for zip_codes. Never raises for partial failures: ZIPs
        from batches that could not be fetched are simply absent.
        """
        unique_zips = list(dict.fromkeys(zip_codes))
        if not unique_zips:
            return {}

        results: dict[str, CensusPayload] = {}
        batches = chunk(unique_zips, self.batch_size)

        async with self._client() as client:
            for i, batch in enumerate(batches):
                try:
                    results.update(await self.fetch_batch(client, batch))
                except CensusFetchError as e:
                    logger.error(f"Batch {i + 1} failed: {e}")

        missing = len(unique_zips) - len(results)
        if missing:
            logger.warning(f"{missing} of {len(unique_zips)} ZIP codes missing from Census response")
        return results
