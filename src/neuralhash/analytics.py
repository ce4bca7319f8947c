"""
Wallet analytics — daily transaction, gas price and contract-interaction series.

Transactions come from the Etherscan v2 API; aggregation is pure and works on
any list of Etherscan-shaped transaction dicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from neuralhash.errors import AnalyticsError, ConfigError

logger = logging.getLogger(__name__)

ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
DEFAULT_DAYS = 90
MIN_DAYS = 7
MAX_DAYS = 120
PLACEHOLDER_KEY = "YOUR_ETHERSCAN_API_KEY"

CHAIN_LABELS = {
    1: "Ethereum Mainnet",
    11155111: "Ethereum Sepolia",
    17000: "Ethereum Holesky",
}


def normalize_chain_id(raw: Any) -> int:
    try:
        parsed = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 1
    return parsed if parsed > 0 else 1


def normalize_days(raw: Any) -> int:
    if raw is None or raw == "":
        return DEFAULT_DAYS
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_DAYS
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return DEFAULT_DAYS
    return max(MIN_DAYS, min(MAX_DAYS, int(parsed // 1)))


def chain_label(chain_id: int) -> str:
    return CHAIN_LABELS.get(chain_id, f"Chain {chain_id}")


def to_gwei(raw_gas_price: Any) -> float:
    try:
        gas_price = float(raw_gas_price)
    except (TypeError, ValueError):
        return 0.0
    if gas_price != gas_price or gas_price <= 0 or gas_price == float("inf"):
        return 0.0
    return gas_price / 1_000_000_000


def _day_key(timestamp_seconds: Any) -> Optional[str]:
    try:
        ts = int(timestamp_seconds)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()


@dataclass
class ChartPoint:
    label: str
    value: float

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value}


@dataclass
class AnalyticsReport:
    """Per-day series plus summary for one wallet."""
    chain_id: int
    period_days: int
    transactions_over_time: List[ChartPoint] = field(default_factory=list)
    gas_price_trends: List[ChartPoint] = field(default_factory=list)
    contract_interaction_counts: List[ChartPoint] = field(default_factory=list)
    tx_count: int = 0

    @property
    def interaction_count(self) -> int:
        return int(sum(p.value for p in self.contract_interaction_counts))

    @property
    def average_gas_gwei(self) -> float:
        if not self.gas_price_trends:
            return 0.0
        return round(sum(p.value for p in self.gas_price_trends) / len(self.gas_price_trends), 4)

    def to_dict(self) -> dict:
        return {
            "transactionsOverTime": [p.to_dict() for p in self.transactions_over_time],
            "gasPriceTrends": [p.to_dict() for p in self.gas_price_trends],
            "contractInteractionCounts": [p.to_dict() for p in self.contract_interaction_counts],
            "periodDays": self.period_days,
            "network": {"chainId": self.chain_id, "label": chain_label(self.chain_id)},
            "summary": {
                "txCount": self.tx_count,
                "interactionCount": self.interaction_count,
                "averageGasGwei": self.average_gas_gwei,
            },
        }


def build_report(transactions: List[Dict[str, Any]], days: int = DEFAULT_DAYS,
                 chain_id: int = 1, today: Optional[date] = None) -> AnalyticsReport:
    """Bucket transactions into the last `days` UTC days (oldest first)."""
    today = today or datetime.now(timezone.utc).date()
    day_keys = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]

    tx_counts = dict.fromkeys(day_keys, 0)
    interactions = dict.fromkeys(day_keys, 0)
    gas_sum = dict.fromkeys(day_keys, 0.0)
    gas_count = dict.fromkeys(day_keys, 0)

    for tx in transactions:
        key = _day_key(tx.get("timeStamp"))
        if key not in tx_counts:
            continue
        tx_counts[key] += 1
        gas_sum[key] += to_gwei(tx.get("gasPrice"))
        gas_count[key] += 1
        tx_input = tx.get("input")
        if tx_input and tx_input != "0x":
            interactions[key] += 1

    return AnalyticsReport(
        chain_id=chain_id,
        period_days=days,
        transactions_over_time=[ChartPoint(k[5:], tx_counts[k]) for k in day_keys],
        gas_price_trends=[
            ChartPoint(k[5:], round(gas_sum[k] / max(gas_count[k], 1), 4)) for k in day_keys
        ],
        contract_interaction_counts=[ChartPoint(k[5:], interactions[k]) for k in day_keys],
        tx_count=len(transactions),
    )


class EtherscanClient:
    """Reads a wallet's normal transactions from Etherscan."""

    def __init__(self, api_key: str, base_url: str = ETHERSCAN_BASE_URL, timeout: float = 20.0):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    async def fetch_transactions(self, address: str, chain_id: int = 1) -> List[Dict[str, Any]]:
        if not self.api_key or self.api_key == PLACEHOLDER_KEY:
            raise ConfigError("ETHERSCAN_API_KEY is not configured.")
        params = {
            "chainid": str(chain_id),
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": "0",
            "endblock": "99999999",
            "sort": "asc",
            "apikey": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            logger.warning("Etherscan request failed for %s: %s", address, e)
            raise AnalyticsError(f"Etherscan request failed: {e}") from e

        if resp.status_code >= 400:
            raise AnalyticsError(f"Etherscan request failed with status {resp.status_code}")
        result = resp.json().get("result")
        return result if isinstance(result, list) else []

    async def wallet_report(self, address: str, chain_id: Any = 1, days: Any = DEFAULT_DAYS,
                            today: Optional[date] = None) -> AnalyticsReport:
        chain_id = normalize_chain_id(chain_id)
        days = normalize_days(days)
        transactions = await self.fetch_transactions(address, chain_id)
        return build_report(transactions, days=days, chain_id=chain_id, today=today)


async def fetch_eth_usd_price(timeout: float = 10.0) -> Optional[float]:
    """ETH/USD quote from CoinGecko, or None when unavailable."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(COINGECKO_PRICE_URL, params={"ids": "ethereum", "vs_currencies": "usd"})
        if resp.status_code != 200:
            return None
        price = resp.json().get("ethereum", {}).get("usd")
        return float(price) if price else None
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.warning("Failed to fetch ETH/USD quote: %s", e)
        return None
