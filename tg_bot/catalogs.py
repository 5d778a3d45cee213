"""
AI model and exchange catalogs for the trader flow.

The flow asks a ``CatalogProvider`` for options and resolves selections
through it. ``LiveCatalog`` reads the backend; ``DemoCatalog`` serves a fixed
set of three models and three exchanges. ``resolve_model_catalog`` and
``resolve_exchange_catalog`` pick one based on whether the backend has any
enabled entries.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from tg_bot.api_client import BackendClient, normalize_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelOption:
    id: str
    name: str
    provider: str
    enabled: bool = True

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> Optional["ModelOption"]:
        try:
            return cls(
                id=str(raw["id"]),
                name=str(raw.get("name") or raw["id"]),
                provider=str(raw.get("provider") or "unknown"),
                enabled=bool(raw.get("enabled", False)),
            )
        except (KeyError, TypeError):
            return None


@dataclass(frozen=True)
class ExchangeOption:
    id: str
    name: str
    testnet: bool = False
    enabled: bool = True

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> Optional["ExchangeOption"]:
        try:
            return cls(
                id=str(raw["id"]),
                name=str(raw.get("name") or raw["id"]),
                testnet=bool(raw.get("testnet", False)),
                enabled=bool(raw.get("enabled", False)),
            )
        except (KeyError, TypeError):
            return None

    @property
    def label(self) -> str:
        return f"{self.name} (testnet)" if self.testnet else self.name


DEMO_MODELS: Tuple[ModelOption, ...] = (
    ModelOption(id="demo_deepseek", name="DeepSeek Trader", provider="DeepSeek"),
    ModelOption(id="demo_qwen", name="Qwen Master", provider="Alibaba"),
    ModelOption(id="demo_gpt", name="GPT Trader Pro", provider="OpenAI"),
)

DEMO_EXCHANGES: Tuple[ExchangeOption, ...] = (
    ExchangeOption(id="demo_hyperliquid_testnet", name="Hyperliquid", testnet=True),
    ExchangeOption(id="demo_binance_testnet", name="Binance Futures", testnet=True),
    ExchangeOption(id="demo_okx_testnet", name="OKX", testnet=True),
)


class CatalogProvider(ABC):
    """Source of selectable models and exchanges for one user."""

    is_demo: bool = False

    @abstractmethod
    async def list_models(self) -> List[ModelOption]:
        """Enabled models the user can pick."""

    @abstractmethod
    async def list_exchanges(self) -> List[ExchangeOption]:
        """Enabled exchanges the user can pick."""

    async def find_model(self, model_id: str) -> Optional[ModelOption]:
        for model in await self.list_models():
            if model.id == model_id:
                return model
        return None

    async def find_exchange(self, exchange_id: str) -> Optional[ExchangeOption]:
        for exchange in await self.list_exchanges():
            if exchange.id == exchange_id:
                return exchange
        return None


class DemoCatalog(CatalogProvider):
    """Fixed catalog used when the backend has nothing configured."""

    is_demo = True

    async def list_models(self) -> List[ModelOption]:
        return list(DEMO_MODELS)

    async def list_exchanges(self) -> List[ExchangeOption]:
        return list(DEMO_EXCHANGES)


class LiveCatalog(CatalogProvider):
    """Backend-backed catalog. Failures and malformed payloads read as empty."""

    def __init__(self, client: BackendClient, user_id: int):
        self.client = client
        self.user_id = user_id

    async def list_models(self) -> List[ModelOption]:
        resp = await self.client.get_ai_models(self.user_id)
        if not resp.success:
            logger.warning(f"Could not fetch AI models for user {self.user_id}: {resp.error}")
            return []
        models = (ModelOption.from_api(raw) for raw in normalize_list(resp.data, "models")
                  if isinstance(raw, dict))
        return [m for m in models if m is not None and m.enabled]

    async def list_exchanges(self) -> List[ExchangeOption]:
        resp = await self.client.get_exchanges(self.user_id)
        if not resp.success:
            logger.warning(f"Could not fetch exchanges for user {self.user_id}: {resp.error}")
            return []
        exchanges = (ExchangeOption.from_api(raw) for raw in normalize_list(resp.data, "exchanges")
                     if isinstance(raw, dict))
        return [e for e in exchanges if e is not None and e.enabled]


def catalog_for(client: BackendClient, user_id: int, demo: bool) -> CatalogProvider:
    """Catalog matching a mode recorded in a draft."""
    return DemoCatalog() if demo else LiveCatalog(client, user_id)


async def resolve_model_catalog(
    client: BackendClient, user_id: int
) -> Tuple[CatalogProvider, List[ModelOption]]:
    """Live catalog if the backend has enabled models, demo catalog otherwise."""
    live = LiveCatalog(client, user_id)
    models = await live.list_models()
    if models:
        return live, models

    demo = DemoCatalog()
    return demo, await demo.list_models()


async def resolve_exchange_catalog(
    client: BackendClient, user_id: int
) -> Tuple[CatalogProvider, List[ExchangeOption]]:
    """Live catalog if the backend has enabled exchanges, demo catalog otherwise."""
    live = LiveCatalog(client, user_id)
    exchanges = await live.list_exchanges()
    if exchanges:
        return live, exchanges

    demo = DemoCatalog()
    return demo, await demo.list_exchanges()


__all__ = [
    "ModelOption",
    "ExchangeOption",
    "DEMO_MODELS",
    "DEMO_EXCHANGES",
    "CatalogProvider",
    "DemoCatalog",
    "LiveCatalog",
    "catalog_for",
    "resolve_model_catalog",
    "resolve_exchange_catalog",
]
