"""
Flow steps and collected-data drafts for the creation wizards.

Each flow owns one draft type. Drafts are plain dataclasses with explicit
optional fields, so an update naming an unknown field fails loudly instead of
silently growing the session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional, Union


class FlowStep(Enum):
    """Pending question for a user's active flow."""

    # AI model creation
    ENTER_MODEL_NAME = "enter_model_name"
    SELECT_PROVIDER = "select_provider"
    ENTER_CREDENTIAL = "enter_credential"
    ENTER_DESCRIPTION = "enter_description"
    CONFIRM_MODEL = "confirm_model"

    # Trader creation
    ENTER_TRADER_NAME = "enter_trader_name"
    SELECT_AI_MODEL = "select_ai_model"
    SELECT_EXCHANGE = "select_exchange"
    ENTER_INITIAL_BALANCE = "enter_initial_balance"
    CONFIRM_TRADER = "confirm_trader"


MODEL_FLOW_STEPS: FrozenSet[FlowStep] = frozenset({
    FlowStep.ENTER_MODEL_NAME,
    FlowStep.SELECT_PROVIDER,
    FlowStep.ENTER_CREDENTIAL,
    FlowStep.ENTER_DESCRIPTION,
    FlowStep.CONFIRM_MODEL,
})

TRADER_FLOW_STEPS: FrozenSet[FlowStep] = frozenset({
    FlowStep.ENTER_TRADER_NAME,
    FlowStep.SELECT_AI_MODEL,
    FlowStep.SELECT_EXCHANGE,
    FlowStep.ENTER_INITIAL_BALANCE,
    FlowStep.CONFIRM_TRADER,
})


@dataclass
class ModelDraft:
    """Fields collected by the AI model creation flow."""

    name: Optional[str] = None
    provider: Optional[str] = None
    provider_name: Optional[str] = None
    provider_description: Optional[str] = None
    credential: Optional[str] = None
    description: Optional[str] = None
    is_demo: bool = False

    def to_request(self) -> dict:
        """Backend payload for create-model."""
        return {
            "name": self.name,
            "provider": self.provider or "unknown",
            "api_key": self.credential or "",
            "description": self.description or "",
            "enabled": True,
        }


@dataclass
class TraderDraft:
    """Fields collected by the trader creation flow."""

    name: Optional[str] = None
    ai_model_id: Optional[str] = None
    ai_model_name: Optional[str] = None
    ai_model_provider: Optional[str] = None
    model_is_demo: bool = False
    exchange_id: Optional[str] = None
    exchange_name: Optional[str] = None
    exchange_testnet: bool = False
    exchange_is_demo: bool = False
    initial_balance: Optional[float] = None
    scan_interval_minutes: int = 5
    is_cross_margin: bool = True

    @property
    def is_demo(self) -> bool:
        return self.model_is_demo or self.exchange_is_demo

    def is_complete(self) -> bool:
        return bool(
            self.name
            and self.ai_model_id
            and self.exchange_id
            and self.initial_balance
        )

    def to_request(self) -> dict:
        """Backend payload for create-trader."""
        return {
            "name": self.name,
            "ai_model_id": self.ai_model_id,
            "exchange_id": self.exchange_id,
            "initial_balance": self.initial_balance,
            "scan_interval_minutes": self.scan_interval_minutes,
            "is_cross_margin": self.is_cross_margin,
        }


Draft = Union[ModelDraft, TraderDraft]


@dataclass
class DemoTrader:
    """Locally synthesized trader created without a backend call."""

    trader_id: str
    trader_name: str
    ai_model: str
    exchange: str
    initial_balance: float
    total_equity: float
    total_pnl: float = 0.0
    total_pnl_pct: float = 0.0
    is_running: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


__all__ = [
    "FlowStep",
    "MODEL_FLOW_STEPS",
    "TRADER_FLOW_STEPS",
    "ModelDraft",
    "TraderDraft",
    "Draft",
    "DemoTrader",
]
