"""
Trader creation wizard.

Steps: name -> AI model -> exchange -> initial balance -> confirm.

Models and exchanges come from a ``CatalogProvider``. When the backend has
nothing enabled for the user, the demo catalog is used instead and the draft
records it; a demo trader is then kept locally instead of being created on the
backend.
"""

import logging
import math
import random
import string
import time

from telegram import Update

from tg_bot.catalogs import catalog_for, resolve_exchange_catalog, resolve_model_catalog
from tg_bot.drafts import TRADER_FLOW_STEPS, DemoTrader, FlowStep, TraderDraft
from tg_bot.error_handler import (
    format_backend_error,
    format_error_message,
    format_simple_error,
    format_validation_error,
)
from tg_bot.flows.base import BaseFlow, flow_step
from tg_bot.keyboards import (
    CB_CANCEL_TRADER,
    CB_CONFIRM_TRADER,
    DEMO_ID_PREFIX,
    after_trader_created_keyboard,
    balance_keyboard,
    cancel_keyboard,
    confirm_keyboard,
    exchange_selection_keyboard,
    model_selection_keyboard,
)

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
MIN_BALANCE = 10.0
MAX_BALANCE = 100000.0
SCAN_INTERVAL_MINUTES = 5
DEMO_SUFFIX_LENGTH = 9
_BASE36 = string.digits + string.ascii_lowercase


def generate_demo_trader_id() -> str:
    """``demo_<epoch ms>_<9 base36 chars>``"""
    suffix = "".join(random.choices(_BASE36, k=DEMO_SUFFIX_LENGTH))
    return f"{DEMO_ID_PREFIX}{int(time.time() * 1000)}_{suffix}"


def format_amount(amount: float) -> str:
    return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"


class TraderCreationFlow(BaseFlow):
    """Conversation handlers for creating a trader."""

    flow_name = "trader"
    draft_type = TraderDraft

    async def start(self, update: Update) -> bool:
        """
        Begin the wizard.

        Returns:
            False if a trader flow is already in progress for this user
        """
        user_id = self.user_id(update)
        if self.store.is_in_any(user_id, TRADER_FLOW_STEPS):
            await self.reply(
                update,
                format_simple_error(
                    "You are already creating a trader.",
                    "Finish the current steps, or use /cancel to start over.",
                ),
            )
            return False

        self.store.set(user_id, FlowStep.ENTER_TRADER_NAME, TraderDraft())
        self.log_event(user_id, FlowStep.ENTER_TRADER_NAME, "started")

        await self.reply(
            update,
            "📈 Create Trader\n\n"
            "Step 1/5: Name your trader\n\n"
            f"Enter a name ({NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters):",
            reply_markup=cancel_keyboard(CB_CANCEL_TRADER),
        )
        return True

    @flow_step
    async def handle_name(self, update: Update, text: str) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_TRADER_NAME)

        name = text.strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            self.log_event(user_id, FlowStep.ENTER_TRADER_NAME, "rejected")
            await self.reply(update, format_validation_error(
                "trader name",
                f"must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters",
                "BTC Momentum",
            ))
            return

        catalog, models = await resolve_model_catalog(self.client, user_id)
        self.store.advance(
            user_id,
            FlowStep.SELECT_AI_MODEL,
            name=name,
            model_is_demo=catalog.is_demo,
        )
        self.log_event(user_id, FlowStep.SELECT_AI_MODEL, "advanced")

        lines = [f"✅ Name: {name}", ""]
        if catalog.is_demo:
            lines += [
                "💡 No AI models are configured yet, showing demo models.",
                "Traders built on them run in demo mode.",
                "",
            ]
        lines.append("Step 2/5: Choose an AI model:")
        await self.reply(update, "\n".join(lines), reply_markup=model_selection_keyboard(models))

    @flow_step
    async def select_model(self, update: Update, model_id: str) -> None:
        user_id = self.user_id(update)
        _, draft = self.require(user_id, FlowStep.SELECT_AI_MODEL, "name")

        model = await catalog_for(self.client, user_id, draft.model_is_demo).find_model(model_id)
        if model is None:
            await self.reply(update, format_simple_error(
                "That AI model is not available.",
                "Pick one of the models listed above, or use /cancel.",
            ))
            return

        catalog, exchanges = await resolve_exchange_catalog(self.client, user_id)
        self.store.advance(
            user_id,
            FlowStep.SELECT_EXCHANGE,
            ai_model_id=model.id,
            ai_model_name=model.name,
            ai_model_provider=model.provider,
            exchange_is_demo=catalog.is_demo,
        )
        self.log_event(user_id, FlowStep.SELECT_EXCHANGE, "advanced")

        lines = [f"✅ AI model: {model.name} ({model.provider})", ""]
        if catalog.is_demo:
            lines += ["💡 No exchanges are configured yet, showing demo testnets.", ""]
        lines.append("Step 3/5: Choose an exchange:")
        await self.reply(update, "\n".join(lines), reply_markup=exchange_selection_keyboard(exchanges))

    @flow_step
    async def select_exchange(self, update: Update, exchange_id: str) -> None:
        user_id = self.user_id(update)
        _, draft = self.require(user_id, FlowStep.SELECT_EXCHANGE, "name", "ai_model_id")

        exchange = await catalog_for(self.client, user_id, draft.exchange_is_demo).find_exchange(exchange_id)
        if exchange is None:
            await self.reply(update, format_simple_error(
                "That exchange is not available.",
                "Pick one of the exchanges listed above, or use /cancel.",
            ))
            return

        self.store.advance(
            user_id,
            FlowStep.ENTER_INITIAL_BALANCE,
            exchange_id=exchange.id,
            exchange_name=exchange.name,
            exchange_testnet=exchange.testnet,
        )
        self.log_event(user_id, FlowStep.ENTER_INITIAL_BALANCE, "advanced")

        await self.reply(
            update,
            f"✅ Exchange: {exchange.label}\n\n"
            "Step 4/5: Initial balance\n\n"
            f"Pick a preset or type an amount in USDT (minimum {format_amount(MIN_BALANCE)}):",
            reply_markup=balance_keyboard(),
        )

    async def prompt_custom_balance(self, update: Update) -> None:
        await self.reply(
            update,
            "💰 Type the initial balance in USDT\n\n"
            f"Minimum {format_amount(MIN_BALANCE)}, for example 250",
            reply_markup=cancel_keyboard(CB_CANCEL_TRADER),
        )

    @flow_step
    async def handle_balance(self, update: Update, amount: float) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_INITIAL_BALANCE, "name", "ai_model_id", "exchange_id")

        if not math.isfinite(amount) or amount < MIN_BALANCE:
            self.log_event(user_id, FlowStep.ENTER_INITIAL_BALANCE, "rejected")
            await self.reply(
                update,
                format_validation_error(
                    "balance", f"must be at least {format_amount(MIN_BALANCE)} USDT", "250"
                ),
                reply_markup=balance_keyboard(),
            )
            return

        if amount > MAX_BALANCE:
            self.log_event(user_id, FlowStep.ENTER_INITIAL_BALANCE, "rejected")
            await self.reply(
                update,
                f"⚠️ {format_amount(amount)} USDT is a very large starting balance.\n"
                f"Please enter an amount up to {format_amount(MAX_BALANCE)} USDT:",
                reply_markup=balance_keyboard(),
            )
            return

        session = self.store.advance(
            user_id,
            FlowStep.CONFIRM_TRADER,
            initial_balance=amount,
            scan_interval_minutes=SCAN_INTERVAL_MINUTES,
            is_cross_margin=True,
        )
        self.log_event(user_id, FlowStep.CONFIRM_TRADER, "advanced")
        draft: TraderDraft = session.data

        lines = [
            "📋 Confirm Trader",
            "",
            f"Name: {draft.name}",
            f"AI model: {draft.ai_model_name} ({draft.ai_model_provider})",
            f"Exchange: {draft.exchange_name}{' (testnet)' if draft.exchange_testnet else ''}",
            f"Initial balance: {format_amount(draft.initial_balance)} USDT",
            f"Scan interval: {draft.scan_interval_minutes} minutes",
            f"Margin: {'cross' if draft.is_cross_margin else 'isolated'}",
        ]
        if draft.is_demo:
            lines += ["", "💡 Demo mode: the trader is kept in this chat only."]
        lines += ["", "Step 5/5: Create this trader?"]
        await self.reply(
            update,
            "\n".join(lines),
            reply_markup=confirm_keyboard(CB_CONFIRM_TRADER, CB_CANCEL_TRADER),
        )

    @flow_step
    async def confirm(self, update: Update) -> None:
        user_id = self.user_id(update)
        _, draft = self.require(user_id, FlowStep.CONFIRM_TRADER, "name")

        if not draft.is_complete():
            self.store.clear(user_id)
            await self.reply(update, format_simple_error(
                "Trader details are incomplete.",
                "Use /create to start again.",
            ))
            return

        try:
            await self.reply(update, "⏳ Creating trader...")
            if draft.is_demo:
                await self._create_demo_trader(update, user_id, draft)
            else:
                await self._create_live_trader(update, user_id, draft)
        except Exception as e:
            logger.exception(f"User {user_id}: trader creation raised")
            await self.reply(update, format_error_message(e, detail=str(e) or type(e).__name__))
        finally:
            self.store.clear(user_id)

    async def _create_demo_trader(self, update: Update, user_id: int, draft: TraderDraft) -> None:
        trader = DemoTrader(
            trader_id=generate_demo_trader_id(),
            trader_name=draft.name,
            ai_model=draft.ai_model_name or draft.ai_model_id,
            exchange=draft.exchange_name or draft.exchange_id,
            initial_balance=draft.initial_balance,
            total_equity=draft.initial_balance,
        )
        self.store.scratch(user_id).demo_traders.append(trader)
        self.log_event(user_id, FlowStep.CONFIRM_TRADER, "created_demo")

        await self.reply(
            update,
            "🎉 Demo trader created\n\n"
            f"ID: {trader.trader_id}\n"
            f"Name: {trader.trader_name}\n"
            f"AI model: {trader.ai_model}\n"
            f"Exchange: {trader.exchange}\n"
            f"Initial balance: {format_amount(trader.initial_balance)} USDT\n"
            "Status: stopped\n\n"
            "Demo traders are not sent to the trading backend. "
            "Configure a real AI model and exchange to trade for real.",
            reply_markup=after_trader_created_keyboard(demo=True),
        )

    async def _create_live_trader(self, update: Update, user_id: int, draft: TraderDraft) -> None:
        resp = await self.client.create_trader(user_id, draft.to_request())
        if not resp.success:
            self.log_event(user_id, FlowStep.CONFIRM_TRADER, "failed")
            await self.reply(update, format_backend_error(resp.error))
            return

        self.log_event(user_id, FlowStep.CONFIRM_TRADER, "created")
        data = resp.data if isinstance(resp.data, dict) else {}
        trader_id = data.get("trader_id") or data.get("id") or "n/a"
        await self.reply(
            update,
            "🎉 Trader created\n\n"
            f"ID: {trader_id}\n"
            f"Name: {data.get('trader_name') or draft.name}\n"
            f"AI model: {draft.ai_model_name}\n"
            f"Exchange: {draft.exchange_name}\n"
            f"Initial balance: {format_amount(draft.initial_balance)} USDT\n\n"
            f"Start it with /start_trader {trader_id}",
            reply_markup=after_trader_created_keyboard(),
        )

    async def list_demo_traders(self, update: Update) -> None:
        scratch = self.store.find_scratch(self.user_id(update))
        traders = scratch.demo_traders if scratch else []
        if not traders:
            await self.reply(update, "📋 You have no demo traders yet.\n\nUse /create to make one.")
            return

        lines = [f"📋 Demo traders ({len(traders)})", ""]
        for trader in traders:
            lines += [
                f"⏹ {trader.trader_name}",
                f"   ID: {trader.trader_id}",
                f"   {trader.ai_model} on {trader.exchange}",
                f"   Equity: {format_amount(trader.total_equity)} USDT "
                f"(P&L {trader.total_pnl:+.2f}, {trader.total_pnl_pct:+.2f}%)",
                "",
            ]
        await self.reply(update, "\n".join(lines).rstrip())

    async def cancel(self, update: Update) -> None:
        await self.discard(update, "❌ Trader creation cancelled.\n\nUse /create to start again.")


__all__ = ["TraderCreationFlow", "generate_demo_trader_id"]
