"""
Routes inbound updates to the creation flows or stateless commands.

Text is routed by the pending step of the user's session. Callback tokens are
matched flow prefixes first (demo prefixes before live ones), then the generic
navigation tokens.
"""

import logging
import math
from typing import Optional

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

from tg_bot import commands, keyboards as kb
from tg_bot.api_client import BackendClient
from tg_bot.commands import CommandRegistry
from tg_bot.drafts import MODEL_FLOW_STEPS, TRADER_FLOW_STEPS, FlowStep
from tg_bot.flows import AIModelCreationFlow, TraderCreationFlow
from tg_bot.session_store import SessionStore

logger = logging.getLogger(__name__)

BUTTON_HINT = "💡 Please use the buttons above, or /cancel to stop."


def parse_amount(text: str) -> Optional[float]:
    """Parse a typed balance. None unless it is a finite positive number."""
    cleaned = text.strip().replace(",", "").replace("$", "")
    if cleaned.upper().endswith("USDT"):
        cleaned = cleaned[:-4].strip()
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


class Dispatcher:
    """
    Owns the flows and maps updates onto them.

    ``handle_text`` / ``handle_callback`` / ``handle_cancel`` take the update
    only; the ``on_*`` methods are the python-telegram-bot callbacks.
    """

    def __init__(self, store: SessionStore, client: BackendClient, registry: CommandRegistry):
        self.store = store
        self.client = client
        self.registry = registry
        self.model_flow = AIModelCreationFlow(store, client)
        self.trader_flow = TraderCreationFlow(store, client)

    @staticmethod
    def _user_id(update: Update) -> int:
        return update.effective_user.id if update.effective_user else 0

    # =========================================================================
    # Text
    # =========================================================================

    async def handle_text(self, update: Update) -> None:
        text = update.effective_message.text or ""
        session = self.store.get(self._user_id(update))

        if session is None:
            await commands.send_welcome(update)
            return

        step = session.step
        if step == FlowStep.ENTER_MODEL_NAME:
            await self.model_flow.handle_name(update, text)
        elif step == FlowStep.ENTER_CREDENTIAL:
            await self.model_flow.handle_credential(update, text)
        elif step == FlowStep.ENTER_DESCRIPTION:
            await self.model_flow.handle_description(update, text)
        elif step == FlowStep.ENTER_TRADER_NAME:
            await self.trader_flow.handle_name(update, text)
        elif step == FlowStep.ENTER_INITIAL_BALANCE:
            amount = parse_amount(text)
            if amount is None:
                await update.effective_message.reply_text(
                    "❌ Please enter a positive number, for example 250.",
                    reply_markup=kb.balance_keyboard(),
                )
                return
            await self.trader_flow.handle_balance(update, amount)
        else:
            await update.effective_message.reply_text(BUTTON_HINT)

    # =========================================================================
    # Callbacks
    # =========================================================================

    async def handle_callback(self, update: Update) -> None:
        query = update.callback_query
        await query.answer()

        data = query.data or ""
        logger.debug(f"Callback {data!r} from user {self._user_id(update)}")

        if await self._route_model_flow(update, data):
            return
        if await self._route_trader_flow(update, data):
            return
        await self._route_navigation(update, data)

    async def _route_model_flow(self, update: Update, data: str) -> bool:
        if data.startswith(kb.CB_SELECT_PROVIDER):
            await self.model_flow.select_provider(update, data[len(kb.CB_SELECT_PROVIDER):])
        elif data == kb.CB_SKIP_API_KEY:
            await self.model_flow.skip_credential(update)
        elif data == kb.CB_SKIP_DESCRIPTION:
            await self.model_flow.skip_description(update)
        elif data == kb.CB_CONFIRM_MODEL:
            await self.model_flow.confirm(update)
        elif data == kb.CB_CANCEL_MODEL:
            await self.model_flow.cancel(update)
        else:
            return False
        return True

    async def _route_trader_flow(self, update: Update, data: str) -> bool:
        if data.startswith(kb.CB_SELECT_MODEL_DEMO):
            key = data[len(kb.CB_SELECT_MODEL_DEMO):]
            await self.trader_flow.select_model(update, f"{kb.DEMO_ID_PREFIX}{key}")
        elif data.startswith(kb.CB_SELECT_MODEL):
            await self.trader_flow.select_model(update, data[len(kb.CB_SELECT_MODEL):])
        elif data.startswith(kb.CB_SELECT_EXCHANGE_DEMO):
            key = data[len(kb.CB_SELECT_EXCHANGE_DEMO):]
            await self.trader_flow.select_exchange(update, f"{kb.DEMO_ID_PREFIX}{key}")
        elif data.startswith(kb.CB_SELECT_EXCHANGE):
            await self.trader_flow.select_exchange(update, data[len(kb.CB_SELECT_EXCHANGE):])
        elif data.startswith(kb.CB_SET_BALANCE):
            amount = parse_amount(data[len(kb.CB_SET_BALANCE):])
            if amount is None:
                return False
            await self.trader_flow.handle_balance(update, amount)
        elif data == kb.CB_CUSTOM_BALANCE:
            await self.trader_flow.prompt_custom_balance(update)
        elif data == kb.CB_CONFIRM_TRADER:
            await self.trader_flow.confirm(update)
        elif data == kb.CB_CANCEL_TRADER:
            await self.trader_flow.cancel(update)
        else:
            return False
        return True

    async def _route_navigation(self, update: Update, data: str) -> None:
        if data == kb.CB_CREATE_AI_MODEL:
            await self.model_flow.start(update)
        elif data == kb.CB_CREATE_TRADER:
            await self.trader_flow.start(update)
        elif data == kb.CB_CREATE_EXCHANGE:
            await commands.send_exchange_info(update)
        elif data == kb.CB_REFRESH_STATUS:
            await commands.send_status(update, self.client)
        elif data == kb.CB_LIST_TRADERS:
            await commands.send_trader_list(update, self.client)
        elif data == kb.CB_LIST_DEMO_TRADERS:
            await self.trader_flow.list_demo_traders(update)
        elif data == kb.CB_HELP:
            await commands.send_help(update, self.registry)
        elif data == kb.CB_BACK_HOME:
            await commands.send_welcome(update)
        else:
            logger.warning(f"Unknown callback {data!r} from user {self._user_id(update)}")
            await update.effective_message.reply_text("❓ Unknown action.")

    # =========================================================================
    # Cancel
    # =========================================================================

    async def handle_cancel(self, update: Update) -> None:
        user_id = self._user_id(update)
        if self.store.is_in_any(user_id, MODEL_FLOW_STEPS):
            await self.model_flow.cancel(update)
        elif self.store.is_in_any(user_id, TRADER_FLOW_STEPS):
            await self.trader_flow.cancel(update)
        else:
            self.store.clear(user_id)
            await update.effective_message.reply_text("ℹ️ Nothing to cancel.")

    # =========================================================================
    # python-telegram-bot callbacks
    # =========================================================================

    async def on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.handle_text(update)

    async def on_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.handle_callback(update)

    async def on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.send_welcome(update)

    async def on_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.send_help(update, self.registry, context.args[0] if context.args else None)

    async def on_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.handle_cancel(update)

    async def on_create_ai_model(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.model_flow.start(update)

    async def on_create_trader(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.trader_flow.start(update)

    async def on_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.send_status(update, self.client)

    async def on_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.send_trader_list(update, self.client)

    async def on_demo_traders(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.trader_flow.list_demo_traders(update)

    async def on_start_trader(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.start_trader(update, self.client, context.args[0] if context.args else None)

    async def on_stop_trader(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await commands.stop_trader(update, self.client, context.args[0] if context.args else None)

    def register(self, app: Application) -> None:
        """Attach every handler to the application."""
        command_callbacks = {
            "start": self.on_start,
            "help": self.on_help,
            "cancel": self.on_cancel,
            "create_ai_model": self.on_create_ai_model,
            "create": self.on_create_trader,
            "status": self.on_status,
            "list": self.on_list,
            "demo_traders": self.on_demo_traders,
            "start_trader": self.on_start_trader,
            "stop_trader": self.on_stop_trader,
        }
        for name, callback in command_callbacks.items():
            app.add_handler(CommandHandler(self.registry.names_and_aliases(name), callback))

        app.add_handler(CallbackQueryHandler(self.on_callback))
        # New messages only; edits and channel posts are not step answers
        app.add_handler(MessageHandler(
            filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND, self.on_message
        ))
        logger.info(f"Registered {len(command_callbacks)} commands plus text and callback routing")


__all__ = ["Dispatcher", "parse_amount", "BUTTON_HINT"]
