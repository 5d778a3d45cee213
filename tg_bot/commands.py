"""
Telegram Bot Command System - registry, help, and stateless commands.

The stateless commands (/start, /help, /status, /list, /start_trader,
/stop_trader) read from the backend and never touch the session store.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from telegram import BotCommand, Update

from tg_bot.api_client import BackendClient, normalize_list
from tg_bot.keyboards import (
    back_home_keyboard,
    main_menu_keyboard,
    status_keyboard,
)

logger = logging.getLogger(__name__)


class CommandCategory(Enum):
    """Command categories for organization."""
    CREATION = "creation"
    TRADERS = "traders"
    UTILITY = "utility"


@dataclass
class Command:
    """A bot command definition."""
    name: str
    description: str
    aliases: List[str] = field(default_factory=list)
    category: CommandCategory = CommandCategory.UTILITY
    usage: str = ""
    examples: List[str] = field(default_factory=list)


class CommandRegistry:
    """
    Registry for bot commands with alias support.

    Usage:
        registry = CommandRegistry()
        setup_default_commands(registry)
        registry.get_command("ls")  # -> the /list command
    """

    def __init__(self):
        self._commands: Dict[str, Command] = {}
        self._aliases: Dict[str, str] = {}  # alias -> command name

    def register(self, cmd: Command):
        """Register a command."""
        self._commands[cmd.name] = cmd

        for alias in cmd.aliases:
            self._aliases[alias] = cmd.name
            logger.debug(f"Registered alias '{alias}' -> '{cmd.name}'")

        logger.debug(f"Registered command: /{cmd.name} (aliases: {cmd.aliases})")

    def get_command(self, name: str) -> Optional[Command]:
        """Get command by name or alias."""
        name = name.lstrip("/")
        if name in self._commands:
            return self._commands[name]

        if name in self._aliases:
            return self._commands[self._aliases[name]]

        return None

    def names_and_aliases(self, name: str) -> List[str]:
        """Every name a command answers to, canonical name first."""
        cmd = self._commands[name]
        return [cmd.name] + list(cmd.aliases)

    def get_all_commands(self) -> List[Command]:
        return list(self._commands.values())

    def get_by_category(self, category: CommandCategory) -> List[Command]:
        return [c for c in self._commands.values() if c.category == category]

    def to_bot_commands(self) -> List[BotCommand]:
        """Menu entries for ``bot.set_my_commands``."""
        return [BotCommand(cmd.name, cmd.description) for cmd in self._commands.values()]

    def get_help_text(self, command_name: Optional[str] = None) -> str:
        """Generate plain-text help, for one command or all of them."""
        if command_name:
            cmd = self.get_command(command_name)
            if not cmd:
                return f"Unknown command: {command_name}"

            lines = [f"/{cmd.name} - {cmd.description}"]

            if cmd.aliases:
                lines.append(f"Aliases: {', '.join('/' + a for a in cmd.aliases)}")

            if cmd.usage:
                lines.append(f"Usage: {cmd.usage}")

            if cmd.examples:
                lines.append("Examples:")
                for ex in cmd.examples:
                    lines.append(f"  {ex}")

            return "\n".join(lines)

        lines = ["📖 Available Commands", ""]

        for category in CommandCategory:
            cmds = self.get_by_category(category)
            if cmds:
                lines.append(category.value.title())
                for cmd in cmds:
                    lines.append(f"  /{cmd.name} - {cmd.description}")
                lines.append("")

        lines += [
            "Getting started:",
            "1. Create an AI model",
            "2. Add an exchange account",
            "3. Create a trader",
            "",
            "AI trading carries risk. Start small and use testnets first.",
        ]
        return "\n".join(lines)


# === DEFAULT COMMANDS ===

def setup_default_commands(registry: CommandRegistry):
    """Register the trading assistant's commands."""

    registry.register(Command(
        name="start",
        description="Show the main menu",
        category=CommandCategory.UTILITY,
        usage="/start",
    ))

    registry.register(Command(
        name="help",
        description="Show help",
        aliases=["h", "commands"],
        category=CommandCategory.UTILITY,
        usage="/help [command]",
        examples=["/help", "/help create"],
    ))

    registry.register(Command(
        name="cancel",
        description="Cancel the current operation",
        category=CommandCategory.UTILITY,
        usage="/cancel",
    ))

    registry.register(Command(
        name="create_ai_model",
        description="Create an AI model (guided)",
        aliases=["model"],
        category=CommandCategory.CREATION,
        usage="/create_ai_model",
    ))

    registry.register(Command(
        name="create",
        description="Create a trader (guided)",
        aliases=["create_trader"],
        category=CommandCategory.CREATION,
        usage="/create",
    ))

    registry.register(Command(
        name="status",
        description="Check your traders' status",
        aliases=["ping"],
        category=CommandCategory.TRADERS,
        usage="/status",
    ))

    registry.register(Command(
        name="list",
        description="List your traders",
        aliases=["ls", "traders"],
        category=CommandCategory.TRADERS,
        usage="/list",
    ))

    registry.register(Command(
        name="demo_traders",
        description="List your demo traders",
        aliases=["demo"],
        category=CommandCategory.TRADERS,
        usage="/demo_traders",
    ))

    registry.register(Command(
        name="start_trader",
        description="Start a trader",
        category=CommandCategory.TRADERS,
        usage="/start_trader <trader_id>",
        examples=["/start_trader abc123"],
    ))

    registry.register(Command(
        name="stop_trader",
        description="Stop a trader",
        category=CommandCategory.TRADERS,
        usage="/stop_trader <trader_id>",
        examples=["/stop_trader abc123"],
    ))

    logger.info(f"Registered {len(registry.get_all_commands())} default commands")


# === STATELESS HANDLERS ===

WELCOME_TEXT = (
    "👋 Hi! I'm your AI trading assistant.\n\n"
    "Quick start:\n"
    "1. Create an AI model\n"
    "2. Add an exchange account\n"
    "3. Create a trader\n\n"
    "I can also show your traders' status and start or stop them.\n\n"
    "Choose an action below:"
)

EXCHANGE_INFO_TEXT = (
    "🏦 Add Exchange Account\n\n"
    "Exchange accounts execute your AI model's trading decisions.\n\n"
    "Supported exchanges:\n"
    "• Binance\n"
    "• Hyperliquid\n"
    "• OKX\n"
    "• dYdX\n"
    "• Aster DEX\n\n"
    "You will need an API key and secret with trading permission only "
    "(never enable withdrawals). Start on a testnet.\n\n"
    "Exchange accounts are added through the web dashboard or by an administrator."
)


async def _reply(update: Update, text: str, reply_markup=None) -> None:
    await update.effective_message.reply_text(text, reply_markup=reply_markup)


def _user_id(update: Update) -> int:
    return update.effective_user.id if update.effective_user else 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _trader_name(trader: Dict[str, Any]) -> str:
    return trader.get("display_name") or trader.get("trader_name") or trader.get("trader_id", "?")


async def _fetch_traders(update: Update, client: BackendClient) -> Optional[List[Dict[str, Any]]]:
    resp = await client.get_traders(_user_id(update))
    if not resp.success:
        await _reply(update, f"❌ Failed to fetch traders: {resp.error or 'Unknown error'}")
        return None
    return [t for t in normalize_list(resp.data, "traders") if isinstance(t, dict)]


async def send_welcome(update: Update) -> None:
    user = update.effective_user
    if user:
        logger.info(f"User {user.id} (@{user.username}) opened the main menu")
    await _reply(update, WELCOME_TEXT, reply_markup=main_menu_keyboard())


async def send_help(update: Update, registry: CommandRegistry, command_name: Optional[str] = None) -> None:
    await _reply(update, registry.get_help_text(command_name), reply_markup=main_menu_keyboard())


async def send_exchange_info(update: Update) -> None:
    await _reply(update, EXCHANGE_INFO_TEXT, reply_markup=back_home_keyboard())


async def send_status(update: Update, client: BackendClient) -> None:
    """Summary of running/stopped traders with P&L."""
    traders = await _fetch_traders(update, client)
    if traders is None:
        return

    if not traders:
        await _reply(
            update,
            "📭 No traders yet.\n\nCreate your first trader to get started.",
            reply_markup=status_keyboard(),
        )
        return

    running = sum(1 for t in traders if t.get("is_running"))
    lines = [
        "📊 Your Traders",
        "",
        f"Summary: {running} running, {len(traders) - running} stopped",
        "",
    ]
    for trader in traders:
        pnl = _as_float(trader.get("total_pnl"))
        lines += [
            f"{'🟢 Running' if trader.get('is_running') else '🔴 Stopped'} {_trader_name(trader)}",
            f"{'📈' if pnl >= 0 else '📉'} P&L: {pnl:+.2f} ({_as_float(trader.get('total_pnl_pct')):.2f}%)",
            f"💰 Equity: ${_as_float(trader.get('total_equity')):.2f}",
            f"📍 Positions: {trader.get('position_count', 0)}",
            "",
        ]
    await _reply(update, "\n".join(lines).rstrip(), reply_markup=status_keyboard())


async def send_trader_list(update: Update, client: BackendClient) -> None:
    traders = await _fetch_traders(update, client)
    if traders is None:
        return

    if not traders:
        await _reply(update, "📭 You have no traders yet. Use /create to create your first trader!")
        return

    lines = [f"📋 Your Traders ({len(traders)})", ""]
    for index, trader in enumerate(traders, 1):
        lines += [
            f"{index}. {'🟢' if trader.get('is_running') else '🔴'} {_trader_name(trader)}",
            f"   ID: {trader.get('trader_id', '?')}",
            f"   💰 {_as_float(trader.get('total_pnl')):+.2f} ({_as_float(trader.get('total_pnl_pct')):.2f}%)",
            f"   🤖 {trader.get('ai_model', '?')} | 💱 {trader.get('exchange_type') or 'Unknown'}",
            "",
        ]
    await _reply(update, "\n".join(lines).rstrip(), reply_markup=status_keyboard())


async def start_trader(update: Update, client: BackendClient, trader_id: Optional[str]) -> None:
    if not trader_id:
        await _reply(
            update,
            "🔍 Please specify which trader to start:\n\n"
            "Usage: /start_trader <trader_id>\n\n"
            "Use /list to see your traders.",
        )
        return

    resp = await client.start_trader(trader_id, _user_id(update))
    if not resp.success:
        await _reply(
            update,
            f"❌ Failed to start trader {trader_id}\n\nError: {resp.error}\n\n"
            "Check the trader status and try again.",
        )
        return

    logger.info(f"User {_user_id(update)} started trader {trader_id}")
    await _reply(
        update,
        f"✅ Trader started\n\nID: {trader_id}\nStatus: 🟢 Running\n\n"
        "Check performance with /status",
    )


async def stop_trader(update: Update, client: BackendClient, trader_id: Optional[str]) -> None:
    if not trader_id:
        await _reply(
            update,
            "🔍 Please specify which trader to stop:\n\n"
            "Usage: /stop_trader <trader_id>\n\n"
            "Use /list to see your traders.",
        )
        return

    resp = await client.stop_trader(trader_id, _user_id(update))
    if not resp.success:
        await _reply(
            update,
            f"❌ Failed to stop trader {trader_id}\n\nError: {resp.error}\n\n"
            "Check the trader status and try again.",
        )
        return

    logger.info(f"User {_user_id(update)} stopped trader {trader_id}")
    await _reply(update, f"⏹ Trader stopped\n\nID: {trader_id}\nStatus: 🔴 Stopped")


__all__ = [
    "CommandCategory",
    "Command",
    "CommandRegistry",
    "setup_default_commands",
    "send_welcome",
    "send_help",
    "send_exchange_info",
    "send_status",
    "send_trader_list",
    "start_trader",
    "stop_trader",
]
