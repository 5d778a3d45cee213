"""
Inline keyboards and callback tokens.

Flow tokens are prefix-namespaced; the dispatcher checks them before the
generic navigation tokens.
"""

from typing import Iterable, List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from tg_bot.catalogs import ExchangeOption, ModelOption

# === AI MODEL FLOW ===
CB_SELECT_PROVIDER = "select_provider_"
CB_SKIP_API_KEY = "skip_api_key"
CB_SKIP_DESCRIPTION = "skip_description"
CB_CONFIRM_MODEL = "confirm_create_model"
CB_CANCEL_MODEL = "cancel_create_model"

# === TRADER FLOW ===
CB_SELECT_MODEL_DEMO = "select_model_demo_"
CB_SELECT_MODEL = "select_model_"
CB_SELECT_EXCHANGE_DEMO = "select_exchange_demo_"
CB_SELECT_EXCHANGE = "select_exchange_"
CB_SET_BALANCE = "set_balance_"
CB_CUSTOM_BALANCE = "custom_balance"
CB_CONFIRM_TRADER = "confirm_create_trader"
CB_CANCEL_TRADER = "cancel_create_trader"

# === NAVIGATION ===
CB_CREATE_AI_MODEL = "create_ai_model"
CB_CREATE_TRADER = "create_trader"
CB_CREATE_EXCHANGE = "create_exchange"
CB_REFRESH_STATUS = "refresh_status"
CB_LIST_TRADERS = "list_traders"
CB_LIST_DEMO_TRADERS = "list_demo_traders"
CB_HELP = "help"
CB_BACK_HOME = "back_to_home"

BALANCE_PRESETS = (100, 500, 1000)

DEMO_ID_PREFIX = "demo_"


def _markup(rows: Iterable[List[InlineKeyboardButton]]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(list(rows))


def cancel_keyboard(cancel_token: str) -> InlineKeyboardMarkup:
    return _markup([[InlineKeyboardButton("❌ Cancel", callback_data=cancel_token)]])


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [
            InlineKeyboardButton("🤖 Create AI Model", callback_data=CB_CREATE_AI_MODEL),
            InlineKeyboardButton("🏦 Add Exchange", callback_data=CB_CREATE_EXCHANGE),
        ],
        [
            InlineKeyboardButton("📈 Create Trader", callback_data=CB_CREATE_TRADER),
            InlineKeyboardButton("📊 Status", callback_data=CB_REFRESH_STATUS),
        ],
        [
            InlineKeyboardButton("📋 Traders", callback_data=CB_LIST_TRADERS),
            InlineKeyboardButton("📖 Help", callback_data=CB_HELP),
        ],
    ])


def provider_keyboard(providers: dict) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(f"{info['name']} - {info['tagline']}",
                              callback_data=f"{CB_SELECT_PROVIDER}{key}")]
        for key, info in providers.items()
    ]
    rows.append([InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_MODEL)])
    return _markup(rows)


def credential_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [InlineKeyboardButton("Skip (demo mode)", callback_data=CB_SKIP_API_KEY)],
        [InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_MODEL)],
    ])


def description_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [InlineKeyboardButton("Skip description", callback_data=CB_SKIP_DESCRIPTION)],
        [InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_MODEL)],
    ])


def confirm_keyboard(confirm_token: str, cancel_token: str) -> InlineKeyboardMarkup:
    return _markup([[
        InlineKeyboardButton("✅ Confirm", callback_data=confirm_token),
        InlineKeyboardButton("❌ Cancel", callback_data=cancel_token),
    ]])


def model_selection_keyboard(models: Iterable[ModelOption]) -> InlineKeyboardMarkup:
    rows = []
    for model in models:
        if model.id.startswith(DEMO_ID_PREFIX):
            token = f"{CB_SELECT_MODEL_DEMO}{model.id[len(DEMO_ID_PREFIX):]}"
        else:
            token = f"{CB_SELECT_MODEL}{model.id}"
        rows.append([InlineKeyboardButton(f"{model.name} ({model.provider})", callback_data=token)])
    rows.append([InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_TRADER)])
    return _markup(rows)


def exchange_selection_keyboard(exchanges: Iterable[ExchangeOption]) -> InlineKeyboardMarkup:
    rows = []
    for exchange in exchanges:
        if exchange.id.startswith(DEMO_ID_PREFIX):
            token = f"{CB_SELECT_EXCHANGE_DEMO}{exchange.id[len(DEMO_ID_PREFIX):]}"
        else:
            token = f"{CB_SELECT_EXCHANGE}{exchange.id}"
        rows.append([InlineKeyboardButton(exchange.label, callback_data=token)])
    rows.append([InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_TRADER)])
    return _markup(rows)


def balance_keyboard() -> InlineKeyboardMarkup:
    presets = [
        InlineKeyboardButton(f"{amount} USDT", callback_data=f"{CB_SET_BALANCE}{amount}")
        for amount in BALANCE_PRESETS
    ]
    return _markup([
        presets[:2],
        [presets[2], InlineKeyboardButton("Custom amount", callback_data=CB_CUSTOM_BALANCE)],
        [InlineKeyboardButton("❌ Cancel", callback_data=CB_CANCEL_TRADER)],
    ])


def after_model_created_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [
            InlineKeyboardButton("🚀 Create Trader", callback_data=CB_CREATE_TRADER),
            InlineKeyboardButton("📊 Status", callback_data=CB_REFRESH_STATUS),
        ],
        [InlineKeyboardButton("📖 Help", callback_data=CB_HELP)],
    ])


def after_trader_created_keyboard(demo: bool = False) -> InlineKeyboardMarkup:
    list_token = CB_LIST_DEMO_TRADERS if demo else CB_LIST_TRADERS
    return _markup([
        [
            InlineKeyboardButton("📊 Status", callback_data=CB_REFRESH_STATUS),
            InlineKeyboardButton("📋 Traders", callback_data=list_token),
        ],
        [InlineKeyboardButton("🚀 Create Another", callback_data=CB_CREATE_TRADER)],
    ])


def status_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [
            InlineKeyboardButton("🔄 Refresh", callback_data=CB_REFRESH_STATUS),
            InlineKeyboardButton("📋 Full List", callback_data=CB_LIST_TRADERS),
        ],
        [InlineKeyboardButton("🚀 Create Trader", callback_data=CB_CREATE_TRADER)],
    ])


def back_home_keyboard() -> InlineKeyboardMarkup:
    return _markup([
        [
            InlineKeyboardButton("🤖 Create AI Model", callback_data=CB_CREATE_AI_MODEL),
            InlineKeyboardButton("📈 Create Trader", callback_data=CB_CREATE_TRADER),
        ],
        [InlineKeyboardButton("🔙 Home", callback_data=CB_BACK_HOME)],
    ])
