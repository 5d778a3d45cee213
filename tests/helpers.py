"""Fake Telegram updates and reply inspection for handler tests."""

from unittest.mock import AsyncMock, MagicMock

USER_ID = 424242


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_update(text=None, callback_data=None, user_id=USER_ID):
    """Fake Update with the attributes the handlers read."""
    update = MagicMock()
    update.effective_user.id = user_id
    update.effective_user.username = "tester"

    message = MagicMock()
    message.text = text
    message.reply_text = AsyncMock()
    update.effective_message = message
    update.message = message

    if callback_data is None:
        update.callback_query = None
    else:
        update.callback_query = MagicMock()
        update.callback_query.data = callback_data
        update.callback_query.answer = AsyncMock()
    return update


def replies(update):
    """All texts sent back for an update, in order."""
    return [c.args[0] for c in update.effective_message.reply_text.call_args_list]


def last_reply(update):
    return update.effective_message.reply_text.call_args.args[0]


def last_markup(update):
    return update.effective_message.reply_text.call_args.kwargs.get("reply_markup")


def callback_tokens(markup):
    return [button.callback_data for row in markup.inline_keyboard for button in row]
