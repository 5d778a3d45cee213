"""Creation wizards driven by the dispatcher."""

from tg_bot.flows.ai_model import AIModelCreationFlow
from tg_bot.flows.trader import TraderCreationFlow

__all__ = ["AIModelCreationFlow", "TraderCreationFlow"]
