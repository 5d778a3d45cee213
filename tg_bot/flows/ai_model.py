"""
AI model creation wizard.

Steps: name -> provider -> credential -> description -> confirm.
A skipped credential marks the model as demo; the backend still receives it.
"""

import logging
from typing import Optional

from telegram import Update

from tg_bot.drafts import FlowStep, ModelDraft
from tg_bot.error_handler import format_backend_error, format_error_message, format_validation_error
from tg_bot.flows.base import BaseFlow, flow_step
from tg_bot.keyboards import (
    CB_CANCEL_MODEL,
    CB_CONFIRM_MODEL,
    after_model_created_keyboard,
    cancel_keyboard,
    confirm_keyboard,
    credential_keyboard,
    description_keyboard,
    provider_keyboard,
)

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 30
CREDENTIAL_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 200
SKIP_WORD = "skip"

PROVIDERS = {
    "deepseek": {
        "name": "DeepSeek",
        "tagline": "Strong reasoning",
        "description": "High-performance model with strong Chinese and English understanding",
    },
    "qwen": {
        "name": "Qwen",
        "tagline": "Beginner friendly",
        "description": "Alibaba Tongyi Qianwen model, a good starting point",
    },
    "claude": {
        "name": "Claude",
        "tagline": "Advanced analysis",
        "description": "Anthropic model suited to complex market analysis",
    },
    "gpt4": {
        "name": "GPT-4",
        "tagline": "General purpose",
        "description": "OpenAI general-purpose model",
    },
}


class AIModelCreationFlow(BaseFlow):
    """Conversation handlers for creating an AI model."""

    flow_name = "ai_model"
    draft_type = ModelDraft

    async def start(self, update: Update) -> None:
        """Begin the wizard, discarding whatever the user had in progress."""
        user_id = self.user_id(update)
        self.store.clear(user_id)
        self.store.set(user_id, FlowStep.ENTER_MODEL_NAME, ModelDraft())
        self.log_event(user_id, FlowStep.ENTER_MODEL_NAME, "started")

        await self.reply(
            update,
            "🤖 Create AI Model\n\n"
            "Step 1/5: Name your model\n\n"
            f"Enter a name ({NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters):",
            reply_markup=cancel_keyboard(CB_CANCEL_MODEL),
        )

    @flow_step
    async def handle_name(self, update: Update, text: str) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_MODEL_NAME)

        name = text.strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            self.log_event(user_id, FlowStep.ENTER_MODEL_NAME, "rejected")
            await self.reply(update, format_validation_error(
                "name",
                f"must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters",
                "My DeepSeek",
            ))
            return

        self.store.advance(user_id, FlowStep.SELECT_PROVIDER, name=name)
        self.log_event(user_id, FlowStep.SELECT_PROVIDER, "advanced")

        lines = [f"✅ Name: {name}", "", "Step 2/5: Choose a provider", ""]
        lines += [f"• {info['name']}: {info['description']}" for info in PROVIDERS.values()]
        await self.reply(update, "\n".join(lines), reply_markup=provider_keyboard(PROVIDERS))

    @flow_step
    async def select_provider(self, update: Update, provider: str) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.SELECT_PROVIDER, "name")

        info = PROVIDERS.get(provider)
        if info is None:
            await self.reply(
                update,
                "❌ Unsupported provider. Please pick one from the list:",
                reply_markup=provider_keyboard(PROVIDERS),
            )
            return

        self.store.advance(
            user_id,
            FlowStep.ENTER_CREDENTIAL,
            provider=provider,
            provider_name=info["name"],
            provider_description=info["description"],
        )
        self.log_event(user_id, FlowStep.ENTER_CREDENTIAL, "advanced")

        await self.reply(
            update,
            f"✅ Provider: {info['name']}\n\n"
            "Step 3/5: API key\n\n"
            f"Send your {info['name']} API key, or skip to use demo mode.\n"
            "The key is only forwarded to the trading backend.",
            reply_markup=credential_keyboard(),
        )

    @flow_step
    async def handle_credential(self, update: Update, text: str) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_CREDENTIAL, "name", "provider")

        credential = text.strip()
        if credential.lower() == SKIP_WORD:
            await self._store_credential(update, user_id, None)
            return

        if len(credential) < CREDENTIAL_MIN_LENGTH:
            self.log_event(user_id, FlowStep.ENTER_CREDENTIAL, "rejected")
            await self.reply(
                update,
                format_validation_error(
                    "API key", f"must be at least {CREDENTIAL_MIN_LENGTH} characters"
                ),
                reply_markup=credential_keyboard(),
            )
            return

        await self._store_credential(update, user_id, credential)

    @flow_step
    async def skip_credential(self, update: Update) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_CREDENTIAL, "name", "provider")
        await self._store_credential(update, user_id, None)

    async def _store_credential(self, update: Update, user_id: int, credential: Optional[str]) -> None:
        self.store.advance(
            user_id,
            FlowStep.ENTER_DESCRIPTION,
            credential=credential,
            is_demo=credential is None,
        )
        self.log_event(user_id, FlowStep.ENTER_DESCRIPTION, "advanced")

        status = "✅ API key saved" if credential else "⚠️ No API key, demo mode"
        await self.reply(
            update,
            f"{status}\n\n"
            "Step 4/5: Description (optional)\n\n"
            f"Describe this model in up to {DESCRIPTION_MAX_LENGTH} characters, or skip:",
            reply_markup=description_keyboard(),
        )

    @flow_step
    async def handle_description(self, update: Update, text: str) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_DESCRIPTION, "name")

        description = text.strip()
        if description.lower() == SKIP_WORD:
            await self._store_description(update, user_id, None)
            return

        if len(description) > DESCRIPTION_MAX_LENGTH:
            self.log_event(user_id, FlowStep.ENTER_DESCRIPTION, "rejected")
            await self.reply(
                update,
                format_validation_error(
                    "description", f"must be at most {DESCRIPTION_MAX_LENGTH} characters"
                ),
                reply_markup=description_keyboard(),
            )
            return

        await self._store_description(update, user_id, description or None)

    @flow_step
    async def skip_description(self, update: Update) -> None:
        user_id = self.user_id(update)
        self.require(user_id, FlowStep.ENTER_DESCRIPTION, "name")
        await self._store_description(update, user_id, None)

    async def _store_description(self, update: Update, user_id: int, description: Optional[str]) -> None:
        session = self.store.advance(user_id, FlowStep.CONFIRM_MODEL, description=description)
        self.log_event(user_id, FlowStep.CONFIRM_MODEL, "advanced")
        draft: ModelDraft = session.data

        lines = [
            "📋 Confirm AI Model",
            "",
            f"Name: {draft.name}",
            f"Provider: {draft.provider_name}",
            f"API key: {'provided' if draft.credential else 'none (demo mode)'}",
            f"Description: {draft.description or 'none'}",
            "",
            "Step 5/5: Create this model?",
        ]
        await self.reply(
            update,
            "\n".join(lines),
            reply_markup=confirm_keyboard(CB_CONFIRM_MODEL, CB_CANCEL_MODEL),
        )

    @flow_step
    async def confirm(self, update: Update) -> None:
        user_id = self.user_id(update)
        _, draft = self.require(user_id, FlowStep.CONFIRM_MODEL, "name")

        try:
            await self.reply(update, "⏳ Creating AI model...")
            resp = await self.client.create_ai_model(user_id, draft.to_request())
        except Exception as e:
            logger.exception(f"User {user_id}: create_ai_model raised")
            await self.reply(update, format_error_message(e, detail=str(e) or type(e).__name__))
            return
        finally:
            self.store.clear(user_id)

        if not resp.success:
            self.log_event(user_id, FlowStep.CONFIRM_MODEL, "failed")
            await self.reply(update, format_backend_error(resp.error))
            return

        self.log_event(user_id, FlowStep.CONFIRM_MODEL, "created")
        data = resp.data if isinstance(resp.data, dict) else {}
        lines = [
            "🎉 AI model created",
            "",
            f"ID: {data.get('id', 'n/a')}",
            f"Name: {data.get('name', draft.name)}",
            f"Provider: {draft.provider_name or draft.provider}",
        ]
        if draft.is_demo:
            lines.append("Mode: demo (no API key)")
        lines += ["", "Next: create a trader that uses this model."]
        await self.reply(update, "\n".join(lines), reply_markup=after_model_created_keyboard())

    async def cancel(self, update: Update) -> None:
        await self.discard(
            update,
            "❌ AI model creation cancelled.\n\nUse /create_ai_model to start again.",
        )


__all__ = ["AIModelCreationFlow", "PROVIDERS"]
