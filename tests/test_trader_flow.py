"""
Trader Creation Flow Tests

Name and balance gates, live vs demo catalogs, demo trader synthesis, the
end-to-end scenario through the dispatcher, and cancellation.
"""

import re

import pytest
from telegram.error import Forbidden

from helpers import USER_ID, callback_tokens, last_markup, last_reply, make_update, replies
from tg_bot.api_client import ApiResponse
from tg_bot.catalogs import DEMO_EXCHANGES, DEMO_MODELS
from tg_bot.drafts import FlowStep, TraderDraft
from tg_bot.flows.trader import TraderCreationFlow, generate_demo_trader_id

LIVE_MODELS = {"models": [
    {"id": "M1", "name": "M1", "provider": "deepseek", "enabled": True},
    {"id": "M2", "name": "Disabled", "provider": "qwen", "enabled": False},
]}
LIVE_EXCHANGES = [{"id": "E1", "name": "E1", "exchange_type": "binance", "testnet": True, "enabled": True}]


@pytest.fixture
def flow(store, mock_client):
    return TraderCreationFlow(store, mock_client)


@pytest.fixture
def live_backend(mock_client):
    mock_client.get_ai_models.return_value = ApiResponse(success=True, data=LIVE_MODELS)
    mock_client.get_exchanges.return_value = ApiResponse(success=True, data=LIVE_EXCHANGES)
    return mock_client


async def drive_to(flow, step: FlowStep, model_id="M1", exchange_id="E1"):
    """Walk a fresh flow forward until ``step`` is pending."""
    await flow.start(make_update(text="/create"))
    if step == FlowStep.ENTER_TRADER_NAME:
        return
    await flow.handle_name(make_update(text="BTC Bot"), "BTC Bot")
    if step == FlowStep.SELECT_AI_MODEL:
        return
    await flow.select_model(make_update(), model_id)
    if step == FlowStep.SELECT_EXCHANGE:
        return
    await flow.select_exchange(make_update(), exchange_id)
    if step == FlowStep.ENTER_INITIAL_BALANCE:
        return
    await flow.handle_balance(make_update(text="250"), 250.0)


class TestStart:
    """Tests for starting the flow."""

    @pytest.mark.asyncio
    async def test_start_sets_first_step(self, flow, store):
        started = await flow.start(make_update(text="/create"))

        assert started is True
        assert store.is_in_flow(USER_ID, FlowStep.ENTER_TRADER_NAME)
        assert store.get(USER_ID).data == TraderDraft()

    @pytest.mark.asyncio
    async def test_second_start_refused_while_in_progress(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)
        update = make_update(text="/create")
        started = await flow.start(update)

        assert started is False
        assert store.is_in_flow(USER_ID, FlowStep.SELECT_AI_MODEL)
        assert store.get(USER_ID).data.name == "BTC Bot"
        assert "/cancel" in last_reply(update)

    @pytest.mark.asyncio
    async def test_start_allowed_after_cancel(self, flow, store):
        await flow.start(make_update(text="/create"))
        await flow.cancel(make_update())

        assert await flow.start(make_update(text="/create")) is True


class TestNameValidation:
    """Tests for the 3-50 character name gate."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,accepted", [
        ("ab", False),
        ("abc", True),
        ("x" * 50, True),
        ("x" * 51, False),
    ])
    async def test_name_length_boundaries(self, flow, store, name, accepted):
        await drive_to(flow, FlowStep.ENTER_TRADER_NAME)
        await flow.handle_name(make_update(text=name), name)

        expected = FlowStep.SELECT_AI_MODEL if accepted else FlowStep.ENTER_TRADER_NAME
        assert store.is_in_flow(USER_ID, expected)

    @pytest.mark.asyncio
    async def test_rejected_name_skips_backend(self, flow, mock_client):
        await drive_to(flow, FlowStep.ENTER_TRADER_NAME)
        await flow.handle_name(make_update(text="x"), "x")

        mock_client.get_ai_models.assert_not_awaited()


class TestModelCatalog:
    """Tests for live models and the demo fallback."""

    @pytest.mark.asyncio
    async def test_live_models_exclude_disabled(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.ENTER_TRADER_NAME)
        update = make_update(text="BTC Bot")
        await flow.handle_name(update, "BTC Bot")

        tokens = callback_tokens(last_markup(update))
        assert "select_model_M1" in tokens
        assert "select_model_M2" not in tokens
        assert store.get(USER_ID).data.model_is_demo is False

    @pytest.mark.asyncio
    async def test_empty_model_list_offers_exactly_three_demo_models(self, flow, store):
        await drive_to(flow, FlowStep.ENTER_TRADER_NAME)
        update = make_update(text="BTC Bot")
        await flow.handle_name(update, "BTC Bot")

        model_tokens = [t for t in callback_tokens(last_markup(update)) if t.startswith("select_model_")]
        assert model_tokens == [
            "select_model_demo_deepseek",
            "select_model_demo_qwen",
            "select_model_demo_gpt",
        ]
        assert store.get(USER_ID).data.model_is_demo is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("model", DEMO_MODELS, ids=lambda m: m.id)
    async def test_each_demo_model_selectable(self, flow, store, model):
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)
        await flow.select_model(make_update(), model.id)

        data = store.get(USER_ID).data
        assert store.is_in_flow(USER_ID, FlowStep.SELECT_EXCHANGE)
        assert data.ai_model_id == model.id
        assert data.ai_model_name == model.name

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        ApiResponse(success=False, error="API request failed: 500 Internal Server Error", status_code=500),
        ApiResponse(success=True, data="not a list"),
        ApiResponse(success=True, data={"items": [{"id": "M1"}]}),
        ApiResponse(success=True, data=[{"name": "no id", "enabled": True}]),
    ])
    async def test_failed_or_malformed_models_fall_back_to_demo(self, flow, store, mock_client, payload):
        mock_client.get_ai_models.return_value = payload
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)

        assert store.get(USER_ID).data.model_is_demo is True

    @pytest.mark.asyncio
    async def test_unknown_model_rejected(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)
        update = make_update()
        await flow.select_model(update, "M9")

        assert store.is_in_flow(USER_ID, FlowStep.SELECT_AI_MODEL)
        assert "not available" in last_reply(update)

    @pytest.mark.asyncio
    async def test_demo_id_not_accepted_from_live_catalog(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)
        await flow.select_model(make_update(), "demo_qwen")

        assert store.is_in_flow(USER_ID, FlowStep.SELECT_AI_MODEL)


class TestExchangeCatalog:
    """Tests for exchange selection."""

    @pytest.mark.asyncio
    async def test_live_exchange_selected(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.ENTER_INITIAL_BALANCE)

        data = store.get(USER_ID).data
        assert data.exchange_id == "E1"
        assert data.exchange_testnet is True
        assert data.is_demo is False

    @pytest.mark.asyncio
    async def test_live_model_with_no_exchanges_uses_demo_exchanges(self, flow, store, mock_client):
        mock_client.get_ai_models.return_value = ApiResponse(success=True, data=LIVE_MODELS)
        await drive_to(flow, FlowStep.SELECT_AI_MODEL)
        update = make_update()
        await flow.select_model(update, "M1")

        tokens = [t for t in callback_tokens(last_markup(update)) if t.startswith("select_exchange_")]
        assert len(tokens) == len(DEMO_EXCHANGES)
        assert all(t.startswith("select_exchange_demo_") for t in tokens)
        assert store.get(USER_ID).data.exchange_is_demo is True

    @pytest.mark.asyncio
    async def test_unknown_exchange_rejected(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.SELECT_EXCHANGE)
        await flow.select_exchange(make_update(), "E404")

        assert store.is_in_flow(USER_ID, FlowStep.SELECT_EXCHANGE)


class TestBalance:
    """Tests for the initial balance gate."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,expected_step", [
        (9, FlowStep.ENTER_INITIAL_BALANCE),
        (10, FlowStep.CONFIRM_TRADER),
        (100000, FlowStep.CONFIRM_TRADER),
        (100001, FlowStep.ENTER_INITIAL_BALANCE),
    ])
    async def test_balance_boundaries(self, flow, store, live_backend, amount, expected_step):
        await drive_to(flow, FlowStep.ENTER_INITIAL_BALANCE)
        await flow.handle_balance(make_update(text=str(amount)), float(amount))

        assert store.is_in_flow(USER_ID, expected_step)

    @pytest.mark.asyncio
    async def test_large_balance_warns_and_keeps_step(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.ENTER_INITIAL_BALANCE)
        update = make_update(text="100001")
        await flow.handle_balance(update, 100001.0)

        assert "very large" in last_reply(update)
        assert store.get(USER_ID).data.initial_balance is None

    @pytest.mark.asyncio
    async def test_accepted_balance_sets_defaults(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.CONFIRM_TRADER)

        data = store.get(USER_ID).data
        assert data.initial_balance == 250
        assert data.scan_interval_minutes == 5
        assert data.is_cross_margin is True

    @pytest.mark.asyncio
    async def test_balance_without_session_reports_expiry(self, flow, store):
        update = make_update(text="250")
        await flow.handle_balance(update, 250.0)

        assert "Session Expired" in last_reply(update)


class TestConfirm:
    """Tests for live and demo creation."""

    @pytest.mark.asyncio
    async def test_live_confirm_posts_payload(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.CONFIRM_TRADER)
        update = make_update()
        await flow.confirm(update)

        live_backend.create_trader.assert_awaited_once()
        user_id, payload = live_backend.create_trader.await_args.args
        assert user_id == USER_ID
        assert payload["name"] == "BTC Bot"
        assert store.get(USER_ID) is None
        assert "trader_1" in last_reply(update)

    @pytest.mark.asyncio
    async def test_backend_failure_relayed_and_cleared(self, flow, store, live_backend):
        live_backend.create_trader.return_value = ApiResponse(
            success=False, error="exchange E1 is not configured", status_code=400
        )
        await drive_to(flow, FlowStep.CONFIRM_TRADER)
        update = make_update()
        await flow.confirm(update)

        assert "exchange E1 is not configured" in last_reply(update)
        assert store.get(USER_ID) is None

    @pytest.mark.asyncio
    async def test_demo_confirm_skips_backend(self, flow, store, mock_client):
        await drive_to(flow, FlowStep.CONFIRM_TRADER, model_id="demo_qwen", exchange_id="demo_okx_testnet")
        update = make_update()
        await flow.confirm(update)

        mock_client.create_trader.assert_not_awaited()
        assert store.get(USER_ID) is None

        traders = store.scratch(USER_ID).demo_traders
        assert len(traders) == 1
        trader = traders[0]
        assert re.fullmatch(r"demo_\d+_[0-9a-z]{9}", trader.trader_id)
        assert trader.trader_name == "BTC Bot"
        assert trader.ai_model == "Qwen Master"
        assert trader.exchange == "OKX"
        assert trader.total_equity == trader.initial_balance == 250
        assert trader.is_running is False
        assert "Demo trader created" in last_reply(update)

    @pytest.mark.asyncio
    async def test_live_model_demo_exchange_is_demo(self, flow, store, mock_client):
        mock_client.get_ai_models.return_value = ApiResponse(success=True, data=LIVE_MODELS)
        await drive_to(flow, FlowStep.CONFIRM_TRADER, exchange_id="demo_binance_testnet")
        await flow.confirm(make_update())

        mock_client.create_trader.assert_not_awaited()
        assert len(store.scratch(USER_ID).demo_traders) == 1

    @pytest.mark.asyncio
    async def test_incomplete_draft_clears(self, flow, store, mock_client):
        store.set(USER_ID, FlowStep.CONFIRM_TRADER, TraderDraft(name="BTC Bot"))
        update = make_update()
        await flow.confirm(update)

        mock_client.create_trader.assert_not_awaited()
        assert "incomplete" in last_reply(update)
        assert store.get(USER_ID) is None

    @pytest.mark.asyncio
    async def test_client_exception_shows_error_and_clears(self, flow, store, live_backend):
        live_backend.create_trader.side_effect = RuntimeError("exchange gateway down")
        await drive_to(flow, FlowStep.CONFIRM_TRADER)
        update = make_update()
        await flow.confirm(update)

        assert "exchange gateway down" in last_reply(update)
        assert store.get(USER_ID) is None

    @pytest.mark.asyncio
    async def test_undeliverable_progress_reply_still_clears(self, flow, store, live_backend):
        await drive_to(flow, FlowStep.CONFIRM_TRADER)
        update = make_update()
        update.effective_message.reply_text.side_effect = Forbidden("bot was blocked by the user")

        with pytest.raises(Forbidden):
            await flow.confirm(update)

        live_backend.create_trader.assert_not_awaited()
        assert store.get(USER_ID) is None


class TestDemoTraderList:
    """Tests for listing locally held demo traders."""

    @pytest.mark.asyncio
    async def test_empty_list(self, flow):
        update = make_update()
        await flow.list_demo_traders(update)

        assert "no demo traders" in last_reply(update)

    @pytest.mark.asyncio
    async def test_listing_does_not_allocate_scratch(self, flow, store):
        await flow.list_demo_traders(make_update())

        assert store.find_scratch(USER_ID) is None
        assert store.get_statistics()["users_with_scratch"] == 0

    @pytest.mark.asyncio
    async def test_lists_created_demo_traders(self, flow):
        await drive_to(flow, FlowStep.CONFIRM_TRADER, model_id="demo_gpt", exchange_id="demo_hyperliquid_testnet")
        await flow.confirm(make_update())
        update = make_update()
        await flow.list_demo_traders(update)

        assert "Demo traders (1)" in last_reply(update)
        assert "BTC Bot" in last_reply(update)


class TestCancel:
    """Tests for cancellation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", [
        FlowStep.ENTER_TRADER_NAME,
        FlowStep.SELECT_AI_MODEL,
        FlowStep.SELECT_EXCHANGE,
        FlowStep.ENTER_INITIAL_BALANCE,
        FlowStep.CONFIRM_TRADER,
    ])
    async def test_cancel_at_any_step_clears(self, flow, store, live_backend, step):
        await drive_to(flow, step)
        await flow.cancel(make_update(callback_data="cancel_create_trader"))

        for any_step in FlowStep:
            assert not store.is_in_flow(USER_ID, any_step)
        live_backend.create_trader.assert_not_awaited()


class TestEndToEnd:
    """Full scenario driven through the dispatcher."""

    @pytest.mark.asyncio
    async def test_btc_bot_scenario(self, dispatcher, store, mock_client):
        mock_client.get_ai_models.return_value = ApiResponse(
            success=True, data=[{"id": "M1", "name": "M1", "provider": "deepseek", "enabled": True}]
        )
        mock_client.get_exchanges.return_value = ApiResponse(
            success=True, data={"exchanges": [{"id": "E1", "name": "E1", "testnet": True, "enabled": True}]}
        )

        await dispatcher.trader_flow.start(make_update(text="/create"))
        await dispatcher.handle_text(make_update(text="BTC Bot"))
        await dispatcher.handle_callback(make_update(callback_data="select_model_M1"))
        await dispatcher.handle_callback(make_update(callback_data="select_exchange_E1"))
        await dispatcher.handle_text(make_update(text="250"))
        assert store.is_in_flow(USER_ID, FlowStep.CONFIRM_TRADER)

        final = make_update(callback_data="confirm_create_trader")
        await dispatcher.handle_callback(final)

        mock_client.create_trader.assert_awaited_once_with(USER_ID, {
            "name": "BTC Bot",
            "ai_model_id": "M1",
            "exchange_id": "E1",
            "initial_balance": 250,
            "scan_interval_minutes": 5,
            "is_cross_margin": True,
        })
        assert store.get(USER_ID) is None
        assert "Trader created" in replies(final)[-1]


def test_demo_trader_ids_are_unique():
    ids = {generate_demo_trader_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r"demo_\d+_[0-9a-z]{9}", i) for i in ids)
