"""Tests for the StratosRelay registrar, dispatcher and lifecycle."""

import logging
from unittest.mock import AsyncMock

import pytest

from stratos_relay.errors import SubscriptionError, TransportError
from stratos_relay.event_processor import EventBinding, HandlerKind
from stratos_relay.models import ActivatedPP, VolumeReported
from stratos_relay.relayer import StratosRelay

EXPECTED_QUERIES = [
    "message.action='create_resource_node'",
    "message.action='update_resource_node_stake'",
    "message.action='unbonding_resource_node'",
    "message.action='remove_resource_node'",
    "message.action='complete_unbonding_resource_node'",
    "message.action='create_indexing_node'",
    "message.action='update_indexing_node_stake'",
    "message.action='unbonding_indexing_node'",
    "message.action='remove_indexing_node'",
    "message.action='complete_unbonding_indexing_node'",
    "message.action='indexing_node_reg_vote'",
    "message.action='SdsPrepayTx'",
    "message.action='FileUploadTx'",
    "message.action='volume_report'",
]


@pytest.fixture
def listener():
    """Subscription transport double."""
    mock_listener = AsyncMock()
    mock_listener.subscriptions = {}
    return mock_listener


@pytest.fixture
def forwarder():
    return AsyncMock()


@pytest.fixture
def relay(relay_config, listener, forwarder):
    return StratosRelay(relay_config, listener=listener, forwarder=forwarder)


def binding_for(relay, action):
    return next(b for b in relay.event_processor.bindings() if b.action == action)


class TestSubscriptionRegistrar:
    """Test suite for registering chain subscriptions."""

    @pytest.mark.asyncio
    async def test_registers_all_bindings_in_order(self, relay, listener):
        await relay.subscribe_to_chain_events()

        queries = [call.args[0] for call in listener.subscribe.call_args_list]
        assert queries == EXPECTED_QUERIES

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, relay, listener):
        listener.subscribe.side_effect = [None, None, SubscriptionError("node refused query"), None]

        with pytest.raises(SubscriptionError, match="node refused query"):
            await relay.subscribe_to_chain_events()

        assert listener.subscribe.call_count == 3

    @pytest.mark.asyncio
    async def test_last_binding_failure_is_raised(self, relay, listener):
        listener.subscribe.side_effect = [None] * 13 + [SubscriptionError("volume_report rejected")]

        with pytest.raises(SubscriptionError, match="volume_report rejected"):
            await relay.subscribe_to_chain_events()

        assert listener.subscribe.call_count == 14

    @pytest.mark.asyncio
    async def test_callback_dispatches_to_binding(self, relay, listener, forwarder):
        await relay.subscribe_to_chain_events()
        callbacks = {call.args[0]: call.args[1] for call in listener.subscribe.call_args_list}

        await callbacks["message.action='volume_report'"]({"volume_report.epoch": ["42"]})

        forwarder.post.assert_awaited_once_with("/volume/reported", VolumeReported(epoch="42"))


class TestDispatch:
    """Test suite for dispatching events to handlers and the forwarder."""

    @pytest.mark.asyncio
    async def test_create_resource_node_forwarded(
        self, relay, forwarder, create_resource_node_event, p2p_address, pubkey_hex
    ):
        await relay.dispatch(binding_for(relay, "create_resource_node"), create_resource_node_event)

        forwarder.post.assert_awaited_once_with(
            "/pp/activated",
            ActivatedPP(
                p2p_address=p2p_address,
                p2p_pubkey=pubkey_hex,
                ozone_limit_changes="100",
                tx_hash="ABC123",
            ),
        )
        assert relay.get_stats()["forwarded"] == 1

    @pytest.mark.asyncio
    async def test_missing_pubkey_is_dropped(self, relay, forwarder, create_resource_node_event, caplog):
        del create_resource_node_event["create_resource_node.pub_key"]

        with caplog.at_level(logging.ERROR, logger="stratos_relay.relayer"):
            await relay.dispatch(binding_for(relay, "create_resource_node"), create_resource_node_event)

        forwarder.post.assert_not_awaited()
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "pub_key" in errors[0].getMessage()
        assert relay.get_stats()["dropped"] == 1

    @pytest.mark.asyncio
    async def test_malformed_address_is_dropped(self, relay, forwarder, create_resource_node_event):
        create_resource_node_event["create_resource_node.network_address"] = ["addr1"]

        await relay.dispatch(binding_for(relay, "create_resource_node"), create_resource_node_event)

        forwarder.post.assert_not_awaited()
        assert relay.get_stats()["dropped"] == 1

    @pytest.mark.asyncio
    async def test_volume_report_forwarded(self, relay, forwarder):
        await relay.dispatch(binding_for(relay, "volume_report"), {"volume_report.epoch": ["42"]})

        forwarder.post.assert_awaited_once()
        path, command = forwarder.post.await_args.args
        assert path == "/volume/reported"
        assert command.to_dict() == {"epoch": "42"}

    @pytest.mark.asyncio
    async def test_vote_for_unbonded_candidate_not_forwarded(self, relay, forwarder, node_address):
        event = {
            "indexing_node_reg_vote.candidate_network_address": [node_address],
            "indexing_node_reg_vote.candidate_status": ["Unbonded"],
            "tx.hash": ["TX"],
        }

        await relay.dispatch(binding_for(relay, "indexing_node_reg_vote"), event)

        forwarder.post.assert_not_awaited()
        assert relay.get_stats()["skipped"] == 1
        assert relay.get_stats()["dropped"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", [
        "create_indexing_node",
        "unbonding_indexing_node",
        "remove_indexing_node",
        "complete_unbonding_indexing_node",
    ])
    async def test_unimplemented_categories_only_log(self, relay, forwarder, caplog, action):
        binding = binding_for(relay, action)
        assert binding.kind is HandlerKind.UNIMPLEMENTED

        with caplog.at_level(logging.INFO, logger="stratos_relay.relayer"):
            await relay.dispatch(binding, {"tx.hash": ["TX"]})

        forwarder.post.assert_not_awaited()
        assert f"Unhandled {action} event" in caplog.text
        assert relay.get_stats()["unimplemented"] == 1

    @pytest.mark.asyncio
    async def test_forward_failure_is_logged(self, relay, forwarder, caplog):
        forwarder.post.side_effect = TransportError("connection refused")

        with caplog.at_level(logging.ERROR, logger="stratos_relay.relayer"):
            await relay.dispatch(binding_for(relay, "volume_report"), {"volume_report.epoch": ["42"]})

        assert "Failed to forward volume_report event" in caplog.text
        assert relay.get_stats()["forward_failed"] == 1
        assert relay.get_stats()["forwarded"] == 0

    @pytest.mark.asyncio
    async def test_forwarding_is_not_deduplicated(self, relay, forwarder):
        event = {"volume_report.epoch": ["42"]}
        binding = binding_for(relay, "volume_report")

        await relay.dispatch(binding, event)
        await relay.dispatch(binding, event)

        assert forwarder.post.await_count == 2
        first, second = (call.args for call in forwarder.post.await_args_list)
        assert first == second

    @pytest.mark.asyncio
    async def test_custom_binding(self, relay, forwarder):
        binding = EventBinding.forward("volume_report", lambda event: None)

        await relay.dispatch(binding, {})

        forwarder.post.assert_not_awaited()
        assert relay.get_stats()["received"] == 1


class TestRelayLifecycle:
    """Test suite for StratosRelay.run."""

    @pytest.mark.asyncio
    async def test_subscription_failure_aborts_startup(self, relay, listener):
        listener.subscribe.side_effect = SubscriptionError("rejected")

        with pytest.raises(SubscriptionError):
            await relay.run()

        listener.connect.assert_awaited_once()
        listener.listen.assert_not_called()
        listener.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_failure_aborts_startup(self, relay, listener):
        listener.connect.side_effect = ConnectionError("refused")

        with pytest.raises(ConnectionError):
            await relay.run()

        listener.subscribe.assert_not_called()
        listener.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, relay, listener):
        relay.stop()

        await relay.run()

        assert listener.subscribe.call_count == len(EXPECTED_QUERIES)
        listener.stop.assert_awaited_once()
        assert relay.running is False

    @pytest.mark.asyncio
    async def test_listener_failure_stops_relay(self, relay, listener):
        listener.listen.side_effect = ConnectionError("websocket gone")

        with pytest.raises(RuntimeError, match="Critical task failure"):
            await relay.run()

        listener.stop.assert_awaited_once()
