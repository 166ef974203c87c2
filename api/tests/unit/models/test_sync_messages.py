"""
Unit tests for the sync queue message contract.
"""

from src.models.contracts.messages import SyncAppsMessage


def test_message_id_is_stable():
    first = SyncAppsMessage(instance_id=1, metadata={"request_id": "r1", "source": "api"})
    second = SyncAppsMessage(instance_id=1, metadata={"request_id": "r1", "source": "cli"})

    assert first.message_id == second.message_id
    assert len(first.message_id) == 32


def test_message_id_depends_on_scope_and_request():
    base = SyncAppsMessage(instance_id=1, metadata={"request_id": "r1"})

    assert base.message_id != SyncAppsMessage(instance_id=2, metadata={"request_id": "r1"}).message_id
    assert base.message_id != SyncAppsMessage(instance_id=1, metadata={"request_id": "r2"}).message_id
    assert base.message_id != SyncAppsMessage(instance_id=1, app_type="chat", metadata={"request_id": "r1"}).message_id


def test_priority():
    assert SyncAppsMessage().priority == 5
    assert SyncAppsMessage(instance_id=1).priority == 10
    assert SyncAppsMessage(account_id=1).priority == 10
    assert SyncAppsMessage(app_type="workflow").priority == 10


def test_scope_description():
    assert SyncAppsMessage().scope_description == "all instances"
    assert (
        SyncAppsMessage(instance_id=1, account_id=2, app_type="chat").scope_description
        == "instance=1, account=2, app_type=chat"
    )


def test_round_trip_through_queue_body():
    message = SyncAppsMessage(account_id=4, metadata={"request_id": "r9"})

    assert SyncAppsMessage.model_validate(message.to_dict()) == message
