"""Sync coordinator tests - local-first writes, snapshots, seeding, subscriptions"""
import logging

import pytest

from campusdesk.domain.enums import UserRole
from campusdesk.domain.errors import RemoteStoreError
from campusdesk.domain.models import ServiceRequest
from campusdesk.repositories.local_cache import LocalCacheStore
from campusdesk.repositories.remote_store import InMemoryRemoteStore
from campusdesk.sync.coordinator import SyncCoordinator

from .conftest import ADMIN_EMAIL, make_request, make_user


def _request(request_id: str, created_at: str, **overrides) -> ServiceRequest:
    return ServiceRequest.model_validate(make_request(request_id, created_at, **overrides))


def _stored(record: dict) -> dict:
    return {k: v for k, v in record.items() if k != "id"}


class FailingSubscribeStore(InMemoryRemoteStore):
    async def subscribe(self, collection, on_snapshot):
        raise RemoteStoreError("remote unavailable")


class TestLocalFirstWrites:
    
    @pytest.mark.asyncio
    async def test_saved_request_visible_even_when_remote_rejects(self, coordinator, remote, caplog):
        remote.fail_writes = True
        
        with caplog.at_level(logging.ERROR):
            await coordinator.save_request(_request("r1", "2024-03-01T08:00:00Z"))
        
        assert [r.id for r in coordinator.list_requests()] == ["r1"]
        assert "Remote put failed" in caplog.text
        assert remote.collection("requests") == {}
    
    @pytest.mark.asyncio
    async def test_save_without_id_is_ignored(self, coordinator, remote):
        await coordinator.save_request(_request("", "2024-03-01T08:00:00Z"))
        await coordinator.save_request(None)
        assert coordinator.list_requests() == []
        assert not [entry for entry in remote.write_log if entry[1] == "requests"]
    
    @pytest.mark.asyncio
    async def test_save_replaces_existing_request(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-03-01T08:00:00Z"))
        await coordinator.save_request(_request("r1", "2024-03-01T08:00:00Z", title="Updated"))
        await remote.drain()
        
        requests = coordinator.list_requests()
        assert len(requests) == 1
        assert requests[0].title == "Updated"
        assert remote.collection("requests")["r1"]["title"] == "Updated"
        assert "id" not in remote.collection("requests")["r1"]


class TestOrdering:
    
    @pytest.mark.asyncio
    async def test_saved_requests_listed_newest_first(self, coordinator, remote):
        for request_id, created in [("t1", "2024-01-01T00:00:00Z"), ("t2", "2024-01-02T00:00:00Z"),
                                    ("t3", "2024-01-03T00:00:00Z")]:
            await coordinator.save_request(_request(request_id, created))
        await remote.drain()
        assert [r.id for r in coordinator.list_requests()] == ["t3", "t2", "t1"]
    
    @pytest.mark.asyncio
    async def test_remote_snapshot_delivered_newest_first(self, local):
        remote = InMemoryRemoteStore({"requests": {
            "t2": _stored(make_request("t2", "2024-01-02T00:00:00Z")),
            "t1": _stored(make_request("t1", "2024-01-01T00:00:00Z")),
            "t3": _stored(make_request("t3", "2024-01-03T00:00:00Z")),
        }})
        coordinator = SyncCoordinator(local, remote)
        delivered = []
        
        unsubscribe = await coordinator.subscribe_to_requests(delivered.append)
        
        assert [r.id for r in delivered[-1]] == ["t3", "t2", "t1"]
        unsubscribe()


class TestSnapshots:
    
    @pytest.mark.asyncio
    async def test_first_snapshot_seeds_empty_remote(self, local, remote):
        local.write_collection("requests", [make_request("r1", "2024-01-01T00:00:00Z")])
        coordinator = SyncCoordinator(local, remote)
        
        await coordinator.start()
        await remote.drain()
        
        assert set(remote.collection("requests")) == {"r1"}
        assert [r.id for r in coordinator.list_requests()] == ["r1"]
        await coordinator.stop()
    
    @pytest.mark.asyncio
    async def test_later_empty_snapshot_clears_local(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await remote.drain()
        
        await remote.delete_entity("requests", "r1")
        await remote.drain()
        
        assert coordinator.list_requests() == []
    
    @pytest.mark.asyncio
    async def test_remote_change_reaches_subscriber(self, coordinator, remote):
        delivered = []
        unsubscribe = await coordinator.subscribe_to_requests(delivered.append)
        
        await remote.put_entity("requests", "r9", _stored(make_request("r9", "2024-02-01T00:00:00Z")))
        await remote.drain()
        
        assert [r.id for r in delivered[-1]] == ["r9"]
        assert [r.id for r in coordinator.list_requests()] == ["r9"]
        unsubscribe()
    
    @pytest.mark.asyncio
    async def test_malformed_remote_record_skipped(self, coordinator, remote):
        await remote.put_entity("requests", "bad", {"title": "no owner"})
        await remote.put_entity("requests", "ok", _stored(make_request("ok", "2024-02-01T00:00:00Z")))
        await remote.drain()
        assert [r.id for r in coordinator.list_requests()] == ["ok"]
    
    @pytest.mark.asyncio
    async def test_users_always_include_default_admin(self, coordinator, remote):
        assert coordinator.find_user_by_email(ADMIN_EMAIL) is not None
        
        await remote.delete_entity("users", "admin1")
        await remote.drain()
        await remote.drain()
        
        admin = coordinator.find_user_by_email(ADMIN_EMAIL)
        assert admin is not None and admin.is_admin
        assert "admin1" in remote.collection("users")
    
    @pytest.mark.asyncio
    async def test_malformed_admin_record_replaced_by_valid_admin(self, local):
        broken_admin = {"name": None, "email": ADMIN_EMAIL, "role": UserRole.ADMIN.value, "is_verified": True}
        student = _stored(make_user("u1", "bo@campus.edu").model_dump(mode="json"))
        remote = InMemoryRemoteStore({"users": {"a1": broken_admin, "u1": student}})
        coordinator = SyncCoordinator(local, remote)
        delivered = []
        
        await coordinator.subscribe_to_users(delivered.append)
        await remote.drain()
        
        admins = [u for u in delivered[-1] if u.email == ADMIN_EMAIL]
        assert len(admins) == 1
        assert admins[0].is_admin and admins[0].is_verified
        assert "u1" in [u.id for u in delivered[-1]]


class TestLifecycle:
    
    @pytest.mark.asyncio
    async def test_archive_and_restore(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await remote.drain()
        
        await coordinator.delete_request("r1")
        await remote.drain()
        assert coordinator.get_request("r1").archived is True
        assert remote.collection("requests")["r1"]["archived"] is True
        
        await coordinator.restore_request("r1")
        await remote.drain()
        assert coordinator.get_request("r1").archived is False
        assert remote.collection("requests")["r1"]["archived"] is False
    
    @pytest.mark.asyncio
    async def test_archive_keeps_updated_at(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await coordinator.delete_request("r1")
        assert coordinator.get_request("r1").updated_at == "2024-01-01T00:00:00Z"
    
    @pytest.mark.asyncio
    async def test_permanently_deleted_request_does_not_reappear(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await coordinator.delete_request("r1")
        await remote.drain()
        
        await coordinator.permanent_delete_request("r1")
        await remote.drain()
        
        assert coordinator.get_request("r1") is None
        assert "r1" not in remote.collection("requests")
    
    @pytest.mark.asyncio
    async def test_patch_of_unknown_request_is_noop(self, coordinator, remote):
        await coordinator.delete_request("missing")
        assert ("patch", "requests", "missing") not in remote.write_log


class TestSubscriptions:
    
    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent_and_stops_delivery(self, coordinator, remote):
        delivered = []
        unsubscribe = await coordinator.subscribe_to_requests(delivered.append)
        count = len(delivered)
        
        unsubscribe()
        unsubscribe()
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await remote.drain()
        
        assert len(delivered) == count
    
    @pytest.mark.asyncio
    async def test_local_writes_notify_subscribers(self, coordinator, remote):
        remote.fail_writes = True
        delivered = []
        await coordinator.subscribe_to_requests(delivered.append)
        
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        
        assert [r.id for r in delivered[-1]] == ["r1"]
    
    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_sync(self, coordinator, remote):
        def broken(items):
            raise RuntimeError("render failed")
        await coordinator.subscribe_to_requests(broken)
        
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await remote.drain()
        
        assert [r.id for r in coordinator.list_requests()] == ["r1"]


class TestLocalOnly:
    
    @pytest.mark.asyncio
    async def test_without_remote(self, local):
        coordinator = SyncCoordinator(local, None)
        await coordinator.start()
        
        assert coordinator.find_user_by_email(ADMIN_EMAIL) is not None
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        assert [r.id for r in coordinator.list_requests()] == ["r1"]
        await coordinator.stop()
    
    @pytest.mark.asyncio
    async def test_failed_remote_subscription_falls_back_to_cache(self, local, caplog):
        local.write_collection("requests", [make_request("r1", "2024-01-01T00:00:00Z")])
        coordinator = SyncCoordinator(local, FailingSubscribeStore())
        delivered = []
        
        with caplog.at_level(logging.ERROR):
            unsubscribe = await coordinator.subscribe_to_requests(delivered.append)
        
        assert [r.id for r in delivered[-1]] == ["r1"]
        assert "serving local cache" in caplog.text
        unsubscribe()
        unsubscribe()
    
    @pytest.mark.asyncio
    async def test_deleted_admin_restored_without_remote(self, local):
        coordinator = SyncCoordinator(local, None)
        await coordinator.start()
        delivered = []
        await coordinator.subscribe_to_users(delivered.append)
        
        await coordinator.delete_user("admin1")
        
        assert [u.email for u in delivered[-1]] == [ADMIN_EMAIL]
        admin = coordinator.find_user_by_email(ADMIN_EMAIL)
        assert admin is not None and admin.is_admin
        await coordinator.stop()
    
    @pytest.mark.asyncio
    async def test_demoted_admin_repaired_without_remote(self, local):
        coordinator = SyncCoordinator(local, None)
        await coordinator.start()
        admin = coordinator.find_user_by_email(ADMIN_EMAIL)
        
        await coordinator.save_user(admin.model_copy(update={"role": UserRole.STUDENT}))
        
        assert coordinator.find_user_by_email(ADMIN_EMAIL).is_admin
        await coordinator.stop()


class TestStorageAlert:
    
    @pytest.mark.asyncio
    async def test_quota_failure_sets_alert_once(self, tmp_path):
        local = LocalCacheStore(base_path=str(tmp_path), max_bytes=4096)
        remote = InMemoryRemoteStore()
        coordinator = SyncCoordinator(local, remote)
        alerts = []
        coordinator.add_storage_listener(alerts.append)
        await coordinator.start()
        await remote.drain()
        
        huge = _request("r1", "2024-01-01T00:00:00Z", images=["x" * 10000])
        await coordinator.save_request(huge)
        await remote.drain()
        
        assert alerts
        assert coordinator.consume_storage_alert() == alerts[0]
        assert coordinator.consume_storage_alert() is None
        await coordinator.stop()
    
    @pytest.mark.asyncio
    async def test_quota_failure_not_mirrored_to_remote(self, tmp_path):
        local = LocalCacheStore(base_path=str(tmp_path), max_bytes=4096)
        remote = InMemoryRemoteStore()
        coordinator = SyncCoordinator(local, remote)
        alerts = []
        coordinator.add_storage_listener(alerts.append)
        await coordinator.start()
        await remote.drain()
        
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z", images=["x" * 10000]))
        await remote.drain()
        
        assert alerts
        assert coordinator.get_request("r1") is None
        assert remote.collection("requests") == {}
        assert ("put", "requests", "r1") not in remote.write_log
        await coordinator.stop()


class TestRoundTrips:
    
    @pytest.mark.asyncio
    async def test_archive_restore_returns_original_record(self, coordinator, remote):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z", comments=[], rating=None))
        await remote.drain()
        before = coordinator.get_request("r1").model_dump()
        
        await coordinator.delete_request("r1")
        await remote.drain()
        await coordinator.restore_request("r1")
        await remote.drain()
        
        assert coordinator.get_request("r1").model_dump() == before
    
    @pytest.mark.asyncio
    async def test_permanent_delete_survives_fresh_reconciliation(self, local, remote, coordinator):
        await coordinator.save_request(_request("r1", "2024-01-01T00:00:00Z"))
        await coordinator.save_request(_request("r2", "2024-01-02T00:00:00Z"))
        await coordinator.delete_request("r1")
        await coordinator.permanent_delete_request("r1")
        await remote.drain()
        
        fresh = SyncCoordinator(local, remote)
        await fresh.start()
        await remote.drain()
        
        assert [r.id for r in fresh.list_requests()] == ["r2"]
        assert set(remote.collection("requests")) == {"r2"}
        await fresh.stop()
