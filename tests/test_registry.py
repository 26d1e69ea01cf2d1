"""
Unit tests for the Backend Registry.

Tests cover:
- add() validation, uniqueness and counter initialization
- update() partial merge and invariant checks
- set_enabled() and remove()
- Decoding of stored descriptors (defaults, legacy fields, corrupt entries)
"""

import json

import pytest

from slotpool.modules.errors import ConflictError, InvalidInputError, NotFoundError
from slotpool.modules.registry import BackendRegistry, ensure_default_backend
from slotpool.modules.config import ConfigModule


# =============================================================================
# add()
# =============================================================================


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_creates_backend_and_counters(self, registry, fake_redis):
        backend = await registry.add("api1", "KEY_1", "char1", 3)

        assert backend.id == "api1"
        assert backend.enabled is True
        assert backend.capacity == 3

        stored = json.loads(await fake_redis.hget("apiPool", "api1"))
        assert stored["credential"] == "KEY_1"
        assert stored["target_id"] == "char1"
        assert stored["schema_version"] == 1
        assert await fake_redis.get("api:api1:sessions") == "0"
        assert await fake_redis.get("api:api1:closedSessions") == "0"
        assert await fake_redis.smembers("api:api1:users") == set()

    @pytest.mark.asyncio
    async def test_add_duplicate_id_conflicts(self, registry):
        await registry.add("api1", "KEY_1", "char1", 3)

        with pytest.raises(ConflictError):
            await registry.add("api1", "OTHER", "char2", 5)

        backend = await registry.get("api1")
        assert backend.credential == "KEY_1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("capacity", [0, -1])
    async def test_add_rejects_non_positive_capacity(self, registry, fake_redis, capacity):
        with pytest.raises(InvalidInputError):
            await registry.add("api1", "KEY_1", "char1", capacity)

        assert await fake_redis.hexists("apiPool", "api1") == 0
        assert await fake_redis.exists("api:api1:sessions") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "backend_id,credential,target_id",
        [
            (None, "KEY", "char"),
            ("api1", "", "char"),
            ("api1", "KEY", "   "),
            ("", "KEY", "char"),
        ],
    )
    async def test_add_rejects_missing_fields(self, registry, backend_id, credential, target_id):
        with pytest.raises(InvalidInputError):
            await registry.add(backend_id, credential, target_id, 1)

        assert await registry.list() == []

    @pytest.mark.asyncio
    async def test_add_validation_happens_before_any_redis_call(self, mock_redis):
        registry = BackendRegistry(mock_redis)

        with pytest.raises(InvalidInputError):
            await registry.add("api1", "KEY", "char", 0)

        mock_redis.hsetnx.assert_not_called()
        mock_redis.pipeline.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_records_audit_event(self, registry, audit_log):
        await registry.add("api1", "KEY_1", "char1", 3)

        events = await audit_log.read(10)
        assert events[0]["type"] == "backend_added"
        assert events[0]["backend_id"] == "api1"


# =============================================================================
# update() / set_enabled() / remove()
# =============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update_preserves_other_fields(self, registry):
        await registry.add("api1", "KEY_1", "char1", 3)

        backend = await registry.update("api1", capacity=10)

        assert backend.capacity == 10
        assert backend.credential == "KEY_1"
        assert backend.target_id == "char1"
        assert backend.enabled is True

    @pytest.mark.asyncio
    async def test_update_missing_backend(self, registry):
        with pytest.raises(NotFoundError):
            await registry.update("ghost", capacity=2)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields",
        [{"capacity": 0}, {"capacity": -5}, {"capacity": True}, {"credential": ""}, {"target_id": None}],
    )
    async def test_update_rejects_invalid_merge(self, registry, fields):
        await registry.add("api1", "KEY_1", "char1", 3)

        with pytest.raises(InvalidInputError):
            await registry.update("api1", **fields)

        backend = await registry.get("api1")
        assert backend.capacity == 3
        assert backend.credential == "KEY_1"

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, registry):
        await registry.add("api1", "KEY_1", "char1", 3)

        with pytest.raises(InvalidInputError):
            await registry.update("api1", id="api2")

    @pytest.mark.asyncio
    async def test_update_does_not_touch_counters(self, registry, fake_redis):
        await registry.add("api1", "KEY_1", "char1", 3)
        await fake_redis.set("api:api1:sessions", 2)

        await registry.update("api1", credential="KEY_2")

        assert await fake_redis.get("api:api1:sessions") == "2"


class TestSetEnabled:
    @pytest.mark.asyncio
    async def test_disable_and_enable(self, registry, fake_redis):
        await registry.add("api1", "KEY_1", "char1", 3)
        await fake_redis.set("api:api1:sessions", 1)

        backend = await registry.set_enabled("api1", False)
        assert backend.enabled is False
        assert (await registry.get("api1")).enabled is False
        assert await fake_redis.get("api:api1:sessions") == "1"

        backend = await registry.set_enabled("api1", True)
        assert backend.enabled is True

    @pytest.mark.asyncio
    async def test_set_enabled_missing_backend(self, registry):
        with pytest.raises(NotFoundError):
            await registry.set_enabled("ghost", False)


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_purges_counters_and_users(self, registry, fake_redis):
        await registry.add("api1", "KEY_1", "char1", 3)
        await fake_redis.set("api:api1:sessions", 1)
        await fake_redis.set("api:api1:closedSessions", 4)
        await fake_redis.sadd("api:api1:users", "u1")

        await registry.remove("api1")

        assert await registry.get("api1") is None
        assert await fake_redis.exists(
            "api:api1:sessions", "api:api1:closedSessions", "api:api1:users"
        ) == 0

    @pytest.mark.asyncio
    async def test_remove_missing_backend(self, registry):
        with pytest.raises(NotFoundError):
            await registry.remove("ghost")

    @pytest.mark.asyncio
    async def test_remove_leaves_sessions_orphaned(self, registry, fake_redis):
        await registry.add("api1", "KEY_1", "char1", 3)
        await fake_redis.set("user:u1", '{"requester_id": "u1", "backend_id": "api1"}')

        await registry.remove("api1")

        assert await fake_redis.exists("user:u1") == 1

    @pytest.mark.asyncio
    async def test_remove_works_on_corrupt_descriptor(self, registry, fake_redis):
        await fake_redis.hset("apiPool", "broken", "not json")

        await registry.remove("broken")

        assert await fake_redis.hexists("apiPool", "broken") == 0


# =============================================================================
# Stored descriptor decoding
# =============================================================================


class TestDecoding:
    @pytest.mark.asyncio
    async def test_missing_enabled_defaults_to_true(self, registry, fake_redis):
        await fake_redis.hset(
            "apiPool",
            "api1",
            json.dumps({"schema_version": 1, "credential": "K", "target_id": "c", "capacity": 2}),
        )

        backend = await registry.get("api1")

        assert backend.enabled is True
        assert backend.id == "api1"

    @pytest.mark.asyncio
    async def test_legacy_descriptor_fields_are_mapped(self, registry, fake_redis):
        await fake_redis.hset(
            "apiPool",
            "api1",
            json.dumps({"apiKey": "K", "characterId": "char1", "maxSessions": 5, "ttl": 900}),
        )

        backend = await registry.get("api1")

        assert backend.credential == "K"
        assert backend.target_id == "char1"
        assert backend.capacity == 5
        assert backend.session_ttl == 900

    @pytest.mark.asyncio
    async def test_list_skips_corrupt_entries(self, registry, fake_redis):
        await registry.add("api1", "KEY_1", "char1", 3)
        await fake_redis.hset("apiPool", "broken", "{not json")
        await fake_redis.hset("apiPool", "zero", json.dumps({"credential": "K", "target_id": "c", "capacity": 0}))

        backends = await registry.list()

        assert [b.id for b in backends] == ["api1"]

    @pytest.mark.asyncio
    async def test_update_of_corrupt_descriptor_is_not_found(self, registry, fake_redis):
        await fake_redis.hset("apiPool", "broken", "{not json")

        with pytest.raises(NotFoundError):
            await registry.update("broken", capacity=2)


# =============================================================================
# Startup seeding
# =============================================================================


class TestEnsureDefaultBackend:
    @pytest.mark.asyncio
    async def test_seeds_once(self, registry):
        config = ConfigModule(
            overrides={"seed_backend_id": "default", "seed_backend_credential": "SEED_KEY"}
        )

        first = await ensure_default_backend(registry, config)
        second = await ensure_default_backend(registry, config)

        assert first is not None
        assert first.target_id == "default"
        assert first.capacity == 5
        assert second is None
        assert [b.id for b in await registry.list()] == ["default"]

    @pytest.mark.asyncio
    async def test_no_seed_configured(self, registry):
        config = ConfigModule(overrides={"seed_backend_id": None, "seed_backend_credential": None})

        assert await ensure_default_backend(registry, config) is None
        assert await registry.list() == []
