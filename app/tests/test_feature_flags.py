import pytest

from app.core.config import Settings
from app.models.feature_flag import FeatureFlag
from app.repositories.feature_flags import FeatureFlagRepository
from app.repositories.readings import LegacyEnergyRepository, SourceReadingRepository
from app.services.feature_flags import (
    DEFAULT_BACKEND_FLAGS,
    FeatureFlagService,
    component_flag_name,
    flag_applies,
    select_reading_repository,
)


def _service(fake_db, **overrides):
    return FeatureFlagService(FeatureFlagRepository(fake_db), Settings(_env_file=None, **overrides))


def test_component_flag_name():
    assert component_flag_name("dashboard") == "DASHBOARD_NEW_BACKEND"


def test_flag_applies_lists():
    flag = FeatureFlag(name="X", enabled=True, whitelist=["a"], blacklist=["b"])
    assert flag_applies(flag, "a") is True
    assert flag_applies(flag, "b") is False
    assert flag_applies(flag, "c") is True
    assert flag_applies(flag) is True
    assert flag_applies(None, "a") is False


def test_blacklist_wins_over_whitelist():
    flag = FeatureFlag(name="X", enabled=False, whitelist=["a"], blacklist=["a"])
    assert flag_applies(flag, "a") is False


def test_whitelist_enables_disabled_flag():
    flag = FeatureFlag(name="X", enabled=False, whitelist=["a"])
    assert flag_applies(flag, "a") is True
    assert flag_applies(flag, "b") is False


@pytest.mark.asyncio
async def test_settings_override_wins(fake_db):
    repo = FeatureFlagRepository(fake_db)
    await repo.set("NEW_BACKEND_ENABLED", {"enabled": False})

    assert await _service(fake_db, NEW_BACKEND_ENABLED=True).use_new_backend("charts", "u1") is True
    await repo.set("NEW_BACKEND_ENABLED", {"enabled": True})
    assert await _service(fake_db, NEW_BACKEND_ENABLED=False).use_new_backend("charts", "u1") is False


@pytest.mark.asyncio
async def test_global_flag_used_without_component_flag(fake_db):
    service = _service(fake_db)
    assert await service.use_new_backend("charts") is False

    await FeatureFlagRepository(fake_db).set("NEW_BACKEND_ENABLED", {"enabled": True})
    assert await service.use_new_backend("charts") is True
    assert await service.use_new_backend() is True


@pytest.mark.asyncio
async def test_component_flag_overrides_global(fake_db):
    repo = FeatureFlagRepository(fake_db)
    await repo.set("NEW_BACKEND_ENABLED", {"enabled": True})
    await repo.set("CHARTS_NEW_BACKEND", {"enabled": False, "whitelist": ["beta"]})
    service = _service(fake_db)

    assert await service.use_new_backend("charts", "u1") is False
    assert await service.use_new_backend("charts", "beta") is True
    assert await service.use_new_backend("dashboard", "u1") is True


@pytest.mark.asyncio
async def test_initialize_backend_flags_is_idempotent(fake_db):
    service = _service(fake_db)
    repo = FeatureFlagRepository(fake_db)
    await repo.set("NEW_BACKEND_ENABLED", {"enabled": True})

    created = await service.initialize_backend_flags()
    assert created == len(DEFAULT_BACKEND_FLAGS) - 1
    assert await service.initialize_backend_flags() == 0

    flags = await repo.find_all()
    assert [f.name for f in flags] == sorted(f.name for f in DEFAULT_BACKEND_FLAGS)
    # existing flags keep their state
    assert (await repo.get("NEW_BACKEND_ENABLED")).enabled is True
    assert (await repo.get("CHARTS_NEW_BACKEND")).enabled is False


@pytest.mark.asyncio
async def test_set_updates_lists(fake_db):
    repo = FeatureFlagRepository(fake_db)
    await repo.set("FORM_NEW_BACKEND", {"enabled": False, "whitelist": ["u1"]})
    flag = await repo.set("FORM_NEW_BACKEND", {"blacklist": ["u2"]})

    assert flag.whitelist == ["u1"]
    assert flag.blacklist == ["u2"]
    assert flag.updated_at is not None
    assert len(fake_db.feature_flags.docs) == 1


def test_select_reading_repository(fake_db):
    assert isinstance(select_reading_repository(fake_db, True), SourceReadingRepository)
    legacy = select_reading_repository(fake_db, False)
    assert isinstance(legacy, LegacyEnergyRepository)
    assert legacy.backend == "energies"
