"""Shared fixtures for all tests."""

from uuid import UUID

import pytest

from attrstack.compute import ComputationEngine
from attrstack.expiry import ModifierExpiryScheduler
from attrstack.model import (
    AttributeDefinition,
    CapConfig,
    ModifierEntry,
    ModifierOperation,
    MultiplierApplicability,
)
from attrstack.model.stages import AttributeValueStages
from attrstack.registry import AttributeRegistry

PLAYER_ID = UUID("12345678-1234-5678-1234-567812345678")
OTHER_PLAYER_ID = UUID("87654321-4321-8765-4321-876543218765")


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a temporary data dir and database file.

    Clears the cached settings and the cached database engine so nothing
    touches the real data directory.
    """
    monkeypatch.setenv("ATTRSTACK_DATA_DIR", str(tmp_path / "attributes"))
    database_path = tmp_path / "attrstack.db"
    monkeypatch.setenv("ATTRSTACK_DATABASE_URL", f"sqlite+aiosqlite:///{database_path}")

    from attrstack.config import get_settings

    get_settings.cache_clear()

    import attrstack.database.engine as engine_module

    engine_module._database = None

    yield

    get_settings.cache_clear()
    engine_module._database = None


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingListener:
    """Refresh listener that records notifications and the value at that moment."""

    def __init__(self, registry: AttributeRegistry) -> None:
        self.registry = registry
        self.entity_events: list[tuple[UUID, str]] = []
        self.broadcast_events: list[str] = []
        self.entity_values: list[float] = []
        self.global_values: list[float] = []
        self.forgotten: list[UUID] = []

    def notify_entity(self, entity_id: UUID, attribute_id: str) -> None:
        self.entity_events.append((entity_id, attribute_id))
        self.entity_values.append(self.registry.compute(attribute_id, entity_id).current_final)

    def notify_all(self, attribute_id: str) -> None:
        self.broadcast_events.append(attribute_id)
        self.global_values.append(self.registry.compute(attribute_id).current_final)

    def forget_entity(self, entity_id: UUID) -> None:
        self.forgotten.append(entity_id)


def make_definition(
    attribute_id: str = "max_health",
    *,
    dynamic: bool = False,
    default_base: float = 20.0,
    default_current: float | None = None,
    cap: CapConfig | None = None,
    applicability: MultiplierApplicability | None = None,
) -> AttributeDefinition:
    return AttributeDefinition(
        id=attribute_id,
        dynamic=dynamic,
        default_base_value=default_base,
        default_current_value=default_base if default_current is None else default_current,
        cap_config=cap or CapConfig(-1_000_000, 1_000_000),
        multiplier_applicability=applicability or MultiplierApplicability.apply_all(),
    )


def add(key: str, amount: float, **flags) -> ModifierEntry:
    return ModifierEntry(key=key, operation=ModifierOperation.ADD, amount=amount, **flags)


def mul(key: str, amount: float, **flags) -> ModifierEntry:
    return ModifierEntry(key=key, operation=ModifierOperation.MULTIPLY, amount=amount, **flags)


def assert_stages(stages: AttributeValueStages, *expected: float) -> None:
    assert stages.as_tuple() == pytest.approx(expected, abs=1e-6)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine() -> ComputationEngine:
    return ComputationEngine()


@pytest.fixture
def registry(clock: FakeClock) -> AttributeRegistry:
    """Registry with a manual clock and no definitions."""
    return AttributeRegistry(ComputationEngine(), ModifierExpiryScheduler(clock))


@pytest.fixture
def listener(registry: AttributeRegistry) -> RecordingListener:
    recording = RecordingListener(registry)
    registry.set_refresh_listener(recording)
    return recording
