import pytest

from fakes import FakeSession
from storage_copy.peripherals.nextcloud import NextcloudProvider
from storage_copy.peripherals.one_drive import OneDriveProvider
from storage_copy.peripherals.registry import PeripheralRegistry
from storage_copy.schemas.enums import ProviderType


def test_get_provider_by_enum_and_value():
    assert isinstance(PeripheralRegistry.get_provider(ProviderType.NEXTCLOUD), NextcloudProvider)
    assert isinstance(PeripheralRegistry.get_provider("one_drive"), OneDriveProvider)


def test_get_provider_returns_fresh_instances():
    first = PeripheralRegistry.get_provider(ProviderType.ONE_DRIVE)
    second = PeripheralRegistry.get_provider(ProviderType.ONE_DRIVE)

    assert first is not second
    assert first.addresses_folders_by_id is True


def test_get_provider_unknown_raises():
    with pytest.raises(ValueError, match="not found"):
        PeripheralRegistry.get_provider("dropbox")


def test_register_reads_the_provider_type_without_instantiating(monkeypatch):
    monkeypatch.setattr(PeripheralRegistry, "_registry", dict(PeripheralRegistry._registry))

    class StrictNextcloudProvider(NextcloudProvider):
        def __init__(self, session=None):
            raise AssertionError("instantiated on register")

    PeripheralRegistry.register(StrictNextcloudProvider)

    assert PeripheralRegistry._registry[ProviderType.NEXTCLOUD] is StrictNextcloudProvider


def test_provider_closes_its_session():
    session = FakeSession()

    with NextcloudProvider(session=session) as provider:
        assert provider.copy_status().session is session

    assert session.closed is True
