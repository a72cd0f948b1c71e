from storage_copy.peripherals.base import StorageProvider
from storage_copy.peripherals.nextcloud import NextcloudProvider
from storage_copy.peripherals.one_drive import OneDriveProvider
from storage_copy.schemas.enums import ProviderType
from typing import Dict, Type, Union

class PeripheralRegistry:
    _registry: Dict[ProviderType, Type[StorageProvider]] = {}

    @classmethod
    def register(cls, provider_cls: Type[StorageProvider]):
        cls._registry[provider_cls.provider_type] = provider_cls

    @classmethod
    def get_provider(cls, provider_type: Union[ProviderType, str]) -> StorageProvider:
        """A new provider with its own HTTP session; use it as a context manager to close it."""
        try:
            provider_cls = cls._registry.get(ProviderType(provider_type))
        except ValueError:
            provider_cls = None
        if not provider_cls:
            raise ValueError(f"Storage provider '{provider_type}' not found")
        return provider_cls()

# Register built-ins
PeripheralRegistry.register(NextcloudProvider)
PeripheralRegistry.register(OneDriveProvider)
