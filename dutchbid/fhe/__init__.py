"""FHE encryption providers for bid quantities"""
from dutchbid.fhe.provider import (
    EncryptedInput,
    EncryptedPayload,
    EncryptionProvider,
    MockEncryptionProvider,
    ProviderError,
    ProviderStatus,
    RelayerEncryptionProvider,
    create_provider,
)

__all__ = [
    "EncryptedInput",
    "EncryptedPayload",
    "EncryptionProvider",
    "MockEncryptionProvider",
    "ProviderError",
    "ProviderStatus",
    "RelayerEncryptionProvider",
    "create_provider",
]
