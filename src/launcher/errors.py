class LaunchError(Exception):
    pass


class InsufficientFunds(LaunchError):
    """Treasury (or wallet) balance below what the step needs."""

    def __init__(self, message: str, *, required: int = 0, available: int = 0) -> None:
        super().__init__(message)
        self.required = required
        self.available = available


class InsufficientWalletFunds(InsufficientFunds):
    """A single buyer cannot cover rent + trade; only that wallet is dropped."""

    def __init__(self, wallet: str, *, required: int, available: int) -> None:
        super().__init__(
            f"Wallet {wallet} needs {required} lamports, has {available}",
            required=required,
            available=available,
        )
        self.wallet = wallet


class DistributionFailed(LaunchError):
    pass


class RegistryExtensionFailed(LaunchError):
    def __init__(self, step: str, attempts: int, error: str | None = None) -> None:
        super().__init__(f"Lookup table {step} failed after {attempts} attempts: {error}")
        self.step = step
        self.attempts = attempts


class BundleRejected(LaunchError):
    def __init__(self, message: str, *, bundle_id: str | None = None, creation_signature: str | None = None) -> None:
        super().__init__(message)
        self.bundle_id = bundle_id
        self.creation_signature = creation_signature


class QuoteUnavailable(LaunchError):
    pass


class AccountVanished(LaunchError):
    """Token account observed earlier is gone; treated as already resolved."""


class MetadataUploadError(LaunchError):
    pass
