class WalletServiceError(Exception):
    pass


class WalletValidationError(WalletServiceError):
    pass


class ClientNotFoundError(WalletServiceError):
    pass


class InsufficientBalanceError(WalletServiceError):
    pass


class LedgerUnavailableError(WalletServiceError):
    pass


class WalletStorageError(WalletServiceError):
    pass
