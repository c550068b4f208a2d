# appservice/exceptions.py
"""Error kinds raised by the deployer.

Every error aborts the operation that raised it. Only the ARM monitor's poll
loop retries, and it does so by re-fetching state rather than by retrying a
failed call.
"""
from typing import Optional


class AppServiceDeployError(Exception):
    """Base class for deployer errors."""


class CloudOperationError(AppServiceDeployError):
    """An SDK, IO or serialization failure.

    The underlying exception is chained (``raise ... from cause``) and also
    kept on ``cause`` for callers that only log the wrapper.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class SlotNotFoundError(CloudOperationError):
    def __init__(self, slot_name: str):
        super().__init__(f"Slot {slot_name} not found")
        self.slot_name = slot_name


class InvalidArgumentError(AppServiceDeployError):
    pass


class MissingFieldError(AppServiceDeployError):
    pass


class OperationFetchError(AppServiceDeployError):
    """Listing a deployment's operations failed. The monitor treats it as terminal."""
