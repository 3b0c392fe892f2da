"""Domain-specific errors for netcfgctl."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from netcfgctl.core.model import StatusRecord


class NetcfgError(Exception):
    """Base error for netcfgctl."""


class InvalidArgumentError(NetcfgError, ValueError):
    """Raised when an operation receives an argument outside its domain."""


class ProfileValidationError(NetcfgError):
    """Raised when a device profile does not conform to schema or semantics."""


class ProfileLoadError(NetcfgError):
    """Raised when loading profile sources fails."""


class AdapterUnavailableError(NetcfgError):
    """Raised when no usable BLE radio is present."""


class ScanInProgressError(NetcfgError):
    """Raised when a scan is requested while another one is running."""


class DeviceNotFoundError(NetcfgError):
    """Raised when connecting to an address the last scan did not report."""


class AlreadyConnectedError(NetcfgError):
    """Raised when connecting while another connection is active."""


class ConnectFailedError(NetcfgError):
    """Raised on transport-level connect failures."""


class ConnectTimeoutError(NetcfgError):
    """Raised when connect and GATT discovery exceed the connect timeout."""


class CharacteristicMissingError(NetcfgError):
    """Raised when the GATT profile lacks the provisioning characteristics."""


class NotConnectedError(NetcfgError):
    """Raised when an operation needs a live connection and none exists."""


class MalformedNotificationError(NetcfgError):
    """Raised when a status notification is too short to decode."""


class SessionInProgressError(NetcfgError):
    """Raised when a second provisioning session is attached to a connection."""


class ProvisioningError(NetcfgError):
    """Base error for unsuccessful provisioning outcomes."""


class StepTimeoutError(ProvisioningError):
    """Raised when a handshake step saw no terminal status before its deadline."""


class StepFailureError(ProvisioningError):
    """Raised when the device reported a failure status."""

    def __init__(self, message: str, record: StatusRecord | None = None) -> None:
        super().__init__(message)
        self.record = record


class SessionAbortedError(ProvisioningError):
    """Raised when the connection went away while a session was running."""


class TransportError(NetcfgError):
    """Base transport error."""


class TransportWriteError(TransportError):
    """Raised when a characteristic write fails."""
