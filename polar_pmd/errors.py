"""
Decode / encode failures for the Polar H10 GATT payloads.

All errors derive from ValueError so callers that treat a bad payload as a
ValueError (drop the packet, log, carry on) keep working.
"""


class PmdError(ValueError):
    """Base class for every payload that cannot be decoded or encoded."""


class TruncatedBuffer(PmdError):
    """Buffer is shorter than a field the format declares."""

    def __init__(self, field: str, needed: int, available: int):
        self.field = field
        self.needed = needed
        self.available = available
        super().__init__(f"payload too short for {field}: need {needed} byte(s), have {available}")


class UnknownResponseCode(PmdError):
    """A code byte outside the known protocol vocabulary."""


class UnsupportedSensor(PmdError):
    """Sensor byte is unknown, or known but not handled here."""


class InvalidCommand(PmdError):
    """Control-point command outside GET_SETTINGS / START / STOP."""


class UnknownCharacteristic(PmdError):
    """Notification from a characteristic the dispatcher does not decode."""
