"""Error taxonomy for the contact join job.

Process-level errors (configuration, capacity) always abort the run before
anything is written. Record-level errors (join miss, data format) are only
raised when the corresponding policy is ``fail``; otherwise they are counted
and logged by the stage that detects them.
"""


class ContactJoinError(Exception):
    """Base class for every error raised by the job."""


class ConfigurationError(ContactJoinError):
    """Missing or invalid startup configuration."""


class CapacityError(ContactJoinError):
    """The contact source holds more records than the configured bound."""

    def __init__(self, count: int, max_contacts: int):
        self.count = count
        self.max_contacts = max_contacts
        super().__init__(
            f"contact source has {count} records, capacity is {max_contacts}"
        )


class JoinMissError(ContactJoinError):
    """Device candidates whose sequence key is absent from the contact map."""

    def __init__(self, miss_count: int, sample: list[str] | None = None):
        self.miss_count = miss_count
        self.sample = sample or []
        msg = f"{miss_count} device candidates had no matching contact"
        if self.sample:
            msg += f" (e.g. {', '.join(self.sample)})"
        super().__init__(msg)


class DataFormatError(ContactJoinError):
    """A joined contact string does not split into exactly four fields."""

    def __init__(self, row_key: str, field_count: int | None, reject_count: int = 1):
        self.row_key = row_key
        self.field_count = field_count
        self.reject_count = reject_count
        if field_count is None:
            detail = "contact value is missing"
        else:
            detail = f"expected 4 fields, got {field_count}"
        msg = f"row {row_key}: {detail}"
        if reject_count > 1:
            msg += f" ({reject_count} malformed records in total)"
        super().__init__(msg)
