"""Exception types raised by the acquisition and cleaning stages."""

from typing import Optional


class RemoteServiceError(Exception):
    """The registry was unreachable, answered with a non-success status, or
    returned an envelope that does not have the expected shape.

    Fatal to the acquisition run; nothing is cached when it is raised.
    """

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text = f"{text} (HTTP {self.status_code})"
        return text


class FieldParseError(ValueError):
    """A single raw field could not be converted to its typed value.

    Only used inside :mod:`ctr.core.normalization`; ``normalize`` turns it
    into an absent value and never lets it escape.
    """

    def __init__(self, field: str, raw: object) -> None:
        super().__init__(f"Cannot parse {field} from {raw!r}")
        self.field = field
        self.raw = raw
