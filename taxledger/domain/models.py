"""Small data contracts shared by the db, api and jobs layers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text.
        detail: Operational diagnostic message.
    """

    status: str
    detail: str
