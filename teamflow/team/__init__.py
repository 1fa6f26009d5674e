"""Team composition."""

from .composer import (
    CAPABILITY_GROUPS,
    CapabilityGroup,
    TeamComposition,
    compose_team,
    load_capability_names,
)

__all__ = [
    "CAPABILITY_GROUPS",
    "CapabilityGroup",
    "TeamComposition",
    "compose_team",
    "load_capability_names",
]
