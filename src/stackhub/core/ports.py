"""Port allocation over reserved per-category ranges.

Pure functions. Callers must allocate every category against the same
snapshot of instances, inside the store transaction that persists the
result.
"""

from collections.abc import Iterable, Sequence

from stackhub.config import PortRange, PortRangesConfig
from stackhub.core.domain import PortCategory
from stackhub.core.models import Instance, PortAssignment
from stackhub.errors import ExhaustedRangeError


def allocate_port(
    port_range: PortRange,
    used_ports: Iterable[int],
    category: str = "port",
) -> int:
    """Return the smallest port in port_range not present in used_ports.

    Raises:
        ExhaustedRangeError: If every port in the range is taken
    """
    used = set(used_ports)
    for port in range(port_range.start, port_range.end + 1):
        if port not in used:
            return port
    raise ExhaustedRangeError(category, port_range.start, port_range.end)


def allocate_ports(ranges: PortRangesConfig, instances: Sequence[Instance]) -> PortAssignment:
    """Allocate one port per category against a single instance snapshot."""
    assigned: dict[str, int] = {}
    for category in PortCategory:
        used = (instance.ports.get(category) for instance in instances)
        assigned[category.value] = allocate_port(
            ranges.for_category(category), used, category.value
        )
    return PortAssignment(**assigned)


def free_port_counts(ranges: PortRangesConfig, instances: Sequence[Instance]) -> dict[str, int]:
    """Number of unassigned ports left in each category range."""
    counts: dict[str, int] = {}
    for category in PortCategory:
        port_range = ranges.for_category(category)
        used = {
            instance.ports.get(category)
            for instance in instances
            if instance.ports.get(category) in port_range
        }
        counts[category.value] = port_range.size - len(used)
    return counts
