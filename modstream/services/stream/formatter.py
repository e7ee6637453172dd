"""
Register Formatter

Renders a block of register values as the display string pushed to viewers.
"""

from typing import Sequence


def format_registers(values: Sequence[int], start_address: int) -> str:
    """
    Format register values as "<address>:<value>" pairs.

    Args:
        values: Register values in ascending address order
        start_address: Address of values[0]

    Returns:
        Pairs joined by ", " (e.g. "100:10, 101:20"); empty input gives ""
    """
    return ", ".join(
        f"{start_address + i}:{value}" for i, value in enumerate(values)
    )
