"""Bounded forward search for an L1 block whose safe head covers a target L2 block."""

from typing import Callable, List, Optional, Protocol

from opfp.errors import SafeHeadNotFound


DEFAULT_STEP = 32
DEFAULT_MAX_PROBES = 10


class SafeHeadSource(Protocol):
    """What the resolver needs from a rollup node."""

    def l1_origin_number(self, l2_block: int) -> int: ...

    def safe_head_at_block(self, l1_block: int): ...


def fixed_step(size: int = DEFAULT_STEP) -> Callable[[int], int]:
    """Step function advancing by a constant number of L1 blocks."""
    def _step(current: int) -> int:
        return current + size
    return _step


class SafeHeadResolver:
    """Fixed-step forward scan from the target block's L1 origin.

    Probes step(origin), step(step(origin)), ... up to max_probes times and
    returns the first safe-head response whose safe head number reaches the
    target. The probe bound is the only retry policy in the system.
    """

    def __init__(
        self,
        source: SafeHeadSource,
        step: Optional[Callable[[int], int]] = None,
        max_probes: int = DEFAULT_MAX_PROBES,
        on_probe: Optional[Callable[[int, int], None]] = None,
    ):
        if max_probes < 1:
            raise ValueError("max_probes must be at least 1")
        self.source = source
        self.step = step or fixed_step()
        self.max_probes = max_probes
        self.on_probe = on_probe

    def find_next_safe_head(self, target_l2_block: int):
        """Return the safe-head response that first covers target_l2_block.

        Raises:
            SafeHeadNotFound: If no probe within the bound covers the target
        """
        l1_block = self.source.l1_origin_number(target_l2_block)
        probes: List[int] = []
        for _ in range(self.max_probes):
            l1_block = self.step(l1_block)
            probes.append(l1_block)
            response = self.source.safe_head_at_block(l1_block)
            if self.on_probe is not None:
                self.on_probe(l1_block, response.safe_head.number)
            if response.safe_head.number >= target_l2_block:
                return response
        raise SafeHeadNotFound(target_l2_block, probes)

    def find_safe_l1_head(self, target_l2_block: int) -> bytes:
        """Return the hash of the first L1 block whose safe head covers the target."""
        return self.find_next_safe_head(target_l2_block).l1_block.hash
