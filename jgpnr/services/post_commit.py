# jgpnr/services/post_commit.py
"""
Side effects that must only run once the owning transaction has committed.

Each effect is isolated: one failing (Redis down, Kafka down) never stops
the next one or reaches the caller.
"""
import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitEffects:
    def __init__(self):
        self._effects: List[Tuple[str, Callable[[], object]]] = []

    def add(self, name: str, effect: Callable[[], object]) -> None:
        self._effects.append((name, effect))

    def __len__(self) -> int:
        return len(self._effects)

    def run(self) -> List[str]:
        """Run every effect in order; returns the names of those that failed."""
        failed = []
        for name, effect in self._effects:
            try:
                effect()
            except Exception as e:
                logger.error(f"Post-commit effect '{name}' failed: {e}", exc_info=True)
                failed.append(name)
        self._effects.clear()
        return failed
