# core/effects.py
"""
Best-effort side effects.

A transition first commits its own write; everything that follows it
(notifications, socket pushes, ledger upserts) goes through SideEffects.run,
which logs and records a failure instead of raising it.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional

logger = logging.getLogger("assignflow.effects")


@dataclass
class EffectResult:
    label: str
    ok: bool
    value: object = None
    error: Optional[str] = None


@dataclass
class SideEffects:
    context: str = ""
    results: List[EffectResult] = field(default_factory=list)

    async def run(self, label: str, awaitable: Awaitable) -> EffectResult:
        try:
            value = await awaitable
            result = EffectResult(label=label, ok=True, value=value)
        except Exception as e:
            logger.warning(f"Side effect '{label}' failed ({self.context}): {e}", exc_info=True)
            result = EffectResult(label=label, ok=False, error=str(e))
        self.results.append(result)
        return result

    @property
    def failed(self) -> List[EffectResult]:
        return [r for r in self.results if not r.ok]
