"""Support-tool switches injected into the player-facing engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DebugFlags:
    """Mutable flags held on ``app.state``; never module-level state."""

    cooldown_disabled: bool = False

    def toggle_cooldown(self) -> bool:
        self.cooldown_disabled = not self.cooldown_disabled
        return self.cooldown_disabled
