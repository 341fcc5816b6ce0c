"""Attack readiness, window and outcome coordination."""

from .attack import (
    DEFAULT_LEAD_TIME_EPOCHS,
    DEFAULT_WINDOW_EPOCHS,
    AttackCoordinator,
    AttackPhase,
    AttackWindow,
)

__all__ = [
    "DEFAULT_LEAD_TIME_EPOCHS",
    "DEFAULT_WINDOW_EPOCHS",
    "AttackCoordinator",
    "AttackPhase",
    "AttackWindow",
]
