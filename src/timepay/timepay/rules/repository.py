from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import RuleType
from .model import RuleConfig


class RuleConfigRepository(Protocol):
    def get_by_id(self, rule_id: int) -> Optional[RuleConfig]:
        raise NotImplementedError

    def list_for_scope(self, scope: str, *, active_only: bool = False) -> Sequence[RuleConfig]:
        raise NotImplementedError

    def find_active(self, rule_type: RuleType, scope: str) -> Sequence[RuleConfig]:
        raise NotImplementedError

    def create(self, rule: RuleConfig) -> int:
        """Insert and return the new rule_id (the passed rule_id is ignored)."""

        raise NotImplementedError

    def save(self, rule: RuleConfig, *, expected_version: int) -> bool:
        """Compare-and-set write; False when the stored version differs."""

        raise NotImplementedError
