from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import ConfigKind, ConfigStatus
from .model import ConfigEntity


class ConfigRepository(Protocol):
    def get_by_id(self, entity_id: int) -> Optional[ConfigEntity]:
        raise NotImplementedError

    def list(
        self,
        *,
        kind: Optional[ConfigKind] = None,
        status: Optional[ConfigStatus] = None,
    ) -> Sequence[ConfigEntity]:
        raise NotImplementedError

    def create(self, entity: ConfigEntity) -> int:
        raise NotImplementedError

    def save(self, entity: ConfigEntity, *, expected_version: int) -> bool:
        raise NotImplementedError

    def delete(self, entity_id: int, *, expected_version: int) -> bool:
        raise NotImplementedError
