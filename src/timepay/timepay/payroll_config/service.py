from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ..common.datetime_utils import now_local
from ..common.locking import KeyedLock
from ..common.validators import require_decimal, require_non_empty
from ..core.capabilities import Actor, Capability
from ..core.enums import ConfigKind, ConfigStatus
from ..core.exceptions import ConcurrentModification, ForbiddenError, NotFoundError, ValidationError
from .model import PER_EMPLOYEE_KINDS, PERCENT_FIELDS, POLICY_FIELDS, REQUIRED_FIELDS, ConfigEntity
from .repository import ConfigRepository

logger = logging.getLogger(__name__)


def validate_data(kind: ConfigKind, data: Mapping[str, Any]) -> dict[str, Any]:
    """Check the kind's required fields and normalize numbers to decimal strings."""

    out = dict(data or {})
    required = REQUIRED_FIELDS[kind]
    missing = [f for f in required if out.get(f) in (None, "")]
    if kind == ConfigKind.PAYROLL_POLICY and not missing:
        policy_type = str(out["policy_type"]).strip().upper()
        if policy_type not in POLICY_FIELDS:
            raise ValidationError(
                "Unknown policy_type",
                kind=kind,
                policy_type=policy_type,
                expected=sorted(POLICY_FIELDS),
            )
        out["policy_type"] = policy_type
        required = (POLICY_FIELDS[policy_type],)
        missing = [f for f in required if out.get(f) in (None, "")]

    if missing:
        raise ValidationError(f"Missing required fields for {kind.value}", kind=kind, missing=missing)

    for name in required:
        if name == "policy_type":
            continue
        amount = require_decimal(out[name], name)
        if name in PERCENT_FIELDS and amount > Decimal("100"):
            raise ValidationError(f"{name} must be a percentage between 0 and 100", field=name, value=out[name])
        out[name] = str(amount)

    if kind == ConfigKind.INSURANCE_BRACKET and Decimal(out["min_salary"]) > Decimal(out["max_salary"]):
        raise ValidationError(
            "min_salary must be <= max_salary",
            min_salary=out["min_salary"],
            max_salary=out["max_salary"],
        )
    return out


class ConfigService:
    """Payroll configuration lifecycle: DRAFT -> APPROVED | REJECTED.

    Entities are editable only while DRAFT, and the approver must not be the creator.
    """

    def __init__(
        self,
        configs: ConfigRepository,
        *,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._configs = configs
        self._locks = locks or KeyedLock()
        self._clock = clock

    def create(
        self,
        actor: Actor,
        *,
        kind: ConfigKind,
        name: str,
        data: Mapping[str, Any],
        employee_id: Optional[str] = None,
    ) -> ConfigEntity:
        actor.require(Capability.EDIT_CONFIG)
        kind = ConfigKind(kind)
        name = require_non_empty(name, "name")
        if kind in PER_EMPLOYEE_KINDS and not employee_id:
            raise ValidationError(f"{kind.value} requires an employee_id", kind=kind)

        entity = ConfigEntity(
            entity_id=0,
            kind=kind,
            name=name,
            data=validate_data(kind, data),
            employee_id=None if not employee_id else str(employee_id),
            status=ConfigStatus.DRAFT,
            created_by=actor.employee_id,
        )
        entity_id = self._configs.create(entity)
        logger.info("Created %s config %s (%s) by %s", kind.value, entity_id, name, actor.employee_id)
        return replace(entity, entity_id=entity_id)

    def update(
        self,
        actor: Actor,
        entity_id: int,
        *,
        name: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> ConfigEntity:
        actor.require(Capability.EDIT_CONFIG)

        with self._locks.hold(("config", int(entity_id))):
            current = self.get(entity_id)
            self._require_draft(current, "edit")

            updated = replace(
                current,
                name=current.name if name is None else require_non_empty(name, "name"),
                data=current.data if data is None else validate_data(current.kind, {**current.data, **data}),
                version=current.version + 1,
            )
            self._write(updated, current.version)
        return updated

    def update_status(self, actor: Actor, entity_id: int, status: ConfigStatus) -> ConfigEntity:
        actor.require(Capability.APPROVE_CONFIG)
        status = ConfigStatus(status)
        if status == ConfigStatus.DRAFT:
            raise ValidationError("Status must be APPROVED or REJECTED", entity_id=entity_id, status=status)

        with self._locks.hold(("config", int(entity_id))):
            current = self.get(entity_id)
            self._require_draft(current, "change status of")
            if current.created_by == actor.employee_id:
                raise ForbiddenError(
                    "Creator cannot approve or reject their own configuration",
                    entity_id=entity_id,
                    actor=actor.employee_id,
                )

            updated = replace(
                current,
                status=status,
                approved_by=actor.employee_id,
                approved_at=self._clock(),
                version=current.version + 1,
            )
            self._write(updated, current.version)

        logger.info("Config %s %s -> %s by %s", entity_id, current.kind.value, status.value, actor.employee_id)
        return updated

    def delete(self, actor: Actor, entity_id: int) -> None:
        actor.require(Capability.EDIT_CONFIG)

        with self._locks.hold(("config", int(entity_id))):
            current = self.get(entity_id)
            self._require_draft(current, "delete")
            if not self._configs.delete(current.entity_id, expected_version=current.version):
                raise ConcurrentModification("Configuration changed concurrently", entity_id=entity_id)

        logger.info("Deleted config %s by %s", entity_id, actor.employee_id)

    def get(self, entity_id: int) -> ConfigEntity:
        entity = self._configs.get_by_id(int(entity_id))
        if not entity:
            raise NotFoundError("Configuration not found", entity_id=entity_id)
        return entity

    def list(self, kind: Optional[ConfigKind] = None, status: Optional[ConfigStatus] = None) -> list[ConfigEntity]:
        return list(
            self._configs.list(
                kind=None if kind is None else ConfigKind(kind),
                status=None if status is None else ConfigStatus(status),
            )
        )

    def approved(self, kind: ConfigKind, employee_id: Optional[str] = None) -> list[ConfigEntity]:
        """APPROVED entities of a kind; with employee_id, global ones plus that employee's own."""
        entities = self._configs.list(kind=ConfigKind(kind), status=ConfigStatus.APPROVED)
        if employee_id is None:
            return list(entities)
        return [e for e in entities if e.applies_to(employee_id)]

    @staticmethod
    def _require_draft(entity: ConfigEntity, action: str) -> None:
        if entity.status != ConfigStatus.DRAFT:
            raise ForbiddenError(
                f"Cannot {action} a configuration that is not DRAFT",
                entity_id=entity.entity_id,
                expected=ConfigStatus.DRAFT,
                actual=entity.status,
            )

    def _write(self, entity: ConfigEntity, expected_version: int) -> None:
        if not self._configs.save(entity, expected_version=expected_version):
            raise ConcurrentModification(
                "Configuration changed concurrently",
                entity_id=entity.entity_id,
                expected_version=expected_version,
            )
