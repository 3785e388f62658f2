from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import ConfigKind, ConfigStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import ConfigEntity
from .repository import ConfigRepository


class MySQLConfigRepository(ConfigRepository):
    _COLUMNS = "entity_id, kind, name, data, employee_id, status, created_by, approved_by, approved_at, version"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, entity_id: int) -> Optional[ConfigEntity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM payroll_configs WHERE entity_id=%s", (int(entity_id),))
            r = fetchone(cur)
            return self._to_entity(r) if r else None

    def list(
        self,
        *,
        kind: Optional[ConfigKind] = None,
        status: Optional[ConfigStatus] = None,
    ) -> Sequence[ConfigEntity]:
        clauses = ["1=1"]
        params: list[object] = []
        if kind is not None:
            clauses.append("kind=%s")
            params.append(ConfigKind(kind).value)
        if status is not None:
            clauses.append("status=%s")
            params.append(ConfigStatus(status).value)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM payroll_configs WHERE {where} ORDER BY entity_id",
                tuple(params),
            )
            return [self._to_entity(r) for r in fetchall(cur)]

    def create(self, entity: ConfigEntity) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO payroll_configs(kind, name, data, employee_id, status, created_by, version)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entity.kind.value,
                    entity.name,
                    dump_json(entity.data),
                    entity.employee_id,
                    entity.status.value,
                    entity.created_by,
                    int(entity.version),
                ),
            )
            return int(cur.lastrowid)

    def save(self, entity: ConfigEntity, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE payroll_configs
                SET name=%s, data=%s, status=%s, approved_by=%s, approved_at=%s, version=%s
                WHERE entity_id=%s AND version=%s
                """,
                (
                    entity.name,
                    dump_json(entity.data),
                    entity.status.value,
                    entity.approved_by,
                    entity.approved_at,
                    int(entity.version),
                    int(entity.entity_id),
                    int(expected_version),
                ),
            )
            return cur.rowcount > 0

    def delete(self, entity_id: int, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM payroll_configs WHERE entity_id=%s AND version=%s",
                (int(entity_id), int(expected_version)),
            )
            return cur.rowcount > 0

    @staticmethod
    def _to_entity(r: dict) -> ConfigEntity:
        return ConfigEntity(
            entity_id=int(r["entity_id"]),
            kind=ConfigKind(r["kind"]),
            name=r["name"],
            data=dict(load_json(r.get("data"), {})),
            employee_id=r.get("employee_id"),
            status=ConfigStatus(r["status"]),
            created_by=r.get("created_by"),
            approved_by=r.get("approved_by"),
            approved_at=r.get("approved_at"),
            version=int(r.get("version") or 1),
        )
