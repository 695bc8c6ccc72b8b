"""Typed repositories for core persistence operations."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiosqlite

from article_agent.models import ArticleSection, GenerationSession, SectionStatus
from article_agent.models.session import utc_now

_SESSION_COLUMNS = (
    "session_id",
    "workflow_id",
    "version",
    "step_id",
    "status",
    "outline",
    "total_sections",
    "completed_sections",
    "target_word_count",
    "current_word_count",
    "session_metadata",
    "error_message",
    "started_at",
    "completed_at",
    "created_at",
    "updated_at",
)

_SECTION_COLUMNS = (
    "section_id",
    "workflow_id",
    "version",
    "section_number",
    "planned_section_id",
    "title",
    "content",
    "word_count",
    "status",
    "generation_metadata",
    "created_at",
    "updated_at",
)

_JSON_COLUMNS = frozenset({"session_metadata", "generation_metadata"})

# Columns a caller may change after insert; identity columns are excluded.
_MUTABLE_SESSION_COLUMNS = frozenset(_SESSION_COLUMNS) - {
    "session_id",
    "workflow_id",
    "version",
    "created_at",
}
_MUTABLE_SECTION_COLUMNS = frozenset(
    {"title", "content", "word_count", "status", "generation_metadata", "planned_section_id"}
)


def _to_db_value(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS:
        return json.dumps(value or {}, ensure_ascii=False, default=str)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _from_row(columns: Sequence[str], row: Iterable[Any]) -> Dict[str, Any]:
    data = dict(zip(columns, row))
    for column in _JSON_COLUMNS:
        if column in data and isinstance(data[column], str):
            data[column] = json.loads(data[column] or "{}")
    return data


def _row_to_session(row: Iterable[Any]) -> GenerationSession:
    return GenerationSession.model_validate(_from_row(_SESSION_COLUMNS, row))


def _row_to_section(row: Iterable[Any]) -> ArticleSection:
    return ArticleSection.model_validate(_from_row(_SECTION_COLUMNS, row))


class SessionRepository:
    """Sessions and their versioned sections."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def max_version(self, workflow_id: str) -> int:
        cursor = await self.db.execute(
            "SELECT COALESCE(MAX(version), 0) FROM generation_sessions WHERE workflow_id = ?",
            (workflow_id,),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def insert_session(self, session: GenerationSession) -> None:
        """Insert a new session row. Raises sqlite3.IntegrityError on a version clash."""
        placeholders = ", ".join("?" for _ in _SESSION_COLUMNS)
        data = session.model_dump()
        await self.db.execute(
            f"INSERT INTO generation_sessions ({', '.join(_SESSION_COLUMNS)}) VALUES ({placeholders})",
            tuple(_to_db_value(col, data[col]) for col in _SESSION_COLUMNS),
        )
        await self.db.commit()

    async def get_session(self, session_id: str) -> Optional[GenerationSession]:
        cursor = await self.db.execute(
            f"SELECT {', '.join(_SESSION_COLUMNS)} FROM generation_sessions WHERE session_id = ?",
            (session_id,),
        )
        row = await cursor.fetchone()
        return _row_to_session(row) if row else None

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _MUTABLE_SESSION_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update session columns: {sorted(unknown)}")
        values = dict(fields)
        values["updated_at"] = utc_now()
        assignments = ", ".join(f"{col} = ?" for col in values)
        await self.db.execute(
            f"UPDATE generation_sessions SET {assignments} WHERE session_id = ?",
            (*(_to_db_value(col, val) for col, val in values.items()), session_id),
        )
        await self.db.commit()

    async def insert_sections(self, sections: List[ArticleSection]) -> None:
        if not sections:
            return
        placeholders = ", ".join("?" for _ in _SECTION_COLUMNS)
        rows = []
        for section in sections:
            data = section.model_dump()
            rows.append(tuple(_to_db_value(col, data[col]) for col in _SECTION_COLUMNS))
        await self.db.executemany(
            f"INSERT INTO article_sections ({', '.join(_SECTION_COLUMNS)}) VALUES ({placeholders})",
            rows,
        )
        await self.db.commit()

    async def update_section(self, section_id: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _MUTABLE_SECTION_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update section columns: {sorted(unknown)}")
        values = dict(fields)
        values["updated_at"] = utc_now()
        assignments = ", ".join(f"{col} = ?" for col in values)
        await self.db.execute(
            f"UPDATE article_sections SET {assignments} WHERE section_id = ?",
            (*(_to_db_value(col, val) for col, val in values.items()), section_id),
        )
        await self.db.commit()

    async def get_section(
        self, workflow_id: str, version: int, section_number: int
    ) -> Optional[ArticleSection]:
        cursor = await self.db.execute(
            f"""
            SELECT {', '.join(_SECTION_COLUMNS)} FROM article_sections
            WHERE workflow_id = ? AND version = ? AND section_number = ?
            """,
            (workflow_id, version, section_number),
        )
        row = await cursor.fetchone()
        return _row_to_section(row) if row else None

    async def list_sections(
        self,
        workflow_id: str,
        version: int,
        status: Optional[SectionStatus] = None,
    ) -> List[ArticleSection]:
        query = f"""
            SELECT {', '.join(_SECTION_COLUMNS)} FROM article_sections
            WHERE workflow_id = ? AND version = ?
        """
        params: List[Any] = [workflow_id, version]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY section_number ASC"
        cursor = await self.db.execute(query, tuple(params))
        rows = await cursor.fetchall()
        return [_row_to_section(row) for row in rows]

    async def latest_completed_sections(
        self, workflow_id: str, version: int, limit: int
    ) -> List[ArticleSection]:
        """Return up to `limit` most recent completed sections, oldest first."""
        cursor = await self.db.execute(
            f"""
            SELECT {', '.join(_SECTION_COLUMNS)} FROM article_sections
            WHERE workflow_id = ? AND version = ? AND status = ?
            ORDER BY section_number DESC
            LIMIT ?
            """,
            (workflow_id, version, SectionStatus.COMPLETED.value, limit),
        )
        rows = await cursor.fetchall()
        return [_row_to_section(row) for row in reversed(rows)]

    async def latest_section_version(self, workflow_id: str) -> Optional[int]:
        cursor = await self.db.execute(
            "SELECT MAX(version) FROM article_sections WHERE workflow_id = ?",
            (workflow_id,),
        )
        row = await cursor.fetchone()
        if not row or row[0] is None:
            return None
        return int(row[0])


class WorkflowDocumentRepository:
    """Owning workflow documents: a JSON blob with a nested `steps` list."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def save_workflow(self, workflow_id: str, content: Dict[str, Any]) -> None:
        now = utc_now().isoformat()
        await self.db.execute(
            """
            INSERT INTO workflows (workflow_id, content, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(workflow_id) DO UPDATE SET
                content=excluded.content,
                updated_at=excluded.updated_at
            """,
            (workflow_id, json.dumps(content, ensure_ascii=False), now, now),
        )
        await self.db.commit()

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        cursor = await self.db.execute(
            "SELECT content FROM workflows WHERE workflow_id = ?",
            (workflow_id,),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return json.loads(row[0] or "{}")

    async def update_step_outputs(
        self, workflow_id: str, step_id: str, outputs: Dict[str, Any]
    ) -> bool:
        """Merge `outputs` into the named step. Returns False when the step is absent.

        Only the step's `outputs` sub-object is rewritten; every other key of the
        document is written back untouched.
        """
        content = await self.get_workflow(workflow_id)
        if content is None:
            return False
        steps = content.get("steps") or []
        step = next((s for s in steps if isinstance(s, dict) and s.get("id") == step_id), None)
        if step is None:
            return False
        step["outputs"] = {**(step.get("outputs") or {}), **outputs}
        await self.db.execute(
            "UPDATE workflows SET content = ?, updated_at = ? WHERE workflow_id = ?",
            (json.dumps(content, ensure_ascii=False), utc_now().isoformat(), workflow_id),
        )
        await self.db.commit()
        return True
