"""Repository pattern for all MindStack database operations.

Single interface for: users, projects, sessions, captures, attachments,
chunks and the chunk similarity procedure.

A repository is either *scoped* (constructed with ``user_id``) or
*privileged* (no ``user_id``). Scoped repositories only see rows that belong
to projects owned by that user; writes against anything else raise
NotFoundError. The privileged repository sees everything and is reserved
for background tasks that run outside any request.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone

from mindstack.db.models import (
    Attachment,
    AttachmentKind,
    Capture,
    CaptureContext,
    CaptureType,
    Chunk,
    ChunkMatch,
    ChunkOrigin,
    Project,
    Session,
    User,
)
from mindstack.db.vectors import from_blob, to_blob
from mindstack.errors import NotFoundError, PersistenceError, ValidationError

_CAPTURE_COLUMNS = """
    c.id, c.session_id, c.project_id, c.capture_type, c.text_content,
    c.ai_markdown_summary, c.source_url, c.page_title, c.video_start_time,
    c.video_end_time, c.ide_error_log, c.ide_code_diff, c.ide_file_path,
    c.priority, c.created_at
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """Data access layer for all MindStack database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection, user_id: str | None = None) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see mindstack.db.schema.initialize).
            user_id: Caller identity. None gives the privileged handle.
        """
        self._conn = conn
        self.user_id = user_id

    @property
    def is_privileged(self) -> bool:
        return self.user_id is None

    def scoped(self, user_id: str) -> Repository:
        """Return a repository over the same connection scoped to *user_id*."""
        return Repository(self._conn, user_id=user_id)

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def _scope(self, project_alias: str = "p") -> tuple[str, tuple]:
        """SQL fragment restricting *project_alias* to the caller's projects."""
        if self.user_id is None:
            return "", ()
        return f" AND {project_alias}.user_id = ?", (self.user_id,)

    def _require_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project '{project_id}' not found")
        return project

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, name: str, token_hash: str) -> User:
        """Insert a user identified by the SHA-256 hash of their bearer token."""
        user = User(id=str(uuid.uuid4()), name=name)
        self._conn.execute(
            "INSERT INTO users (id, name, token_hash) VALUES (?, ?, ?)",
            (user.id, user.name, token_hash),
        )
        self._conn.commit()
        return user

    def get_user_by_token_hash(self, token_hash: str) -> User | None:
        row = self._conn.execute(
            "SELECT id, name, created_at FROM users WHERE token_hash = ?",
            (token_hash,),
        ).fetchone()
        if row is None:
            return None
        return User(id=row["id"], name=row["name"], created_at=row["created_at"])

    def list_users(self) -> list[User]:
        rows = self._conn.execute(
            "SELECT id, name, created_at FROM users ORDER BY created_at"
        ).fetchall()
        return [User(id=r["id"], name=r["name"], created_at=r["created_at"]) for r in rows]

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(
        self, name: str, description: str | None = None, user_id: str | None = None
    ) -> Project:
        """Create a project owned by the caller (or by *user_id* when privileged)."""
        owner = self.user_id or user_id
        if owner is None:
            raise ValidationError("A project needs an owning user")
        project = Project(id=str(uuid.uuid4()), user_id=owner, name=name, description=description)
        try:
            self._conn.execute(
                "INSERT INTO projects (id, user_id, name, description) VALUES (?, ?, ?, ?)",
                (project.id, project.user_id, project.name, project.description),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise PersistenceError(f"Could not create project: {exc}") from exc
        return project

    def get_project(self, project_id: str) -> Project | None:
        scope_sql, scope_params = self._scope()
        row = self._conn.execute(
            "SELECT p.id, p.user_id, p.name, p.description, p.created_at "
            f"FROM projects p WHERE p.id = ?{scope_sql}",
            (project_id, *scope_params),
        ).fetchone()
        return _row_to_project(row) if row else None

    def list_projects(self) -> list[Project]:
        """Return visible projects, newest first."""
        scope_sql, scope_params = self._scope()
        rows = self._conn.execute(
            "SELECT p.id, p.user_id, p.name, p.description, p.created_at "
            f"FROM projects p WHERE 1 = 1{scope_sql} ORDER BY p.created_at DESC, p.rowid DESC",
            scope_params,
        ).fetchall()
        return [_row_to_project(r) for r in rows]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, project_id: str) -> Session:
        self._require_project(project_id)
        now = _now()
        session = Session(
            id=str(uuid.uuid4()), project_id=project_id, start_time=now, last_active_at=now
        )
        self._conn.execute(
            "INSERT INTO sessions (id, project_id, start_time, last_active_at) VALUES (?, ?, ?, ?)",
            (session.id, session.project_id, session.start_time, session.last_active_at),
        )
        self._conn.commit()
        return session

    def get_session(self, session_id: str) -> Session | None:
        scope_sql, scope_params = self._scope()
        row = self._conn.execute(
            "SELECT s.id, s.project_id, s.start_time, s.end_time, s.last_active_at, "
            "s.active_file_context, s.ai_debrief "
            "FROM sessions s JOIN projects p ON p.id = s.project_id "
            f"WHERE s.id = ?{scope_sql}",
            (session_id, *scope_params),
        ).fetchone()
        return _row_to_session(row) if row else None

    def _require_session(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session '{session_id}' not found")
        return session

    def touch_session(self, session_id: str, active_file_context: str | None = None) -> None:
        """Update last-active time and, when given, the active file context."""
        self._require_session(session_id)
        if active_file_context is None:
            self._conn.execute(
                "UPDATE sessions SET last_active_at = ? WHERE id = ?", (_now(), session_id)
            )
        else:
            self._conn.execute(
                "UPDATE sessions SET last_active_at = ?, active_file_context = ? WHERE id = ?",
                (_now(), active_file_context, session_id),
            )
        self._conn.commit()

    def end_session(self, session_id: str) -> None:
        self._require_session(session_id)
        self._conn.execute("UPDATE sessions SET end_time = ? WHERE id = ?", (_now(), session_id))
        self._conn.commit()

    def set_session_debrief(self, session_id: str, debrief: str) -> None:
        self._require_session(session_id)
        self._conn.execute(
            "UPDATE sessions SET ai_debrief = ? WHERE id = ?", (debrief, session_id)
        )
        self._conn.commit()

    def list_session_summaries(self, session_id: str) -> list[tuple[CaptureType, str]]:
        """Return [(capture_type, summary)] for captures with a summary, oldest first."""
        self._require_session(session_id)
        rows = self._conn.execute(
            """
            SELECT capture_type, ai_markdown_summary FROM captures
            WHERE session_id = ? AND ai_markdown_summary IS NOT NULL
            ORDER BY created_at, rowid
            """,
            (session_id,),
        ).fetchall()
        return [(CaptureType(r["capture_type"]), r["ai_markdown_summary"]) for r in rows]

    # ------------------------------------------------------------------
    # Captures
    # ------------------------------------------------------------------

    def add_capture(self, capture: Capture) -> Capture:
        """Insert *capture* (id assigned if empty). Attachments are not inserted."""
        self._require_project(capture.project_id)
        session = self._require_session(capture.session_id)
        if session.project_id != capture.project_id:
            raise ValidationError(
                f"Session '{capture.session_id}' does not belong to project '{capture.project_id}'"
            )
        if not capture.id:
            capture.id = str(uuid.uuid4())
        try:
            self._conn.execute(
                """
                INSERT INTO captures (
                    id, session_id, project_id, capture_type, text_content,
                    ai_markdown_summary, source_url, page_title, video_start_time,
                    video_end_time, ide_error_log, ide_code_diff, ide_file_path, priority
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    capture.id,
                    capture.session_id,
                    capture.project_id,
                    capture.capture_type.value,
                    capture.text_content,
                    capture.ai_markdown_summary,
                    capture.source_url,
                    capture.page_title,
                    capture.video_start_time,
                    capture.video_end_time,
                    capture.ide_error_log,
                    capture.ide_code_diff,
                    capture.ide_file_path,
                    capture.priority,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError(f"Capture insert failed: {exc}") from exc
        return capture

    def get_capture(self, capture_id: str) -> Capture | None:
        scope_sql, scope_params = self._scope()
        row = self._conn.execute(
            f"SELECT {_CAPTURE_COLUMNS} FROM captures c JOIN projects p ON p.id = c.project_id "
            f"WHERE c.id = ?{scope_sql}",
            (capture_id, *scope_params),
        ).fetchone()
        if row is None:
            return None
        capture = _row_to_capture(row)
        capture.attachments = self.list_attachments(capture.id)
        return capture

    def _require_capture(self, capture_id: str) -> Capture:
        capture = self.get_capture(capture_id)
        if capture is None:
            raise NotFoundError(f"Capture '{capture_id}' not found")
        return capture

    def list_captures(self, project_id: str) -> list[Capture]:
        """Return a project's captures with attachments, newest first."""
        self._require_project(project_id)
        rows = self._conn.execute(
            f"SELECT {_CAPTURE_COLUMNS} FROM captures c "
            "WHERE c.project_id = ? ORDER BY c.created_at DESC, c.rowid DESC",
            (project_id,),
        ).fetchall()
        captures = [_row_to_capture(r) for r in rows]
        for capture in captures:
            capture.attachments = self.list_attachments(capture.id)
        return captures

    def update_capture_text(self, capture_id: str, text: str) -> None:
        self._update_capture(capture_id, "text_content", text)

    def update_capture_summary(self, capture_id: str, summary: str) -> None:
        self._update_capture(capture_id, "ai_markdown_summary", summary)

    def _update_capture(self, capture_id: str, column: str, value: str) -> None:
        self._require_capture(capture_id)
        try:
            self._conn.execute(f"UPDATE captures SET {column} = ? WHERE id = ?", (value, capture_id))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError(f"Capture update failed for {capture_id}: {exc}") from exc

    def delete_capture(self, capture_id: str) -> None:
        """Delete a capture. Attachments and chunks cascade."""
        self._require_capture(capture_id)
        self._conn.execute("DELETE FROM captures WHERE id = ?", (capture_id,))
        self._conn.commit()

    def get_capture_contexts(self, capture_ids: list[str]) -> list[CaptureContext]:
        """Fetch parent captures with session active file and attachments.

        Order is capture creation time (oldest first), independent of the
        order of *capture_ids*.
        """
        if not capture_ids:
            return []
        scope_sql, scope_params = self._scope()
        placeholders = ",".join("?" * len(capture_ids))
        rows = self._conn.execute(
            f"SELECT {_CAPTURE_COLUMNS}, s.active_file_context "
            "FROM captures c "
            "JOIN projects p ON p.id = c.project_id "
            "LEFT JOIN sessions s ON s.id = c.session_id "
            f"WHERE c.id IN ({placeholders}){scope_sql} "
            "ORDER BY c.created_at, c.rowid",
            (*capture_ids, *scope_params),
        ).fetchall()
        contexts: list[CaptureContext] = []
        for row in rows:
            capture = _row_to_capture(row)
            capture.attachments = self.list_attachments(capture.id)
            contexts.append(
                CaptureContext(capture=capture, active_file_context=row["active_file_context"])
            )
        return contexts

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachments(self, capture_id: str, attachments: list[Attachment]) -> None:
        """Insert all *attachments* for *capture_id* in one transaction."""
        if not attachments:
            return
        self._require_capture(capture_id)
        try:
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO capture_attachments (capture_id, url, file_type, file_name) "
                    "VALUES (?, ?, ?, ?)",
                    [(capture_id, a.url, a.file_type.value, a.file_name) for a in attachments],
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Attachment insert failed: {exc}") from exc
        for a in attachments:
            a.capture_id = capture_id

    def list_attachments(self, capture_id: str) -> list[Attachment]:
        rows = self._conn.execute(
            "SELECT id, capture_id, url, file_type, file_name FROM capture_attachments "
            "WHERE capture_id = ? ORDER BY id",
            (capture_id,),
        ).fetchall()
        return [
            Attachment(
                id=r["id"],
                capture_id=r["capture_id"],
                url=r["url"],
                file_type=AttachmentKind(r["file_type"]),
                file_name=r["file_name"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: list[Chunk], *, append: bool = False) -> int:
        """Bulk-insert *chunks* in a single transaction. Returns the row count.

        All-or-nothing: on any error the whole batch is rolled back and
        PersistenceError is raised.

        With *append*, ordinals are relative: the batch is shifted past the
        capture's highest stored ordinal, read inside the same transaction.
        Gaps between the batch's ordinals are kept.
        """
        if not chunks:
            return 0
        try:
            with self._conn:
                offset = self.next_chunk_index(chunks[0].capture_id) if append else 0
                self._conn.executemany(
                    """
                    INSERT INTO capture_chunks
                        (capture_id, project_id, chunk_index, chunk_text, origin, embedding)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    _chunk_rows(chunks, offset),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Chunk insert failed: {exc}") from exc
        for c in chunks:
            c.chunk_index += offset
        return len(chunks)

    def list_chunks(self, capture_id: str) -> list[Chunk]:
        """Return the stored chunks of a capture in ordinal order."""
        rows = self._conn.execute(
            """
            SELECT rowid, capture_id, project_id, chunk_index, chunk_text, origin,
                   embedding, created_at
            FROM capture_chunks WHERE capture_id = ? ORDER BY chunk_index
            """,
            (capture_id,),
        ).fetchall()
        return [
            Chunk(
                rowid=r["rowid"],
                capture_id=r["capture_id"],
                project_id=r["project_id"],
                chunk_index=r["chunk_index"],
                chunk_text=r["chunk_text"],
                origin=ChunkOrigin(r["origin"]),
                embedding=from_blob(r["embedding"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def count_chunks(self, project_id: str | None = None) -> int:
        if project_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM capture_chunks").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM capture_chunks WHERE project_id = ?", (project_id,)
        ).fetchone()[0]

    def next_chunk_index(self, capture_id: str) -> int:
        """First free ordinal for *capture_id* (0 when it has no chunks)."""
        row = self._conn.execute(
            "SELECT MAX(chunk_index) FROM capture_chunks WHERE capture_id = ?", (capture_id,)
        ).fetchone()
        return 0 if row[0] is None else row[0] + 1

    def count_captures(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM captures").fetchone()[0]

    def match_chunks(
        self, query_embedding: list[float], project_id: str, limit: int = 5
    ) -> list[ChunkMatch]:
        """Top-*limit* chunks of *project_id* by cosine similarity, best first."""
        scope_sql, scope_params = self._scope()
        rows = self._conn.execute(
            f"""
            SELECT ch.capture_id, ch.chunk_text,
                   1 - vec_distance_cosine(ch.embedding, ?) AS similarity
            FROM capture_chunks ch
            JOIN captures c ON c.id = ch.capture_id
            JOIN projects p ON p.id = c.project_id
            WHERE c.project_id = ?{scope_sql}
            ORDER BY similarity DESC
            LIMIT ?
            """,
            (to_blob(query_embedding), project_id, *scope_params, limit),
        ).fetchall()
        return [
            ChunkMatch(
                capture_id=r["capture_id"],
                chunk_text=r["chunk_text"],
                similarity=r["similarity"],
            )
            for r in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
    )


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        project_id=row["project_id"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        last_active_at=row["last_active_at"],
        active_file_context=row["active_file_context"],
        ai_debrief=row["ai_debrief"],
    )


def _row_to_capture(row: sqlite3.Row) -> Capture:
    return Capture(
        id=row["id"],
        session_id=row["session_id"],
        project_id=row["project_id"],
        capture_type=CaptureType(row["capture_type"]),
        text_content=row["text_content"],
        ai_markdown_summary=row["ai_markdown_summary"],
        source_url=row["source_url"],
        page_title=row["page_title"],
        video_start_time=row["video_start_time"],
        video_end_time=row["video_end_time"],
        ide_error_log=row["ide_error_log"],
        ide_code_diff=row["ide_code_diff"],
        ide_file_path=row["ide_file_path"],
        priority=row["priority"],
        created_at=row["created_at"],
    )


def _chunk_rows(chunks: list[Chunk], offset: int) -> list[tuple]:
    return [
        (
            c.capture_id,
            c.project_id,
            c.chunk_index + offset,
            c.chunk_text,
            c.origin.value,
            to_blob(c.embedding),
        )
        for c in chunks
    ]
