"""
auth/store.py -- SQLAlchemy Core persistence layer for identity entities.

Pattern: Repository + Data Mapper. UserStore is the repository; the _row_to_*
functions are the mappers. Workflow and route code never touch SQL directly.

Uses the SQLAlchemy asyncio extension so storage calls never block the event
loop. Swapping SQLite for PostgreSQL is a connection string change:
    sqlite+aiosqlite:///./campusid.db
    postgresql+asyncpg://user:pw@host/db

One UserStore is created per process (FastAPI lifespan) and passed explicitly
into every workflow call. There is no module-level handle.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  users.email is UNIQUE -- the constraint, not the workflow's pre-check, is
  what stops two concurrent signups for the same address. create_account()
  lets the IntegrityError propagate so the workflow can translate it.

  consume_verification_token() claims the token with a conditional UPDATE
  (used = false AND not expired). Of two concurrent requests only one sees
  rowcount == 1; the other gets None.

Timestamps are UTC ISO 8601 strings with fixed microsecond precision, so
string comparison in SQL equals chronological comparison.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    event,
    func,
    select,
    text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from auth.models import (
    CATEGORY_COLLEGE,
    AlumniProfile,
    AlumniUser,
    CollegeProfile,
    CollegeUser,
    EmailVerificationToken,
    LoginAttempt,
    Profile,
    User,
    UserWithProfile,
)

logger = logging.getLogger("campusid.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("mobile_number", String(20), nullable=False),
    Column("alternate_mobile_number", String(20)),
    Column("gender", String(10), nullable=False),
    Column("category", String(10), nullable=False),
    Column("email_verified", Boolean, nullable=False, server_default="0"),
    Column("mobile_verified", Boolean, nullable=False, server_default="0"),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_college_students = Table(
    "college_students",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("course", String(255), nullable=False),
    Column("year_of_graduation", Integer, nullable=False),
    Column("id_card_photo_url", Text),
    Column("id_card_photo_key", Text),
    Column("verification_status", String(20), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
)

_alumni = Table(
    "alumni",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("profession", String(255), nullable=False),
    Column("year_passed_out", Integer, nullable=False),
    Column("verification_status", String(20), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
)

_verification_tokens = Table(
    "email_verification_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("used", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_login_attempts = Table(
    "login_attempts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, index=True),
    Column("ip_address", String(45), nullable=False),
    Column("user_agent", Text, nullable=False),
    Column("success", Boolean, nullable=False),
    Column("attempted_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys and WAL journal mode on each new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections. WAL lets readers proceed while a signup transaction writes.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _is_memory_url(db_url: str) -> bool:
    return db_url.rstrip("/").endswith(("://", ":memory:"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(dt: datetime) -> str:
    """Render a datetime in the store's canonical timestamp format."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for users, category profiles, verification tokens and login attempts.

    get_by_id, get_verification_token and list_login_attempts are read helpers
    for administration and audits. The HTTP routes do not call them.

    Usage:
        store = UserStore("sqlite+aiosqlite:///./campusid.db")
        await store.init()
        user = await store.get_by_email("a@b.com")
        await store.close()
    """

    def __init__(self, db_url: str) -> None:
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory DBs live and die with their single connection.
            engine_kwargs["poolclass"] = StaticPool if _is_memory_url(db_url) else NullPool
        self.engine: AsyncEngine = create_async_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _sqlite_pragmas)

    async def init(self) -> None:
        """Create missing tables. Idempotent -- safe to call on every startup."""
        async with self.engine.begin() as conn:
            await conn.run_sync(_metadata.create_all)
        logger.info("Schema ready (%s)", self.engine.url.render_as_string(hide_password=True))

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    async def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.email == email))).fetchone()
        return _row_to_user(row) if row is not None else None

    async def get_by_id(self, user_id: int) -> User | None:
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.id == user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    async def create_account(
        self,
        user: User,
        profile: Profile,
        verification_token: EmailVerificationToken,
    ) -> User:
        """Insert the user, its category profile and its verification token atomically.

        All three inserts share one transaction, so a user is never left
        without its profile (or a profile without its user). Raises
        sqlalchemy.exc.IntegrityError if the email is already registered;
        nothing is written in that case.

        Returns the user as stored (id and timestamps filled in).
        """
        now = _now_iso()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    password_hash=user.password_hash,
                    mobile_number=user.mobile_number,
                    alternate_mobile_number=user.alternate_mobile_number,
                    gender=user.gender,
                    category=user.category,
                    email_verified=user.email_verified,
                    mobile_verified=user.mobile_verified,
                    status=user.status,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]

            if isinstance(profile, CollegeProfile):
                await conn.execute(
                    _college_students.insert().values(
                        user_id=user_id,
                        course=profile.course,
                        year_of_graduation=profile.year_of_graduation,
                        id_card_photo_url=profile.id_card_photo_url,
                        id_card_photo_key=profile.id_card_photo_key,
                        verification_status=profile.verification_status,
                        created_at=now,
                    )
                )
            else:
                await conn.execute(
                    _alumni.insert().values(
                        user_id=user_id,
                        profession=profile.profession,
                        year_passed_out=profile.year_passed_out,
                        verification_status=profile.verification_status,
                        created_at=now,
                    )
                )

            await conn.execute(
                _verification_tokens.insert().values(
                    user_id=user_id,
                    token=verification_token.token,
                    expires_at=verification_token.expires_at,
                    used=False,
                    created_at=now,
                )
            )

            row = (await conn.execute(_users.select().where(_users.c.id == user_id))).fetchone()
        return _row_to_user(row)

    async def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user (e.g. status, mobile_verified).

        Administrative status changes go through here. updated_at is stamped
        automatically. Returns True if a row was updated.
        """
        fields["updated_at"] = _now_iso()
        async with self.engine.begin() as conn:
            result = await conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    async def get_with_profile(self, user_id: int) -> UserWithProfile | None:
        """Fetch a user joined with whichever category profile row exists.

        Returns CollegeUser or AlumniUser depending on users.category. The
        profile half is None only if the row is missing, which the atomic
        create_account() does not allow to happen through the service.
        """
        cs = _college_students
        al = _alumni
        stmt = (
            select(
                _users,
                cs.c.course,
                cs.c.year_of_graduation,
                cs.c.id_card_photo_url,
                cs.c.id_card_photo_key,
                cs.c.verification_status.label("college_verification_status"),
                cs.c.user_id.label("college_user_id"),
                al.c.profession,
                al.c.year_passed_out,
                al.c.verification_status.label("alumni_verification_status"),
                al.c.user_id.label("alumni_user_id"),
            )
            .select_from(_users.outerjoin(cs, cs.c.user_id == _users.c.id).outerjoin(al, al.c.user_id == _users.c.id))
            .where(_users.c.id == user_id)
        )
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).fetchone()
        if row is None:
            return None

        user = _row_to_user(row)
        if user.category == CATEGORY_COLLEGE:
            college = None
            if row.college_user_id is not None:
                college = CollegeProfile(
                    user_id=row.college_user_id,
                    course=row.course,
                    year_of_graduation=row.year_of_graduation,
                    id_card_photo_url=row.id_card_photo_url,
                    id_card_photo_key=row.id_card_photo_key,
                    verification_status=row.college_verification_status,
                )
            return CollegeUser(user=user, college_info=college)

        alumni = None
        if row.alumni_user_id is not None:
            alumni = AlumniProfile(
                user_id=row.alumni_user_id,
                profession=row.profession,
                year_passed_out=row.year_passed_out,
                verification_status=row.alumni_verification_status,
            )
        return AlumniUser(user=user, alumni_info=alumni)

    # ------------------------------------------------------------------
    # Email verification tokens
    # ------------------------------------------------------------------

    async def get_verification_token(self, token: str) -> EmailVerificationToken | None:
        async with self.engine.connect() as conn:
            row = (
                await conn.execute(_verification_tokens.select().where(_verification_tokens.c.token == token))
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    async def consume_verification_token(self, token: str, now: datetime | None = None) -> str | None:
        """Claim a valid token and mark its owner's email verified, atomically.

        The token is claimed by a conditional UPDATE (unused and unexpired).
        If no row matches -- unknown token, expired, already used, or lost a
        race to a concurrent request -- nothing changes and None is returned.
        Otherwise the owner's email_verified flag is set in the same
        transaction and the verified email is returned.
        """
        vt = _verification_tokens
        now_iso = to_iso(now) if now is not None else _now_iso()
        async with self.engine.begin() as conn:
            claimed = await conn.execute(
                vt.update()
                .where((vt.c.token == token) & (vt.c.used.is_(False)) & (vt.c.expires_at > now_iso))
                .values(used=True)
            )
            if claimed.rowcount != 1:
                return None

            user_id = (await conn.execute(select(vt.c.user_id).where(vt.c.token == token))).scalar_one()
            await conn.execute(
                _users.update().where(_users.c.id == user_id).values(email_verified=True, updated_at=now_iso)
            )
            email = (await conn.execute(select(_users.c.email).where(_users.c.id == user_id))).scalar_one()
        return email

    # ------------------------------------------------------------------
    # Login attempts
    # ------------------------------------------------------------------

    async def log_login_attempt(self, attempt: LoginAttempt) -> None:
        """Append one row to the login audit log. Rows are never updated or deleted."""
        async with self.engine.begin() as conn:
            await conn.execute(
                _login_attempts.insert().values(
                    email=attempt.email,
                    ip_address=attempt.ip_address,
                    user_agent=attempt.user_agent,
                    success=attempt.success,
                    attempted_at=attempt.attempted_at or _now_iso(),
                )
            )

    async def count_failed_attempts_since(self, email: str, since: datetime) -> int:
        """Count failed login attempts for an email strictly after `since`."""
        la = _login_attempts
        stmt = (
            select(func.count())
            .select_from(la)
            .where((la.c.email == email) & (la.c.success.is_(False)) & (la.c.attempted_at > to_iso(since)))
        )
        async with self.engine.connect() as conn:
            result = (await conn.execute(stmt)).scalar()
        return result or 0

    async def list_login_attempts(self, email: str) -> list[LoginAttempt]:
        """Return every logged attempt for an email, oldest first."""
        la = _login_attempts
        async with self.engine.connect() as conn:
            rows = (
                await conn.execute(la.select().where(la.c.email == email).order_by(la.c.attempted_at, la.c.id))
            ).fetchall()
        return [_row_to_attempt(r) for r in rows]

    async def close(self) -> None:
        await self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        mobile_number=row.mobile_number,
        alternate_mobile_number=row.alternate_mobile_number,
        gender=row.gender,
        category=row.category,
        email_verified=bool(row.email_verified),
        mobile_verified=bool(row.mobile_verified),
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_token(row) -> EmailVerificationToken:
    return EmailVerificationToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        used=bool(row.used),
        created_at=row.created_at,
    )


def _row_to_attempt(row) -> LoginAttempt:
    return LoginAttempt(
        id=row.id,
        email=row.email,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        success=bool(row.success),
        attempted_at=row.attempted_at,
    )
