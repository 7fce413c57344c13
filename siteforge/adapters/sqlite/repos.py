import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID

from siteforge.domain.entities import (
    BlacklistedToken,
    Billing,
    MemberSiteRef,
    Post,
    PostVersion,
    Role,
    Site,
    SitePlan,
    SiteSettings,
    SiteStats,
    SiteUser,
    Subscription,
    Translation,
    Usage,
    User,
    ViewBucket,
)
from siteforge.domain.errors import DuplicateKeyError, StorageError
from siteforge.domain.ledger import apply_content_change
from siteforge.domain.ledger import restore_version as restore_ledger_version
from siteforge.ports.repo import PostQuery

logger = logging.getLogger(__name__)

# Qualified column reported by sqlite -> field name carried by DuplicateKeyError
UNIQUE_FIELDS = {
    "users.email": "email",
    "sites.subdomain": "subdomain",
    "site_users.user_id": "site_user",
    "subscriptions.site_id": "site_id",
    "posts.slug": "slug",
    "roles.name": "role",
}

POST_SORTS = {
    "-published_at": "published_at DESC, created_at DESC",
    "-updated_at": "updated_at DESC",
    "-created_at": "created_at DESC",
    "scheduled_date": "scheduled_date ASC",
    "title": "title ASC",
}


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def to_db_time(dt: datetime | None) -> str | None:
    """
    Fixed-width UTC text so that lexical order in SQL equals time order.
    Naive datetimes are taken to be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


def _duplicate_from(e: sqlite3.IntegrityError) -> Exception:
    message = str(e)
    if "UNIQUE constraint failed" not in message:
        return StorageError(message)
    column = message.split(":", 1)[1].split(",")[-1].strip()
    return DuplicateKeyError(UNIQUE_FIELDS.get(column, column.split(".")[-1]), column)


class _SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        except sqlite3.OperationalError as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _write(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Unit of work: commit on success, roll back on any failure.
        `immediate` takes the write lock up front for read-modify-write sequences.
        """
        conn = self._get_conn()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise _duplicate_from(e) from e
        except sqlite3.OperationalError as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class SQLiteRoleRepo(_SQLiteRepo):
    def replace_all(self, roles: list[Role]) -> None:
        with self._write(immediate=True) as conn:
            conn.execute("DELETE FROM roles")
            conn.executemany(
                """
                INSERT INTO roles (
                    id, name, scope, display_name, description, level,
                    permissions_json, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                [
                    (
                        str(r.id),
                        r.name,
                        r.scope,
                        r.display_name,
                        r.description,
                        r.level,
                        json.dumps(sorted(r.permissions)),
                        int(r.is_active),
                        to_db_time(r.created_at),
                    )
                    for r in roles
                ],
            )
        logger.debug("Stored %d role records", len(roles))

    def list_all(self) -> list[Role]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM roles ORDER BY scope, level").fetchall()
            return [
                Role(
                    id=UUID(row["id"]),
                    name=row["name"],
                    scope=row["scope"],
                    display_name=row["display_name"],
                    description=row["description"],
                    level=row["level"],
                    permissions=frozenset(json.loads(row["permissions_json"])),
                    is_active=bool(row["is_active"]),
                    created_at=parse_dt(row["created_at"]),
                )
                for row in rows
            ]


class SQLiteUserRepo(_SQLiteRepo):
    """
    Users table. Owned and member site lists are not stored on the row; they are
    derived from sites and site_users whenever a user is loaded.
    """

    def _row_to_user(self, conn: sqlite3.Connection, row: dict[str, Any]) -> User:
        owned = conn.execute(
            "SELECT id FROM sites WHERE owner_user_id = ? ORDER BY created_at", (row["id"],)
        ).fetchall()
        members = conn.execute(
            """
            SELECT site_id, role, joined_at FROM site_users
            WHERE user_id = ? AND status = 'active' ORDER BY joined_at
            """,
            (row["id"],),
        ).fetchall()
        return User(
            id=UUID(row["id"]),
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            role_id=UUID(row["role_id"]) if row["role_id"] else None,
            legacy_role=row["legacy_role"],
            platform_role=row["platform_role"],
            owned_sites=[UUID(r["id"]) for r in owned],
            member_sites=[
                MemberSiteRef(
                    site_id=UUID(m["site_id"]), role=m["role"], joined_at=parse_dt(m["joined_at"])
                )
                for m in members
            ],
            avatar=row["avatar"],
            bio=row["bio"],
            is_active=bool(row["is_active"]),
            is_email_verified=bool(row["is_email_verified"]),
            email_verification_otp=row["email_verification_otp"],
            email_verification_expire=parse_dt(row["email_verification_expire"]),
            reset_password_token=row["reset_password_token"],
            reset_password_expire=parse_dt(row["reset_password_expire"]),
            token_blacklist=[
                BlacklistedToken.model_validate(t) for t in json.loads(row["token_blacklist_json"])
            ],
            last_login=parse_dt(row["last_login"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )

    @staticmethod
    def _params(user: User) -> dict[str, Any]:
        return {
            "id": str(user.id),
            "name": user.name,
            "email": user.email.lower(),
            "password_hash": user.password_hash,
            "role_id": str(user.role_id) if user.role_id else None,
            "legacy_role": user.legacy_role,
            "platform_role": user.platform_role,
            "avatar": user.avatar,
            "bio": user.bio,
            "is_active": int(user.is_active),
            "is_email_verified": int(user.is_email_verified),
            "email_verification_otp": user.email_verification_otp,
            "email_verification_expire": to_db_time(user.email_verification_expire),
            "reset_password_token": user.reset_password_token,
            "reset_password_expire": to_db_time(user.reset_password_expire),
            "token_blacklist_json": json.dumps(
                [t.model_dump(mode="json") for t in user.token_blacklist]
            ),
            "last_login": to_db_time(user.last_login),
            "created_at": to_db_time(user.created_at),
            "updated_at": to_db_time(user.updated_at),
        }

    def get_by_id(self, user_id: UUID) -> User | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return self._row_to_user(conn, row) if row else None

    def get_by_email(self, email: str) -> User | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
            return self._row_to_user(conn, row) if row else None

    def get_by_reset_token(self, token_hash: str) -> User | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE reset_password_token = ?", (token_hash,)
            ).fetchone()
            return self._row_to_user(conn, row) if row else None

    def insert(self, user: User) -> User:
        params = self._params(user)
        columns = ", ".join(params)
        placeholders = ", ".join(f":{k}" for k in params)
        with self._write() as conn:
            conn.execute(f"INSERT INTO users ({columns}) VALUES ({placeholders})", params)
        return user.model_copy(update={"email": params["email"]})

    def update(self, user: User) -> User:
        params = self._params(user)
        assignments = ", ".join(f"{k} = :{k}" for k in params if k not in ("id", "created_at"))
        with self._write() as conn:
            conn.execute(f"UPDATE users SET {assignments} WHERE id = :id", params)
        return user.model_copy(update={"email": params["email"]})

    def blacklist_token(
        self, user_id: UUID, token_hash: str, now: datetime, cap: int
    ) -> User | None:
        with self._write(immediate=True) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            if row is None:
                return None
            user = self._row_to_user(conn, row).with_blacklisted_token(token_hash, now, cap)
            params = self._params(user)
            conn.execute(
                "UPDATE users SET token_blacklist_json = :token_blacklist_json,"
                " updated_at = :updated_at WHERE id = :id",
                params,
            )
            return user

    def delete(self, user_id: UUID) -> bool:
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (str(user_id),))
            return cursor.rowcount > 0

    def list_all(self) -> list[User]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
            return [self._row_to_user(conn, row) for row in rows]

    def delete_unverified_before(self, cutoff: datetime) -> int:
        with self._write() as conn:
            cursor = conn.execute(
                "DELETE FROM users WHERE is_email_verified = 0 AND created_at < ?",
                (to_db_time(cutoff),),
            )
            return cursor.rowcount


def _row_to_site(row: dict[str, Any]) -> Site:
    return Site(
        id=UUID(row["id"]),
        name=row["name"],
        subdomain=row["subdomain"],
        custom_domain=row["custom_domain"],
        owner_user_id=UUID(row["owner_user_id"]),
        type=row["type"],
        template=row["template"],
        theme=row["theme"],
        settings=SiteSettings.model_validate_json(row["settings_json"]),
        subscription=SitePlan.model_validate_json(row["subscription_json"]),
        stats=SiteStats.model_validate_json(row["stats_json"]),
        is_active=bool(row["is_active"]),
        is_initialized=bool(row["is_initialized"]),
        created_at=parse_dt(row["created_at"]),
        updated_at=parse_dt(row["updated_at"]),
    )


def _row_to_membership(row: dict[str, Any], prefix: str = "") -> SiteUser:
    invited_by = row[f"{prefix}invited_by_user_id"]
    return SiteUser(
        id=UUID(row[f"{prefix}id"]),
        site_id=UUID(row[f"{prefix}site_id"]),
        user_id=UUID(row[f"{prefix}user_id"]),
        role=row[f"{prefix}role"],
        permissions=json.loads(row[f"{prefix}permissions_json"]),
        status=row[f"{prefix}status"],
        invited_by_user_id=UUID(invited_by) if invited_by else None,
        joined_at=parse_dt(row[f"{prefix}joined_at"]),
    )


class SQLiteSiteRepo(_SQLiteRepo):
    @staticmethod
    def _params(site: Site) -> dict[str, Any]:
        return {
            "id": str(site.id),
            "name": site.name,
            "subdomain": site.subdomain,
            "custom_domain": site.custom_domain,
            "owner_user_id": str(site.owner_user_id),
            "type": site.type,
            "template": site.template,
            "theme": site.theme,
            "settings_json": site.settings.model_dump_json(),
            "subscription_json": site.subscription.model_dump_json(),
            "stats_json": site.stats.model_dump_json(),
            "is_active": int(site.is_active),
            "is_initialized": int(site.is_initialized),
            "created_at": to_db_time(site.created_at),
            "updated_at": to_db_time(site.updated_at),
        }

    def get_by_id(self, site_id: UUID) -> Site | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM sites WHERE id = ?", (str(site_id),)).fetchone()
            return _row_to_site(row) if row else None

    def get_by_subdomain(self, subdomain: str) -> Site | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM sites WHERE subdomain = ?", (subdomain.lower(),)
            ).fetchone()
            return _row_to_site(row) if row else None

    def insert(self, site: Site) -> Site:
        params = self._params(site)
        columns = ", ".join(params)
        placeholders = ", ".join(f":{k}" for k in params)
        with self._write() as conn:
            conn.execute(f"INSERT INTO sites ({columns}) VALUES ({placeholders})", params)
        return site

    def update(self, site: Site) -> Site:
        params = self._params(site)
        assignments = ", ".join(f"{k} = :{k}" for k in params if k not in ("id", "created_at"))
        with self._write() as conn:
            conn.execute(f"UPDATE sites SET {assignments} WHERE id = :id", params)
        return site

    def delete(self, site_id: UUID) -> bool:
        # ON DELETE CASCADE removes memberships, the subscription and posts
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM sites WHERE id = ?", (str(site_id),))
            return cursor.rowcount > 0

    def list_owned(self, user_id: UUID) -> list[Site]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM sites WHERE owner_user_id = ? ORDER BY created_at",
                (str(user_id),),
            ).fetchall()
            return [_row_to_site(row) for row in rows]

    def list_member_sites(self, user_id: UUID) -> list[tuple[Site, SiteUser]]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT s.*,
                    su.id AS su_id, su.site_id AS su_site_id, su.user_id AS su_user_id,
                    su.role AS su_role, su.permissions_json AS su_permissions_json,
                    su.status AS su_status, su.invited_by_user_id AS su_invited_by_user_id,
                    su.joined_at AS su_joined_at
                FROM site_users su JOIN sites s ON s.id = su.site_id
                WHERE su.user_id = ?
                ORDER BY su.joined_at
                """,
                (str(user_id),),
            ).fetchall()
            return [(_row_to_site(row), _row_to_membership(row, "su_")) for row in rows]


class SQLiteMembershipRepo(_SQLiteRepo):
    @staticmethod
    def _params(m: SiteUser) -> tuple[Any, ...]:
        return (
            m.role,
            json.dumps(m.permissions),
            m.status,
            str(m.invited_by_user_id) if m.invited_by_user_id else None,
            to_db_time(m.joined_at),
            str(m.id),
        )

    def get(self, site_id: UUID, user_id: UUID) -> SiteUser | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM site_users WHERE site_id = ? AND user_id = ?",
                (str(site_id), str(user_id)),
            ).fetchone()
            return _row_to_membership(row) if row else None

    def insert(self, membership: SiteUser) -> SiteUser:
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO site_users (
                    site_id, user_id, role, permissions_json, status,
                    invited_by_user_id, joined_at, id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (str(membership.site_id), str(membership.user_id), *self._params(membership)),
            )
        return membership

    def update(self, membership: SiteUser) -> SiteUser:
        with self._write() as conn:
            conn.execute(
                """
                UPDATE site_users SET
                    role = ?, permissions_json = ?, status = ?,
                    invited_by_user_id = ?, joined_at = ?
                WHERE id = ?
            """,
                self._params(membership),
            )
        return membership

    def delete(self, site_id: UUID, user_id: UUID) -> bool:
        with self._write() as conn:
            cursor = conn.execute(
                "DELETE FROM site_users WHERE site_id = ? AND user_id = ?",
                (str(site_id), str(user_id)),
            )
            return cursor.rowcount > 0

    def list_for_site(self, site_id: UUID) -> list[SiteUser]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM site_users WHERE site_id = ? ORDER BY joined_at",
                (str(site_id),),
            ).fetchall()
            return [_row_to_membership(row) for row in rows]


class SQLiteSubscriptionRepo(_SQLiteRepo):
    @staticmethod
    def _row_to_subscription(row: dict[str, Any]) -> Subscription:
        return Subscription(
            id=UUID(row["id"]),
            site_id=UUID(row["site_id"]),
            user_id=UUID(row["user_id"]),
            plan=row["plan"],
            status=row["status"],
            billing=Billing.model_validate_json(row["billing_json"]),
            usage=Usage.model_validate_json(row["usage_json"]),
            trial_ends_at=parse_dt(row["trial_ends_at"]),
            cancelled_at=parse_dt(row["cancelled_at"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )

    def get_by_site(self, site_id: UUID) -> Subscription | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE site_id = ?", (str(site_id),)
            ).fetchone()
            return self._row_to_subscription(row) if row else None

    def insert(self, subscription: Subscription) -> Subscription:
        s = subscription
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO subscriptions (
                    id, site_id, user_id, plan, status, billing_json, usage_json,
                    trial_ends_at, cancelled_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(s.id),
                    str(s.site_id),
                    str(s.user_id),
                    s.plan,
                    s.status,
                    s.billing.model_dump_json(),
                    s.usage.model_dump_json(),
                    to_db_time(s.trial_ends_at),
                    to_db_time(s.cancelled_at),
                    to_db_time(s.created_at),
                    to_db_time(s.updated_at),
                ),
            )
        return subscription

    def update(self, subscription: Subscription) -> Subscription:
        s = subscription
        with self._write() as conn:
            conn.execute(
                """
                UPDATE subscriptions SET
                    plan = ?, status = ?, billing_json = ?, usage_json = ?,
                    trial_ends_at = ?, cancelled_at = ?, updated_at = ?
                WHERE id = ?
            """,
                (
                    s.plan,
                    s.status,
                    s.billing.model_dump_json(),
                    s.usage.model_dump_json(),
                    to_db_time(s.trial_ends_at),
                    to_db_time(s.cancelled_at),
                    to_db_time(s.updated_at),
                    str(s.id),
                ),
            )
        return subscription


def _row_to_post(row: dict[str, Any]) -> Post:
    return Post(
        id=UUID(row["id"]),
        site_id=UUID(row["site_id"]),
        author_id=UUID(row["author_id"]),
        title=row["title"],
        slug=row["slug"],
        content=row["content"],
        excerpt=row["excerpt"],
        status=row["status"],
        scheduled_date=parse_dt(row["scheduled_date"]),
        categories=json.loads(row["categories_json"]),
        tags=json.loads(row["tags_json"]),
        language=row["language"],
        translations=[Translation.model_validate(t) for t in json.loads(row["translations_json"])],
        versions=[PostVersion.model_validate(v) for v in json.loads(row["versions_json"])],
        published_at=parse_dt(row["published_at"]),
        views=row["views"],
        view_history=[ViewBucket.model_validate(b) for b in json.loads(row["view_history_json"])],
        meta_description=row["meta_description"],
        focus_keyword=row["focus_keyword"],
        featured_image=row["featured_image"],
        created_at=parse_dt(row["created_at"]),
        updated_at=parse_dt(row["updated_at"]),
    )


def _post_params(post: Post) -> dict[str, Any]:
    return {
        "id": str(post.id),
        "site_id": str(post.site_id),
        "author_id": str(post.author_id),
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "excerpt": post.excerpt,
        "status": post.status,
        "scheduled_date": to_db_time(post.scheduled_date),
        "categories_json": json.dumps(post.categories),
        "tags_json": json.dumps(post.tags),
        "language": post.language,
        "translations_json": json.dumps([t.model_dump(mode="json") for t in post.translations]),
        "versions_json": json.dumps([v.model_dump(mode="json") for v in post.versions]),
        "published_at": to_db_time(post.published_at),
        "views": post.views,
        "view_history_json": json.dumps([b.model_dump(mode="json") for b in post.view_history]),
        "meta_description": post.meta_description,
        "focus_keyword": post.focus_keyword,
        "featured_image": post.featured_image,
        "created_at": to_db_time(post.created_at),
        "updated_at": to_db_time(post.updated_at),
    }


class SQLitePostRepo(_SQLiteRepo):
    def _load(self, conn: sqlite3.Connection, post_id: UUID) -> Post | None:
        row = conn.execute("SELECT * FROM posts WHERE id = ?", (str(post_id),)).fetchone()
        return _row_to_post(row) if row else None

    def _store(self, conn: sqlite3.Connection, post: Post) -> None:
        params = _post_params(post)
        assignments = ", ".join(
            f"{k} = :{k}" for k in params if k not in ("id", "site_id", "created_at")
        )
        conn.execute(f"UPDATE posts SET {assignments} WHERE id = :id", params)

    def get_by_id(self, post_id: UUID) -> Post | None:
        with self._read() as conn:
            return self._load(conn, post_id)

    def get_by_slug(self, site_id: UUID, slug: str) -> Post | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM posts WHERE site_id = ? AND slug = ?", (str(site_id), slug)
            ).fetchone()
            return _row_to_post(row) if row else None

    def slug_exists(self, site_id: UUID, slug: str) -> bool:
        with self._read() as conn:
            row = conn.execute(
                "SELECT 1 AS hit FROM posts WHERE site_id = ? AND slug = ?", (str(site_id), slug)
            ).fetchone()
            return row is not None

    def insert(self, post: Post) -> Post:
        params = _post_params(post)
        columns = ", ".join(params)
        placeholders = ", ".join(f":{k}" for k in params)
        with self._write() as conn:
            conn.execute(f"INSERT INTO posts ({columns}) VALUES ({placeholders})", params)
        return post

    def apply_update(
        self,
        post_id: UUID,
        changes: dict[str, Any],
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None:
        with self._write(immediate=True) as conn:
            post = self._load(conn, post_id)
            if post is None:
                return None

            pending = dict(changes)
            if "content" in pending:
                post = apply_content_change(
                    post, pending.pop("content"), editor_id, now, max_versions
                )
            if pending.get("status") == "published" and post.published_at is None:
                pending["published_at"] = now

            post = post.model_copy(update={**pending, "updated_at": now})
            self._store(conn, post)
            return post

    def restore_version(
        self,
        post_id: UUID,
        version_id: UUID,
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None:
        with self._write(immediate=True) as conn:
            post = self._load(conn, post_id)
            if post is None:
                return None
            version = next((v for v in post.versions if v.id == version_id), None)
            if version is None:
                return None
            post = restore_ledger_version(post, version, editor_id, now, max_versions)
            self._store(conn, post)
            return post

    def add_translation(self, post_id: UUID, translation: Translation) -> Post | None:
        with self._write(immediate=True) as conn:
            post = self._load(conn, post_id)
            if post is None:
                return None
            if any(t.language == translation.language for t in post.translations):
                return post
            post = post.model_copy(update={"translations": [*post.translations, translation]})
            self._store(conn, post)
            return post

    def delete(self, post_id: UUID) -> bool:
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM posts WHERE id = ?", (str(post_id),))
            return cursor.rowcount > 0

    def list_posts(self, query: PostQuery) -> tuple[list[Post], int]:
        where = " WHERE 1=1"
        params: list[Any] = []

        if query.site_id:
            where += " AND site_id = ?"
            params.append(str(query.site_id))
        if query.status:
            where += " AND status = ?"
            params.append(query.status)
        if query.author_id:
            where += " AND author_id = ?"
            params.append(str(query.author_id))
        if query.language:
            where += " AND language = ?"
            params.append(query.language)
        if query.category:
            where += " AND EXISTS (SELECT 1 FROM json_each(posts.categories_json) WHERE value = ?)"
            params.append(query.category)
        if query.tag:
            where += " AND EXISTS (SELECT 1 FROM json_each(posts.tags_json) WHERE value = ?)"
            params.append(query.tag)
        if query.search:
            term = "%" + query.search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
            where += (
                " AND (title LIKE ? ESCAPE '\\' OR excerpt LIKE ? ESCAPE '\\'"
                " OR content LIKE ? ESCAPE '\\')"
            )
            params.extend([term, term, term])

        order = POST_SORTS.get(query.sort, POST_SORTS["-published_at"])

        with self._read() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM posts{where}", params).fetchone()
            total = row["cnt"] if row else 0

            sql = f"SELECT * FROM posts{where} ORDER BY {order}, id"
            if query.limit > 0:
                sql += " LIMIT ? OFFSET ?"
                params = [*params, query.limit, (max(query.page, 1) - 1) * query.limit]
            rows = conn.execute(sql, params).fetchall()
            return [_row_to_post(r) for r in rows], total

    def list_due_scheduled(self, now: datetime) -> list[Post]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT * FROM posts
                WHERE status = 'scheduled' AND scheduled_date IS NOT NULL AND scheduled_date <= ?
                ORDER BY scheduled_date ASC
                """,
                (to_db_time(now),),
            ).fetchall()
            return [_row_to_post(r) for r in rows]

    def promote_scheduled(self, post_id: UUID, now: datetime) -> Post | None:
        stamp = to_db_time(now)
        with self._write() as conn:
            cursor = conn.execute(
                """
                UPDATE posts SET
                    status = 'published',
                    published_at = COALESCE(published_at, ?),
                    updated_at = ?
                WHERE id = ? AND status = 'scheduled' AND scheduled_date <= ?
                """,
                (stamp, stamp, str(post_id), stamp),
            )
            if cursor.rowcount == 0:
                return None
            return self._load(conn, post_id)

    def record_view(self, post_id: UUID, day: date, history_days: int) -> Post | None:
        """Increment the view counter and today's bucket; buckets older than the window are dropped."""
        with self._write(immediate=True) as conn:
            post = self._load(conn, post_id)
            if post is None:
                return None

            oldest = day - timedelta(days=history_days - 1)
            buckets = [b for b in post.view_history if b.day >= oldest]
            for i, bucket in enumerate(buckets):
                if bucket.day == day:
                    buckets[i] = bucket.model_copy(update={"count": bucket.count + 1})
                    break
            else:
                buckets.append(ViewBucket(day=day, count=1))

            conn.execute(
                "UPDATE posts SET views = views + 1, view_history_json = ? WHERE id = ?",
                (json.dumps([b.model_dump(mode="json") for b in buckets]), str(post_id)),
            )
            return post.model_copy(update={"views": post.views + 1, "view_history": buckets})
