"""Capability stores — persist SiteCapability documents keyed by domain."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import time
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlparse

from action_builder.errors import PersistenceError
from action_builder.models.capability import SiteCapability
from action_builder.models.config import MergePolicy
from action_builder.url_utils import domain_slug, normalize_domain

from .merge import merge_capabilities

logger = logging.getLogger(__name__)


class CapabilityStore(Protocol):
    def load(self, domain: str) -> Optional[SiteCapability]: ...

    def save(self, site: SiteCapability) -> str: ...

    def list_domains(self) -> list[str]: ...


class JsonCapabilityStore:
    """One JSON document per domain under ``<base_dir>/<domain_slug>/capability.json``."""

    FILENAME = "capability.json"

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def path_for(self, domain: str) -> Path:
        return self.base_dir / domain_slug(domain) / self.FILENAME

    def load(self, domain: str) -> Optional[SiteCapability]:
        """Load the stored document, or None if there is none.

        A document that cannot be parsed is moved aside so the next save
        does not silently overwrite it.
        """
        path = self.path_for(domain)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return SiteCapability.model_validate(data)
        except Exception as e:
            backup = path.with_name(f"{path.name}.corrupt-{int(time.time())}")
            logger.warning("Failed to load %s: %s. Moved to %s", path, e, backup)
            os.replace(path, backup)
            return None

    def save(self, site: SiteCapability) -> str:
        """Write atomically: temp file in the same directory, then rename."""
        path = self.path_for(site.domain)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".capability-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(site.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug("Saved capability for %s to %s", site.domain, path)
        return str(path)

    def list_domains(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        domains = []
        for path in sorted(self.base_dir.glob(f"*/{self.FILENAME}")):
            try:
                with open(path, encoding="utf-8") as f:
                    domains.append(json.load(f)["domain"])
            except Exception as e:
                logger.debug("Skipping unreadable %s: %s", path, e)
        return domains


class SqliteCapabilityStore:
    """SQLite-backed store, one row per domain holding the JSON document."""

    def __init__(self, database_url: str):
        parsed = urlparse(database_url)
        if parsed.scheme != "sqlite":
            raise PersistenceError(
                f"Unsupported database URL scheme '{parsed.scheme}' (expected sqlite:///path)"
            )
        # sqlite:///relative.db -> "relative.db", sqlite:////abs/path.db -> "/abs/path.db"
        db_path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else parsed.path
        if not db_path or db_path == ":memory:":
            raise PersistenceError("SQLite store needs a file path, e.g. sqlite:///capabilities.db")
        self.database_url = database_url
        self.db_path = Path(os.path.expanduser(db_path))
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS site_capabilities (
                        domain TEXT PRIMARY KEY,
                        document TEXT NOT NULL,
                        page_count INTEGER DEFAULT 0,
                        element_count INTEGER DEFAULT 0,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open {self.db_path}: {e}") from e

    def load(self, domain: str) -> Optional[SiteCapability]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT document FROM site_capabilities WHERE domain = ?",
                    (normalize_domain(domain),),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {domain} from {self.db_path}: {e}") from e
        if not row:
            return None
        try:
            return SiteCapability.model_validate_json(row[0])
        except ValueError as e:
            raise PersistenceError(f"Stored document for {domain} is invalid: {e}") from e

    def save(self, site: SiteCapability) -> str:
        document = json.dumps(site.model_dump(mode="json"), ensure_ascii=False)
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO site_capabilities (domain, document, page_count, element_count, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(domain) DO UPDATE SET
                        document = excluded.document,
                        page_count = excluded.page_count,
                        element_count = excluded.element_count,
                        updated_at = excluded.updated_at
                """, (
                    site.domain, document, len(site.pages), site.element_count(),
                    site.updated_at or time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                ))
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {site.domain} to {self.db_path}: {e}") from e
        logger.debug("Saved capability for %s to %s", site.domain, self.db_path)
        return f"{self.database_url}#{site.domain}"

    def list_domains(self) -> list[str]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute("SELECT domain FROM site_capabilities ORDER BY domain").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list domains in {self.db_path}: {e}") from e
        return [r[0] for r in rows]


class CompositeCapabilityStore:
    """Writes to every store; reads from the first one that has the document."""

    def __init__(self, stores: list[CapabilityStore]):
        if not stores:
            raise ValueError("CompositeCapabilityStore needs at least one store")
        self.stores = stores

    def load(self, domain: str) -> Optional[SiteCapability]:
        """First document found. Unreadable stores are skipped unless all of them fail."""
        failures: list[str] = []
        for store in self.stores:
            try:
                site = store.load(domain)
            except PersistenceError as e:
                logger.warning("Skipping %s for %s: %s", type(store).__name__, domain, e)
                failures.append(str(e))
                continue
            if site is not None:
                return site
        if len(failures) == len(self.stores):
            raise PersistenceError("; ".join(failures))
        return None

    def save(self, site: SiteCapability) -> str:
        """Save to every store; succeed if at least one write landed.

        Returns the first location that was written.
        """
        locations: list[str] = []
        failures: list[str] = []
        for store in self.stores:
            try:
                locations.append(store.save(site))
            except PersistenceError as e:
                logger.error("Failed to save %s to %s: %s", site.domain, type(store).__name__, e)
                failures.append(str(e))
        if not locations:
            raise PersistenceError("; ".join(failures))
        if failures:
            logger.warning(
                "Capability for %s saved to %s only (%d target(s) failed)",
                site.domain, ", ".join(locations), len(failures),
            )
        return locations[0]

    def list_domains(self) -> list[str]:
        seen: list[str] = []
        for store in self.stores:
            for domain in store.list_domains():
                if domain not in seen:
                    seen.append(domain)
        return seen


def open_store(output_dir: str | Path | None, database_url: str | None = None) -> CapabilityStore:
    """Build the store for a session's configured persistence targets."""
    stores: list[CapabilityStore] = []
    if output_dir:
        stores.append(JsonCapabilityStore(output_dir))
    if database_url:
        stores.append(SqliteCapabilityStore(database_url))
    if not stores:
        raise PersistenceError("No persistence target configured (output_dir or database_url)")
    if len(stores) == 1:
        return stores[0]
    return CompositeCapabilityStore(stores)


def merge_and_save(
    store: CapabilityStore,
    snapshot: SiteCapability,
    policy: MergePolicy = MergePolicy.RETAIN,
) -> tuple[SiteCapability, str]:
    """Merge a session snapshot into the stored document and persist the result."""
    existing = store.load(snapshot.domain)
    merged = merge_capabilities(existing, snapshot, policy)
    location = store.save(merged)
    logger.info(
        "Persisted %s (%d pages, %d elements) to %s",
        merged.domain, len(merged.pages), merged.element_count(), location,
    )
    return merged, location
