"""
Primary store adapter backed by MongoDB GridFS.

One `MongoClient` (and its connection pool) is shared by the whole process.
Every request checks out its own client session through
`GridFSStore.checkout()`, which ends the session on every exit path.
"""
import hashlib
import logging
from contextlib import contextmanager
from typing import ContextManager, Iterator, Optional, Protocol

import gridfs
from gridfs.errors import GridFSError, NoFile
from pymongo import MongoClient, ReadPreference
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

from blob_gateway.config.settings import Settings
from blob_gateway.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

READ_PREFERENCES = {
    "strong": ReadPreference.PRIMARY,
    "monotonic": ReadPreference.PRIMARY_PREFERRED,
    "eventual": ReadPreference.NEAREST,
}


class StoredObject(Protocol):
    """An object opened for reading from the primary store."""

    key: str
    length: int
    content_type: Optional[str]
    checksum: str

    def iter_chunks(self) -> Iterator[bytes]:
        ...

    def close(self) -> None:
        ...


class StoreHandle(Protocol):
    """Per-request view of the primary store."""

    def exists(self, key: str) -> bool:
        ...

    def create(self, key: str, content_type: str, owner_uid: str, payload: bytes) -> int:
        ...

    def open(self, key: str) -> StoredObject:
        ...


class PrimaryStore(Protocol):
    def checkout(self) -> ContextManager[StoreHandle]:
        ...

    def ping(self) -> None:
        ...

    def close(self) -> None:
        ...


class GridFSObject:
    """Single-pass reader over a GridFS file."""

    def __init__(self, key: str, grid_out: gridfs.GridOut, chunk_size: int):
        self._grid_out = grid_out
        self._chunk_size = chunk_size
        metadata = grid_out.metadata or {}
        self.key = key
        self.length = grid_out.length
        self.content_type = grid_out.content_type
        self.checksum = metadata.get("md5", "")
        self.owner_uid = metadata.get("uid", "")

    def iter_chunks(self) -> Iterator[bytes]:
        while True:
            try:
                chunk = self._grid_out.read(self._chunk_size)
            except (PyMongoError, GridFSError) as e:
                logger.error(f"error when read file {self.key} from chunk: {e}")
                raise StoreError(f"error when read file {self.key}", key=self.key) from e
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self._grid_out.close()


class GridFSHandle:
    """GridFS bound to one client session."""

    def __init__(self, fs: gridfs.GridFS, session: ClientSession, chunk_size: int):
        self._fs = fs
        self._session = session
        self._chunk_size = chunk_size

    def exists(self, key: str) -> bool:
        try:
            return self._fs.exists(filename=key, session=self._session)
        except PyMongoError as e:
            raise StoreError(f"error when look up file {key}", key=key) from e

    def create(self, key: str, content_type: str, owner_uid: str, payload: bytes) -> int:
        """
        Write a payload under `key` and return the number of bytes stored.

        An existing object with the same key is not replaced in place; the new
        version shadows it for every later read.
        """
        if self.exists(key):
            logger.warning(f"storage key {key} already exists, overwriting")
        checksum = hashlib.md5(payload).hexdigest()
        try:
            grid_in = self._fs.new_file(
                filename=key,
                contentType=content_type,
                metadata={"uid": owner_uid, "md5": checksum},
                session=self._session,
            )
            grid_in.write(payload)
            grid_in.close()
        except (PyMongoError, GridFSError) as e:
            logger.error(f"error when write file {key} to gridfs: {e}")
            raise StoreError(f"error when write file {key}", key=key) from e
        return grid_in.length

    def open(self, key: str) -> GridFSObject:
        try:
            grid_out = self._fs.get_last_version(filename=key, session=self._session)
        except NoFile:
            raise NotFoundError(f"file not found for given fid {key}", key=key)
        except (PyMongoError, GridFSError) as e:
            logger.error(f"error when open file {key} from gridfs: {e}")
            raise StoreError(f"error when open file {key}", key=key) from e
        return GridFSObject(key, grid_out, self._chunk_size)


class GridFSStore:
    """Process-wide GridFS store."""

    def __init__(self, client: MongoClient, database: str, collection: str = "fs", chunk_size: int = 64 * 1024):
        self._client = client
        self._database = database
        self._collection = collection
        self._chunk_size = chunk_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "GridFSStore":
        """Connect to MongoDB; raises if no server answers a ping."""
        client = MongoClient(
            settings.resolved_mongodb_uri,
            read_preference=READ_PREFERENCES[settings.read_mode],
        )
        store = cls(
            client,
            database=settings.database,
            collection=settings.gridfs_collection,
            chunk_size=settings.buffer_size,
        )
        try:
            store.ping()
        except StoreError:
            client.close()
            raise
        logger.info(f"Connected to MongoDB database: {settings.database} ({settings.read_mode} mode)")
        return store

    @contextmanager
    def checkout(self) -> Iterator[GridFSHandle]:
        session = self._client.start_session()
        try:
            fs = gridfs.GridFS(self._client[self._database], collection=self._collection)
            yield GridFSHandle(fs, session, self._chunk_size)
        finally:
            session.end_session()

    def ping(self) -> None:
        try:
            self._client.admin.command("ping")
        except PyMongoError as e:
            raise StoreError(f"primary store unreachable: {e}") from e

    def close(self) -> None:
        self._client.close()
        logger.info("MongoDB connection closed")
