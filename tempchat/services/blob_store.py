# tempchat/services/blob_store.py

from __future__ import annotations

import logging
import os
import secrets
from urllib.parse import quote

from tempchat.core.errors import UploadFailed

logger = logging.getLogger(__name__)

FILES_ROUTE = "/files"


class LocalBlobStore:
    """
    Object store for shared files, backed by a local directory.

    Each ``put`` lands in its own random sub-directory so two uploads with the
    same file name never overwrite each other. Files are served back by the
    static ``/files`` mount. Nothing is ever deleted: blobs outlive the room
    they were shared in.

    Layout:
        <root_dir>/<token>/<file name>  ->  <base_url>/files/<token>/<file name>
    """

    def __init__(self, root_dir: str, base_url: str) -> None:
        self.root_dir = root_dir
        self.base_url = base_url.rstrip("/")

    def put(self, name: str, data: bytes) -> str:
        """
        Store ``data`` under ``name`` and return its public URL.

        Raises:
            UploadFailed: Empty file name or the write failed
        """
        file_name = os.path.basename((name or "").replace("\\", "/")).strip()
        if not file_name or file_name in (".", ".."):
            raise UploadFailed("A file name is required")

        token = secrets.token_urlsafe(12)
        directory = os.path.join(self.root_dir, token)
        try:
            os.makedirs(directory, exist_ok=True)
            with open(os.path.join(directory, file_name), "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Upload of %s failed: %s", file_name, e)
            raise UploadFailed(f"Failed to upload file {file_name}") from e

        logger.info("📎 Stored %s (%d bytes)", file_name, len(data))
        return self.url_for(f"{token}/{file_name}")

    def url_for(self, pathname: str) -> str:
        return f"{self.base_url}{FILES_ROUTE}/{quote(pathname)}"
