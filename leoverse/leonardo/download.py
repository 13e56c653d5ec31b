"""Download generated assets to local files.

Files are written in place: an existing file at the destination is
overwritten, with no temp-file rename and no checksum verification.
"""

import logging
import os
from pathlib import Path
from typing import Any, Iterable

import requests

from leoverse.core.config import DOWNLOAD_TIMEOUT
from leoverse.core.errors import FetchError, WriteError
from leoverse.leonardo.generation import GeneratedImage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
FILE_PREFIX = "image_"


def download(url: str, destination: str | os.PathLike, http: Any = None, timeout: float = DOWNLOAD_TIMEOUT) -> Path:
    """Stream `url` into `destination`.

    Raises:
        FetchError: Network failure or non-2xx response.
        WriteError: Directory creation or file write failed.
    """
    http = http if http is not None else requests.Session()
    dest = Path(destination)

    try:
        response = http.get(url, stream=True, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        raise FetchError(f"couldn't fetch {url}: {exc}") from exc

    try:
        if not 200 <= response.status_code < 300:
            raise FetchError(f"couldn't fetch {url}: status {response.status_code}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as out:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        out.write(chunk)
        except requests.exceptions.RequestException as exc:
            raise FetchError(f"download of {url} interrupted: {exc}") from exc
        except OSError as exc:
            raise WriteError(exc.errno, f"couldn't write {dest}: {exc.strerror or exc}") from exc
    finally:
        response.close()

    logger.debug("Downloaded %s -> %s", url, dest)
    return dest


def download_all(
    images: Iterable[GeneratedImage],
    output_dir: str | os.PathLike,
    http: Any = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> list[Path]:
    """Download each image as `image_<n>.png` (1-based) under `output_dir`."""
    paths = []
    for index, image in enumerate(images, start=1):
        dest = Path(output_dir) / f"{FILE_PREFIX}{index}.png"
        paths.append(download(image.url, dest, http=http, timeout=timeout))
    return paths
