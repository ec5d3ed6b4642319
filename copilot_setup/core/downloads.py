"""
File downloads and archive extraction.
"""

import logging
import shutil
import tarfile
import time
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

from .errors import DownloadError

logger = logging.getLogger(__name__)

USER_AGENT = "copilot-cli-setup"


def download_file(url: str,
                  destination: Path,
                  timeout: float = 60,
                  attempts: int = 3,
                  retry_delay: float = 2.0) -> Path:
    """
    Download a URL to a local file, retrying on network errors.

    Args:
        url: Source URL
        destination: Target file path; parent directories are created
        timeout: Per-attempt socket timeout in seconds
        attempts: Total number of attempts
        retry_delay: Base delay between attempts, multiplied by the attempt number

    Returns:
        The destination path

    Raises:
        DownloadError: If every attempt fails
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})

    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                with open(destination, "wb") as f:
                    shutil.copyfileobj(response, f)
            logger.debug(f"Downloaded {url} to {destination}")
            return destination
        except urllib.error.HTTPError as e:
            last_error = e
            # Client errors will not improve on retry
            if 400 <= e.code < 500 and e.code != 429:
                break
        except (urllib.error.URLError, OSError) as e:
            last_error = e

        if attempt < attempts:
            logger.warning(f"Download of {url} failed ({last_error}), retrying (attempt {attempt + 1}/{attempts})")
            time.sleep(retry_delay * attempt)

    raise DownloadError(f"Failed to download {url}: {last_error}")


def extract_archive(archive: Path, destination: Path) -> Path:
    """
    Extract a .zip, .tar.gz or .tar.xz archive.

    Returns:
        The extraction directory
    """
    archive = Path(archive)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    if archive.name.endswith(".zip"):
        with zipfile.ZipFile(archive, "r") as zip_ref:
            zip_ref.extractall(destination)
    else:
        with tarfile.open(archive, "r:*") as tar_ref:
            # Extraction filters arrived in 3.10.12 and 3.11.4
            if hasattr(tarfile, "data_filter"):
                tar_ref.extractall(destination, filter="data")
            else:
                tar_ref.extractall(destination)

    logger.debug(f"Extracted {archive} to {destination}")
    return destination


def archive_root(directory: Path) -> Path:
    """The single top-level directory of an extracted archive, or the directory itself."""
    entries = list(Path(directory).iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return Path(directory)
