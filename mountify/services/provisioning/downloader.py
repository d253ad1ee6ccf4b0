"""HTTPS download of installer artifacts."""

import asyncio
import logging
import os
from pathlib import Path
from urllib.parse import urljoin, urlparse

import requests

from ...core.exceptions import DownloadFailureError

REDIRECT_CODES = {301, 302, 303, 307, 308}
CHUNK_SIZE = 1024 * 1024


class InstallerDownloader:
    """
    Streams an artifact to disk over HTTPS, following at most one redirect.

    GitHub release URLs answer with a single 302 to their CDN, which is the
    only redirect shape this needs to support.
    """

    def __init__(self, timeout_seconds: int = 120):
        self._timeout = timeout_seconds

    async def download(self, url: str, destination: str) -> str:
        return await asyncio.to_thread(self._download_sync, url, destination)

    def _download_sync(self, url: str, destination: str) -> str:
        dest = Path(destination)
        logging.info(f"Downloading {url} -> {dest}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            response = self._get(url)
            if response.status_code in REDIRECT_CODES:
                location = response.headers.get("Location")
                response.close()
                if not location:
                    raise DownloadFailureError(f"Redirect without Location header from {url}")
                redirect_url = urljoin(url, location)
                logging.debug(f"Following redirect to {redirect_url}")
                response = self._get(redirect_url)
                if response.status_code in REDIRECT_CODES:
                    response.close()
                    raise DownloadFailureError(f"Too many redirects downloading {url}")

            with response:
                if response.status_code != 200:
                    raise DownloadFailureError(
                        f"Download of {url} failed with HTTP {response.status_code}"
                    )
                with open(dest, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            size = dest.stat().st_size
        except requests.RequestException as e:
            _remove_partial(dest)
            raise DownloadFailureError(f"Download of {url} failed: {e}") from e
        except OSError as e:
            _remove_partial(dest)
            raise DownloadFailureError(f"Could not write {dest}: {e}") from e
        except DownloadFailureError:
            _remove_partial(dest)
            raise

        logging.info(f"Downloaded {dest} ({size} bytes)")
        return str(dest)

    def _get(self, url: str) -> requests.Response:
        if urlparse(url).scheme != "https":
            raise DownloadFailureError(f"Refusing non-HTTPS download: {url}")
        return requests.get(url, stream=True, allow_redirects=False, timeout=self._timeout)


def _remove_partial(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.warning(f"Could not remove partial download {path}: {e}")
