"""
Remote manifest fetching for Pack Sync.
"""

import logging
from typing import List

import requests

from ..core.constants import INDEX_FILENAME
from ..core.errors import OfflineError, TransientNetworkError
from .manifest import ContentManifest

logger = logging.getLogger(__name__)


def check_network(url: str, timeout: float = 3.0) -> tuple[bool, str | None]:
    """Check if we can reach the content server. Returns (is_online, error_message)."""
    try:
        requests.head(url, timeout=timeout)
        return True, None
    except requests.ConnectionError:
        return False, "No internet connection"
    except requests.Timeout:
        return False, "Connection timed out"
    except requests.RequestException as e:
        return False, f"Network error: {e}"


def fetch_manifests(server_base: str, timeout: float = 10.0) -> List[ContentManifest]:
    """
    Fetch the list of content manifests from <server_base>/index.json.

    Raises:
        OfflineError: the server could not be reached
        TransientNetworkError: the server answered with an error or bad JSON
    """
    url = f"{server_base.rstrip('/')}/{INDEX_FILENAME}"
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.ConnectionError, requests.Timeout) as e:
        raise OfflineError(f"Could not reach {server_base}: {e}") from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise TransientNetworkError(f"Manifest fetch failed (HTTP {status})", url, status) from e
    except ValueError as e:
        raise TransientNetworkError(f"Manifest at {url} is not valid JSON", url) from e

    if not isinstance(data, list):
        raise TransientNetworkError(f"Manifest at {url} is not a list", url)

    manifests = []
    for item in data:
        try:
            manifests.append(ContentManifest.from_dict(item))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping malformed manifest entry: %s", e)
    logger.info("Fetched %d manifests from %s", len(manifests), url)
    return manifests
