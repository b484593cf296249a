"""Client for interacting with the deps.dev API."""

import logging
from typing import Optional, Dict, Any, List
from urllib.parse import quote

import requests

from . import __version__
from .models import Artifact

logger = logging.getLogger(__name__)


class DepsDevClient:
    """Client for fetching Maven dependency graphs and versions from the deps.dev API."""

    BASE_URL = "https://api.deps.dev/v3/systems"
    SYSTEM = "maven"

    def __init__(self, timeout: int = 30):
        """Initialize the API client."""
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"depversions/{__version__}"
        })

    def _get(self, url: str, description: str) -> Optional[Dict[str, Any]]:
        logger.debug(f"  URL: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code == 200:
                return response.json()
            else:
                logger.info(f"Failed to get {description}: HTTP {response.status_code}")
                return None
        except requests.RequestException as e:
            logger.error(f"Error fetching {description}: {e}")
            return None

    def get_dependency_graph(self, artifact: Artifact) -> Optional[Dict[str, Any]]:
        """
        Get the resolved dependency graph of an artifact version.

        Args:
            artifact: The artifact to fetch dependencies for

        Returns:
            JSON response containing nodes and edges, or None if request fails
        """
        # URL-encode the package name to handle the ':' separator
        encoded_name = quote(artifact.name, safe='')
        url = (
            f"{self.BASE_URL}/{self.SYSTEM}/packages/{encoded_name}"
            f"/versions/{quote(artifact.version, safe='')}:dependencies"
        )

        logger.debug(f"Fetching dependency graph for {artifact.name}:{artifact.version}")
        return self._get(url, f"dependency graph for {artifact.name}:{artifact.version}")

    def get_package_versions(self, group_id: str, artifact_id: str) -> Optional[List[str]]:
        """
        Get all published versions of a package.

        Returns:
            List of version strings, or None if request fails
        """
        encoded_name = quote(f"{group_id}:{artifact_id}", safe='')
        url = f"{self.BASE_URL}/{self.SYSTEM}/packages/{encoded_name}"

        logger.debug(f"Fetching versions for {group_id}:{artifact_id}")
        data = self._get(url, f"versions for {group_id}:{artifact_id}")
        if data is None:
            return None
        return [v.get("versionKey", {}).get("version") for v in data.get("versions", [])
                if v.get("versionKey", {}).get("version")]

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
