"""npm registry client."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from npmscore.core.errors import PackageNotFoundError, RegistryError
from npmscore.models.schemas import PackageMetadata

logger = logging.getLogger(__name__)


class NpmRegistryClient:
    """Fetches version metadata from an npm-compatible registry.

    Data source: {registry_url}/{package} (the full packument).
    """

    REGISTRY_URL = "https://registry.npmjs.org"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        registry_url: str = REGISTRY_URL,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            client: Optional httpx client for making requests.
            registry_url: Base URL of the registry.
            timeout: Request timeout in seconds when no client is given.
        """
        self._client = client
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=self.timeout)

    async def _fetch_json(self, url: str) -> dict:
        """Fetch JSON from a URL."""
        client = await self._get_client()
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    def package_url(self, name: str) -> str:
        # URL-encode scoped package names
        encoded_name = name.replace("/", "%2F")
        return f"{self.registry_url}/{encoded_name}"

    async def get_packument(self, name: str) -> dict[str, Any]:
        """Fetch the full registry document for a package.

        Raises:
            PackageNotFoundError: If the package doesn't exist.
            RegistryError: On any other HTTP, transport or decoding failure.
        """
        url = self.package_url(name)
        try:
            data = await self._fetch_json(url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise PackageNotFoundError(name) from e
            raise RegistryError(f"Registry returned HTTP {e.response.status_code} for {name}") from e
        except httpx.HTTPError as e:
            raise RegistryError(f"Failed to fetch {name} from registry: {e}") from e
        except ValueError as e:
            raise RegistryError(f"Registry returned invalid JSON for {name}") from e

        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected registry response for {name}")
        return data

    async def get_package_metadata(self, name: str, version: str | None = None) -> PackageMetadata:
        """Fetch metadata for one version of a package.

        Args:
            name: Package name (supports scoped packages like @org/pkg).
            version: Exact version, or None for the `latest` dist-tag.

        Returns:
            PackageMetadata for the selected version.

        Raises:
            PackageNotFoundError: If the package or version doesn't exist.
            RegistryError: If the registry can't be queried or returns
                malformed metadata.
        """
        data = await self.get_packument(name)

        if version is None:
            version = (data.get("dist-tags") or {}).get("latest")
            if not version:
                raise PackageNotFoundError(name)

        version_data = (data.get("versions") or {}).get(version)
        if not isinstance(version_data, dict):
            raise PackageNotFoundError(name, version)

        return self._to_metadata(name, version, data, version_data)

    def _to_metadata(
        self,
        name: str,
        version: str,
        data: dict[str, Any],
        version_data: dict[str, Any],
    ) -> PackageMetadata:
        fields = dict(version_data)
        fields["name"] = version_data.get("name") or data.get("name") or name
        fields["version"] = version

        # Version documents usually carry these, older ones sometimes don't
        for key in ("maintainers", "repository", "homepage", "description", "author"):
            if not fields.get(key) and data.get(key):
                fields[key] = data[key]
        fields["license"] = self._extract_license(data, version_data)

        try:
            return PackageMetadata.model_validate(fields)
        except ValidationError as e:
            raise RegistryError(f"Malformed metadata for {name}@{version}: {e}") from e

    def _extract_license(self, data: dict, version_data: dict) -> dict | str | None:
        """Extract license from npm package data.

        Handles the string form, the legacy object form and the legacy
        `licenses` array.
        """
        license_info = (
            version_data.get("license")
            or version_data.get("licenses")
            or data.get("license")
            or data.get("licenses")
        )

        if isinstance(license_info, (str, dict)):
            return license_info
        if isinstance(license_info, list) and license_info:
            first = license_info[0]
            if isinstance(first, (str, dict)):
                return first
        return None

    async def get_all_versions(self, name: str) -> list[str]:
        """All published versions of a package, in registry order.

        Raises:
            PackageNotFoundError: If the package doesn't exist.
            RegistryError: If the registry can't be queried.
        """
        data = await self.get_packument(name)
        return list((data.get("versions") or {}).keys())

    async def get_tarball_url(self, name: str, version: str | None = None) -> str | None:
        """Tarball URL for a version (latest by default), or None if unpublished."""
        metadata = await self.get_package_metadata(name, version)
        return metadata.dist.tarball
