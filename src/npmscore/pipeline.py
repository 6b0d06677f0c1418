"""End-to-end scoring pipeline: registry lookup, rule evaluation, banding."""

import asyncio
import logging
from collections.abc import Callable, Sequence

import httpx

from npmscore.adapters.npm import NpmRegistryClient
from npmscore.core.calculator import ScoreCalculator
from npmscore.core.config import Settings
from npmscore.core.registry import RuleRegistry
from npmscore.models.schemas import ScoreResult
from npmscore.rules import create_default_registry
from npmscore.utils.tarball_analyzer import TarballAnalyzer

logger = logging.getLogger(__name__)


class ScoringPipeline:
    """Scores npm packages by name.

    Pipeline stages:
    1. Fetch version metadata from the registry
    2. Run every registered rule (tarball inspection happens inside the rules)
    3. Aggregate into a score and band

    Use as an async context manager so registry and tarball requests share one
    HTTP client:

        async with ScoringPipeline(settings) as pipeline:
            result = await pipeline.score("left-pad")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: RuleRegistry | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Configuration; defaults apply when omitted.
            registry: Rules to run. Defaults to the standard rule set built
                from settings, sharing this pipeline's HTTP client.
            client: HTTP client to use instead of creating one.
        """
        self.settings = settings or Settings()
        self._registry = registry
        self._external_client = client
        self._http_client: httpx.AsyncClient | None = client
        self.npm: NpmRegistryClient | None = None
        self.calculator: ScoreCalculator | None = None

        if client is not None:
            self._build(client)

    async def __aenter__(self) -> "ScoringPipeline":
        """Set up shared HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=max(self.settings.registry.timeout, self.settings.tarball.timeout),
                follow_redirects=True,
            )
            self._build(self._http_client)
        return self

    async def __aexit__(self, *args) -> None:
        """Clean up HTTP client."""
        if self._http_client is not None and self._external_client is None:
            await self._http_client.aclose()
            self._http_client = None

    def _build(self, client: httpx.AsyncClient) -> None:
        self.npm = NpmRegistryClient(
            client=client,
            registry_url=self.settings.registry.url,
            timeout=self.settings.registry.timeout,
        )
        tarball = self.settings.tarball
        tarball_analyzer = TarballAnalyzer(
            client=client,
            temp_dir=tarball.temp_dir,
            timeout=tarball.timeout,
            max_largest_files=tarball.max_largest_files,
            max_tarball_size=tarball.max_tarball_size,
        )
        registry = self._registry or create_default_registry(self.settings, tarball_analyzer=tarball_analyzer)
        self.calculator = ScoreCalculator(registry, self.settings.scoring)

    @property
    def registry(self) -> RuleRegistry:
        if self.calculator is None:
            raise RuntimeError("ScoringPipeline must be used as an async context manager")
        return self.calculator.registry

    async def score(self, package_name: str, version: str | None = None) -> ScoreResult:
        """Score one package version.

        Args:
            package_name: npm package name.
            version: Exact version, or None for the latest release.

        Returns:
            ScoreResult for the package.

        Raises:
            PackageNotFoundError: If the package or version doesn't exist.
            RegistryError: If the registry can't be queried.
        """
        if self.npm is None or self.calculator is None:
            raise RuntimeError("ScoringPipeline must be used as an async context manager")

        metadata = await self.npm.get_package_metadata(package_name, version)
        logger.info(f"Scoring {metadata.name}@{metadata.version}")
        return await self.calculator.calculate_score(metadata)

    async def score_many(
        self,
        package_names: Sequence[str],
        concurrency: int = 4,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> list[tuple[str, ScoreResult | Exception]]:
        """Score several packages concurrently.

        The rule registry is shared read-only across the concurrent calls.
        Duplicate names are scored once per occurrence; avoid them, since two
        in-flight analyses of the same package share a working directory.

        Args:
            package_names: Packages to score (latest versions).
            concurrency: Maximum number of packages scored at once.
            progress_callback: Optional callback(completed, total, package_name).

        Returns:
            (name, ScoreResult or the exception raised) pairs, in input order.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        semaphore = asyncio.Semaphore(concurrency)
        total = len(package_names)
        completed = 0

        async def score_one(name: str) -> tuple[str, ScoreResult | Exception]:
            nonlocal completed
            async with semaphore:
                try:
                    outcome: ScoreResult | Exception = await self.score(name)
                except Exception as e:
                    logger.warning(f"Failed to score {name}: {e}")
                    outcome = e
            completed += 1
            if progress_callback:
                progress_callback(completed, total, name)
            return name, outcome

        return list(await asyncio.gather(*(score_one(name) for name in package_names)))
