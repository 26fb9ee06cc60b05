"""
Pipeline driver.

Runs the stages of a package build in order:

    preflight -> dependency -> target -> relocate -> package -> verify

``preflight`` only runs when enabled and ``verify`` can be skipped. Each stage
is timed and logged; the first DfuPackError stops the run and the result
names the failing stage. Nothing is rolled back: partially built prefixes
and downloaded archives are left in place for inspection and reuse.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Tuple

from dfupack.build import (
    AutotoolsBuilder,
    DependencyBuilder,
    DiscoveryMetadata,
    ProducedBinary,
    TargetBuilder,
)
from dfupack.config.model import PipelineConfig
from dfupack.core.exceptions import DfuPackError, VerificationFailed, WorkspaceLocked
from dfupack.core.locking import workspace_lock
from dfupack.core.platform import PlatformDescriptor
from dfupack.core.process import CommandRunner
from dfupack.packaging import package
from dfupack.preflight import PreflightChecker
from dfupack.relocation import relocate
from dfupack.verifier import VerificationOutcome, VerificationReport, Verifier

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of one pipeline stage."""

    name: str
    success: bool
    duration: float
    message: str = ""


@dataclass
class PipelineResult:
    """Outcome of a complete pipeline run."""

    success: bool = False
    stages: List[StageResult] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[DfuPackError] = None
    prefix: Optional[Path] = None
    archive: Optional[Path] = None
    report: Optional[VerificationReport] = None

    @property
    def outcomes(self) -> List[VerificationOutcome]:
        return self.report.outcomes if self.report else []

    @property
    def duration(self) -> float:
        return sum(stage.duration for stage in self.stages)


@dataclass
class PipelineContext:
    """Values handed from one stage to the next."""

    platform: PlatformDescriptor
    prefix: Path
    discovery: Optional[DiscoveryMetadata] = None
    binaries: List[ProducedBinary] = field(default_factory=list)
    archive: Optional[Path] = None
    report: Optional[VerificationReport] = None


Stage = Callable[[PipelineContext], str]


class Pipeline:
    """Build, relocate, package and verify the configured tool."""

    def __init__(
        self,
        config: PipelineConfig,
        runner: Optional[CommandRunner] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration
            runner: Command runner used by every stage (default: run_command)
            environ: Base environment for build commands (default: os.environ)
        """
        self.config = config
        self.runner = runner
        self.environ = dict(os.environ if environ is None else environ)

    def stages(self) -> List[Tuple[str, Stage]]:
        """Enabled stages, in execution order."""
        stages: List[Tuple[str, Stage]] = []
        if self.config.preflight:
            stages.append(("preflight", self._preflight))
        stages.extend(
            [
                ("dependency", self._build_dependency),
                ("target", self._build_target),
                ("relocate", self._relocate),
                ("package", self._package),
            ]
        )
        if self.config.verify.enabled:
            stages.append(("verify", self._verify))
        return stages

    def run(self) -> PipelineResult:
        """
        Run all enabled stages while holding the workspace lock.

        Returns:
            PipelineResult; success is False if any stage failed
        """
        platform = self.config.platform()
        context = PipelineContext(
            platform=platform, prefix=self.config.install_prefix(platform)
        )
        result = PipelineResult(prefix=context.prefix)

        logger.info(
            f"Packaging {self.config.target.label} with {self.config.dependency.label} "
            f"for {platform.slug}"
        )
        logger.info(f"Install prefix: {context.prefix}")

        try:
            with workspace_lock(self.config.work_dir, timeout=self.config.lock_timeout):
                for name, stage in self.stages():
                    if not self._run_stage(name, stage, context, result):
                        return result
        except WorkspaceLocked as e:
            result.failed_stage = "lock"
            result.error = e
            return result

        result.success = True
        logger.info(f"Pipeline finished in {result.duration:.1f}s")
        return result

    def _run_stage(
        self,
        name: str,
        stage: Stage,
        context: PipelineContext,
        result: PipelineResult,
    ) -> bool:
        logger.info(f"==> Stage '{name}'")
        start_time = time.time()

        try:
            message = stage(context)
        except DfuPackError as e:
            duration = time.time() - start_time
            result.stages.append(StageResult(name, False, duration, str(e)))
            result.failed_stage = name
            result.error = e
            result.archive = context.archive
            result.report = context.report
            logger.error(f"✗ Stage '{name}' failed after {duration:.1f}s: {e}")
            return False

        duration = time.time() - start_time
        result.stages.append(StageResult(name, True, duration, message))
        result.archive = context.archive
        result.report = context.report
        logger.info(f"✓ Stage '{name}' completed in {duration:.1f}s")
        return True

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _builder(self) -> AutotoolsBuilder:
        return AutotoolsBuilder(
            self.config.work_dir,
            runner=self.runner,
            command_timeout=self.config.command_timeout,
            download_timeout=self.config.download_timeout,
            download_retries=self.config.download_retries,
        )

    def _preflight(self, context: PipelineContext) -> str:
        results = PreflightChecker(context.platform).ensure()
        return f"{sum(1 for r in results if r.passed)}/{len(results)} checks passed"

    def _build_dependency(self, context: PipelineContext) -> str:
        builder = DependencyBuilder(self._builder(), environ=self.environ)
        context.discovery = builder.build(self.config.dependency, context.prefix)
        return f"PKG_CONFIG_PATH={context.discovery.search_path}"

    def _build_target(self, context: PipelineContext) -> str:
        builder = TargetBuilder(
            self._builder(), self.config.binaries, environ=self.environ
        )
        discovery = context.discovery or DiscoveryMetadata.for_prefix(
            context.prefix, self.environ
        )
        context.binaries = builder.build(self.config.target, context.prefix, discovery)
        return ", ".join(str(b.relative) for b in context.binaries)

    def _relocate(self, context: PipelineContext) -> str:
        relocate(
            context.binaries,
            context.prefix,
            context.platform,
            macho_library=self.config.macho_library,
            runner=self.runner,
            timeout=self.config.command_timeout,
        )
        return f"{len(context.binaries)} binaries relocated"

    def _package(self, context: PipelineContext) -> str:
        logger.info("Prepared files:")
        for path in sorted(context.prefix.rglob("*")):
            logger.info(f"  {path.relative_to(context.prefix)}")

        context.archive = package(
            context.prefix, self.config.archive_path(context.platform)
        )
        return str(context.archive)

    def _verify(self, context: PipelineContext) -> str:
        verify_config = self.config.verify
        verifier = Verifier(
            context.platform,
            runner=self.runner,
            timeout=self.config.command_timeout,
            help_flag=verify_config.help_flag,
        )
        context.report = verifier.verify(
            context.binaries, context.prefix, quarantine=verify_config.quarantine
        )

        if context.report.success:
            return f"{len(context.report.outcomes)} binaries verified in {context.report.root}"

        if verify_config.strict:
            raise VerificationFailed(context.report.failed)

        logger.warning(
            f"Verification failed for {', '.join(context.report.failed)} "
            "(not fatal; enable strict verification to fail the build)"
        )
        return f"failed: {', '.join(context.report.failed)}"
