"""
Coralizer — the engine that materializes an agent project from a template.

Given a server registry and a framework, it:
  1. walks the template source in parallel and copies/splices every file
     into a staging directory (one consumer thread does all the writes)
  2. meanwhile discovers the servers' tools and synthesizes a description
  3. enriches coral-agent.toml and post-processes the project
  4. swaps the staging directory into place

A fatal error at any step leaves the destination untouched.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any

from .aggregator import CapabilityAggregator
from .archive import fetch_template
from .errors import DestinationExistsError
from .frameworks import Template, get_template
from .manifest import enrich_manifest
from .mcp.manager import Connector
from .mcp.transport import open_session
from .models import Discovery, Framework, MaterializeResult, RenderReport, ServerDef
from .servers import ServerRegistry
from .walker import MANIFEST_FILENAME, HandOff, TreeWalker, default_include

logger = logging.getLogger(__name__)


class TreeRenderer:
    """
    Copies a template tree into `staging`, splicing the entry point.

    The walk runs on a worker pool; every write happens on the single
    consumer thread started by render().
    """

    def __init__(
        self,
        template: Template,
        servers: list[ServerDef],
        threads: int | None = None,
    ):
        self.template = template
        self.servers = servers
        self.threads = threads

    def render(self, source: Path, staging: Path) -> RenderReport:
        source = Path(source).resolve()
        walker = TreeWalker(
            source,
            include=lambda p: default_include(p) and self.template.include_file(p),
            threads=self.threads,
        )
        channel = HandOff()
        report = RenderReport()
        failure: list[BaseException] = []

        consumer = threading.Thread(
            target=self._consume,
            args=(channel, source, staging, report, failure),
            name="render-writer",
        )
        consumer.start()
        try:
            walker.walk(channel)
        finally:
            channel.finish()
            consumer.join()

        if failure:
            raise failure[0]

        if walker.manifest.path is not None:
            report.manifest = walker.manifest.path.relative_to(source)
        report.duplicate_manifests = [p.relative_to(source) for p in walker.duplicate_manifests]
        return report

    def _consume(
        self,
        channel: HandOff,
        source: Path,
        staging: Path,
        report: RenderReport,
        failure: list[BaseException],
    ) -> None:
        try:
            for path in channel:
                rel_path = path.relative_to(source)
                final_path = staging / rel_path
                final_path.parent.mkdir(parents=True, exist_ok=True)

                if self.template.is_entry_point(rel_path):
                    contents = path.read_text(encoding="utf-8")
                    contents = self.template.splice(self.servers, contents)
                    final_path.write_text(contents, encoding="utf-8")
                    report.spliced.append(rel_path)
                else:
                    shutil.copy2(path, final_path)
                    report.copied.append(rel_path)
        except BaseException as e:
            failure.append(e)
            channel.close()
            # drain so late sends from the walk don't pile up
            for _ in channel:
                pass


class Coralizer:
    """
    Materializes agent projects.

    Usage:
        registry = ServerRegistry.from_file("mcp.json")
        coralizer = Coralizer()
        result = await coralizer.materialize("./my-agent", registry, Framework.LANGCHAIN)
    """

    def __init__(
        self,
        connector: Connector = open_session,
        model: str | None = None,
        llm: Any = None,
        walk_threads: int | None = None,
    ):
        self.connector = connector
        self.model = model
        self.llm = llm
        self.walk_threads = walk_threads

    async def materialize(
        self,
        destination: str | Path,
        registry: ServerRegistry,
        framework: Framework | str = Framework.LANGCHAIN,
        agent_name: str | None = None,
        source: str | Path | None = None,
        overwrite: bool = False,
    ) -> MaterializeResult:
        """
        Build the project at `destination`.

        Args:
            destination: Output directory (created; replaced if overwrite=True).
            registry: Declared tool servers.
            framework: Target framework.
            agent_name: Defaults to the destination folder name.
            source: Local template tree; fetched from the framework's archive if omitted.
            overwrite: Replace an existing destination.
        """
        destination = Path(destination).absolute()
        if destination.exists() and not overwrite:
            raise DestinationExistsError(f"'{destination}' already exists")

        agent_name = agent_name or destination.name
        template = get_template(framework, registry.runtimes())
        servers = list(registry)

        if source is None:
            source = await fetch_template(template)
        source = Path(source)

        destination.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}.", dir=destination.parent))
        try:
            renderer = TreeRenderer(template, servers, threads=self.walk_threads)
            discovery, render = await self._render_and_discover(renderer, registry, source, staging)

            options = registry.options()
            warnings = await asyncio.to_thread(
                self._finalize, template, staging, render, discovery, options, agent_name
            )
            await asyncio.to_thread(self._commit, staging, destination)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info(f"Created '{agent_name}' at {destination}")
        return MaterializeResult(
            path=destination,
            agent_name=agent_name,
            framework=template.framework,
            discovery=discovery,
            render=render,
            options=options,
            warnings=warnings,
        )

    async def _render_and_discover(
        self,
        renderer: TreeRenderer,
        registry: ServerRegistry,
        source: Path,
        staging: Path,
    ) -> tuple[Discovery, RenderReport]:
        rendering = asyncio.create_task(asyncio.to_thread(renderer.render, source, staging))
        aggregator = CapabilityAggregator(
            registry, connector=self.connector, model=self.model, llm=self.llm
        )
        try:
            discovery = await aggregator.discover()
        except BaseException:
            # the render thread cannot be interrupted; let it finish before cleanup
            await asyncio.gather(rendering, return_exceptions=True)
            raise
        return discovery, await rendering

    def _finalize(
        self,
        template: Template,
        staging: Path,
        render: RenderReport,
        discovery: Discovery,
        options: list,
        agent_name: str,
    ) -> list[str]:
        warnings: list[str] = []

        if render.manifest is None:
            warnings.append(f"No {MANIFEST_FILENAME} found in template source.")
            logger.warning(warnings[-1])
        else:
            warnings.extend(
                enrich_manifest(staging / render.manifest, agent_name, discovery.description, options)
            )

        for warning in template.post_process(staging, agent_name):
            logger.warning(warning)
            warnings.append(warning)
        return warnings

    @staticmethod
    def _commit(staging: Path, destination: Path) -> None:
        if destination.exists():
            shutil.rmtree(destination)
        # mkdtemp creates the directory owner-only
        staging.chmod(0o755)
        staging.replace(destination)
