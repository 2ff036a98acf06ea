"""Template archive fetch + cache.

Cache layout:
    ~/.cache/coralizer/
        artefacts/<sha>.zip         ← downloaded archive, reused when present
        templates/<template-name>/  ← extracted tree, common root dir stripped
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import zipfile
from pathlib import Path, PurePosixPath

import httpx

from .errors import ArchiveError
from .frameworks.base import Template

logger = logging.getLogger(__name__)

_DEFAULT_CACHE_DIR = Path.home() / ".cache" / "coralizer"
_DOWNLOAD_TIMEOUT = 60.0


def cache_dir() -> Path:
    return Path(os.environ.get("CORALIZER_CACHE_DIR", str(_DEFAULT_CACHE_DIR)))


async def download(url: str, dest: Path, client: httpx.AsyncClient | None = None) -> Path:
    """Download `url` to `dest` unless it is already cached."""
    if dest.exists():
        logger.info(f"Using cached artefact {dest}")
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=_DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        logger.info(f"Downloading {url}")
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            with open(partial, "wb") as f:
                async for chunk in resp.aiter_bytes():
                    f.write(chunk)
        partial.replace(dest)
    except (httpx.HTTPError, OSError) as e:
        partial.unlink(missing_ok=True)
        raise ArchiveError(f"Failed to download {url}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()
    return dest


def _common_root(names: list[str]) -> PurePosixPath | None:
    """The single top-level directory every member lives under, if any."""
    roots = {PurePosixPath(n).parts[0] for n in names if PurePosixPath(n).parts}
    if len(roots) != 1:
        return None
    root = PurePosixPath(roots.pop())
    # a lone file at the top level is not a root directory
    if any(PurePosixPath(n) == root and not n.endswith("/") for n in names):
        return None
    return root


def extract(archive: Path, dest: Path) -> Path:
    """Extract a zip into a fresh `dest`, stripping its common root directory."""
    try:
        zf = zipfile.ZipFile(archive)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Could not open {archive}: {e}") from e

    if dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)

    with zf:
        root = _common_root(zf.namelist())
        for info in zf.infolist():
            member = PurePosixPath(info.filename)
            if root is not None:
                if member == root:
                    continue
                member = member.relative_to(root)
            if member.is_absolute() or ".." in member.parts:
                raise ArchiveError(f"Unsafe path in archive: {info.filename}")

            target = dest.joinpath(*member.parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)

    return dest


async def fetch_template(template: Template, client: httpx.AsyncClient | None = None) -> Path:
    """Download (or reuse) a template's archive and extract it into the cache."""
    base = cache_dir()
    artefact = await download(
        template.artifact.url, base / "artefacts" / template.artifact.filename, client
    )
    extracted = base / "templates" / template.name
    logger.info(f"Extracting {artefact.name} -> {extracted}")
    return await asyncio.to_thread(extract, artefact, extracted)
