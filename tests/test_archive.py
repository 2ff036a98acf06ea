"""
Tests for template archive download, caching and extraction.

HTTP is served by httpx.MockTransport; nothing touches the network.
"""

import io
import zipfile

import httpx
import pytest

from coralizer import ArchiveError
from coralizer.archive import cache_dir, download, extract, fetch_template
from coralizer.frameworks import LangchainTemplate


def _zip_bytes(members: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, contents in members.items():
            zf.writestr(name, contents)
    return buf.getvalue()


TEMPLATE_ZIP = _zip_bytes({
    "langchain-agent-d778/": "",
    "langchain-agent-d778/main.py": "print('hi')\n",
    "langchain-agent-d778/coral-agent.toml": "[agent]\n",
    "langchain-agent-d778/utils/helpers.py": "",
})


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ── extract ─────────────────────────────────────────────────

class TestExtract:
    def test_strips_common_root(self, tmp_path):
        archive = tmp_path / "t.zip"
        archive.write_bytes(TEMPLATE_ZIP)

        dest = extract(archive, tmp_path / "out")
        assert sorted(p.relative_to(dest).as_posix() for p in dest.rglob("*") if p.is_file()) == [
            "coral-agent.toml", "main.py", "utils/helpers.py",
        ]

    def test_without_common_root(self, tmp_path):
        archive = tmp_path / "t.zip"
        archive.write_bytes(_zip_bytes({"a.txt": "a", "b/c.txt": "c"}))

        dest = extract(archive, tmp_path / "out")
        assert (dest / "a.txt").read_text() == "a"
        assert (dest / "b" / "c.txt").read_text() == "c"

    def test_replaces_previous_extraction(self, tmp_path):
        archive = tmp_path / "t.zip"
        archive.write_bytes(TEMPLATE_ZIP)
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "stale.py").write_text("")

        extract(archive, dest)
        assert not (dest / "stale.py").exists()

    def test_rejects_path_traversal(self, tmp_path):
        archive = tmp_path / "t.zip"
        archive.write_bytes(_zip_bytes({"../evil.txt": "x", "ok.txt": "y"}))

        with pytest.raises(ArchiveError, match="Unsafe path"):
            extract(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()

    def test_not_a_zip(self, tmp_path):
        archive = tmp_path / "t.zip"
        archive.write_text("definitely not a zip")
        with pytest.raises(ArchiveError):
            extract(archive, tmp_path / "out")


# ── download / fetch ────────────────────────────────────────

class TestDownload:
    @pytest.mark.asyncio
    async def test_downloads_and_caches(self, tmp_path):
        requests = []

        def handler(request):
            requests.append(request.url)
            return httpx.Response(200, content=b"payload")

        dest = tmp_path / "artefacts" / "x.zip"
        async with _client(handler) as client:
            await download("https://example.com/x.zip", dest, client)
            await download("https://example.com/x.zip", dest, client)

        assert dest.read_bytes() == b"payload"
        assert len(requests) == 1
        assert not dest.with_name("x.zip.part").exists()

    @pytest.mark.asyncio
    async def test_http_error(self, tmp_path):
        dest = tmp_path / "x.zip"
        async with _client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(ArchiveError, match="Failed to download"):
                await download("https://example.com/x.zip", dest, client)
        assert not dest.exists()
        assert not dest.with_name("x.zip.part").exists()

    def test_cache_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CORALIZER_CACHE_DIR", str(tmp_path))
        assert cache_dir() == tmp_path

    @pytest.mark.asyncio
    async def test_fetch_template(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CORALIZER_CACHE_DIR", str(tmp_path))
        template = LangchainTemplate()
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, content=TEMPLATE_ZIP)

        async with _client(handler) as client:
            root = await fetch_template(template, client)

        assert urls == [template.artifact.url]
        assert root == tmp_path / "templates" / "langchain-agent"
        assert (root / "main.py").read_text() == "print('hi')\n"
        assert (tmp_path / "artefacts" / template.artifact.filename).exists()
