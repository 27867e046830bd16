"""
Tests for PushHandler.push_changes_to_folder.

Downloads go through a RawContentClient whose httpx client uses a
MockTransport, so every requested URL can be asserted on.
"""

import base64
import time

import httpx
import pytest

from pushsync.core.handler import PushHandler
from pushsync.integrations.raw_content import RawContentClient


class FakeRawContent:
    """Serves file bodies keyed by URL path and records every request."""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.files.get(request.url.path)
        if body is None:
            return httpx.Response(404, content=b"404: Not Found")
        return httpx.Response(200, content=body)

    @property
    def urls(self):
        return [str(r.url) for r in self.requests]


@pytest.fixture
def raw():
    return FakeRawContent()


@pytest.fixture
def transfer(raw):
    client = RawContentClient(client=httpx.Client(transport=httpx.MockTransport(raw)))
    yield client
    client.close()


def make_handler(transfer, commits, branch="main", repo="acme/site"):
    return PushHandler(branch, repo, commits, transfer=transfer)


class TestScenario:
    def test_docs_scope_scenario(self, tmp_path, raw, transfer):
        """One commit adding docs/readme.md and removing docs/old.md, scoped to docs."""
        out = tmp_path / "srv" / "out"
        out.mkdir(parents=True)
        (out / "old.md").write_text("stale")
        raw.files["/acme/site/main/docs/readme.md"] = b"# Hello"

        handler = make_handler(
            transfer,
            [{"added": ["docs/readme.md"], "modified": [], "removed": ["docs/old.md"]}],
        ).for_changes_in_folder("docs")
        lines = []
        handler.push_changes_to_folder(str(out), sink=lines.append)

        assert not (out / "old.md").exists()
        assert (out / "readme.md").read_bytes() == b"# Hello"
        assert raw.urls == ["https://raw.githubusercontent.com/acme/site/main/docs/readme.md"]
        assert lines == [
            f"Downloading https://raw.githubusercontent.com/acme/site/main/docs/readme.md to {out}/readme.md\r\n",
            f"Deleting {out}/old.md\r\n",
        ]
        assert handler.last_report.downloaded == ["readme.md"]
        assert handler.last_report.deleted == ["old.md"]
        assert handler.last_report.ok


class TestDownloads:
    def test_unscoped_uses_repository_path(self, tmp_path, raw, transfer):
        raw.files["/acme/site/release/src/app.js"] = b"run();"

        make_handler(transfer, [{"added": ["src/app.js"]}], branch="release").push_changes_to_folder(
            tmp_path, sink=lambda line: None
        )

        assert raw.urls == ["https://raw.githubusercontent.com/acme/site/release/src/app.js"]
        assert (tmp_path / "src" / "app.js").read_bytes() == b"run();"

    def test_creates_missing_directories(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/web/css/deep/site.css"] = b"body{}"
        lines = []

        make_handler(transfer, [{"modified": ["web/css/deep/site.css"]}]).for_changes_in_folder(
            "web"
        ).push_changes_to_folder(tmp_path, sink=lines.append)

        assert (tmp_path / "css" / "deep" / "site.css").exists()
        assert f"    But first: creating directory {tmp_path}/css/deep!\r\n" in lines

    def test_downloads_are_sequential_in_change_order(self, tmp_path, raw, transfer):
        for name in ("b.txt", "a.txt", "c.txt"):
            raw.files[f"/acme/site/main/{name}"] = name.encode()

        make_handler(
            transfer, [{"added": ["b.txt", "a.txt"]}, {"modified": ["c.txt", "b.txt"]}]
        ).push_changes_to_folder(tmp_path, sink=lambda line: None)

        assert [url.rsplit("/", 1)[1] for url in raw.urls] == ["b.txt", "a.txt", "c.txt"]

    def test_basic_auth_credentials(self, tmp_path, raw, transfer):
        raw.files["/acme/private/main/index.html"] = b"<html>"

        make_handler(transfer, [{"added": ["index.html"]}], repo="acme/private").set_github_credentials(
            "deploy-bot", "s3cret"
        ).push_changes_to_folder(tmp_path, sink=lambda line: None)

        expected = "Basic " + base64.b64encode(b"deploy-bot:s3cret").decode()
        assert raw.requests[0].headers["Authorization"] == expected

    def test_anonymous_without_credentials(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/index.html"] = b"<html>"

        make_handler(transfer, [{"added": ["index.html"]}]).push_changes_to_folder(
            tmp_path, sink=lambda line: None
        )

        assert "Authorization" not in raw.requests[0].headers

    def test_comment_applied_after_download(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/index.php"] = b"<?php echo 1;"
        raw.files["/acme/site/main/readme.md"] = b"# Readme"
        lines = []

        make_handler(transfer, [{"added": ["index.php", "readme.md"]}]).set_comment(
            "Deployed from GitHub"
        ).push_changes_to_folder(tmp_path, sink=lines.append)

        assert (tmp_path / "index.php").read_bytes() == b"<?php\r\n/* Deployed from GitHub */ echo 1;"
        assert (tmp_path / "readme.md").read_bytes() == b"# Readme"
        assert "Added PHP comment\r\n" in lines

    def test_trailing_slash_on_target_folder(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/a.txt"] = b"a"
        lines = []

        make_handler(transfer, [{"added": ["a.txt"]}]).push_changes_to_folder(
            f"{tmp_path}/", sink=lines.append
        )

        assert lines[0].endswith(f" to {tmp_path}/a.txt\r\n")


class TestFailures:
    def test_failed_download_does_not_stop_the_batch(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/ok.txt"] = b"fine"
        lines = []

        handler = make_handler(transfer, [{"added": ["missing.txt", "ok.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lines.append)

        assert (tmp_path / "ok.txt").read_bytes() == b"fine"
        # The destination is opened before the transfer, so it is left empty
        assert (tmp_path / "missing.txt").read_bytes() == b""
        assert handler.last_report.failed == ["missing.txt"]
        assert handler.last_report.downloaded == ["ok.txt"]
        assert not handler.last_report.ok
        assert any(line.startswith("    Failed:") for line in lines)

    def test_timeout_is_reported_per_change(self, tmp_path):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = RawContentClient(client=httpx.Client(transport=httpx.MockTransport(slow)))
        handler = make_handler(client, [{"added": ["a.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lambda line: None)

        assert handler.last_report.failed == ["a.txt"]

    def test_slow_download_gives_up_and_batch_continues(self, tmp_path):
        def trickle():
            for _ in range(10):
                time.sleep(0.1)
                yield b"x"

        def serve(request):
            if request.url.path.endswith("/slow.txt"):
                return httpx.Response(200, content=trickle())
            return httpx.Response(200, content=b"fast")

        client = RawContentClient(
            timeout=0.25, client=httpx.Client(transport=httpx.MockTransport(serve))
        )
        lines = []
        handler = make_handler(client, [{"added": ["slow.txt", "fast.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lines.append)

        assert handler.last_report.failed == ["slow.txt"]
        assert handler.last_report.downloaded == ["fast.txt"]
        assert any(
            line.startswith("    Failed:") and line.endswith("timed out after 0.25s\r\n")
            for line in lines
        )

    def test_paths_escaping_the_target_are_skipped(self, tmp_path, raw, transfer):
        out = tmp_path / "out"
        out.mkdir()
        victim = tmp_path / "victim.txt"
        victim.write_text("keep me")
        raw.files["/acme/site/main/ok.txt"] = b"ok"
        lines = []

        handler = make_handler(
            transfer,
            [{"added": ["../escape.txt", "ok.txt"], "removed": ["../victim.txt"]}],
        )
        handler.push_changes_to_folder(out, sink=lines.append)

        assert victim.read_text() == "keep me"
        assert not (tmp_path / "escape.txt").exists()
        assert (out / "ok.txt").read_bytes() == b"ok"
        assert handler.last_report.failed == ["../escape.txt", "../victim.txt"]
        assert f"Skipping {out}/../victim.txt: outside {out}\r\n" in lines
        assert all("escape.txt" not in str(request.url) for request in raw.requests)

    def test_nested_dot_segments_inside_target_are_allowed(self, tmp_path, raw, transfer):
        (tmp_path / "docs").mkdir()
        (tmp_path / "a.txt").write_text("old")

        handler = make_handler(transfer, [{"removed": ["docs/../a.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lambda line: None)

        assert handler.last_report.deleted == ["docs/../a.txt"]
        assert not (tmp_path / "a.txt").exists()

    def test_deleting_missing_file_is_not_fatal(self, tmp_path, raw, transfer):
        raw.files["/acme/site/main/new.txt"] = b"new"

        handler = make_handler(transfer, [{"removed": ["gone.txt"], "added": ["new.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lambda line: None)

        assert handler.last_report.missing == ["gone.txt"]
        assert handler.last_report.downloaded == ["new.txt"]
        assert handler.last_report.ok

    def test_directory_that_cannot_be_created(self, tmp_path, raw, transfer):
        (tmp_path / "blocker").write_text("a file, not a directory")
        raw.files["/acme/site/main/blocker/a.txt"] = b"a"
        raw.files["/acme/site/main/b.txt"] = b"b"

        handler = make_handler(transfer, [{"added": ["blocker/a.txt", "b.txt"]}])
        handler.push_changes_to_folder(tmp_path, sink=lambda line: None)

        assert handler.last_report.failed == ["blocker/a.txt"]
        assert (tmp_path / "b.txt").read_bytes() == b"b"


class TestOwnedTransfer:
    def test_creates_and_closes_client_when_none_given(self, tmp_path, monkeypatch):
        created = []

        class RecordingClient:
            def __init__(self):
                self.closed = False
                created.append(self)

            def build_url(self, repo, branch, path):
                return f"https://raw.example/{repo}/{branch}/{path}"

            def download_to_file(self, url, dest, credentials=""):
                with open(dest, "wb") as fh:
                    fh.write(b"x")
                return 1

            def close(self):
                self.closed = True

        monkeypatch.setattr("pushsync.core.handler.RawContentClient", RecordingClient)

        PushHandler("main", "acme/site", [{"added": ["a.txt"]}]).push_changes_to_folder(
            tmp_path, sink=lambda line: None
        )

        assert len(created) == 1
        assert created[0].closed is True
        assert (tmp_path / "a.txt").read_bytes() == b"x"
