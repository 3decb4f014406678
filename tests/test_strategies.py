"""Tests for source materialization strategies."""

import unittest
from pathlib import Path
import tempfile

import requests

from release_deployer.config import DeployVia
from release_deployer.errors import ConfigurationError, DeploymentError
from release_deployer.strategies import create_strategy, resolve_strategy, strategy_class
from release_deployer.strategies.copy import CopyStrategy
from release_deployer.strategies.git import GitStrategy
from release_deployer.strategies.remote_cache import RemoteCacheStrategy
from release_deployer.strategies.tarball import TarballSyncStrategy, archive_url

from helpers import FakeSession, make_config, make_manager

RELEASE_DIR = "/srv/app/releases/20240101000000"


def build(config, session):
    manager = make_manager(session)
    return create_strategy(config, manager.runner, manager, session, manager.log)


class StrategyFactoryTests(unittest.TestCase):
    def test_every_key_maps_to_one_class(self) -> None:
        self.assertIs(strategy_class(DeployVia.GIT), GitStrategy)
        self.assertIs(strategy_class(DeployVia.COPY), CopyStrategy)
        self.assertIs(strategy_class(DeployVia.TARBALL_SYNC), TarballSyncStrategy)
        self.assertIs(strategy_class(DeployVia.REMOTE_CACHE), RemoteCacheStrategy)

    def test_remote_cache_is_rejected_before_any_command(self) -> None:
        session = FakeSession()
        with self.assertRaises(ConfigurationError):
            build(make_config(deploy_via="remote_cache"), session)
        self.assertEqual(session.commands, [])

    def test_remote_cache_slot_is_not_implemented(self) -> None:
        session = FakeSession()
        manager = make_manager(session)
        strategy = RemoteCacheStrategy(make_config(), manager.runner, manager, session, manager.log)
        with self.assertRaises(NotImplementedError):
            strategy.materialize(RELEASE_DIR)

    def test_unknown_key(self) -> None:
        with self.assertRaises(ConfigurationError):
            resolve_strategy(make_config(deploy_via="svn"))

    def test_alias_resolves(self) -> None:
        self.assertIs(resolve_strategy(make_config(deploy_via="remoteSync")), TarballSyncStrategy)


class GitStrategyTests(unittest.TestCase):
    def test_clones_into_new_release(self) -> None:
        session = FakeSession({"if [ -e": (0, "no", "")})
        hint = build(make_config(branch="main"), session).materialize(RELEASE_DIR)
        self.assertEqual(hint, "")
        self.assertEqual(
            session.commands[-1],
            f"git clone --branch main git@github.com:acme/shop.git {RELEASE_DIR}",
        )

    def test_pulls_existing_checkout(self) -> None:
        session = FakeSession({"if [ -e": (0, "yes", "")})
        build(make_config(branch="release"), session).materialize(RELEASE_DIR)
        self.assertEqual(session.commands[-1], f"cd {RELEASE_DIR} && git pull origin release")

    def test_clone_failure_is_deployment_error(self) -> None:
        session = FakeSession({"if [ -e": (0, "no", ""), "git clone": (128, "", "Permission denied (publickey)")})
        with self.assertRaises(DeploymentError) as ctx:
            build(make_config(), session).materialize(RELEASE_DIR)
        self.assertEqual(ctx.exception.task, "git:clone")


class CopyStrategyTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.source = Path(self._tmp.name)
        (self.source / "src").mkdir()
        (self.source / "src" / "app.js").write_text("module.exports = 1\n", encoding="utf-8")
        (self.source / "package.json").write_text("{}\n", encoding="utf-8")
        (self.source / ".release-deployer" / "downloads").mkdir(parents=True)
        (self.source / ".release-deployer" / "downloads" / "old.tar.gz").write_bytes(b"x")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_uploads_every_file(self) -> None:
        session = FakeSession()
        config = make_config(deploy_via="copy", local_source=str(self.source))
        hint = build(config, session).materialize(RELEASE_DIR)
        self.assertEqual(hint, "")
        self.assertEqual(
            sorted(session.files),
            [f"{RELEASE_DIR}/package.json", f"{RELEASE_DIR}/src/app.js"],
        )
        self.assertIn(RELEASE_DIR, session.dirs)
        self.assertIn(f"{RELEASE_DIR}/src", session.dirs)
        self.assertEqual(session.commands, [])

    def test_missing_source_fails(self) -> None:
        config = make_config(deploy_via="copy", local_source=str(self.source / "missing"))
        with self.assertRaises(DeploymentError) as ctx:
            build(config, FakeSession()).materialize(RELEASE_DIR)
        self.assertEqual(ctx.exception.task, "copy:upload")

    def test_transfer_errors_are_wrapped(self) -> None:
        class FullDisk(FakeSession):
            def put_file(self, local_path, remote_path):
                raise OSError(28, "No space left on device")

        config = make_config(deploy_via="copy", local_source=str(self.source))
        with self.assertRaises(DeploymentError) as ctx:
            build(config, FullDisk()).materialize(RELEASE_DIR)
        self.assertIn("No space left", str(ctx.exception))


class FakeResponse:
    def __init__(self, status_code=200, chunks=(b"tar", b"ball"), reason="OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._chunks = chunks

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size=1):
        return iter(self._chunks)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeHTTP:
    def __init__(self, response=None, error=None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


class TarballStrategyTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.downloads = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _strategy(self, session, http):
        strategy = build(make_config(deploy_via="tarball", repo_url="https://github.com/acme/shop.git"), session)
        strategy.http = http
        strategy.download_dir = self.downloads
        return strategy

    def test_archive_url(self) -> None:
        self.assertEqual(
            archive_url("https://github.com/acme/shop.git", "main"),
            "https://github.com/acme/shop/archive/refs/heads/main.tar.gz",
        )
        self.assertEqual(
            archive_url("git@github.com:acme/shop.git", "dev"),
            "https://github.com/acme/shop/archive/refs/heads/dev.tar.gz",
        )

    def test_download_upload_extract(self) -> None:
        session = FakeSession()
        http = FakeHTTP()
        hint = self._strategy(session, http).materialize(RELEASE_DIR)
        self.assertEqual(hint, "")
        url, kwargs = http.requests[0]
        self.assertEqual(url, "https://github.com/acme/shop/archive/refs/heads/main.tar.gz")
        self.assertTrue(kwargs["stream"])
        self.assertEqual(session.files[f"{RELEASE_DIR}/repo.tar.gz"], b"tarball")
        self.assertEqual(
            session.commands,
            [f"cd {RELEASE_DIR} && tar -xzf repo.tar.gz --strip-components=1 && rm repo.tar.gz"],
        )
        self.assertEqual(list(self.downloads.iterdir()), [])

    def test_http_error_fails_before_upload(self) -> None:
        session = FakeSession()
        http = FakeHTTP(FakeResponse(status_code=404, reason="Not Found"))
        with self.assertRaises(DeploymentError) as ctx:
            self._strategy(session, http).materialize(RELEASE_DIR)
        self.assertEqual(ctx.exception.task, "tarball:download")
        self.assertIn("404", str(ctx.exception))
        self.assertEqual(session.files, {})
        self.assertEqual(session.commands, [])

    def test_network_error_is_wrapped(self) -> None:
        http = FakeHTTP(error=requests.ConnectionError("Name or service not known"))
        with self.assertRaises(DeploymentError):
            self._strategy(FakeSession(), http).materialize(RELEASE_DIR)


if __name__ == "__main__":
    unittest.main()
