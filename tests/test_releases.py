"""Tests for the release model and the command plumbing of ReleaseManager."""

from datetime import datetime, timedelta, timezone

import pytest

from release_deployer.errors import DeploymentError
from release_deployer.releases import (
    ProjectLayout,
    Release,
    is_release_token,
    make_release_token,
    token_from_listing,
)

from helpers import FakeSession, make_manager


class TestReleaseTokens:
    def test_token_is_fixed_width_utc(self):
        moment = datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone(timedelta(hours=2)))
        token = make_release_token(moment)
        assert token == "20240305050809"
        assert is_release_token(token)

    def test_tokens_sort_chronologically(self):
        start = datetime(2024, 12, 31, 23, 59, 58, tzinfo=timezone.utc)
        tokens = [make_release_token(start + timedelta(seconds=n)) for n in range(4)]
        assert tokens == sorted(tokens)
        assert len(set(tokens)) == 4

    @pytest.mark.parametrize(
        "entry, expected",
        [
            ("/srv/app/releases/20240101120000/", "20240101120000"),
            ("releases/20240101120000/\n", "20240101120000"),
            ("/srv/app/releases/20240101120000", None),
            ("/srv/app/releases/backup/", None),
            ("", None),
        ],
    )
    def test_token_from_listing(self, entry, expected):
        assert token_from_listing(entry) == expected

    def test_release_created_at(self):
        release = Release(token="20240101120000", path="/srv/app/releases/20240101120000")
        assert release.created_at == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_layout(self):
        layout = ProjectLayout("/srv/app")
        assert layout.current_link == "/srv/app/current"
        assert layout.release_dir("1") == "/srv/app/releases/1"
        assert layout.shared_path("media/uploads") == "/srv/app/shared/media/uploads"
        assert layout.revision_log == "/srv/app/revisions.log"


LISTING = (
    0,
    "/srv/app/releases/20240103000000/\n"
    "/srv/app/releases/20240101000000/\n"
    "/srv/app/releases/20240102000000/\n",
    "",
)


class TestReleaseManagerCommands:
    def test_get_release_ids_sorted(self):
        manager = make_manager(FakeSession({"ls -d": LISTING}))
        assert manager.get_release_ids() == ["20240101000000", "20240102000000", "20240103000000"]

    def test_promote_uses_rename(self):
        session = FakeSession()
        make_manager(session).promote("/srv/app/releases/20240101000000")
        (command,) = session.commands
        assert "ln -sfn /srv/app/releases/20240101000000 /srv/app/.current.tmp" in command
        assert "mv -Tf /srv/app/.current.tmp /srv/app/current" in command
        assert "rm " not in command

    def test_paths_are_quoted(self):
        session = FakeSession()
        manager = make_manager(session, root="/srv/my app")
        manager.ensure_directories()
        assert session.commands == ["mkdir -p '/srv/my app/shared' '/srv/my app/releases'"]

    def test_shared_links(self):
        session = FakeSession()
        manager = make_manager(session)
        manager.link_shared_files("/srv/app/releases/1")
        manager.link_shared_dirs("/srv/app/releases/1")
        assert session.commands == [
            "ln -sfn /srv/app/shared/secrets/.env.production /srv/app/releases/1/.env.production",
            "ln -sfn /srv/app/shared/cache /srv/app/releases/1/cache",
            "ln -sfn /srv/app/shared/logs /srv/app/releases/1/logs",
            "mkdir -p /srv/app/releases/1/public && "
            "ln -sfn /srv/app/shared/media/uploads /srv/app/releases/1/public/uploads",
        ]

    def test_stamp_revision_reads_head(self):
        session = FakeSession({
            "if [ -e": (0, "yes", ""),
            "git rev-parse HEAD": (0, "a" * 40, ""),
        })
        revision = make_manager(session).stamp_revision("/srv/app/releases/1", "20240101000000")
        assert revision == "a" * 40
        assert f"echo {'a' * 40} > /srv/app/releases/1/REVISION" in session.commands
        assert "echo 20240101000000 > /srv/app/releases/1/REVISION_TIME" in session.commands

    def test_stamp_revision_tolerates_empty_hint(self):
        session = FakeSession({"if [ -e": (0, "no", "")})
        revision = make_manager(session).stamp_revision("/srv/app/releases/1", "20240101000000")
        assert revision == ""
        assert "echo '' > /srv/app/releases/1/REVISION" in session.commands
        assert not any("rev-parse" in command for command in session.commands)

    def test_log_deploy_line(self):
        session = FakeSession()
        make_manager(session).log_deploy("main", "abc", "20240101000000")
        assert session.commands == [
            "echo 'Branch main (at abc) deployed as release 20240101000000 by deploy'"
            " >> /srv/app/revisions.log"
        ]

    def test_public_resources_link_each_entry(self):
        session = FakeSession({
            "find": (0, "/srv/app/shared/public/robots.txt\n/srv/app/shared/public/assets\n", ""),
        })
        linked = make_manager(session).link_public_resources("/srv/app/releases/1")
        assert linked == ["robots.txt", "assets"]
        assert session.commands[-1] == (
            "ln -sfn /srv/app/shared/public/assets /srv/app/releases/1/public/assets"
        )

    def test_public_resources_empty(self):
        session = FakeSession()
        assert make_manager(session).link_public_resources("/srv/app/releases/1") == []
        assert len(session.commands) == 1

    def test_rollback_with_unknown_current_does_nothing(self):
        session = FakeSession({
            "readlink": (0, "/srv/app/releases/20230101000000", ""),
            "ls -d": LISTING,
        })
        assert make_manager(session).rollback() is None
        assert not any("mv -Tf" in command for command in session.commands)

    def test_switch_rejects_path_like_ids(self):
        session = FakeSession()
        with pytest.raises(DeploymentError):
            make_manager(session).switch_release("../../etc")
        assert session.commands == []

    def test_cleanup_failure_is_deployment_error(self):
        session = FakeSession({"ls -d": LISTING, "rm -rf": (1, "", "Device busy")})
        with pytest.raises(DeploymentError) as excinfo:
            make_manager(session).cleanup(1)
        assert excinfo.value.task == "deploy:cleanup"
