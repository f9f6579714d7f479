"""Tests for the wp-post-sync command line."""

import json
import signal
from unittest.mock import MagicMock, patch

import pytest

from wp_post_sync.cli import ExitCode, main
from wp_post_sync.errors import (
    CacheLockError,
    PostNotFoundError,
    SyncError,
    WordPressApiError,
)
from wp_post_sync.sync.cache import CacheStore
from wp_post_sync.sync.models import Post, SyncReport


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """No .env, no config files, no WP_* env vars, no real logging setup."""
    for key in (
        "WP_BASE_URL",
        "WP_BEARER_TOKEN",
        "WP_CACHE_PATH",
        "WP_SYNC_LIMIT",
        "WP_TIMEOUT",
        "WP_INSECURE",
        "WP_DEBUG",
        "WP_POST_SYNC_CONFIG",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    with patch("wp_post_sync.cli.load_dotenv"), patch(
        "wp_post_sync.cli.setup_logging"
    ):
        yield


_ARGS = [
    "sync",
    "--url",
    "https://blog.example.com/wp-json/wp/v2",
    "--token",
    "t",
]


class TestArguments:
    def test_command_required(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == ExitCode.INVALID_ARGUMENTS

    def test_invalid_limit_type(self):
        with pytest.raises(SystemExit) as exc_info:
            main(_ARGS + ["--limit", "many"])
        assert exc_info.value.code == ExitCode.INVALID_ARGUMENTS

    def test_limit_out_of_range(self, capsys):
        assert main(_ARGS + ["--limit", "500"]) == ExitCode.INVALID_ARGUMENTS
        assert "sync limit" in capsys.readouterr().err

    def test_missing_configuration(self, capsys):
        assert main(["sync"]) == ExitCode.MISSING_CONFIGURATION
        assert "WP_BASE_URL" in capsys.readouterr().err


class TestSyncCommand:
    @patch("wp_post_sync.cli.synchronize")
    def test_prints_summary(self, mock_sync, capsys, tmp_path):
        mock_sync.return_value = SyncReport(pulled_from_server=(3,))

        assert main(_ARGS + ["--cache-path", "c", "--limit", "5"]) == 0

        out = capsys.readouterr().out
        assert "Pulled from server: 1 (3)" in out
        args, kwargs = mock_sync.call_args
        assert args[0] == "c"
        assert args[1] == 5
        assert kwargs["statuses"] == ["publish", "draft"]
        assert kwargs["lock_timeout"] == 600.0

    @patch("wp_post_sync.cli.synchronize")
    def test_json_output(self, mock_sync, capsys):
        mock_sync.return_value = SyncReport(newly_cached=(1, 2))

        assert main(_ARGS + ["--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["newly_cached"] == [1, 2]
        assert data["total"] == 2

    @patch("wp_post_sync.cli.synchronize")
    def test_config_file_values_used(self, mock_sync, tmp_path):
        config_dir = tmp_path / ".wp_post_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            "wordpress:\n"
            "  base_url: https://yaml.example.com\n"
            "  bearer_token: yaml-token\n"
            "sync:\n"
            "  sync_limit: 7\n"
            "  statuses: [publish]\n"
        )
        mock_sync.return_value = SyncReport()

        assert main(["sync"]) == 0

        args, kwargs = mock_sync.call_args
        assert args[1] == 7
        assert kwargs["statuses"] == ["publish"]
        assert kwargs["client"].config.base_url == "https://yaml.example.com"

    def test_invalid_config_file(self, tmp_path):
        config_dir = tmp_path / ".wp_post_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("sync:\n  sync_limit: 0\n")

        assert main(_ARGS) == ExitCode.INVALID_ARGUMENTS

    @patch("wp_post_sync.cli.synchronize")
    def test_sigint_handler_restored(self, mock_sync):
        mock_sync.return_value = SyncReport()
        before = signal.getsignal(signal.SIGINT)

        main(_ARGS)

        assert signal.getsignal(signal.SIGINT) is before

    @patch("wp_post_sync.cli.synchronize")
    def test_cancel_event_passed(self, mock_sync):
        mock_sync.return_value = SyncReport()

        main(_ARGS)

        cancel = mock_sync.call_args[0][2]
        assert cancel.is_set() is False


class TestExitCodes:
    @pytest.mark.parametrize(
        "error, code",
        [
            (
                SyncError("update_post failed", 1, "update_post"),
                ExitCode.API_ERROR,
            ),
            (CacheLockError("locked"), ExitCode.CACHE_LOCKED),
            (RuntimeError("bug"), ExitCode.UNHANDLED),
        ],
    )
    def test_error_mapping(self, error, code, capsys):
        with patch("wp_post_sync.cli.synchronize", side_effect=error):
            assert main(_ARGS) == code
        assert "Error:" in capsys.readouterr().err

    def test_sync_error_keeps_cause(self):
        cause = WordPressApiError(500, "boom")
        error = SyncError("list_posts failed", None, "list_posts")
        error.__cause__ = cause
        with patch("wp_post_sync.cli.synchronize", side_effect=error):
            assert main(_ARGS) == ExitCode.API_ERROR


_CONNECTION = [
    "--url",
    "https://blog.example.com/wp-json/wp/v2",
    "--token",
    "t",
]


def _post(post_id=5, **overrides):
    data = {
        "id": post_id,
        "status": "draft",
        "slug": "release-notes",
        "link": f"https://blog.example.com/?p={post_id}",
        "title": {"raw": "Release notes", "rendered": "Release notes"},
        "content": {"raw": "<p>Notes</p>", "rendered": "<p>Notes</p>\n"},
    }
    data.update(overrides)
    return Post.model_validate(data)


@pytest.fixture
def wp_client():
    client = MagicMock()
    with patch("wp_post_sync.cli.WordPressClient", return_value=client):
        yield client


class TestPostsCommands:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["posts"])
        assert exc_info.value.code == ExitCode.INVALID_ARGUMENTS

    def test_list(self, wp_client, capsys):
        wp_client.list_posts.return_value = [_post(7), _post(5, status="publish")]

        assert main(["posts", "list", "--per-page", "500"] + _CONNECTION) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == ["7\tdraft\tRelease notes", "5\tpublish\tRelease notes"]
        wp_client.list_posts.assert_called_once_with(
            status=None, per_page=100, page=1
        )

    def test_get_json(self, wp_client, capsys):
        wp_client.get_post.return_value = _post(5)

        assert main(["posts", "get", "5", "--json"] + _CONNECTION) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["id"] == 5
        assert data["content"]["raw"] == "<p>Notes</p>"

    def test_get_not_found(self, wp_client, capsys):
        wp_client.get_post.side_effect = PostNotFoundError(5)

        assert main(["posts", "get", "5"] + _CONNECTION) == ExitCode.API_ERROR
        assert "Post 5 not found" in capsys.readouterr().err

    def test_create_from_file_is_cached(self, wp_client, tmp_path, capsys):
        (tmp_path / "notes.html").write_text("<p>Notes</p>", encoding="utf-8")
        wp_client.create_post.return_value = _post(5)

        code = main(
            ["posts", "create", "--title", "Release notes"]
            + ["--content-file", "notes.html", "--cache-path", "cache"]
            + _CONNECTION
        )

        assert code == 0
        wp_client.create_post.assert_called_once_with(
            {"title": "Release notes", "content": "<p>Notes</p>", "status": "draft"}
        )
        assert "ID: 5" in capsys.readouterr().out
        assert CacheStore(tmp_path / "cache").read_content(5) == "<p>Notes</p>"

    def test_create_missing_content_file(self, wp_client, capsys):
        code = main(
            ["posts", "create", "--title", "T", "--content-file", "nope.html"]
            + _CONNECTION
        )

        assert code == ExitCode.INVALID_ARGUMENTS
        assert "content file" in capsys.readouterr().err
        wp_client.create_post.assert_not_called()

    def test_create_requires_content(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["posts", "create", "--title", "T"] + _CONNECTION)
        assert exc_info.value.code == ExitCode.INVALID_ARGUMENTS

    def test_delete_to_trash(self, wp_client, capsys):
        wp_client.delete_post.return_value = {"id": 5, "status": "trash"}

        assert main(["posts", "delete", "5", "--trash"] + _CONNECTION) == 0

        wp_client.delete_post.assert_called_once_with(5, force=False)
        assert "trash" in capsys.readouterr().out

    def test_delete_api_error(self, wp_client):
        wp_client.delete_post.side_effect = WordPressApiError(403, "forbidden")

        code = main(["posts", "delete", "5"] + _CONNECTION)

        assert code == ExitCode.API_ERROR
