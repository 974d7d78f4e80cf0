import io
import logging

import pytest

from bbstatus.cache import MarkerCache, MarkerStoreNotConfigured, get_marker_store
from bbstatus.location import ConfiguredRootUrlProvider, RootUrlNotConfigured
from bbstatus.logger import LOG_FORMAT, get_log_handlers
from bbstatus.tasklistener import CollectingTaskListener, StreamTaskListener

from conftest import make_build


def test_disk_marker_store_persists(tmp_path):
    with get_marker_store(str(tmp_path)) as store:
        assert isinstance(store, MarkerCache)
        assert store.add_marker("team/repo/main#1")
        first = store.marked_at("team/repo/main#1")
        assert not store.add_marker("team/repo/main#1")
        assert store.marked_at("team/repo/main#1") == first

    with MarkerCache(str(tmp_path)) as store:
        assert store.has_marker("team/repo/main#1")
        assert not store.has_marker("team/repo/main#2")


def test_marker_is_claimed_once_across_handles(tmp_path):
    with MarkerCache(str(tmp_path)) as one, MarkerCache(str(tmp_path)) as other:
        assert one.add_marker("team/repo/main#1")
        assert not other.add_marker("team/repo/main#1")
        assert not one.add_marker("team/repo/main#1")
        assert other.add_marker("team/repo/main#2")


def test_store_requires_directory(monkeypatch):
    monkeypatch.setattr("bbstatus.config.DISKCACHE_DIR", None)
    with pytest.raises(MarkerStoreNotConfigured, match="DISKCACHE_DIR"):
        get_marker_store()


def test_store_directory_from_config(tmp_path, monkeypatch):
    monkeypatch.setattr("bbstatus.config.DISKCACHE_DIR", str(tmp_path))
    with get_marker_store() as store:
        assert store.directory == str(tmp_path)


def test_run_url_from_root():
    provider = ConfiguredRootUrlProvider("https://ci.example.com/jenkins/")
    assert provider.get_run_url(make_build(number=3)) == (
        "https://ci.example.com/jenkins/job/team/job/repo/job/main/3/"
    )


def test_run_url_prefers_runner_url():
    provider = ConfiguredRootUrlProvider("https://ci.example.com")
    build = make_build(url="https://ci.example.com/blue/runs/3")
    assert provider.get_run_url(build) == "https://ci.example.com/blue/runs/3"


@pytest.mark.parametrize("root", [None, ""])
def test_run_url_requires_root(root):
    with pytest.raises(RootUrlNotConfigured):
        ConfiguredRootUrlProvider(root).get_run_url(make_build())


def test_stream_task_listener(caplog):
    stream = io.StringIO()
    listener = StreamTaskListener("team/repo/main#1", stream)

    listener.println("[Bitbucket] Build result notified")
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        listener.error("Could not send notifications", exc_info=e)

    output = stream.getvalue()
    assert output.startswith("[Bitbucket] Build result notified\n")
    assert "ERROR: Could not send notifications" in output
    assert "RuntimeError: boom" in output

    # forwarded log records name the build
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert [r.getMessage() for r in errors] == [
        "[team/repo/main#1] Could not send notifications"
    ]
    assert errors[0].exc_info[1] is not None


def test_collecting_task_listener():
    listener = CollectingTaskListener("team/repo/main#1")
    listener.println("hello")
    listener.error("no traceback")
    assert listener.lines == ["hello", "ERROR: no traceback"]


def test_no_log_handlers_without_token(monkeypatch):
    monkeypatch.setattr("bbstatus.config.TELEGRAM_TOKEN", None)
    assert get_log_handlers(logging.getLogger("bbstatus.handlers")) == []


def test_telegram_handler_is_formatted(monkeypatch):
    monkeypatch.setattr("bbstatus.config.TELEGRAM_TOKEN", "123:abc")
    monkeypatch.setattr("bbstatus.config.TELEGRAM_CHAT_ID", "42")
    logger = logging.getLogger("bbstatus.handlers")

    (handler,) = get_log_handlers(logger)
    try:
        assert handler.level == logging.WARNING
        assert handler.formatter._fmt == LOG_FORMAT
        record = logging.LogRecord(
            "bbstatus",
            logging.ERROR,
            __file__,
            1,
            "[%s] %s",
            ("team/repo/main#1", "Could not send notifications"),
            None,
        )
        assert handler.format(record).endswith(
            "bbstatus ERROR - [team/repo/main#1] Could not send notifications"
        )
    finally:
        logger.removeHandler(handler)
