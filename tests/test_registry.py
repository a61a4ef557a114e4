"""Tests for WatchRegistry and watchdog event translation."""

import asyncio
import os
from types import SimpleNamespace

import pytest

from filewatch.errors import NotificationStreamError, WatchPathError, WatchRegistrationError
from filewatch.models import Op, RawEvent
from filewatch.registry import translate_event


def _event(event_type, src_path, dest_path="", is_directory=False):
    return SimpleNamespace(
        event_type=event_type, src_path=src_path, dest_path=dest_path, is_directory=is_directory
    )


class TestTranslateEvent:
    @pytest.mark.parametrize(
        "event_type, op",
        [
            ("created", Op.CREATE),
            ("modified", Op.WRITE),
            ("deleted", Op.REMOVE),
            ("closed", Op.WRITE),
            ("something_new", Op.OTHER),
        ],
    )
    def test_simple_events(self, event_type, op):
        assert translate_event(_event(event_type, "/tmp/a.go")) == [RawEvent("/tmp/a.go", op)]

    def test_move_is_rename_plus_create(self):
        events = translate_event(_event("moved", "/tmp/a.go", "/tmp/b.go"))
        assert events == [RawEvent("/tmp/a.go", Op.RENAME), RawEvent("/tmp/b.go", Op.CREATE)]

    @pytest.mark.parametrize("event_type", ["opened", "closed_no_write"])
    def test_access_events_ignored(self, event_type):
        assert translate_event(_event(event_type, "/tmp/a.go")) == []

    def test_bytes_paths_decoded(self):
        assert translate_event(_event("created", b"/tmp/a.go")) == [RawEvent("/tmp/a.go", Op.CREATE)]


class TestAddPaths:
    def test_directory_scheduled_once(self, registry, mock_observer, tmp_path):
        registry.add_paths([str(tmp_path), str(tmp_path) + "/"])

        mock_observer.schedule.assert_called_once()
        args, kwargs = mock_observer.schedule.call_args
        assert args[1] == str(tmp_path)
        assert kwargs == {"recursive": False}
        assert registry.watched[str(tmp_path)].is_dir

    def test_file_registers_parent_directory(self, registry, mock_observer, tmp_path):
        target = tmp_path / "a.go"
        target.write_text("package a")

        registry.add_paths([str(target)])

        assert mock_observer.schedule.call_args[0][1] == str(tmp_path)
        assert registry.is_watched(str(target))
        assert registry.is_watched(str(tmp_path))
        assert not registry.watched[str(target)].is_dir

    def test_siblings_share_parent_watch(self, registry, mock_observer, tmp_path):
        for name in ("a.go", "b.go"):
            (tmp_path / name).write_text("")

        registry.add_paths([str(tmp_path / "a.go"), str(tmp_path / "b.go"), str(tmp_path)])

        assert mock_observer.schedule.call_count == 1
        assert len(registry.watched) == 3

    def test_missing_path_aborts_batch(self, registry, mock_observer, tmp_path):
        (tmp_path / "ok.txt").write_text("")
        (tmp_path / "other").mkdir()

        with pytest.raises(WatchPathError, match="can't get stat"):
            registry.add_paths([str(tmp_path / "ok.txt"), str(tmp_path / "missing"), str(tmp_path / "other")])

        assert not registry.is_watched(str(tmp_path / "other"))

    def test_registration_failure(self, registry, mock_observer, tmp_path):
        mock_observer.schedule.side_effect = OSError("inotify watch limit reached")

        with pytest.raises(WatchRegistrationError, match="inotify watch limit"):
            registry.add_paths([str(tmp_path)])

        assert not registry.is_watched(str(tmp_path))


class TestEventStream:
    @pytest.mark.asyncio
    async def test_events_posted_from_thread(self, registry):
        with registry:
            await asyncio.to_thread(registry.post, RawEvent("/tmp/a.go", Op.WRITE))
            event = await asyncio.wait_for(registry.next_event(), timeout=1)
        assert event == RawEvent("/tmp/a.go", Op.WRITE)

    @pytest.mark.asyncio
    async def test_handler_forwards_watchdog_events(self, registry):
        with registry:
            registry._handler.on_any_event(_event("created", "/tmp/new.go"))
            event = await asyncio.wait_for(registry.next_event(), timeout=1)
        assert event == RawEvent("/tmp/new.go", Op.CREATE)

    @pytest.mark.asyncio
    async def test_error_item_is_fatal(self, registry):
        with registry:
            registry.post(OSError("queue overflow"))
            with pytest.raises(NotificationStreamError, match="queue overflow"):
                await asyncio.wait_for(registry.next_event(), timeout=1)

    @pytest.mark.asyncio
    async def test_dead_observer_is_fatal(self, registry, mock_observer):
        with registry:
            mock_observer.is_alive.return_value = False
            with pytest.raises(NotificationStreamError, match="stopped unexpectedly"):
                await asyncio.wait_for(registry.next_event(), timeout=1)

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops(self, registry, mock_observer):
        with registry:
            mock_observer.start.assert_called_once()
        mock_observer.stop.assert_called_once()
        mock_observer.join.assert_called_once_with(timeout=2.0)

    def test_post_before_start_is_dropped(self, registry):
        registry.post(RawEvent("/tmp/a.go", Op.WRITE))
        assert registry.events.empty()


@pytest.mark.asyncio
async def test_real_observer_reports_file_creation(tmp_path):
    """End-to-end through watchdog: a new file in a watched directory arrives."""
    from filewatch.registry import WatchRegistry

    registry = WatchRegistry(health_interval=0.1)
    with registry:
        registry.add_paths([str(tmp_path)])
        await asyncio.sleep(0.2)
        (tmp_path / "new.txt").write_text("hello")

        seen = []
        while not any(e.path == os.path.join(str(tmp_path), "new.txt") for e in seen):
            seen.append(await asyncio.wait_for(registry.next_event(), timeout=5))

    assert any(e.op is Op.CREATE for e in seen)


class TestAttributeChanges:
    def test_modified_without_content_change_is_chmod(self, registry, tmp_path):
        target = tmp_path / "a.go"
        target.write_text("package a")
        registry.add_paths([str(target)])

        os.chmod(target, 0o755)

        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.CHMOD)]

    def test_modified_with_new_content_is_write(self, registry, tmp_path):
        target = tmp_path / "a.go"
        target.write_text("package a")
        registry.add_paths([str(target)])

        target.write_text("package a // changed")

        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.WRITE)]
        # the same state seen again is no longer a write
        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.CHMOD)]

    def test_first_modification_of_unknown_file_is_write(self, registry, tmp_path):
        target = tmp_path / "new.go"
        target.write_text("package new")

        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.WRITE)]

    def test_created_file_snapshot_taken(self, registry, tmp_path):
        target = tmp_path / "new.go"
        target.write_text("package new")

        assert registry.translate(_event("created", str(target))) == [RawEvent(str(target), Op.CREATE)]
        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.CHMOD)]

    def test_recreated_file_counts_as_write(self, registry, tmp_path):
        target = tmp_path / "a.go"
        target.write_text("package a")
        registry.add_paths([str(target)])

        registry.translate(_event("deleted", str(target)))

        assert registry.translate(_event("modified", str(target))) == [RawEvent(str(target), Op.WRITE)]

    def test_directory_events_not_classified(self, registry, tmp_path):
        registry.add_paths([str(tmp_path)])

        event = _event("modified", str(tmp_path), is_directory=True)

        assert registry.translate(event) == [RawEvent(str(tmp_path), Op.WRITE)]


class TestReplacedDirectories:
    def test_removed_directory_unscheduled(self, registry, mock_observer, tmp_path):
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        (pkg / "a.go").write_text("")
        registry.add_paths([str(pkg / "a.go")])
        watch = mock_observer.schedule.return_value

        shutil.rmtree(pkg)
        registry.remove_path(str(pkg))

        mock_observer.unschedule.assert_called_once_with(watch)
        assert not registry.is_watched(str(pkg))
        assert not registry.is_watched(str(pkg / "a.go"))

    def test_existing_directory_kept(self, registry, mock_observer, tmp_path):
        registry.add_paths([str(tmp_path)])

        registry.remove_path(str(tmp_path))

        mock_observer.unschedule.assert_not_called()
        assert registry.is_watched(str(tmp_path))

    def test_recreated_directory_scheduled_again(self, registry, mock_observer, tmp_path):
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        registry.add_paths([str(pkg)])

        pkg.rmdir()
        registry.remove_path(str(pkg))
        pkg.mkdir()
        registry.add_paths([str(pkg)])

        assert mock_observer.schedule.call_count == 2
        assert registry.is_watched(str(pkg))

    def test_dead_watch_replaced_on_add(self, registry, mock_observer, tmp_path):
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        registry.add_paths([str(pkg)])
        old_watch = mock_observer.schedule.return_value
        mock_observer.emitters = [SimpleNamespace(watch=old_watch, is_alive=lambda: False)]

        registry.add_paths([str(pkg)])

        mock_observer.unschedule.assert_called_once_with(old_watch)
        assert mock_observer.schedule.call_count == 2

    def test_replace_drops_live_watch(self, registry, mock_observer, tmp_path):
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        registry.add_paths([str(pkg)])
        old_watch = mock_observer.schedule.return_value

        registry.add_paths([str(pkg)], replace=True)

        mock_observer.unschedule.assert_called_once_with(old_watch)
        assert mock_observer.schedule.call_count == 2
        assert registry.is_watched(str(pkg))

    def test_replace_of_new_directory_only_schedules(self, registry, mock_observer, tmp_path):
        registry.add_paths([str(tmp_path)], replace=True)

        mock_observer.unschedule.assert_not_called()
        mock_observer.schedule.assert_called_once()

    def test_removed_file_forgotten(self, registry, mock_observer, tmp_path):
        target = tmp_path / "a.go"
        target.write_text("")
        registry.add_paths([str(target)])

        target.unlink()
        registry.remove_path(str(target))

        assert not registry.is_watched(str(target))
        assert registry.is_watched(str(tmp_path))
        mock_observer.unschedule.assert_not_called()
