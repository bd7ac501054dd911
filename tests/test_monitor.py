"""Tests for the volume lifecycle monitor."""

import random
import threading

import pytest

from sd_autocopy.config.settings import AutocopyConfig
from sd_autocopy.domain.models import CopyOutcome
from sd_autocopy.services.monitor import DriveMonitor
from sd_autocopy.services.notifications import DesktopNotifier, Notifier
from sd_autocopy.storage.exceptions import SourceFolderMissingError
from sd_autocopy.storage.volumes import VolumeSampler

from conftest import SnapshotSequence


@pytest.fixture
def config(source_folder, counter_path):
    return AutocopyConfig(
        source_folder=source_folder,
        polling_interval_ms=10,
        excluded_volumes=("C:", "E:"),
        destination_folder_name="AUTOCOPY",
        counter_path=counter_path,
    )


def _dispatcher(dispatch, dispatched):
    if dispatch == "record":
        return dispatched.append
    if callable(dispatch):
        return dispatch
    return None


@pytest.fixture
def make_monitor(config, orchestrator, counter, notifier):
    """Factory building a DriveMonitor over a scripted snapshot sequence."""

    def build(snapshots, dispatch="record", **overrides):
        """Build a monitor; dispatch is "record", "thread" or a callable."""
        enumerate_mounts = SnapshotSequence(snapshots)
        sampler = VolumeSampler(
            excluded=config.excluded_volumes, enumerate_mounts=enumerate_mounts
        )
        dispatched = []
        monitor = DriveMonitor(
            config=overrides.get("config", config),
            sampler=sampler,
            orchestrator=orchestrator,
            counter=counter,
            notifier=overrides.get("notifier", notifier),
            dispatch=_dispatcher(dispatch, dispatched),
        )
        monitor.dispatched = dispatched
        monitor.enumerate_mounts = enumerate_mounts
        return monitor

    return build


class TestInitialize:
    """Tests for DriveMonitor.initialize()."""

    def test_existing_volumes_tracked_without_events(self, make_monitor, notifier):
        monitor = make_monitor([["C:\\", "D:\\", "F:\\"]])

        monitor.initialize()

        assert monitor.initialized is True
        assert monitor.attached_volumes == frozenset({"D:", "F:"})
        assert monitor.dispatched == []
        assert notifier.titles == ["Script Initialized"]
        assert "C:, E:" in notifier.sent[0][1]

    def test_loads_counter(self, make_monitor, counter, counter_path):
        counter_path.parent.mkdir(parents=True, exist_ok=True)
        counter_path.write_text("41", encoding="utf-8")
        monitor = make_monitor([[]])

        monitor.initialize()

        assert counter.value == 41

    def test_missing_source_is_fatal(self, make_monitor, config, notifier, tmp_path):
        missing = AutocopyConfig(
            source_folder=tmp_path / "nope",
            polling_interval_ms=config.polling_interval_ms,
            excluded_volumes=config.excluded_volumes,
            destination_folder_name=config.destination_folder_name,
            counter_path=config.counter_path,
        )
        monitor = make_monitor([["D:\\"]], config=missing)

        with pytest.raises(SourceFolderMissingError):
            monitor.initialize()

        assert monitor.initialized is False
        assert monitor.enumerate_mounts.calls == 0
        assert notifier.sent[0][0] == "Initialization Error"
        assert notifier.sent[0][2] is True

    def test_initial_enumeration_failure_starts_empty(self, make_monitor, notifier):
        monitor = make_monitor([OSError("boom"), ["D:\\"]])

        monitor.initialize()
        events = monitor.poll_once()

        assert notifier.titles[:2] == ["Initialization Error", "Script Initialized"]
        assert events.inserted == frozenset({"D:"})


class TestPollOnce:
    """Tests for DriveMonitor.poll_once()."""

    def test_single_insertion_across_repeated_snapshots(self, make_monitor):
        monitor = make_monitor([[], ["D:\\"], ["D:\\"]])
        monitor.initialize()

        first = monitor.poll_once()
        second = monitor.poll_once()

        assert first.inserted == frozenset({"D:"})
        assert first.removed == frozenset()
        assert second.has_changes is False
        assert monitor.dispatched == ["D:"]

    def test_removal_of_preexisting_volume(self, make_monitor):
        monitor = make_monitor([["D:\\"], []])
        monitor.initialize()

        events = monitor.poll_once()

        assert events.removed == frozenset({"D:"})
        assert events.inserted == frozenset()
        assert monitor.dispatched == []
        assert monitor.attached_volumes == frozenset()

    def test_reinsertion_fires_again(self, make_monitor):
        monitor = make_monitor([[], ["D:\\"], [], ["D:\\"]])
        monitor.initialize()

        for _ in range(3):
            monitor.poll_once()

        assert monitor.dispatched == ["D:", "D:"]

    def test_each_insertion_dispatched(self, make_monitor, notifier):
        monitor = make_monitor([[], ["D:\\", "F:\\", "G:\\"]])
        monitor.initialize()

        monitor.poll_once()

        assert sorted(monitor.dispatched) == ["D:", "F:", "G:"]
        assert notifier.titles.count("SD Card Detected") == 3

    def test_excluded_volume_never_produces_events(self, make_monitor):
        monitor = make_monitor([[], ["C:\\", "E:\\"], [], ["E:\\", "D:\\"]])
        monitor.initialize()

        seen = [monitor.poll_once() for _ in range(3)]

        for events in seen:
            assert not {"C:", "E:"} & (events.inserted | events.removed)
        assert monitor.dispatched == ["D:"]

    def test_enumeration_failure_keeps_attached_set(self, make_monitor, notifier):
        monitor = make_monitor([["D:\\"], RuntimeError("WMI timeout"), ["D:\\"]])
        monitor.initialize()

        failed = monitor.poll_once()
        recovered = monitor.poll_once()

        assert failed is None
        assert monitor.attached_volumes == frozenset({"D:"})
        assert recovered.has_changes is False
        assert "Drive Monitor Error" in notifier.titles
        assert monitor.dispatched == []

    def test_attached_set_tracks_last_snapshot(self, make_monitor):
        rng = random.Random(99)
        letters = ["D:", "F:", "G:", "E:"]
        snapshots = [[]] + [
            [f"{letter.lower()}\\" for letter in letters if rng.random() < 0.5]
            for _ in range(50)
        ]
        monitor = make_monitor(snapshots)
        monitor.initialize()

        tracked = set()
        for snapshot in snapshots[1:]:
            events = monitor.poll_once()
            tracked = (tracked | events.inserted) - events.removed
            expected = {item.upper().rstrip("\\") for item in snapshot} - {"E:"}
            assert monitor.attached_volumes == frozenset(expected)
            assert tracked == expected

    def test_poll_counts_ticks(self, make_monitor):
        monitor = make_monitor([[]])
        monitor.initialize()

        monitor.poll_once()
        monitor.poll_once()

        assert monitor.state.poll_count == 2


class TestInsertionNotifications:
    """Tests for how insertion notifications interact with dispatch."""

    def test_copy_dispatched_before_detected_notification(self, make_monitor):
        order = []

        class OrderNotifier(Notifier):
            def _deliver(self, title, message, urgent):
                order.append(("notify", title))

        monitor = make_monitor(
            [[], ["D:\\", "F:\\"]],
            dispatch=lambda volume: order.append(("dispatch", volume)),
            notifier=OrderNotifier(),
        )
        monitor.initialize()
        order.clear()

        monitor.poll_once()

        assert order == [
            ("dispatch", "D:"),
            ("notify", "SD Card Detected"),
            ("dispatch", "F:"),
            ("notify", "SD Card Detected"),
        ]

    def test_hung_notification_command_does_not_delay_dispatch(
        self, make_monitor, mocker
    ):
        release = threading.Event()

        def hung_communicate(timeout=None):
            release.wait(10)
            return "", ""

        mocker.patch(
            "sd_autocopy.services.notifications.shutil.which",
            return_value="/usr/bin/notify-send",
        )
        mock_popen = mocker.patch("sd_autocopy.services.notifications.subprocess.Popen")
        mock_popen.return_value.communicate.side_effect = hung_communicate
        mock_popen.return_value.returncode = 0
        monitor = make_monitor(
            [[], ["D:\\", "F:\\", "G:\\"]], notifier=DesktopNotifier(platform="linux")
        )
        monitor.initialize()

        try:
            events = monitor.poll_once()

            # Every notification command is still running
            assert not release.is_set()
            assert events.inserted == frozenset({"D:", "F:", "G:"})
            assert monitor.dispatched == ["D:", "F:", "G:"]
            assert mock_popen.call_count == 4
        finally:
            release.set()


class TestDispatchFailure:
    """Tests for a copy worker that cannot be started."""

    def test_dispatch_failure_recorded_as_failed(self, make_monitor, notifier):
        started = []

        def dispatch(volume):
            if volume == "D:":
                raise RuntimeError("can't start new thread")
            started.append(volume)

        monitor = make_monitor([[], ["D:\\", "F:\\"]], dispatch=dispatch)
        monitor.initialize()

        events = monitor.poll_once()

        assert events.inserted == frozenset({"D:", "F:"})
        assert started == ["F:"]
        results = monitor.state.recent_results()
        assert [(r.volume, r.outcome) for r in results] == [("D:", CopyOutcome.FAILED)]
        assert "can't start new thread" in results[0].error
        assert "Copy Error" in notifier.titles
        assert notifier.titles.count("SD Card Detected") == 1

    def test_run_survives_dispatch_failure(self, make_monitor):
        def dispatch(volume):
            raise RuntimeError("can't start new thread")

        monitor = make_monitor([[], ["D:\\"], [], ["D:\\"]], dispatch=dispatch)

        monitor.run(max_ticks=3)

        assert monitor.state.poll_count == 3
        assert len(monitor.state.recent_results()) == 2


class TestCopyDispatch:
    """Tests for the threaded copy dispatch."""

    def test_insertion_copies_on_worker_thread(self, make_monitor, counter, volumes_dir):
        monitor = make_monitor([[], ["D:\\", "F:\\"]], dispatch="thread")
        monitor.initialize()

        monitor.poll_once()
        monitor.wait_for_copies(timeout=10)

        results = monitor.state.recent_results()
        assert sorted(result.volume for result in results) == ["D:", "F:"]
        assert all(result.outcome is CopyOutcome.SUCCEEDED for result in results)
        assert counter.value == 2
        assert (volumes_dir / "D" / "AUTOCOPY" / "intro.mp3").exists()
        assert (volumes_dir / "F" / "AUTOCOPY" / "readme.txt").exists()

    def test_slow_copy_does_not_block_polling(self, make_monitor, orchestrator, mocker):
        release = threading.Event()
        started = threading.Event()

        def slow_copy(source, destination):
            started.set()
            release.wait(10)

        mocker.patch.object(orchestrator, "_copy_tree", side_effect=slow_copy)
        monitor = make_monitor([[], ["D:\\"], ["D:\\", "F:\\"]], dispatch="thread")
        monitor.initialize()

        monitor.poll_once()
        assert started.wait(10)
        events = monitor.poll_once()

        assert events.inserted == frozenset({"F:"})
        release.set()
        monitor.wait_for_copies(timeout=10)
        assert len(monitor.state.recent_results()) == 2

    def test_copy_volume_records_result(self, make_monitor):
        monitor = make_monitor([[]])
        monitor.initialize()

        result = monitor.copy_volume("D:")

        assert monitor.state.recent_results() == [result]


class TestRun:
    """Tests for DriveMonitor.run()."""

    def test_run_initializes_and_polls(self, make_monitor):
        monitor = make_monitor([[], ["D:\\"]])

        monitor.run(max_ticks=2)

        assert monitor.initialized is True
        assert monitor.state.poll_count == 2
        assert monitor.dispatched == ["D:"]

    def test_run_stops_on_event(self, make_monitor):
        monitor = make_monitor([[]])
        stop = threading.Event()
        stop.set()

        monitor.run(stop_event=stop)

        assert monitor.state.poll_count == 0
