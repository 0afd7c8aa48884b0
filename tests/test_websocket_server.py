"""
Tests for the WebSocket server message handling and processing thread
"""

import asyncio
import json
import time

import pytest

from driftpick.attention.target_map import TargetRegion
from driftpick.calibration.calibration_manager import CalibrationStore
from driftpick.calibration.storage import MemoryStorage
from driftpick.data_acquisition.landmark_source import CameraError, LandmarkFrame
from driftpick.server.websocket_server import DriftPickServer, ServerMessage, _parse_viewport
from conftest import FACE_LANDMARKS


class FakeConnection:
    """Stands in for a websockets ServerConnection"""

    remote_address = ("127.0.0.1", 50000)

    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(json.loads(message))


class FakeSource:
    """Landmark source replaying a fixed list of frames"""

    def __init__(self, frames=(), fail=False):
        self._frames = list(frames)
        self.fail = fail
        self.opened = False
        self.closed = False

    def open(self):
        if self.fail:
            raise CameraError("Cannot open camera 0")
        self.opened = True

    def frames(self):
        yield from self._frames

    def close(self):
        self.closed = True


def _drain(server):
    return [item.message for item in server._drain_outgoing()]


@pytest.fixture
def make_server(tmp_path):
    def factory(store=None, source=None):
        return DriftPickServer(
            config_path=str(tmp_path / "missing.yaml"),
            store=store or CalibrationStore(MemoryStorage()),
            source_factory=lambda: source or FakeSource()
        )
    return factory


def _send(server, connection, payload):
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    asyncio.run(server._handle_client_message(connection, raw))


def test_server_message_json():
    """Test messages serialize with type, data and timestamp"""
    data = json.loads(ServerMessage("pong", {'a': 1}, timestamp=5.0).to_json())
    assert data == {'type': 'pong', 'data': {'a': 1}, 'timestamp': 5.0}


def test_parse_viewport():
    """Test viewport payloads are validated"""
    assert _parse_viewport({'width': '1280', 'height': 720}) == (1280.0, 720.0)
    with pytest.raises(ValueError):
        _parse_viewport({'width': 0, 'height': 720})


class TestClientMessages:
    """Tests for messages handled on the asyncio side"""

    def test_ping(self, make_server):
        """Test ping is answered with pong"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'ping'})
        assert connection.sent[0]['type'] == 'pong'

    def test_invalid_json_ignored(self, make_server):
        """Test garbage input is dropped without a reply"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, "{not json")
        _send(server, connection, "[1, 2]")
        assert connection.sent == []

    def test_status(self, make_server):
        """Test status reports calibration and processing flags"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'command', 'command': 'status'})

        status = connection.sent[0]
        assert status['type'] == 'status'
        assert status['data']['processing_active'] is False
        assert status['data']['calibrated'] is False

    def test_calibration_requires_tracking(self, make_server):
        """Test calibration commands fail while tracking is off"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'command', 'command': 'start_calibration'})
        _send(server, connection, {'type': 'calibration_confirm', 'index': 0})

        assert [m['data']['success'] for m in connection.sent] == [False, False]
        assert server.command_queue.empty()

    def test_unknown_command(self, make_server):
        """Test unknown commands get a failure response"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'command', 'command': 'dance'})
        assert connection.sent[0]['data']['success'] is False

    def test_targets_are_queued(self, make_server):
        """Test region updates go through the command queue"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'targets', 'targets': [
            {'id': 'sku-1', 'x': 0, 'y': 0, 'width': 100, 'height': 100}
        ]})

        command, payload, _ = server.command_queue.get_nowait()
        assert command == 'targets'
        assert payload['regions'][0].identifier == 'sku-1'
        assert server.target_map.regions == []

    def test_malformed_targets_ignored(self, make_server):
        """Test regions missing coordinates are rejected"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'targets', 'targets': [{'id': 'x'}]})
        assert server.command_queue.empty()

    def test_viewport(self, make_server):
        """Test viewport messages update the confirmation viewport"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'viewport', 'width': 1920, 'height': 1080})
        assert server.viewport == (1920.0, 1080.0)

    def test_scores_without_tracking(self, make_server):
        """Test get_scores answers directly when no session exists"""
        server, connection = make_server(), FakeConnection()
        _send(server, connection, {'type': 'get_scores'})
        assert connection.sent[0]['type'] == 'scores'
        assert connection.sent[0]['data'] == {'targets': []}

    def test_start_tracking_camera_failure(self, make_server):
        """Test a camera that cannot open is reported to the client"""
        server = make_server(source=FakeSource(fail=True))
        connection = FakeConnection()
        _send(server, connection, {'type': 'command', 'command': 'start_tracking'})

        response = connection.sent[0]['data']
        assert response['success'] is False
        assert 'camera' in response['message']
        assert server.processing_active is False


class TestProcessing:
    """Tests for the processing-thread side, run synchronously"""

    def test_calibration_commands(self, make_server):
        """Test queued calibration commands drive the session"""
        server = make_server()
        server._start_session()
        server.session.process_frame(LandmarkFrame(FACE_LANDMARKS, 0))

        server._apply_command('start_calibration', {}, None)
        server._apply_command('calibration_confirm', {'index': 0, 'viewport': (1000.0, 500.0)}, None)

        started, confirmed = _drain(server)
        assert started.type == 'calibration_update'
        assert started.data['state'] == 'collecting'
        assert started.data['point_index'] == 0
        assert confirmed.data['result'] == 'accepted'
        assert confirmed.data['point_index'] == 1
        assert server.viewport == (1000.0, 500.0)

    def test_abort_reports_outcome(self, make_server):
        """Test aborting publishes the failed outcome"""
        server = make_server()
        server._start_session()
        server._apply_command('start_calibration', {}, None)
        server._apply_command('abort_calibration', {}, None)

        aborted = _drain(server)[-1]
        assert aborted.data['state'] == 'aborted'
        assert aborted.data['outcome']['success'] is False

    def test_frames_scored_and_broadcast(self, make_server, calibrated_store):
        """Test the processing loop publishes gaze and score updates"""
        source = FakeSource(LandmarkFrame(FACE_LANDMARKS, ts) for ts in (0, 33, 66))
        server = make_server(store=calibrated_store, source=source)
        server.source = source
        server._start_session()
        server.processing_active = True
        region = TargetRegion.from_dict({'id': 'A', 'x': 0, 'y': 0, 'width': 200, 'height': 200})
        server._enqueue('targets', {'regions': [region]})

        server._process_frames()

        assert server.processing_active is False
        assert source.closed is True
        assert server.frames_processed == 3

        messages = _drain(server)
        scores = [m.data for m in messages if m.type == 'score_update']
        assert scores[-1]['identifier'] == 'A'
        assert scores[-1]['tier'] == 'low'
        assert messages[-1].type == 'gaze_update'
        assert messages[-1].data['target'] == 'A'

    def test_stopped_processing_reads_no_frames(self, make_server, calibrated_store):
        """Test the loop exits at once when processing is inactive"""
        source = FakeSource(LandmarkFrame(FACE_LANDMARKS, ts) for ts in (0, 33))
        server = make_server(store=calibrated_store, source=source)
        server.source = source
        server._start_session()

        server._process_frames()
        assert server.frames_processed == 0
        assert source.closed is True

    def test_get_scores_goes_to_requester(self, make_server):
        """Test score snapshots are addressed to the asking client"""
        server = make_server()
        server._start_session()
        connection = FakeConnection()
        server._apply_command('get_scores', {}, connection)

        item = server._drain_outgoing()[0]
        assert item.recipient is connection
        assert item.message.type == 'scores'



class SlowSource(FakeSource):
    """Source whose open() takes a while and which streams no-face frames"""

    opened_count = 0

    def open(self):
        time.sleep(0.2)
        SlowSource.opened_count += 1
        self.opened = True

    def frames(self):
        ts = 0
        while not self.closed:
            ts += 33
            time.sleep(0.01)
            yield LandmarkFrame(None, ts)


class TestProcessingLifecycle:
    """Tests for starting and stopping the processing thread"""

    def test_concurrent_start_tracking_opens_one_source(self, tmp_path):
        """Test overlapping start_tracking commands start a single thread"""
        SlowSource.opened_count = 0
        server = DriftPickServer(
            config_path=str(tmp_path / "missing.yaml"),
            store=CalibrationStore(MemoryStorage()),
            source_factory=SlowSource
        )
        first, second = FakeConnection(), FakeConnection()
        message = json.dumps({'type': 'command', 'command': 'start_tracking'})

        async def start_twice():
            await asyncio.gather(
                server._handle_client_message(first, message),
                server._handle_client_message(second, message)
            )

        try:
            asyncio.run(start_twice())
            assert SlowSource.opened_count == 1
            replies = sorted(c.sent[0]['data']['message'] for c in (first, second))
            assert replies == ['Tracking already running', 'Tracking started']
        finally:
            server._stop_processing_sync()

        assert server.processing_thread is None
        assert server.session is None
        assert server.source.closed is True

    def test_stuck_thread_keeps_session(self, make_server):
        """Test the session survives a stop that timed out on join"""

        class StuckThread:
            def is_alive(self):
                return True

            def join(self, timeout=None):
                pass

        server = make_server()
        server._start_session()
        session = server.session
        server.processing_thread = StuckThread()

        server._stop_processing_sync()

        assert server.session is session
        assert session.active is False

    def test_command_without_session_is_dropped(self, make_server):
        """Test queued commands are ignored once the session is gone"""
        server = make_server()
        server._enqueue('start_calibration')
        server._apply_pending_commands()

        assert server.command_queue.empty()
        assert _drain(server) == []
