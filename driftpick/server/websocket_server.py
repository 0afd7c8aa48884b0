"""
WebSocket server for DriftPick.

Exposes a tracking session to a browser extension: the extension publishes
the viewport and the rectangles of visible items, shows calibration dots and
forwards their confirmations; the server pushes gaze points, interest scores
and calibration progress back.

Camera frames are processed in one background thread. Every message that
mutates session state is queued and applied by that thread at the top of the
next frame, so the per-frame chain stays single-flow.
"""

import asyncio
import json
import threading
import time
from dataclasses import dataclass, field, asdict
from queue import Queue, Empty
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from websockets.exceptions import ConnectionClosed
from websockets.asyncio.server import ServerConnection, serve

from driftpick import constants as const
from driftpick.attention.interest_scorer import score_tier
from driftpick.attention.target_map import TargetRegion
from driftpick.calibration.calibration_manager import (
    CalibrationError,
    CalibrationStore,
    ConfirmationResult
)
from driftpick.data_acquisition.landmark_source import CameraLandmarkSource, CameraError
from driftpick.main import build_calibration_store, build_target_map, build_tracking_session
from driftpick.tracking import FrameResult, TrackingSession
from driftpick.utils.config_loader import get_section, load_config_or_default
from driftpick.utils.logger import setup_logger


@dataclass
class ServerMessage:
    """Message sent to clients"""
    type: str
    data: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_json(self) -> str:
        return json.dumps(asdict(self))


@dataclass
class Outgoing:
    """Queued message; recipient None means broadcast"""
    message: ServerMessage
    recipient: Optional[ServerConnection] = None


class DriftPickServer:
    """
    WebSocket server wrapping a DriftPick tracking session.

    Tracking (camera + model) starts lazily on a start_tracking command and
    stops without shutting the server down.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        config_path: str = "config/config.yaml",
        store: Optional[CalibrationStore] = None,
        source_factory: Optional[Callable[[], Any]] = None
    ):
        """
        Initialize the WebSocket server.

        Args:
            host: Host address to bind to (default localhost only)
            port: Port to listen on
            config_path: Path to DriftPick config
            store: Calibration store (JSON file from config when None)
            source_factory: Creates the landmark source (camera from config when None)
        """
        self.host = host
        self.port = port
        self.config = load_config_or_default(config_path)

        logging_config = get_section(self.config, 'logging')
        self.logger = setup_logger(
            log_level=logging_config.get('level', 'INFO'),
            log_dir=logging_config.get('log_directory', None),
            log_file=logging_config.get('log_file', None),
            console_output=True
        )

        self.store = store or build_calibration_store(self.config)
        self.store.load()
        self.target_map = build_target_map(self.config)
        self.source_factory = source_factory or self._default_source

        display_cfg = get_section(self.config, 'display')
        self.viewport: Tuple[float, float] = (
            float(display_cfg.get('width', const.DEFAULT_VIEWPORT_WIDTH)),
            float(display_cfg.get('height', const.DEFAULT_VIEWPORT_HEIGHT))
        )

        # WebSocket state
        self.clients: Set[ServerConnection] = set()
        self.running = False
        self._shutdown_event: Optional[asyncio.Event] = None

        # Processing state (owned by the processing thread while active)
        self.session: Optional[TrackingSession] = None
        self.source = None
        self.processing_thread: Optional[threading.Thread] = None
        self.processing_active = False
        self._processing_lock = threading.Lock()

        # Inbound session commands, outbound events, latest gaze point only
        self.command_queue: Queue = Queue()
        self.outbox: Queue = Queue()
        self.gaze_queue: Queue = Queue(maxsize=1)

        # Stats
        self.frames_processed = 0
        self.fps = 0.0
        self._fps_frame_count = 0
        self._last_fps_time = time.time()

    def _default_source(self) -> CameraLandmarkSource:
        camera_cfg = get_section(self.config, 'camera')
        return CameraLandmarkSource(
            camera_index=int(camera_cfg.get('index', const.DEFAULT_CAMERA_INDEX)),
            model_path=camera_cfg.get('model_path', 'face_landmarker.task')
        )

    # === Outbound ===

    def publish(self, message: ServerMessage, recipient: Optional[ServerConnection] = None):
        self.outbox.put(Outgoing(message, recipient))

    def _publish_gaze(self, result: FrameResult):
        message = ServerMessage("gaze_update", {
            'x': result.gaze_point[0],
            'y': result.gaze_point[1],
            'target': result.target,
        })
        # Keep only the latest point
        try:
            self.gaze_queue.get_nowait()
        except Empty:
            pass
        self.gaze_queue.put(message)

    def _on_score(self, identifier: str, score: int):
        self.publish(ServerMessage("score_update", {
            'identifier': identifier,
            'score': score,
            'tier': score_tier(score),
        }))

    def _calibration_message(self, session: TrackingSession, result: Optional[ConfirmationResult] = None) -> ServerMessage:
        calibration = session.calibration
        data: Dict[str, Any] = {
            'state': calibration.state.value,
            'total_points': len(calibration.points),
            'samples': len(calibration.samples),
        }
        if result is not None:
            data['result'] = result.value
        target = calibration.current_target
        if target is not None:
            data['point_index'] = calibration.current_index
            data['point'] = {'x_percent': target.x_percent, 'y_percent': target.y_percent}
        if calibration.outcome is not None and not calibration.is_collecting:
            data['outcome'] = asdict(calibration.outcome)
        return ServerMessage("calibration_update", data)

    def _status_message(self) -> ServerMessage:
        return ServerMessage("status", {
            'connected': True,
            'processing_active': self.processing_active,
            'fps': round(self.fps, 1),
            'frames_processed': self.frames_processed,
            'clients_connected': len(self.clients),
            'calibrated': self.store.is_calibrated,
            'calibrating': bool(self.session and self.session.calibration.is_collecting),
        })

    # === Processing thread ===

    def _start_session(self):
        self.session = build_tracking_session(self.config, self.store, resolver=self.target_map.resolve)
        self.session.scorer.add_listener(self._on_score)

    def _apply_command(self, command: str, payload: Dict[str, Any], recipient: Optional[ServerConnection]):
        """Apply one queued command (processing thread only)"""
        session = self.session
        if session is None:
            self.logger.warning(f"Dropping {command} command: no tracking session")
            return

        if command == 'targets':
            self.target_map.set_regions(payload['regions'])
        elif command == 'start_calibration':
            try:
                session.start_calibration()
            except CalibrationError as e:
                self.logger.warning(str(e))
            self.publish(self._calibration_message(session))
        elif command == 'calibration_confirm':
            viewport = payload.get('viewport') or self.viewport
            self.viewport = viewport
            result = session.confirm_calibration_point(payload['index'], viewport)
            self.publish(self._calibration_message(session, result))
        elif command == 'skip_point':
            session.skip_calibration_point()
            self.publish(self._calibration_message(session))
        elif command == 'abort_calibration':
            if session.calibration.is_collecting:
                session.abort_calibration()
            self.publish(self._calibration_message(session))
        elif command == 'get_scores':
            self.publish(ServerMessage("scores", session.scorer.snapshot()), recipient)
        else:
            self.logger.warning(f"Unknown session command: {command}")

    def _apply_pending_commands(self):
        while True:
            try:
                command, payload, recipient = self.command_queue.get_nowait()
            except Empty:
                return
            try:
                self._apply_command(command, payload, recipient)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Invalid {command} command: {e}")

    def _frames(self):
        """Camera frames with pending commands applied before each one"""
        for frame in self.source.frames():
            if not self.processing_active:
                return
            self._apply_pending_commands()
            yield frame

    def _process_frames(self):
        """Background thread: run the tracking session over camera frames"""
        self.logger.info("Starting frame processing thread...")
        try:
            for result in self.session.run(self._frames()):
                self.frames_processed += 1
                self._fps_frame_count += 1
                now = time.time()
                if now - self._last_fps_time >= 1.0:
                    self.fps = self._fps_frame_count / (now - self._last_fps_time)
                    self._fps_frame_count = 0
                    self._last_fps_time = now

                if result.gaze_point is not None:
                    self._publish_gaze(result)
        except Exception as e:
            self.logger.error(f"Error processing frames: {e}", exc_info=True)
        finally:
            self.processing_active = False
            self.source.close()
            self.logger.info("Frame processing thread stopped")

    def _start_processing_sync(self) -> bool:
        """
        Open the landmark source and start the processing thread

        Returns:
            False if a processing thread is already running
        """
        with self._processing_lock:
            if self.processing_active or self._thread_alive():
                return False
            source = self.source_factory()
            source.open()  # CameraError propagates to the caller
            self.source = source
            self._start_session()
            self.processing_active = True
            self.processing_thread = threading.Thread(target=self._process_frames, daemon=True)
            self.processing_thread.start()
            return True

    def _thread_alive(self) -> bool:
        return self.processing_thread is not None and self.processing_thread.is_alive()

    def _stop_processing_sync(self):
        """Stop tracking but keep the WebSocket server running"""
        self.processing_active = False
        if self.session is not None:
            self.session.stop()
        if self._thread_alive():
            self.processing_thread.join(timeout=2.0)
        if self._thread_alive():
            self.logger.warning("Processing thread did not stop within 2 s")
            return
        self.processing_thread = None
        self.session = None

    # === Client handling ===

    async def _respond(self, websocket: ServerConnection, command: str, success: bool, message: str = ""):
        await websocket.send(ServerMessage("command_response", {
            'command': command,
            'success': success,
            'message': message,
        }).to_json())

    def _enqueue(self, command: str, payload: Optional[Dict[str, Any]] = None,
                 recipient: Optional[ServerConnection] = None):
        self.command_queue.put((command, payload or {}, recipient))

    async def _handle_client(self, websocket: ServerConnection):
        client_id = f"{websocket.remote_address[0]}:{websocket.remote_address[1]}"
        self.logger.info(f"Client connected: {client_id}")
        self.clients.add(websocket)

        try:
            await websocket.send(self._status_message().to_json())
            async for message in websocket:
                await self._handle_client_message(websocket, message)
        except ConnectionClosed:
            self.logger.info(f"Client disconnected: {client_id}")
        finally:
            self.clients.discard(websocket)
            self.logger.info(f"Client removed: {client_id} (Total clients: {len(self.clients)})")

    async def _handle_client_message(self, websocket: ServerConnection, message: str):
        """
        Handle incoming message from a client.

        Args:
            websocket: The client's WebSocket connection
            message: The raw JSON message
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            self.logger.warning(f"Invalid JSON received: {message[:100]}")
            return
        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring non-object message: {message[:100]}")
            return

        msg_type = data.get('type')
        try:
            if msg_type == 'command':
                await self._handle_command(websocket, str(data.get('command')))
            elif msg_type == 'calibration_confirm':
                await self._handle_confirm(websocket, data)
            elif msg_type == 'targets':
                regions = [TargetRegion.from_dict(item) for item in data.get('targets') or []]
                self._enqueue('targets', {'regions': regions})
            elif msg_type == 'viewport':
                self.viewport = _parse_viewport(data.get('viewport') or data)
            elif msg_type == 'get_scores':
                if self.processing_active:
                    self._enqueue('get_scores', recipient=websocket)
                else:
                    await websocket.send(ServerMessage("scores", {'targets': []}).to_json())
            elif msg_type == 'ping':
                await websocket.send(json.dumps({'type': 'pong', 'timestamp': time.time()}))
            else:
                self.logger.warning(f"Unknown message type: {msg_type}")
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Malformed {msg_type} message: {e}")

    async def _handle_confirm(self, websocket: ServerConnection, data: Dict[str, Any]):
        if not self.processing_active:
            await self._respond(websocket, 'calibration_confirm', False, 'Tracking is not running.')
            return
        payload: Dict[str, Any] = {'index': int(data['index'])}
        if data.get('viewport'):
            payload['viewport'] = _parse_viewport(data['viewport'])
        self._enqueue('calibration_confirm', payload)

    async def _handle_command(self, websocket: ServerConnection, command: str):
        """Handle a command from a client."""
        self.logger.info(f"Received command: {command}")

        if command == 'start_tracking':
            try:
                started = await asyncio.to_thread(self._start_processing_sync)
            except CameraError as e:
                self.logger.error(f"Cannot start tracking: {e}")
                await self._respond(websocket, command, False, str(e))
                return
            await self._respond(websocket, command, True, 'Tracking started' if started else 'Tracking already running')
        elif command == 'stop_tracking':
            await asyncio.to_thread(self._stop_processing_sync)
            await self._respond(websocket, command, True, 'Tracking stopped (server still running)')
        elif command in ('start_calibration', 'skip_point', 'abort_calibration'):
            if not self.processing_active:
                await self._respond(websocket, command, False, 'Tracking is not running. Start tracking first.')
                return
            self._enqueue(command)
            await self._respond(websocket, command, True)
        elif command == 'status':
            await websocket.send(self._status_message().to_json())
        elif command in ('shutdown', 'stop_server'):
            await self._respond(websocket, command, True, 'Server shutting down')
            if self._shutdown_event is not None:
                self._shutdown_event.set()
        else:
            self.logger.warning(f"Unknown command: {command}")
            await self._respond(websocket, command, False, f'Unknown command: {command}')

    # === Broadcast ===

    def _drain_outgoing(self) -> List[Outgoing]:
        pending: List[Outgoing] = []
        while True:
            try:
                pending.append(self.outbox.get_nowait())
            except Empty:
                break
        try:
            pending.append(Outgoing(self.gaze_queue.get_nowait()))
        except Empty:
            pass
        return pending

    async def _broadcast_loop(self):
        """Send queued events to their recipient or to every client."""
        self.logger.info("Starting broadcast loop...")

        while self.running:
            pending = self._drain_outgoing()
            if not pending:
                await asyncio.sleep(0.01)
                continue

            for item in pending:
                payload = item.message.to_json()
                targets = [item.recipient] if item.recipient is not None else list(self.clients)
                await asyncio.gather(
                    *(self._safe_send(client, payload) for client in targets),
                    return_exceptions=True
                )

        self.logger.info("Broadcast loop stopped")

    async def _safe_send(self, websocket: ServerConnection, message: str):
        try:
            await websocket.send(message)
        except ConnectionClosed:
            self.clients.discard(websocket)

    async def start(self):
        """Start the WebSocket server and block until shutdown."""
        self.logger.info(f"Starting DriftPick WebSocket Server on ws://{self.host}:{self.port}")

        self._shutdown_event = asyncio.Event()
        self.running = True

        async with serve(self._handle_client, self.host, self.port):
            self.logger.info(f"WebSocket server listening on ws://{self.host}:{self.port}")
            self.logger.info("Press Ctrl+C to stop")

            broadcast_task = asyncio.create_task(self._broadcast_loop())
            try:
                await self._shutdown_event.wait()
            finally:
                self.running = False
                broadcast_task.cancel()
                await asyncio.to_thread(self._stop_processing_sync)

        self.logger.info("Server stopped")


def _parse_viewport(data: Dict[str, Any]) -> Tuple[float, float]:
    width = float(data['width'])
    height = float(data['height'])
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid viewport size: {width}x{height}")
    return (width, height)


def run_server(host: str = "127.0.0.1", port: int = 8765, config_path: str = "config/config.yaml"):
    """
    Run the WebSocket server.

    Args:
        host: Host address to bind to
        port: Port to listen on
        config_path: Path to config file
    """
    server = DriftPickServer(host=host, port=port, config_path=config_path)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        print("\nServer stopped by user")


if __name__ == "__main__":
    run_server()
