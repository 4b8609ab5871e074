"""SuperCollider OSC client for the MIXCRAFT judge.

The client plays SynthDefs on scsynth and runs the judge_tap analysis synth,
whose per-band magnitudes arrive as /judge/bins replies. It exposes them
through the two collaborator contracts the capture code expects: an
analysis tap (tap()) and playable sources (source()).
"""

import os
import subprocess
import sys
import tempfile
import threading
import time
from collections import deque
from typing import Any, Optional

from pythonosc import osc_server, dispatcher, osc_message_builder

from .config import (
    LOG_BUFFER_SIZE,
    REPLY_PORT,
    SCLANG_INIT_CODE,
    SCSYNTH_HOST,
    SCSYNTH_PORT,
    TAP_BAND_EDGES,
    TAP_BIN_COUNT,
    TAP_MIN_DB,
    TAP_REPLY_RATE,
    TAP_STALE_AFTER,
)
from .sclang import find_sclang
from .types import LogEntry, ServerStatus, TapFrame
from .utils import band_level_db, kill_process_on_port, magnitude_to_byte


class ReuseAddrOSCUDPServer(osc_server.ThreadingOSCUDPServer):
    """OSC server that allows address reuse for faster reconnection."""
    allow_reuse_address = True


class OSCAnalysisTap:
    """Analysis tap backed by the judge_tap synth.

    Magnitudes are mapped onto the 0-255 byte scale so captured features
    are measured the same way whichever tap produced them.
    """

    def __init__(self, client: "SCClient"):
        self._client = client
        self.bin_count = TAP_BIN_COUNT
        self._stale_reported = False

    def read_frequency_data(self) -> list[float]:
        frame = self._client.latest_tap_frame()
        if frame is None:
            return [0.0] * self.bin_count

        age = time.time() - frame.timestamp
        if age > TAP_STALE_AFTER:
            # A detached tap keeps returning its last frame
            if not self._stale_reported:
                self._client._add_log("tap", f"Tap data is stale ({age:.1f}s old)")
                self._stale_reported = True
        else:
            self._stale_reported = False

        values = [magnitude_to_byte(m) for m in frame.bands[:self.bin_count]]
        values.extend([0.0] * (self.bin_count - len(values)))
        return values


class SynthSource:
    """A gated SynthDef that can be triggered and released."""

    def __init__(self, client: "SCClient", synthdef: str, params: Optional[dict[str, Any]] = None):
        self._client = client
        self.synthdef = synthdef
        self.params = dict(params or {})
        self.node_id: Optional[int] = None

    def trigger(self) -> None:
        success, message, node_id = self._client.play_synth(self.synthdef, self.params)
        if not success:
            raise RuntimeError(message)
        self.node_id = node_id

    def release(self) -> None:
        if self.node_id is None:
            return
        self._client.release_synth(self.node_id)
        self.node_id = None


class SCClient:
    """Client for communicating with scsynth via OSC."""

    def __init__(self):
        self.status = ServerStatus()
        self._status_event = threading.Event()
        self._reply_server: osc_server.ThreadingOSCUDPServer | None = None
        # Use time-based starting ID to avoid collision across restarts
        self._node_id = 1_000_000 + (int(time.time() * 1000) & 0xFFFFF) * 1000
        self._node_lock = threading.Lock()
        self._scsynth_addr = (SCSYNTH_HOST, SCSYNTH_PORT)

        # Analysis tap state
        self._tap_node_id: Optional[int] = None
        self._tap_frame: Optional[TapFrame] = None
        self._tap_lock = threading.Lock()

        # Persistent sclang process for SynthDefs and OSC forwarding
        self._sclang_process: Optional[subprocess.Popen] = None
        self._sclang_init_file: Optional[str] = None

        self._log_buffer: deque[LogEntry] = deque(maxlen=LOG_BUFFER_SIZE)
        self._log_lock = threading.Lock()

    def _send_message(self, address: str, args: list) -> bool:
        """Send an OSC message to scsynth using the reply server's socket.

        Returns True if message was sent, False otherwise.
        """
        if not self._reply_server:
            return False
        try:
            builder = osc_message_builder.OscMessageBuilder(address=address)
            for arg in args:
                builder.add_arg(arg)
            msg = builder.build()
            self._reply_server.socket.sendto(msg.dgram, self._scsynth_addr)
            return True
        except OSError as e:
            sys.stderr.write(f"[SC] Failed to send {address}: {e}\n")
            return False

    def _add_log(self, category: str, message: str):
        """Add an entry to the log buffer (thread-safe)."""
        entry = LogEntry(timestamp=time.time(), category=category, message=message)
        with self._log_lock:
            self._log_buffer.append(entry)

    def _handle_status_reply(self, address: str, *args):
        """Handle /status.reply from scsynth."""
        if len(args) >= 9:
            self.status = ServerStatus(
                running=True,
                num_ugens=args[1],
                num_synths=args[2],
                num_groups=args[3],
                num_synthdefs=args[4],
                avg_cpu=args[5],
                peak_cpu=args[6],
                sample_rate=args[8],
            )
        self._status_event.set()

    def _handle_done(self, address: str, *args):
        """Handle /done messages."""
        if args:
            self._add_log("done", f"{args[0]} completed" + (f" {args[1:]}" if len(args) > 1 else ""))

    def _handle_fail(self, address: str, *args):
        """Handle /fail messages."""
        msg = f"FAIL: {' '.join(str(a) for a in args)}"
        self._add_log("fail", msg)
        sys.stderr.write(f"[SC] {msg}\n")

    def _handle_node_go(self, address: str, *args):
        """Handle /n_go messages (node started)."""
        if len(args) >= 2:
            self._add_log("node", f"Node {args[0]} started in group {args[1]}")

    def _handle_node_end(self, address: str, *args):
        """Handle /n_end messages (node freed).

        Used to detect when the tap synth is freed externally.
        """
        if len(args) >= 1:
            node_id = int(args[0])
            self._add_log("node", f"Node {node_id} ended")
            if node_id == self._tap_node_id:
                self._tap_node_id = None
                self._add_log("tap", "Tap synth was freed")

    def _handle_bins(self, address: str, *args):
        """Handle /judge/bins messages from the tap synth.

        Expected args: [node_id, reply_id, band0, ..., band15]
        """
        if len(args) < 2 + TAP_BIN_COUNT:
            return

        frame = TapFrame(
            timestamp=time.time(),
            bands=tuple(float(v) for v in args[2:2 + TAP_BIN_COUNT]),
        )
        with self._tap_lock:
            self._tap_frame = frame

    def _start_sclang(self) -> tuple[bool, str]:
        """Start persistent sclang process for SynthDefs and OSC forwarding."""
        self._stop_sclang()

        sclang = find_sclang()
        if not sclang:
            return False, "sclang not found"

        try:
            # Write init code to a temp file (sclang doesn't support -e flag)
            with tempfile.NamedTemporaryFile(mode='w', suffix='.scd', delete=False) as f:
                f.write(SCLANG_INIT_CODE)
                self._sclang_init_file = f.name

            # DEVNULL avoids pipe buffer deadlock on chatty sclang output
            self._sclang_process = subprocess.Popen(
                [sclang, self._sclang_init_file],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )

            # Give sclang time to compile and load SynthDefs
            time.sleep(2.0)

            if self._sclang_process.poll() is not None:
                exit_code = self._sclang_process.returncode
                self._sclang_process = None
                self._cleanup_sclang_init_file()
                return False, f"sclang exited unexpectedly with code {exit_code}"

            return True, "sclang started with judge SynthDefs and OSC forwarding"

        except OSError as e:
            self._sclang_process = None
            self._cleanup_sclang_init_file()
            return False, f"Failed to start sclang: {e}"

    def _cleanup_sclang_init_file(self):
        """Remove the temporary init file."""
        if self._sclang_init_file:
            try:
                os.unlink(self._sclang_init_file)
            except OSError:
                pass
            self._sclang_init_file = None

    def _stop_sclang(self):
        """Stop the persistent sclang process."""
        proc = self._sclang_process
        self._sclang_process = None
        if proc:
            try:
                proc.terminate()
                proc.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                proc.kill()
                try:
                    proc.wait(timeout=1.0)
                except subprocess.TimeoutExpired:
                    pass
        self._cleanup_sclang_init_file()

    def connect(self) -> tuple[bool, str]:
        """Connect to scsynth and start sclang with the judge SynthDefs."""
        if self._reply_server:
            status = self.get_status()
            if status.running:
                return True, f"Already connected to scsynth on port {SCSYNTH_PORT}"
            # Connection exists but not working - clean it up
            self._reply_server.shutdown()
            self._reply_server = None

        try:
            disp = dispatcher.Dispatcher()
            disp.map("/status.reply", self._handle_status_reply)
            disp.map("/done", self._handle_done)
            disp.map("/fail", self._handle_fail)
            disp.map("/n_go", self._handle_node_go)
            disp.map("/n_end", self._handle_node_end)
            disp.map("/judge/bins", self._handle_bins)

            # Try to bind, killing orphaned processes if needed
            for attempt in range(2):
                try:
                    self._reply_server = ReuseAddrOSCUDPServer((SCSYNTH_HOST, REPLY_PORT), disp)
                    break
                except OSError as e:
                    if e.errno in (48, 98) and attempt == 0:  # Address already in use (macOS, Linux)
                        kill_process_on_port(REPLY_PORT)
                        time.sleep(0.2)
                    else:
                        raise

            thread = threading.Thread(target=self._reply_server.serve_forever, daemon=True)
            thread.start()

            status = self.get_status()
            if not status.running:
                return False, "scsynth not responding. Make sure SuperCollider server is running."

            # Enable notifications for node events (/n_go, /n_end)
            self._send_message("/notify", [1])
            self._add_log("info", f"Connected to scsynth on port {SCSYNTH_PORT}")

            sclang_ok, sclang_msg = self._start_sclang()
            if sclang_ok:
                return True, f"Connected to scsynth on port {SCSYNTH_PORT}. {sclang_msg}"
            # Still usable for playback, but the tap SynthDef is missing
            return True, f"Connected to scsynth on port {SCSYNTH_PORT}. Warning: {sclang_msg} (tap may not work)"

        except OSError as e:
            return False, f"Failed to connect: {e}"

    def get_status(self) -> ServerStatus:
        """Query server status."""
        if not self._reply_server:
            return ServerStatus(running=False)

        self._status_event.clear()
        if not self._send_message("/status", []):
            return ServerStatus(running=False)
        if self._status_event.wait(timeout=1.0):
            return self.status
        return ServerStatus(running=False)

    def _next_node_id(self) -> int:
        """Get next available node ID (thread-safe)."""
        with self._node_lock:
            self._node_id += 1
            return self._node_id

    def play_synth(
        self,
        synthdef: str,
        params: Optional[dict[str, Any]] = None,
    ) -> tuple[bool, str, Optional[int]]:
        """Start a gated SynthDef with custom parameters.

        Args:
            synthdef: Name of the SynthDef to play (must be loaded in scsynth)
            params: Dictionary of parameter name -> value pairs

        Returns:
            (success, message, node_id) tuple
        """
        if not self._reply_server:
            return False, "Not connected to scsynth. Call judge_connect first.", None

        if not synthdef or not isinstance(synthdef, str):
            return False, "SynthDef name is required and must be a string", None

        node_id = self._next_node_id()
        args: list[Any] = [synthdef, node_id, 0, 0]  # add to head of default group

        for key, value in (params or {}).items():
            if not isinstance(key, str):
                return False, f"Parameter key must be string, got {type(key).__name__}", None
            if value is None:
                continue
            if isinstance(value, bool):
                args.extend([key, 1 if value else 0])
            elif isinstance(value, (int, float)):
                args.extend([key, float(value)])
            elif isinstance(value, str):
                args.extend([key, value])
            else:
                return False, f"Parameter '{key}' has unsupported type {type(value).__name__} (use bool, int, float, or str)", None

        if not self._send_message("/s_new", args):
            return False, "Failed to send OSC message to scsynth", None

        return True, f"Playing '{synthdef}' (node {node_id})", node_id

    def release_synth(self, node_id: int) -> tuple[bool, str]:
        """Release a gated synth (sets gate=0)."""
        if not self._reply_server:
            return False, "Not connected to scsynth"
        if self._send_message("/n_set", [node_id, "gate", 0]):
            return True, f"Released node {node_id}"
        return False, "Failed to send OSC message to scsynth"

    def start_tap(self) -> tuple[bool, str]:
        """Start the judge_tap synth on the main output bus.

        Requires judge_connect to be called first (which loads the SynthDef).
        """
        if not self._reply_server:
            return False, "Not connected to scsynth. Call judge_connect first."

        if self._tap_node_id is not None:
            return True, "Tap already running"

        node_id = self._next_node_id()
        if not self._send_message("/s_new", [
            "judge_tap",
            node_id,
            1,  # add to tail, so it runs after the synths it listens to
            0,
            "bus", 0,
            "replyRate", TAP_REPLY_RATE,
        ]):
            return False, "Failed to send OSC message to scsynth"

        self._tap_node_id = node_id
        with self._tap_lock:
            self._tap_frame = None

        return True, f"Tap started (monitoring output bus 0, {TAP_BIN_COUNT} bands)"

    def stop_tap(self) -> tuple[bool, str]:
        """Stop the judge_tap synth."""
        if not self._reply_server:
            return False, "Not connected to scsynth"

        if self._tap_node_id is None:
            return True, "Tap not running"

        if self._send_message("/n_free", [self._tap_node_id]):
            self._tap_node_id = None
            return True, "Tap stopped"
        return False, "Failed to send OSC message to scsynth"

    def is_tap_running(self) -> bool:
        return self._tap_node_id is not None

    def latest_tap_frame(self) -> Optional[TapFrame]:
        """Most recent tap frame, or None if nothing has arrived yet."""
        with self._tap_lock:
            return self._tap_frame

    def get_spectrum(self) -> tuple[bool, str, Optional[dict]]:
        """Get the latest tap frame as labeled bands.

        Returns (success, message, data_dict)
        """
        if self._tap_node_id is None:
            return False, "Tap not running. Call judge_start_tap first.", None

        frame = self.latest_tap_frame()
        if frame is None:
            return False, "No tap data received yet. The judge_tap SynthDef may have failed to load.", None

        age = time.time() - frame.timestamp
        if age > TAP_STALE_AFTER:
            return False, f"Tap data is stale ({age:.1f}s old).", None

        # Band i spans [edge(i-1), edge(i)); the first starts at 0 Hz and the last ends at Nyquist
        lows = [0] + TAP_BAND_EDGES
        highs = TAP_BAND_EDGES + [None]
        bands = []
        for low, high, magnitude in zip(lows, highs, frame.bands):
            db = band_level_db(magnitude) if magnitude > 0 else TAP_MIN_DB
            bands.append({
                "low": low,
                "high": high,
                "magnitude": round(magnitude, 6),
                "db": round(max(db, TAP_MIN_DB), 1),
                "level": round(magnitude_to_byte(magnitude), 1),
            })

        return True, "Spectrum data retrieved", {"bands": bands}

    def tap(self) -> OSCAnalysisTap:
        """Analysis tap reading this client's latest frame."""
        return OSCAnalysisTap(self)

    def source(self, synthdef: str, params: Optional[dict[str, Any]] = None) -> SynthSource:
        """Playable source for a SynthDef with fixed parameters."""
        return SynthSource(self, synthdef, params)

    def disconnect(self):
        """Disconnect from server and stop sclang."""
        if self._tap_node_id is not None:
            self.stop_tap()
        self._stop_sclang()
        if self._reply_server:
            self._reply_server.shutdown()
            self._reply_server = None

    def get_logs(self, limit: int = 50, category: Optional[str] = None) -> list[LogEntry]:
        """Get recent log entries.

        Args:
            limit: Maximum number of entries to return (default 50)
            category: Filter by category ('fail', 'done', 'node', 'tap', 'info') or None for all

        Returns:
            List of LogEntry objects, most recent last
        """
        with self._log_lock:
            entries = list(self._log_buffer)

        if category:
            entries = [e for e in entries if e.category == category]

        return entries[-limit:]

    def clear_logs(self):
        """Clear the log buffer."""
        with self._log_lock:
            self._log_buffer.clear()
