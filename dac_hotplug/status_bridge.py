"""Read-only ZeroMQ status endpoint.

A REP socket that answers ``STATUS`` with the latest arbiter snapshot as JSON.
It never feeds anything back into the arbiter.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Optional

import zmq

logger = logging.getLogger(__name__)

DEFAULT_POLL_MS = 500


class ArbiterStatusStore:
    """Latest arbiter snapshot, shared between the event loop and the responder."""

    def __init__(self) -> None:
        self._snapshot: dict[str, Any] = {"state": "unbound", "active": None}
        self._lock = threading.Lock()

    def update(self, snapshot: dict[str, Any]) -> None:
        with self._lock:
            self._snapshot = copy.deepcopy(snapshot)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._snapshot)


class StatusResponder:
    def __init__(
        self,
        store: ArbiterStatusStore,
        endpoint: str,
        *,
        poll_ms: int = DEFAULT_POLL_MS,
    ) -> None:
        self.store = store
        self.endpoint = endpoint
        self.poll_ms = max(1, int(poll_ms))
        self._socket: Optional[zmq.Socket] = None

    def bind(self) -> None:
        """Bind in the caller's thread so a bad endpoint fails at startup."""
        socket = zmq.Context.instance().socket(zmq.REP)
        socket.linger = 0
        socket.bind(self.endpoint)
        self._socket = socket
        logger.info("Status endpoint listening on %s", self.endpoint)

    def reply(self, request: bytes) -> dict[str, Any]:
        if request.strip().upper() == b"STATUS":
            return {"status": "ok", "data": self.store.snapshot()}
        return {"status": "error", "message": "only STATUS is supported"}

    def serve(self, stop: threading.Event) -> None:
        """Answer requests until ``stop`` is set, then close the socket."""
        socket = self._socket
        if socket is None:
            raise RuntimeError("status endpoint is not bound")
        try:
            while not stop.is_set():
                if not socket.poll(self.poll_ms, zmq.POLLIN):
                    continue
                socket.send_json(self.reply(socket.recv()))
        except zmq.ZMQError as e:
            logger.error("Status endpoint stopped: %s", e)
        finally:
            socket.close()
            self._socket = None

    def serve_in_background(self, stop: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self.serve, args=(stop,), name="dac_hotplug_status", daemon=True
        )
        thread.start()
        return thread
