"""Camera QR scanning.

A :class:`ScanSession` owns at most one open decoder. The decoder is acquired
on ``start`` and released on every way out: a successful decode, an explicit
``stop``, a decoder failure, or leaving the ``with`` block.
"""
from abc import ABC, abstractmethod
from enum import Enum
import logging
import threading
import time
from typing import Callable

import cv2
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import ScannerError
from ..schemas import RedeemKind, RedeemResult, TicketRead
from . import redeem as redeem_service

logger = logging.getLogger(__name__)

NO_CODE_SCANNED = "No code scanned."


class QrDecoder(ABC):
    @property
    @abstractmethod
    def is_running(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def read(self) -> str | None:
        """Capture one frame and return its decoded text, if any."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class CameraQrDecoder(QrDecoder):
    def __init__(self, camera_index: int = 0) -> None:
        self.camera_index = camera_index
        self._capture = None
        self._detector = None

    @property
    def is_running(self) -> bool:
        return self._capture is not None

    def start(self) -> None:
        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise ScannerError(f"Could not open camera {self.camera_index}.")
        self._capture = capture
        self._detector = cv2.QRCodeDetector()

    def read(self) -> str | None:
        if self._capture is None or self._detector is None:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        text, _points, _rectified = self._detector.detectAndDecode(frame)
        return text or None

    def stop(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()

    def clear(self) -> None:
        self._detector = None


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class ScanSession:
    def __init__(
        self,
        decoder_factory: Callable[[], QrDecoder],
        on_decode: Callable[[str], None],
        fps: int = 10,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._decoder_factory = decoder_factory
        self._on_decode = on_decode
        self._interval = 1.0 / max(fps, 1)
        self._sleep = sleep
        self._clock = clock
        self._decoder: QrDecoder | None = None
        self._handled = False
        self._lock = threading.RLock()
        self.state = ScanState.IDLE

    @property
    def scanning(self) -> bool:
        return self.state is ScanState.SCANNING

    @property
    def decoder(self) -> QrDecoder | None:
        return self._decoder

    def start(self) -> None:
        with self._lock:
            if self.scanning:
                return
            decoder = self._decoder_factory()
            self._decoder = decoder
            self._handled = False
            self.state = ScanState.SCANNING
            try:
                decoder.start()
            except Exception as exc:
                self.stop()
                if isinstance(exc, ScannerError):
                    raise
                raise ScannerError(str(exc) or exc.__class__.__name__) from exc

    def poll(self) -> str | None:
        with self._lock:
            if not self.scanning or self._decoder is None:
                return None
            try:
                text = self._decoder.read()
            except Exception as exc:
                self.stop()
                raise ScannerError(str(exc) or exc.__class__.__name__) from exc
            if not text or self._handled:
                return None
            self._handled = True
            self.stop()
        self._on_decode(text)
        return text

    def stop(self) -> None:
        with self._lock:
            decoder, self._decoder = self._decoder, None
            self.state = ScanState.IDLE
            if decoder is None:
                return
            try:
                decoder.stop()
            except Exception:
                logger.warning("Failed to stop QR decoder", exc_info=True)
            try:
                decoder.clear()
            except Exception:
                logger.warning("Failed to clear QR decoder", exc_info=True)

    def run(self, max_polls: int | None = None, timeout: float | None = None) -> str | None:
        """Poll until a decode or stop; ends the session on limit or timeout."""
        deadline = None if timeout is None else self._clock() + timeout
        polls = 0
        try:
            while self.scanning:
                text = self.poll()
                if text is not None:
                    return text
                polls += 1
                if max_polls is not None and polls >= max_polls:
                    break
                if deadline is not None and self._clock() >= deadline:
                    break
                self._sleep(self._interval)
        finally:
            self.stop()
        return None

    def __enter__(self) -> "ScanSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class ScannerService:
    """Scanner screen state shared by the scanner routes."""

    def __init__(
        self,
        settings: Settings,
        decoder_factory: Callable[[], QrDecoder] | None = None,
        on_redeemed: Callable[[TicketRead], None] | None = None,
    ) -> None:
        self.settings = settings
        self._decoder_factory = decoder_factory or (
            lambda: CameraQrDecoder(settings.camera_index)
        )
        self._on_redeemed = on_redeemed
        self._session: ScanSession | None = None
        self._lock = threading.Lock()
        self.last_result: RedeemResult | None = None

    @property
    def scanning(self) -> bool:
        session = self._session
        return session is not None and session.scanning

    def _record(self, result: RedeemResult) -> RedeemResult:
        self.last_result = result
        if result.ticket is not None and self._on_redeemed is not None:
            self._on_redeemed(result.ticket)
        return result

    def submit_payload(self, db: Session, payload: str | None) -> RedeemResult:
        return self._record(redeem_service.redeem_payload(db, payload))

    def manual_redeem(self, db: Session, ticket_id: str | None) -> RedeemResult:
        return self._record(redeem_service.redeem(db, (ticket_id or "").strip()))

    def scan_once(self, db: Session) -> RedeemResult | None:
        """Open the camera, redeem the first decoded code, then release it.

        Returns None if a scan is already running.
        """
        if not self._lock.acquire(blocking=False):
            return None
        try:
            self.last_result = None
            session = ScanSession(
                self._decoder_factory,
                lambda text: self.submit_payload(db, text),
                fps=self.settings.scan_fps,
            )
            self._session = session
            try:
                with session:
                    session.run(timeout=self.settings.scan_timeout_seconds)
                if self.last_result is None:
                    self.last_result = RedeemResult(
                        kind=RedeemKind.NOSCAN, message=NO_CODE_SCANNED
                    )
            except ScannerError as exc:
                self.last_result = RedeemResult(kind=RedeemKind.ERROR, message=exc.message)
            return self.last_result
        finally:
            self._session = None
            self._lock.release()

    def stop(self) -> None:
        session = self._session
        if session is not None:
            session.stop()

    def clear_message(self) -> None:
        self.last_result = None

    def shutdown(self) -> None:
        self.stop()
