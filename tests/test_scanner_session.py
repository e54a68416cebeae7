from datetime import datetime

import pytest

from ticket_scanner.errors import ScannerError
from ticket_scanner.models import Ticket, TicketStatusEnum
from ticket_scanner.schemas import RedeemKind
from ticket_scanner.services.cache import TicketCache
from ticket_scanner.services.scanner import ScannerService, ScanSession, ScanState

from .helpers import FakeDecoder


def _session(decoder, decoded=None, **kwargs):
    decoded = decoded if decoded is not None else []
    return ScanSession(
        lambda: decoder, decoded.append, sleep=lambda seconds: None, **kwargs
    )


def test_decode_stops_camera_before_callback():
    decoder = FakeDecoder(frames=[None, "T9"])
    seen = []

    def on_decode(text):
        seen.append((text, decoder.is_running, session.state))

    session = ScanSession(lambda: decoder, on_decode, sleep=lambda seconds: None)
    session.start()

    assert session.run() == "T9"
    assert seen == [("T9", False, ScanState.IDLE)]
    assert decoder.stopped >= 1
    assert decoder.cleared >= 1
    assert session.decoder is None


def test_only_first_decode_is_acted_on():
    decoder = FakeDecoder(frames=["T1", "T2"])
    decoded = []
    session = _session(decoder, decoded)

    session.start()
    session.run()
    assert session.poll() is None

    assert decoded == ["T1"]


def test_start_while_scanning_is_noop():
    created = []

    def factory():
        created.append(FakeDecoder())
        return created[-1]

    session = ScanSession(factory, lambda text: None)
    session.start()
    session.start()

    assert len(created) == 1
    session.stop()
    assert created[0].running is False


def test_stop_is_idempotent():
    decoder = FakeDecoder()
    session = _session(decoder)
    session.start()

    session.stop()
    session.stop()

    assert session.state is ScanState.IDLE
    assert decoder.stopped == 1
    assert decoder.cleared == 1


def test_start_failure_releases_decoder():
    decoder = FakeDecoder(start_error=RuntimeError("camera busy"))
    session = _session(decoder)

    with pytest.raises(ScannerError, match="camera busy"):
        session.start()

    assert session.state is ScanState.IDLE
    assert decoder.cleared == 1


def test_read_failure_releases_decoder():
    decoder = FakeDecoder(read_error=RuntimeError("frame lost"))
    session = _session(decoder)
    session.start()

    with pytest.raises(ScannerError, match="frame lost"):
        session.poll()

    assert decoder.running is False
    assert session.state is ScanState.IDLE


def test_context_exit_releases_on_error():
    decoder = FakeDecoder()

    with pytest.raises(KeyError):
        with _session(decoder) as session:
            assert decoder.running is True
            raise KeyError("teardown")

    assert decoder.running is False
    assert session.state is ScanState.IDLE


def test_run_gives_up_after_poll_limit():
    decoder = FakeDecoder()
    session = _session(decoder)
    session.start()

    assert session.run(max_polls=3) is None
    assert decoder.running is False


def test_stop_failures_are_suppressed():
    class BrokenStop(FakeDecoder):
        def stop(self):
            super().stop()
            raise RuntimeError("already closed")

    decoder = BrokenStop()
    session = _session(decoder)
    session.start()

    session.stop()

    assert session.state is ScanState.IDLE
    assert decoder.cleared == 1


def test_scanner_service_redeems_and_patches_cache(db_session, settings):
    db_session.add(Ticket(ticket_id="T9", name="Jo", email="", status=TicketStatusEnum.UNUSED))
    db_session.commit()
    cache = TicketCache()
    cache.refresh(db_session)
    decoder = FakeDecoder(frames=["https://x.test/r?ticketId=T9"])
    scanner = ScannerService(settings, decoder_factory=lambda: decoder, on_redeemed=cache.patch)

    result = scanner.scan_once(db_session)

    assert result.kind is RedeemKind.OK
    assert scanner.last_result is result
    assert scanner.scanning is False
    assert decoder.running is False
    assert cache.tickets[0].status is TicketStatusEnum.USED


def test_scanner_service_reports_camera_errors(db_session, settings):
    decoder = FakeDecoder(start_error=ScannerError("Could not open camera 0."))
    scanner = ScannerService(settings, decoder_factory=lambda: decoder)

    result = scanner.scan_once(db_session)

    assert result.kind is RedeemKind.ERROR
    assert result.message == "Could not open camera 0."
    scanner.clear_message()
    assert scanner.last_result is None


def test_scanner_service_manual_redeem(db_session, settings):
    db_session.add(
        Ticket(
            ticket_id="M1",
            name="",
            email="",
            status=TicketStatusEnum.USED,
            used_at=datetime(2026, 3, 1),
        )
    )
    db_session.commit()
    scanner = ScannerService(settings, decoder_factory=FakeDecoder)

    assert scanner.manual_redeem(db_session, " M1 ").kind is RedeemKind.USED


def test_scanner_service_reports_timeout_without_code(db_session, settings):
    decoder = FakeDecoder()
    scanner = ScannerService(
        settings.model_copy(update={"scan_timeout_seconds": 0}),
        decoder_factory=lambda: decoder,
    )

    result = scanner.scan_once(db_session)

    assert result.kind is RedeemKind.NOSCAN
    assert result.message == "No code scanned."
    assert result.ticket is None
    assert decoder.running is False
