from ticket_scanner.models import Ticket, TicketStatusEnum
from ticket_scanner.services.cache import TicketCache


def test_len_tracks_refresh_remove_and_clear(db_session):
    db_session.add_all(
        [
            Ticket(ticket_id="A1", name="", email="", status=TicketStatusEnum.UNUSED),
            Ticket(ticket_id="B2", name="", email="", status=TicketStatusEnum.UNUSED),
        ]
    )
    db_session.commit()
    cache = TicketCache()
    assert len(cache) == 0
    assert not cache.loaded

    cache.refresh(db_session)
    assert len(cache) == 2

    cache.remove("A1")
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0
    assert cache.loaded
