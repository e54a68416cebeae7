from .ticket import ImportResult, RedeemKind, RedeemRequest, RedeemResult, TicketRead

__all__ = [
    "ImportResult",
    "RedeemKind",
    "RedeemRequest",
    "RedeemResult",
    "TicketRead",
]
