from src.models.credentials import CredentialTuple, L1Proof, normalize_address
from src.models.order import AttemptIdentity, SignedOrder, TradeResult, TradingStatus

__all__ = [
    "AttemptIdentity",
    "CredentialTuple",
    "L1Proof",
    "SignedOrder",
    "TradeResult",
    "TradingStatus",
    "normalize_address",
]
