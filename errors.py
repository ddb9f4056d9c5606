"""
Error taxonomy for contract interaction.

Chain providers fail in many shapes: web3 exceptions carrying ``message`` and
``data``, JSON-RPC error dicts nested in ``args`` or ``rpc_response``, wallet
errors with numeric codes. ``normalize_error`` flattens any of them into one
``ChainFailure`` record and ``classify_failure`` runs an ordered pattern table
over it. Callers only ever see ``TachiError`` with a stable kind and message.
"""
import re
from enum import Enum
from typing import List, Optional, Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from pydantic import BaseModel
from web3.exceptions import ContractLogicError

ERROR_STRING_SELECTOR = "0x08c379a0"
PANIC_SELECTOR = "0x4e487b71"
USER_REJECTED_CODES = {4001, "4001", "ACTION_REJECTED"}
REVERT_CODES = {3, "3", "CALL_EXCEPTION", "UNPREDICTABLE_GAS_LIMIT"}


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    ALREADY_BET = "already_bet"
    MARKET_CLOSED = "market_closed"
    NOT_YET_CLOSED = "not_yet_closed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    USER_REJECTED = "user_rejected"
    REVERTED = "reverted"
    NOT_FOUND = "not_found"
    TRANSIENT_READ_FAILURE = "transient_read_failure"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


MESSAGES = {
    ErrorKind.VALIDATION: "Invalid request.",
    ErrorKind.UNAUTHORIZED: "Only the contract organizer can perform this action.",
    ErrorKind.ALREADY_BET: "You have already placed a bet on this market.",
    ErrorKind.MARKET_CLOSED: "Betting is closed for this market.",
    ErrorKind.NOT_YET_CLOSED: "The betting window for this market has not ended yet.",
    ErrorKind.INSUFFICIENT_FUNDS: "Insufficient funds to complete this transaction.",
    ErrorKind.USER_REJECTED: "The transaction was rejected in the wallet.",
    ErrorKind.REVERTED: "Transaction failed. Please check the market state and try again.",
    ErrorKind.NOT_FOUND: "Not found.",
    ErrorKind.TRANSIENT_READ_FAILURE: "Could not read contract state. Please try again.",
    ErrorKind.CONFIGURATION: "Contract connection is not configured.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}

HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 400,
    ErrorKind.ALREADY_BET: 400,
    ErrorKind.MARKET_CLOSED: 400,
    ErrorKind.NOT_YET_CLOSED: 400,
    ErrorKind.INSUFFICIENT_FUNDS: 400,
    ErrorKind.USER_REJECTED: 400,
    ErrorKind.NOT_FOUND: 404,
}

# First match wins; order matters where texts overlap
ERROR_PATTERNS = [
    (ErrorKind.USER_REJECTED, re.compile(r"user rejected|user denied|action_rejected|rejected by user", re.I)),
    (ErrorKind.ALREADY_BET, re.compile(r"already bet", re.I)),
    (ErrorKind.NOT_YET_CLOSED, re.compile(r"betting window not ended|window not ended|not yet closed", re.I)),
    (ErrorKind.MARKET_CLOSED, re.compile(
        r"betting (is )?closed|market (is )?closed|already resolved|betting time has ended", re.I)),
    (ErrorKind.UNAUTHORIZED, re.compile(r"only organi[sz]er|not (the )?organi[sz]er|unauthori[sz]ed", re.I)),
    (ErrorKind.INSUFFICIENT_FUNDS, re.compile(r"insufficient", re.I)),
    (ErrorKind.REVERTED, re.compile(
        r"gas required exceeds|cannot estimate gas|unpredictable_gas_limit|out of gas|revert", re.I)),
]

READ_NOT_FOUND_PATTERN = re.compile(
    r"does not exist|market not found|invalid market|out of bounds|panic 0x32", re.I)


class TachiError(Exception):
    """Error with a stable kind and a user-facing message from the taxonomy"""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None, reason: Optional[str] = None):
        self.kind = kind
        self.message = message or MESSAGES[kind]
        # Best-effort decoded revert reason, for logs only
        self.reason = reason
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.kind, 500)

    def to_payload(self) -> dict:
        return {"error": self.kind.value, "message": self.message}


class ValidationError(TachiError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.VALIDATION, message)


class NotFoundError(TachiError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.NOT_FOUND, message)


class ConfigurationError(TachiError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.CONFIGURATION, message)


class ChainFailure(BaseModel):
    reason: Optional[str] = None
    data: Optional[str] = None
    message: Optional[str] = None
    code: Optional[Union[int, str]] = None
    reverted: bool = False
    # Messages from wrapped errors, outermost first
    details: List[str] = []

    def texts(self) -> List[str]:
        """Candidate texts in precedence order: reason, decoded payload, provider messages"""
        texts = []
        if self.reason:
            texts.append(self.reason)
        decoded = decode_revert_data(self.data)
        if decoded:
            texts.append(decoded)
        if self.message:
            texts.append(self.message)
        texts.extend(self.details)
        return texts

    def best_reason(self) -> str:
        texts = self.texts()
        return texts[0] if texts else "reverted"


def decode_revert_data(data: Optional[str]) -> Optional[str]:
    """Decode an Error(string), Panic(uint256) or custom error payload"""
    if not isinstance(data, str) or not data.startswith("0x") or len(data) <= 10:
        return None
    selector = data[:10].lower()
    try:
        payload = bytes.fromhex(data[10:])
        if selector == ERROR_STRING_SELECTOR:
            return decode(["string"], payload)[0]
        if selector == PANIC_SELECTOR:
            panic_code = decode(["uint256"], payload)[0]
            return f"panic 0x{panic_code:02x}"
        # Custom errors: the text follows the offset and length words
        text = payload[64:].rstrip(b"\x00").decode("utf-8")
    except (ValueError, DecodingError):
        return None
    text = text.strip()
    if text and text.isprintable():
        return text
    return None


def _layer_fields(layer) -> dict:
    if isinstance(layer, dict):
        return layer
    fields = {}
    for attr in ("reason", "data", "message", "code", "error"):
        value = getattr(layer, attr, None)
        if value is not None:
            fields[attr] = value
    rpc_response = getattr(layer, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        fields.setdefault("error", rpc_response["error"])
    args = getattr(layer, "args", None)
    if args and isinstance(args[0], dict):
        fields.setdefault("error", args[0])
    if "message" not in fields and isinstance(layer, BaseException) and args and isinstance(args[0], str):
        fields["message"] = args[0]
    return fields


def normalize_error(exc) -> ChainFailure:
    """Flatten nested provider error shapes into one ChainFailure record"""
    failure = ChainFailure(reverted=isinstance(exc, ContractLogicError))
    layer = exc
    seen = set()
    while layer is not None and id(layer) not in seen and len(seen) < 6:
        seen.add(id(layer))
        fields = _layer_fields(layer)

        reason = fields.get("reason")
        if failure.reason is None and isinstance(reason, str) and reason:
            failure.reason = reason

        data = fields.get("data")
        if isinstance(data, dict):
            if failure.message is None and isinstance(data.get("message"), str):
                failure.message = data["message"]
            data = data.get("data")
        if failure.data is None and isinstance(data, str) and data.startswith("0x"):
            failure.data = data
            failure.reverted = True

        message = fields.get("message")
        if isinstance(message, str) and message:
            if failure.message is None:
                failure.message = message
            elif message != failure.message:
                failure.details.append(message)

        code = fields.get("code")
        if failure.code is None and isinstance(code, (int, str)):
            failure.code = code

        nested = fields.get("error")
        if nested is None and isinstance(layer, BaseException):
            nested = layer.__cause__
        layer = nested

    if failure.code in REVERT_CODES:
        failure.reverted = True
    return failure


def classify_failure(failure: ChainFailure) -> ErrorKind:
    if failure.code in USER_REJECTED_CODES:
        return ErrorKind.USER_REJECTED
    for text in failure.texts():
        for kind, pattern in ERROR_PATTERNS:
            if pattern.search(text):
                return kind
    if failure.reverted:
        return ErrorKind.REVERTED
    return ErrorKind.UNKNOWN


def classify_error(exc) -> TachiError:
    """Map any failure from a contract write onto the taxonomy"""
    if isinstance(exc, TachiError):
        return exc
    failure = normalize_error(exc)
    kind = classify_failure(failure)
    return TachiError(kind, reason=failure.best_reason())


def classify_read_error(exc) -> TachiError:
    """Reads never submit anything: a failure is either a missing market or transient"""
    if isinstance(exc, TachiError):
        return exc
    failure = normalize_error(exc)
    for text in failure.texts():
        if READ_NOT_FOUND_PATTERN.search(text):
            return TachiError(ErrorKind.NOT_FOUND, "Market not found", reason=text)
    return TachiError(ErrorKind.TRANSIENT_READ_FAILURE, reason=failure.best_reason())
