from typing import Optional


class DecoderError(ValueError):
    """Base class for every error raised by the decoder and resolver."""


class MalformedAbiJson(DecoderError):
    pass


class UnsupportedType(DecoderError):
    def __init__(self, type_string: str, reason: str = "") -> None:
        self.type_string = type_string
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unsupported ABI type '{type_string}'{detail}.")


class InvalidHexInput(DecoderError):
    pass


class InvalidAddress(DecoderError):
    pass


class EncodingError(DecoderError):
    pass


class TruncatedPayload(DecoderError):
    def __init__(self, offset: int, needed: int, available: int, type_string: Optional[str] = None) -> None:
        self.offset = offset
        self.needed = needed
        self.available = available
        self.type_string = type_string
        what = f" for {type_string}" if type_string else ""
        super().__init__(
            f"Payload too short{what}: need {needed} bytes at offset {offset}, "
            f"only {available} available."
        )


class ReadLimitExceeded(DecoderError):
    def __init__(self, limit: int, payload_size: int, type_string: Optional[str] = None) -> None:
        self.limit = limit
        self.payload_size = payload_size
        self.type_string = type_string
        super().__init__(
            f"Decoding a {payload_size}-byte payload read more than {limit} bytes; "
            "offsets alias the same data too many times."
        )


class ValueOutOfRange(DecoderError):
    def __init__(self, type_string: str, offset: int, detail: str) -> None:
        self.type_string = type_string
        self.offset = offset
        super().__init__(f"Value at offset {offset} does not fit {type_string}: {detail}.")


class UnknownSelector(DecoderError):
    def __init__(self, selector: bytes) -> None:
        self.selector = selector
        super().__init__(f"Function selector 0x{selector.hex()} not found in ABI.")


class SelectorCollision(DecoderError):
    def __init__(self, selector: bytes, signatures: list) -> None:
        self.selector = selector
        self.signatures = list(signatures)
        super().__init__(
            f"Function selector 0x{selector.hex()} is ambiguous within the ABI: "
            + ", ".join(self.signatures)
            + "."
        )


class UnknownNetwork(DecoderError):
    pass


class ContractUnverified(DecoderError):
    def __init__(self, address: str, network: str) -> None:
        self.address = address
        self.network = network
        super().__init__(f"Contract {address} on {network} has no verified source/ABI.")


class TransportFailure(DecoderError):
    pass


class TransactionNotFound(DecoderError):
    def __init__(self, tx_hash: str, network: str) -> None:
        self.tx_hash = tx_hash
        self.network = network
        super().__init__(f"Transaction {tx_hash} not found on {network}.")


class CreationTransaction(DecoderError):
    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(
            f"Transaction {tx_hash} is a contract creation - no contract address to fetch ABI from."
        )
