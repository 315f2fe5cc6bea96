"""
MCP server exposing ABI call-data decoding and contract ABI resolution.
"""

import argparse
from collections.abc import Mapping
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import configure_logging, load_config
from .service import DecoderService

server = FastMCP(
    name="abi-decoder-mcp",
    instructions="Decode Ethereum call data against contract ABIs, resolving verified ABIs and proxies via Etherscan.",
)

_service: Optional[DecoderService] = None


def _get_service() -> DecoderService:
    global _service
    if _service is None:
        cfg = load_config()
        configure_logging(cfg.log_level)
        _service = DecoderService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> Optional[list]:
    """Coerce a tool argument meant as a JSON array; strings and objects are rejected."""
    if value is None:
        return None
    if isinstance(value, (str, bytes, bytearray)):
        raise ValueError(f"{name} must be an array (e.g. ['0x...', 123]); got a string/bytes.")
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@server.tool(
    name="decode_calldata",
    title="Decode Call Data",
    description="Decode call data against a supplied ABI (JSON text or array). Returns function name/signature/selector and formatted parameters.",
)
def decode_calldata(abi: Any, data: str) -> dict:
    svc = _get_service()
    return svc.decode_calldata(abi, data)


@server.tool(
    name="decode_transaction",
    title="Decode Transaction Input",
    description="Fetch a transaction by hash, resolve the target contract ABI (following proxies) and decode its input.",
)
async def decode_transaction(tx_hash: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return await svc.decode_transaction(tx_hash, network)


@server.tool(
    name="decode_contract_call",
    title="Decode Call Data For Contract",
    description="Resolve a contract's verified ABI (following proxies, cached) and decode the supplied call data against it.",
)
async def decode_contract_call(address: str, data: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return await svc.decode_contract_call(address, data, network)


@server.tool(
    name="resolve_contract",
    title="Resolve Contract ABI",
    description="Resolve the effective ABI for a contract address, detecting minimal/transparent/UUPS proxies. Reports cache_used.",
)
async def resolve_contract(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return await svc.resolve_contract(address, network)


@server.tool(
    name="compute_selector",
    title="Compute Function Selector",
    description="Compute the 4-byte selector for a function signature such as transfer(address,uint256).",
)
def compute_selector(signature: str) -> dict:
    svc = _get_service()
    return svc.compute_selector(signature)


@server.tool(
    name="encode_function_data",
    title="Encode Function Call",
    description="Compute selector and ABI-encoded call data from function signature and arguments. `args` must be an array.",
)
def encode_function_data(function: str, args: Optional[Any] = None) -> dict:
    svc = _get_service()
    normalized_args = _normalize_array_param(args, "args")
    return svc.encode_function_data(function, normalized_args)


@server.tool(
    name="list_functions",
    title="List ABI Functions",
    description="List functions, events and errors in an ABI with canonical signatures, selectors and event topics.",
)
def list_functions(abi: Any) -> list:
    svc = _get_service()
    return svc.list_functions(abi)


@server.tool(
    name="decode_function_result",
    title="Decode Function Return Data",
    description="Decode return data against a function's outputs. `function` is a name, full signature or 0x selector.",
)
def decode_function_result(abi: Any, function: str, data: str) -> dict:
    svc = _get_service()
    return svc.decode_function_result(abi, function, data)


@server.tool(
    name="list_networks",
    title="List Networks",
    description="List networks supported for transaction fetching and ABI resolution.",
)
def list_networks() -> list:
    svc = _get_service()
    return svc.networks()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the ABI decoder MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = _build_parser().parse_args(argv)

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
