import argparse
import asyncio
import json
import sys
from typing import Optional

from .config import configure_logging, load_config
from .service import DecoderService


def _add_network(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network",
        required=False,
        help="Optional network override. Defaults to NETWORK env or mainnet.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode Ethereum call data against a contract ABI.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode call data with a supplied ABI")
    abi_group = decode_parser.add_mutually_exclusive_group(required=True)
    abi_group.add_argument("--abi", help="ABI JSON text.")
    abi_group.add_argument("--abi-file", help="Path to a file containing ABI JSON.")
    decode_parser.add_argument(
        "--data",
        required=True,
        help="Call data (0x-prefixed hex, selector + arguments).",
    )

    tx_parser = subparsers.add_parser("decode-tx", help="Fetch a transaction and decode its input")
    tx_parser.add_argument("--tx-hash", required=True, help="Transaction hash (0x-prefixed).")
    _add_network(tx_parser)

    contract_parser = subparsers.add_parser(
        "decode-contract", help="Resolve a contract's ABI and decode call data against it"
    )
    contract_parser.add_argument("--address", required=True, help="Contract address (0x-prefixed).")
    contract_parser.add_argument("--data", required=True, help="Call data (0x-prefixed hex).")
    _add_network(contract_parser)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve contract ABI (following proxies)")
    resolve_parser.add_argument("--address", required=True, help="Contract address (0x-prefixed).")
    _add_network(resolve_parser)

    selector_parser = subparsers.add_parser("selector", help="Compute a function selector")
    selector_parser.add_argument("--signature", required=True, help="Function signature, e.g. transfer(address,uint256).")

    encode_parser = subparsers.add_parser("encode", help="Encode call data from a signature and arguments")
    encode_parser.add_argument("--function", required=True, help="Function signature.")
    encode_parser.add_argument(
        "--args",
        required=False,
        default="[]",
        help="Arguments as a JSON array, e.g. '[\"0x...\", 1000]'.",
    )

    subparsers.add_parser("networks", help="List supported networks")

    return parser


def _load_abi(args: argparse.Namespace) -> str:
    if args.abi_file:
        with open(args.abi_file, "r", encoding="utf-8") as fh:
            return fh.read()
    return args.abi


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        configure_logging(config.log_level)
        service = DecoderService(config)

        if args.command == "decode":
            result = service.decode_calldata(_load_abi(args), args.data)
        elif args.command == "decode-tx":
            result = asyncio.run(service.decode_transaction(args.tx_hash, args.network))
        elif args.command == "decode-contract":
            result = asyncio.run(service.decode_contract_call(args.address, args.data, args.network))
        elif args.command == "resolve":
            result = asyncio.run(service.resolve_contract(args.address, args.network))
        elif args.command == "selector":
            result = service.compute_selector(args.signature)
        elif args.command == "encode":
            parsed_args = json.loads(args.args)
            if not isinstance(parsed_args, list):
                raise ValueError("--args must be a JSON array.")
            result = service.encode_function_data(args.function, parsed_args)
        else:
            result = service.networks()
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
