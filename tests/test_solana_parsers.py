import base64
import json
import struct

import base58
import pytest
from solders.keypair import Keypair

from bagsscan.services.solana.bags_client import Creator, SwapQuote, pick_creator
from bagsscan.services.solana.metadata import (
    MetadataResolver,
    decode_metaplex_metadata,
    metadata_pda,
    parse_das_asset,
)
from bagsscan.services.solana.price_oracle import parse_market_data
from bagsscan.services.solana.rpc_client import parse_log_notification
from bagsscan.services.trading.wallet import WalletSigner


def test_parse_log_notification():
    raw = json.dumps(
        {
            "jsonrpc": "2.0",
            "method": "logsNotification",
            "params": {
                "result": {
                    "context": {"slot": 42},
                    "value": {"signature": "sig-1", "err": None, "logs": ["Program log: Instruction: CreateV2"]},
                },
                "subscription": 7,
            },
        }
    )

    event = parse_log_notification(raw)

    assert event.signature == "sig-1"
    assert event.slot == 42
    assert not event.failed
    assert event.logs == ["Program log: Instruction: CreateV2"]


def test_parse_log_notification_ignores_other_messages():
    assert parse_log_notification(json.dumps({"jsonrpc": "2.0", "result": 7, "id": 1})) is None
    assert parse_log_notification("not json") is None


def test_market_data_uses_first_pair_price_and_sums_volume():
    data = {
        "pairs": [
            {"priceUsd": "0.0012", "volume": {"h24": 1500}},
            {"priceUsd": "0.0011", "volume": {"h24": "500.5"}},
            {"priceUsd": None},
        ]
    }

    market = parse_market_data(data)

    assert market.price_usd == pytest.approx(0.0012)
    assert market.volume_24h == pytest.approx(2000.5)
    assert market.pair_count == 3


def test_market_data_without_pairs_is_empty():
    assert parse_market_data({"pairs": None}).has_price is False
    assert parse_market_data(None).volume_24h == 0.0


def test_swap_quote_from_payload_and_rate():
    quote = SwapQuote.from_payload(
        {"inAmount": "100000000", "outAmount": "2500000", "minOutAmount": "2400000", "priceImpactPct": "0.7"},
        input_mint="So11111111111111111111111111111111111111112",
        output_mint="MintA",
    )

    assert quote.out_amount == 2_500_000
    assert quote.price_impact_pct == pytest.approx(0.7)
    assert quote.rate == pytest.approx(25_000_000.0)
    assert SwapQuote.from_payload(None, input_mint="a", output_mint="b").rate == 0.0


def test_pick_creator_prefers_flagged_wallet():
    creators = [Creator.from_payload({"wallet": "Fee"}), Creator.from_payload({"wallet": "Dev", "isCreator": True})]

    assert pick_creator(creators).wallet == "Dev"
    assert pick_creator([Creator(wallet="Only")]).wallet == "Only"
    assert pick_creator([]) is None
    assert Creator.from_payload({"username": "nobody"}) is None


def _borsh(value: str) -> bytes:
    encoded = value.encode()
    return struct.pack("<I", len(encoded)) + encoded


def test_decode_metaplex_metadata():
    data = bytes(65) + _borsh("Alpha\x00\x00\x00") + _borsh("ALP\x00") + _borsh("https://uri")

    assert decode_metaplex_metadata(data) == ("Alpha", "ALP")
    assert decode_metaplex_metadata(b"\x00" * 10) is None


def test_parse_das_asset():
    result = {
        "content": {
            "metadata": {"name": "Alpha", "symbol": "ALP"},
            "links": {"image": "https://img/alpha.png"},
        }
    }

    metadata = parse_das_asset(result)

    assert (metadata.name, metadata.symbol, metadata.image_url) == ("Alpha", "ALP", "https://img/alpha.png")
    assert metadata.resolved
    assert parse_das_asset({"content": {"metadata": {"name": "Unknown", "symbol": "X"}}}) is None


class MetaplexOnlyRpc:
    def __init__(self, data: bytes | None):
        self.data = data
        self.requested = []

    async def get_asset(self, mint):
        raise RuntimeError("DAS not supported")

    async def get_account_info(self, address):
        self.requested.append(address)
        if self.data is None:
            return None
        return {"data": [base64.b64encode(self.data).decode(), "base64"]}


@pytest.mark.asyncio
async def test_resolver_falls_back_to_metaplex_then_placeholder():
    mint = str(Keypair().pubkey())
    rpc = MetaplexOnlyRpc(bytes(65) + _borsh("Beta") + _borsh("BET"))

    metadata = await MetadataResolver(rpc).resolve(mint)

    assert (metadata.name, metadata.symbol, metadata.source) == ("Beta", "BET", "metaplex")
    assert rpc.requested == [str(metadata_pda(mint))]

    placeholder = await MetadataResolver(MetaplexOnlyRpc(None)).resolve(mint)
    assert (placeholder.name, placeholder.symbol, placeholder.resolved) == ("Unknown", "UNKNOWN", False)


def test_wallet_signer_accepts_base58_and_json_secret():
    keypair = Keypair()
    secret = bytes(keypair)

    from_b58 = WalletSigner.from_secret(base58.b58encode(secret).decode())
    from_json = WalletSigner.from_secret(json.dumps(list(secret)))

    assert from_b58.public_key == str(keypair.pubkey())
    assert from_json.public_key == str(keypair.pubkey())


@pytest.mark.asyncio
async def test_ws_notifications_fan_out_to_subscribers():
    import asyncio

    from bagsscan.services.core.rate_limiter import RateLimitedClient
    from bagsscan.services.solana.rpc_client import SolanaRpcClient
    from config.settings import SolanaSettings

    client = SolanaRpcClient(SolanaSettings(), RateLimitedClient("rpc", min_interval_sec=0))
    received = []

    async def broken(event):
        raise RuntimeError("handler crashed")

    async def handler(event):
        received.append(event.signature)

    client.subscribe_logs(broken)
    client.subscribe_logs(handler)
    raw = json.dumps(
        {"method": "logsNotification", "params": {"result": {"value": {"signature": "sig-ws", "logs": []}}}}
    )

    await client._handle_ws_payload(raw)
    for _ in range(3):
        await asyncio.sleep(0)

    assert received == ["sig-ws"]
    await client.close()
