import pytest
from loguru import logger

from bagsscan.repositories import count_snapshots, list_assets
from bagsscan.services.solana.bags_client import Creator
from bagsscan.services.solana.launch_monitor import LaunchMonitor
from bagsscan.services.solana.rpc_client import LogEvent
from config.settings import LAUNCH_PROGRAM_ID, ScannerSettings

LAUNCH_LOGS = [
    "Program 6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P invoke [1]",
    "Program log: Instruction: CreateV2",
    "Program log: Instruction: InitializeMint2",
]
MINT = "NewMint1111111111111111111111111111111BAGS"


class FakeBags:
    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.calls = []
        self.has_api_key = True

    async def get_creators(self, mint):
        self.calls.append(mint)
        if not self.answers:
            return []
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


async def no_sleep(delay):
    return None


def launch_tx(mint=MINT):
    return {
        "transaction": {"message": {"accountKeys": ["FeePayer111"], "instructions": []}},
        "meta": {
            "logMessages": LAUNCH_LOGS,
            "innerInstructions": [
                {
                    "index": 0,
                    "instructions": [
                        {"program": "spl-token", "parsed": {"type": "initializeMint2", "info": {"mint": mint}}}
                    ],
                }
            ],
            "preTokenBalances": [],
            "postTokenBalances": [],
        },
    }


def make_monitor(rpc, bags, registry, scanner_settings):
    return LaunchMonitor(rpc, bags, registry, scanner_settings, program_id=LAUNCH_PROGRAM_ID, sleep=no_sleep)


@pytest.mark.asyncio
async def test_discovered_launch_is_registered_with_snapshot(rpc, registry, session_maker, scanner_settings):
    rpc.transactions["sig-1"] = [launch_tx()]
    bags = FakeBags([[Creator(wallet="Royalty", is_creator=False), Creator(wallet="Dev", is_creator=True)]])
    monitor = make_monitor(rpc, bags, registry, scanner_settings)
    await monitor.start()

    asset = await monitor.handle_log_event(LogEvent(signature="sig-1", logs=LAUNCH_LOGS))

    assert asset is not None
    assert asset.address == MINT
    assert asset.creator_address == "Dev"
    async with session_maker() as session:
        assert len(await list_assets(session)) == 1
        assert await count_snapshots(session, MINT) == 1
    assert monitor.stats.registered == 1


@pytest.mark.asyncio
async def test_failed_transaction_goes_to_audit_log(rpc, registry, session_maker, scanner_settings):
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), filter=lambda r: r["extra"].get("audit"))
    monitor = make_monitor(rpc, FakeBags(), registry, scanner_settings)
    await monitor.start()
    try:
        result = await monitor.handle_log_event(
            LogEvent(signature="sig-bad", logs=LAUNCH_LOGS, err={"InstructionError": [0, "Custom"]})
        )
    finally:
        logger.remove(sink_id)

    assert result is None
    assert monitor.stats.failed_tx == 1
    assert any("sig-bad" in record["message"] for record in records)
    async with session_maker() as session:
        assert await list_assets(session) == []


@pytest.mark.asyncio
async def test_non_launch_logs_are_filtered(rpc, registry, scanner_settings):
    bags = FakeBags()
    monitor = make_monitor(rpc, bags, registry, scanner_settings)
    await monitor.start()

    assert await monitor.handle_log_event(LogEvent(signature="sig-2", logs=["Program log: Instruction: Buy"])) is None
    assert monitor.stats.filtered == 0
    assert bags.calls == []


@pytest.mark.asyncio
async def test_duplicate_signature_processed_once(rpc, registry, scanner_settings):
    rpc.transactions["sig-1"] = [launch_tx()]
    bags = FakeBags([[Creator(wallet="Dev", is_creator=True)]])
    monitor = make_monitor(rpc, bags, registry, scanner_settings)
    await monitor.start()
    event = LogEvent(signature="sig-1", logs=LAUNCH_LOGS)

    await monitor.handle_log_event(event)
    await monitor.handle_log_event(event)

    assert bags.calls == [MINT]
    assert monitor.stats.registered == 1


@pytest.mark.asyncio
async def test_transaction_fetch_retried_once(rpc, registry, scanner_settings):
    rpc.transactions["sig-1"] = [None, launch_tx()]
    monitor = make_monitor(rpc, FakeBags([[Creator(wallet="Dev")]]), registry, scanner_settings)
    await monitor.start()

    asset = await monitor.process_signature("sig-1")

    assert asset is not None


@pytest.mark.asyncio
async def test_verification_retries_until_registry_indexes(rpc, registry, scanner_settings):
    rpc.transactions["sig-1"] = [launch_tx()]
    bags = FakeBags([RuntimeError("HTTP 500"), [], [Creator(wallet="Dev")]])
    monitor = make_monitor(rpc, bags, registry, scanner_settings)
    await monitor.start()

    asset = await monitor.process_signature("sig-1")

    assert asset is not None
    assert len(bags.calls) == 3


@pytest.mark.asyncio
async def test_unverified_mint_is_dropped(rpc, registry, session_maker, scanner_settings):
    rpc.transactions["sig-1"] = [launch_tx()]
    bags = FakeBags()
    monitor = make_monitor(rpc, bags, registry, scanner_settings)
    await monitor.start()

    assert await monitor.process_signature("sig-1") is None
    assert len(bags.calls) == scanner_settings.verify_retries + 1 == 4
    assert monitor.stats.dropped == 1
    async with session_maker() as session:
        assert await list_assets(session) == []


@pytest.mark.asyncio
async def test_verification_makes_first_call_plus_three_retries(rpc, registry):
    settings = ScannerSettings(verify_backoff_sec=2.0)
    delays = []

    async def record_sleep(delay):
        delays.append(delay)

    bags = FakeBags()
    monitor = LaunchMonitor(rpc, bags, registry, settings, program_id=LAUNCH_PROGRAM_ID, sleep=record_sleep)

    assert await monitor.verify(MINT) == []
    assert bags.calls == [MINT] * 4
    assert delays == [2.0, 4.0, 6.0]


@pytest.mark.asyncio
async def test_stopped_monitor_ignores_events(rpc, registry, scanner_settings):
    rpc.transactions["sig-1"] = [launch_tx()]
    monitor = make_monitor(rpc, FakeBags([[Creator(wallet="Dev")]]), registry, scanner_settings)
    await monitor.start()
    await monitor.stop()

    assert await monitor.handle_log_event(LogEvent(signature="sig-1", logs=LAUNCH_LOGS)) is None
    assert monitor.stats.received == 0


@pytest.mark.asyncio
async def test_scan_recent_checks_logs_and_skips_errors(rpc, registry, scanner_settings):
    rpc.signatures = [
        {"signature": "sig-ok", "err": None},
        {"signature": "sig-err", "err": {"InstructionError": [0, "x"]}},
        {"signature": "sig-buy", "err": None},
    ]
    rpc.transactions["sig-ok"] = [launch_tx()]
    buy_tx = launch_tx("OtherMint")
    buy_tx["meta"]["logMessages"] = ["Program log: Instruction: Buy"]
    rpc.transactions["sig-buy"] = [buy_tx]
    bags = FakeBags([[Creator(wallet="Dev")]])
    monitor = make_monitor(rpc, bags, registry, scanner_settings)

    registered = await monitor.scan_recent(limit=10)

    assert registered == 1
    assert bags.calls == [MINT]
