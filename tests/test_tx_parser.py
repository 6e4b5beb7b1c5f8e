from bagsscan.services.solana.tx_parser import (
    SOL_MINT,
    extract_new_mints,
    fee_payer,
    has_bags_suffix,
    is_launch_candidate,
)

REQUIRED = ["Instruction: CreateV2", "Instruction: InitializeMint2"]
POOL = ["initialize_virtual_pool_with_spl_token"]


def make_tx(*, outer=(), inner=(), pre=(), post=(), keys=("Payer111",)):
    return {
        "transaction": {"message": {"accountKeys": list(keys), "instructions": list(outer)}},
        "meta": {
            "innerInstructions": [{"index": 0, "instructions": list(inner)}] if inner else [],
            "preTokenBalances": [{"mint": mint} for mint in pre],
            "postTokenBalances": [{"mint": mint} for mint in post],
        },
    }


def init_mint(mint, kind="initializeMint2", program="spl-token"):
    return {"program": program, "parsed": {"type": kind, "info": {"mint": mint, "decimals": 9}}}


def test_launch_candidate_requires_all_markers_or_pool_marker():
    logs = ["Program log: Instruction: CreateV2", "Program log: Instruction: InitializeMint2"]
    assert is_launch_candidate(logs, REQUIRED, POOL)
    assert not is_launch_candidate(logs[:1], REQUIRED, POOL)
    assert is_launch_candidate(["Program log: initialize_virtual_pool_with_spl_token"], REQUIRED, POOL)
    assert not is_launch_candidate([], REQUIRED, POOL)


def test_mint_found_in_inner_instruction():
    tx = make_tx(
        outer=[{"programId": "Other", "data": "xx"}],
        inner=[{"program": "system", "parsed": {"type": "createAccount"}}, init_mint("NewMintBAGS")],
    )

    assert extract_new_mints(tx) == ["NewMintBAGS"]


def test_instruction_source_wins_over_balance_diff():
    tx = make_tx(outer=[init_mint("FromIx", kind="initializeMint")], post=["FromBalance"])

    assert extract_new_mints(tx) == ["FromIx"]


def test_balance_diff_fallback_skips_native_sol():
    tx = make_tx(pre=["OldMint"], post=["OldMint", SOL_MINT, "FreshMint"])

    assert extract_new_mints(tx) == ["FreshMint"]


def test_no_mint_found():
    assert extract_new_mints(make_tx(pre=["A"], post=["A"])) == []
    assert extract_new_mints(None) == []


def test_fee_payer_accepts_both_key_shapes():
    assert fee_payer(make_tx(keys=["Payer111", "Other"])) == "Payer111"
    assert fee_payer(make_tx(keys=[{"pubkey": "Payer222", "signer": True}])) == "Payer222"
    assert fee_payer(make_tx(keys=[])) is None


def test_bags_suffix():
    assert has_bags_suffix("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusBAGS")
    assert not has_bags_suffix("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9Pusbags")
