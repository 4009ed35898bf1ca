"""
Smallest video files the games accept in place of their intro movies.

Intros are overwritten with a single black frame in the container format
the game expects, picked by file extension.
"""

from pathlib import PurePosixPath

# One-frame CAMV container holding a VP8 stream
EMPTY_CA_VP8 = bytes.fromhex(
    "43414d5601002900565038308002e0015555854201000000010000004a02000001000000"
    "21020000005042009d012a8002e001004708858588858488020200061604f70681649f6b"
    "db9b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27387b27"
    "387b273780feffab5080290000002102000001"
)

# One-frame Bink video
EMPTY_BIK = bytes.fromhex(
    "42494b690002000001000000c80100000100000080020000e00100001900000001000000"
    "0000000001000000901b000044ac0070000000004100000008020000e4000000901b0000"
    "20f91a30a5dbefaf821202b2c191b1114212d2516121f1e0c0e0c0c0d04061e285008240"
    "431673d2291a526882a585448ce90c71908284112591134205814b345b2c631508891102"
    "09c6509464e9a30280e844a3885f0128404a6854402d80c01c01098400412400fbc3870f"
    "1f108423942a24054b2101e9d0d0b0c8f8e0d8b090885040483838405068a030f13a0484"
    "048566792fdc282d155196cb43acd80b544608c225a2ca3104d6691394cbcc128434c14d"
    "ae3aea508b280cc735108dd24c1c88123004485904095b1c240000100060033000807000"
    "f8f0e1c3070000006800000057c17f65fc10110000000000000011000080206ddbb66ddb"
    "b60182b46ddbb66ddb06086200000000000000004090b66ddbb66ddb0041dab66ddbb66d"
    "0304110469dbb66ddbb60d10a46ddbb66ddb360085b6fdff00140428dab66dfbff010000"
    "0000000057c17e65ec0000000011080000001100008020ffffffffffffffffffffffff01"
    "4bfcffffffffffff1f58220200000000000000a0e0ff0b000000000057c17e65ec000000"
    "0011080000001100008020ffffffffffffffffffffffff014bfcffffffffffff1f582202"
    "00000000000000a0e0ff0b0000000000"
)

PLACEHOLDERS = {
    ".ca_vp8": EMPTY_CA_VP8,
    ".bik": EMPTY_BIK,
}


def placeholder_for(path: str) -> bytes:
    """Placeholder video matching the extension of path; unknown formats get an empty file."""
    return PLACEHOLDERS.get(PurePosixPath(path).suffix.lower(), b"")
