"""
Program-derived address (PDA) derivation.

A PDA is sha256(seed_1 || ... || seed_n || bump || program_id ||
"ProgramDerivedAddress") for the highest bump in 255..1 whose hash is NOT a
valid ed25519 point, so no private key can ever sign for it.

Pure and deterministic: the same (seeds, program) always yields the same
address. The campaign address is computed once to create a campaign and
again to look it up, so the seed is fixed and never varied on failure.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from solders.pubkey import Pubkey

from crowdfund.errors import DerivationError, DerivationExhaustedError

# Seed for campaign accounts: [CAMPAIGN_SEED, owner].
CAMPAIGN_SEED = b"crowdfunding"

MAX_SEEDS = 16
MAX_SEED_LEN = 32

_PDA_MARKER = b"ProgramDerivedAddress"


def _check_seeds(seeds: Sequence[bytes]) -> None:
    # Bump occupies one seed slot.
    if len(seeds) >= MAX_SEEDS:
        raise DerivationError(
            f"at most {MAX_SEEDS - 1} seeds allowed, got {len(seeds)}",
            details={"seed_count": len(seeds)},
        )
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise DerivationError(
                f"seed {i} is {len(seed)} bytes, max is {MAX_SEED_LEN}",
                details={"seed_index": i, "seed_len": len(seed)},
            )


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Hash ``seeds`` (bump included) into an off-curve address.

    Raises:
        DerivationError: If the seeds are invalid or the hash is on the curve.
    """
    if len(seeds) > MAX_SEEDS:
        raise DerivationError(f"at most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(_PDA_MARKER)
    candidate = Pubkey.from_bytes(hasher.digest())
    if candidate.is_on_curve():
        raise DerivationError("derived address lies on the ed25519 curve")
    return candidate


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
    """Search bumps 255..1 for the first off-curve address.

    Returns:
        (address, bump).

    Raises:
        DerivationError: If the seeds are invalid.
        DerivationExhaustedError: If every bump yields an on-curve point.
    """
    _check_seeds(seeds)
    for bump in range(255, 0, -1):
        try:
            return create_program_address([*seeds, bytes([bump])], program_id), bump
        except DerivationError:
            continue
    raise DerivationExhaustedError(
        "no off-curve program address for these seeds",
        details={"program_id": str(program_id)},
    )


def derive(seed: bytes, owner: Pubkey, program_id: Pubkey) -> Pubkey:
    """Derive the address for ``(seed, owner)`` under ``program_id``."""
    address, _ = find_program_address([seed, bytes(owner)], program_id)
    return address


def campaign_address(owner: Pubkey, program_id: Pubkey) -> Pubkey:
    """Address of the campaign created by ``owner``."""
    return derive(CAMPAIGN_SEED, owner, program_id)
