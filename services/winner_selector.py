"""Verifiable winner selection.

The winner index is ``SHA-256(seed + raffle_id) mod n`` over the participants
in draw order. Publishing the seed after the draw lets anyone replay it.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Sequence

from core.constants import RaffleDefaults
from core.exceptions import InsufficientParticipantsError
from database.models import Participation


def generate_seed() -> str:
    """Fresh 256-bit seed from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(RaffleDefaults.SEED_RANDOM_BYTES)


def draw_digest(random_seed: str, raffle_id: str) -> int:
    digest = hashlib.sha256(f"{random_seed}{raffle_id}".encode()).digest()
    return int.from_bytes(digest, "big")


def select_winner_index(participants: Sequence[Participation], random_seed: str, raffle_id: str) -> int:
    """Pick the winning position in ``participants``.

    Args:
        participants: Participations ordered by ``placed_at`` then id
        random_seed: Hex seed drawn after the last bet was placed
        raffle_id: Raffle identifier, mixed into the digest

    Returns:
        Index into ``participants``

    Raises:
        InsufficientParticipantsError: If ``participants`` is empty
    """
    if not participants:
        raise InsufficientParticipantsError("No confirmed participants to draw from", raffle_id)
    return draw_digest(random_seed, raffle_id) % len(participants)


def verify_draw(
    participants: Sequence[Participation], random_seed: str, raffle_id: str, winner_id: int
) -> bool:
    """Replay a recorded draw and check that it names ``winner_id``."""
    if not participants:
        return False
    index = select_winner_index(participants, random_seed, raffle_id)
    return participants[index].user_id == winner_id
