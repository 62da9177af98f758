"""Apply one identity assignment to every speaker record in a session group."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from campaign_scribe.diarization.grouper import (
    GroupingStrategy,
    IdentityOrIndexStrategy,
)
from campaign_scribe.diarization.models import (
    GroupingKey,
    SpeakerRecord,
    SpeakerRole,
)

logger = logging.getLogger(__name__)

# character_id -> owning player_id, or None when the character does not exist
CharacterOwnerLookup = Callable[[int], Optional[int]]
# player_id -> whether the player exists
PlayerExistsLookup = Callable[[int], bool]

CHARACTER_OWNERSHIP_MESSAGE = "Character must belong to the selected player."
UNKNOWN_PLAYER_MESSAGE = "The selected player does not exist."
UNKNOWN_CHARACTER_MESSAGE = "The selected character does not exist."


class ValidationError(Exception):
    """Exception raised when an identity assignment is invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(Exception):
    """Exception raised when a referenced session or recording does not exist."""

    pass


def validate_identity(
    player_id: Optional[int],
    character_id: Optional[int],
    character_owner: CharacterOwnerLookup,
    player_exists: Optional[PlayerExistsLookup] = None,
) -> None:
    """
    Check that assigned ids exist and the character belongs to the player.

    Player existence is only checked when player_exists is given.

    Raises:
        ValidationError: On player_id for an unknown player; on character_id
            for an unknown character or one owned by another player.
    """
    if player_id is not None and player_exists is not None:
        if not player_exists(player_id):
            raise ValidationError("player_id", UNKNOWN_PLAYER_MESSAGE)
    if character_id is None:
        return
    owner = character_owner(character_id)
    if owner is None:
        raise ValidationError("character_id", UNKNOWN_CHARACTER_MESSAGE)
    if player_id is None:
        return
    if owner != player_id:
        raise ValidationError("character_id", CHARACTER_OWNERSHIP_MESSAGE)


def coerce_role(role: Union[SpeakerRole, str]) -> SpeakerRole:
    """Return role as a SpeakerRole, raising ValidationError on unknown values."""
    try:
        return SpeakerRole(role)
    except ValueError as e:
        raise ValidationError("role", f"Unknown speaker role: {role!r}") from e


@dataclass(frozen=True)
class IdentityAssignment:
    """New role and identity for every record currently under ``grouping_key``."""

    grouping_key: GroupingKey
    role: SpeakerRole = SpeakerRole.UNKNOWN
    player_id: Optional[int] = None
    character_id: Optional[int] = None


@dataclass(frozen=True)
class PropagationResult:
    """Outcome of one propagation: the changed records and the full new state."""

    grouping_key: GroupingKey
    updated: tuple[SpeakerRecord, ...]
    records: tuple[SpeakerRecord, ...]

    @property
    def is_noop(self) -> bool:
        """True when no record matched the grouping key."""
        return not self.updated


class IdentityUpdatePropagator:
    """Applies identity assignments group-wide, all or nothing."""

    def __init__(
        self,
        character_owner: CharacterOwnerLookup,
        strategy: Optional[GroupingStrategy] = None,
        player_exists: Optional[PlayerExistsLookup] = None,
    ) -> None:
        """
        Initialize the propagator.

        Args:
            character_owner: Lookup from character id to owning player id.
            strategy: Grouping strategy used to find the target group.
            player_exists: Lookup telling whether a player id exists.
        """
        self.character_owner = character_owner
        self.player_exists = player_exists
        self.strategy = strategy or IdentityOrIndexStrategy()

    def apply(
        self,
        records: Sequence[SpeakerRecord],
        assignment: IdentityAssignment,
    ) -> PropagationResult:
        """
        Set role, player and character on every record matching the key.

        Matching uses each record's identity before the update, so only the
        pre-update group is touched. Input records are never mutated; the
        result holds new snapshots.

        Args:
            records: All speaker records of the session.
            assignment: Target group and the new identity.

        Returns:
            PropagationResult; ``is_noop`` when the group is empty.

        Raises:
            ValidationError: If a player or character does not exist, the
                character does not belong to the player, or the role is unknown. Nothing is changed in that case.
        """
        role = coerce_role(assignment.role)
        validate_identity(
            assignment.player_id,
            assignment.character_id,
            self.character_owner,
            self.player_exists,
        )

        updated: list[SpeakerRecord] = []
        new_state: list[SpeakerRecord] = []
        for record in records:
            if self.strategy.key_for(record) == assignment.grouping_key:
                record = record.with_identity(
                    role, assignment.player_id, assignment.character_id
                )
                updated.append(record)
            new_state.append(record)

        if not updated:
            logger.info(
                "No speaker records under %s; nothing to update",
                assignment.grouping_key,
            )
        else:
            logger.info(
                "Assigned %s to %d speaker record(s) under %s",
                role.value,
                len(updated),
                assignment.grouping_key,
            )
        return PropagationResult(
            grouping_key=assignment.grouping_key,
            updated=tuple(updated),
            records=tuple(new_state),
        )
