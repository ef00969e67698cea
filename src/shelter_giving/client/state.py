"""
Explicit state machines for the donation form and the like button.

Each machine is a transition table plus ``transition(state, event)``, which
either returns the next state or raises ``IllegalTransition``.
"""
from enum import Enum

from shelter_giving.client.errors import IllegalTransition


class DonationState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CREATING_INTENT = "creating_intent"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class DonationEvent(Enum):
    SUBMIT = "submit"
    VALIDATED = "validated"
    REJECTED = "rejected"
    INTENT_CREATED = "intent_created"
    CONFIRMED = "confirmed"
    ERROR = "error"
    RESET = "reset"


class LikeState(Enum):
    IDLE = "idle"
    LIKING = "liking"
    RECONCILING = "reconciling"


class LikeEvent(Enum):
    CLICK = "click"
    RESPONDED = "responded"
    SETTLED = "settled"
    FAILED = "failed"


DONATION_TRANSITIONS = {
    (DonationState.IDLE, DonationEvent.SUBMIT): DonationState.VALIDATING,
    (DonationState.FAILED, DonationEvent.SUBMIT): DonationState.VALIDATING,
    (DonationState.VALIDATING, DonationEvent.VALIDATED): DonationState.CREATING_INTENT,
    (DonationState.VALIDATING, DonationEvent.REJECTED): DonationState.FAILED,
    (DonationState.CREATING_INTENT, DonationEvent.INTENT_CREATED): DonationState.CONFIRMING,
    (DonationState.CREATING_INTENT, DonationEvent.ERROR): DonationState.FAILED,
    (DonationState.CONFIRMING, DonationEvent.CONFIRMED): DonationState.SUCCEEDED,
    (DonationState.CONFIRMING, DonationEvent.ERROR): DonationState.FAILED,
    (DonationState.FAILED, DonationEvent.RESET): DonationState.IDLE,
    (DonationState.SUCCEEDED, DonationEvent.RESET): DonationState.IDLE,
}

LIKE_TRANSITIONS = {
    (LikeState.IDLE, LikeEvent.CLICK): LikeState.LIKING,
    (LikeState.LIKING, LikeEvent.RESPONDED): LikeState.RECONCILING,
    (LikeState.LIKING, LikeEvent.FAILED): LikeState.IDLE,
    (LikeState.RECONCILING, LikeEvent.SETTLED): LikeState.IDLE,
    (LikeState.RECONCILING, LikeEvent.FAILED): LikeState.IDLE,
}

# the submit button stays disabled through these
BUSY_DONATION_STATES = frozenset({
    DonationState.VALIDATING,
    DonationState.CREATING_INTENT,
    DonationState.CONFIRMING,
})


def transition(state, event):
    table = DONATION_TRANSITIONS if isinstance(state, DonationState) else LIKE_TRANSITIONS
    try:
        return table[(state, event)]
    except KeyError:
        raise IllegalTransition(state, event) from None
