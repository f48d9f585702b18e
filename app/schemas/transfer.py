from __future__ import annotations

"""Transfer intents and transfer request/response payloads.

Intents are not stored on their own; they travel in ``Notification.meta``
and are parsed back with :data:`INTENT_ADAPTER` when the recipient responds.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from app.models.availability import DayOfWeek, ShiftKind


class ShiftOfferIntent(BaseModel):
    """Offer of ``from_user_id``'s selected cell to the notified recipient."""

    kind: Literal["shift_offer"] = "shift_offer"
    intent_id: str
    week_key: str
    from_user_id: int
    shift: ShiftKind
    day: DayOfWeek
    explicit: bool = False


class TransferApprovalIntent(BaseModel):
    """Accepted offer waiting for an admin decision."""

    kind: Literal["transfer_approval"] = "transfer_approval"
    intent_id: str
    week_key: str
    from_user_id: int
    to_user_id: int
    shift: ShiftKind
    day: DayOfWeek


class SwapApprovalIntent(BaseModel):
    """Swap proposal waiting for an admin decision."""

    kind: Literal["swap_approval"] = "swap_approval"
    intent_id: str
    week_key: str
    initiator_id: int
    initiator_shift: ShiftKind
    initiator_day: DayOfWeek
    counterpart_id: int
    counterpart_shift: ShiftKind
    counterpart_day: DayOfWeek


TransferIntent = Annotated[
    Union[ShiftOfferIntent, TransferApprovalIntent, SwapApprovalIntent],
    Field(discriminator="kind"),
]

INTENT_ADAPTER: TypeAdapter[TransferIntent] = TypeAdapter(TransferIntent)


class OfferRequest(BaseModel):
    """Offer a selected shift.

    ``from_user_id`` defaults to the caller; only admins may offer on behalf
    of someone else. With ``to_user_id`` the offer goes to that person only
    and the eligibility scan is skipped.
    """

    shift: ShiftKind
    day: DayOfWeek
    from_user_id: int | None = None
    to_user_id: int | None = None


class OfferResult(BaseModel):
    week_key: str
    recipients: list[int]


class SwapRequest(BaseModel):
    """Propose swapping the caller's shift with another employee's shift."""

    shift: ShiftKind
    day: DayOfWeek
    from_user_id: int | None = None
    their_user_id: int
    their_shift: ShiftKind
    their_day: DayOfWeek


class SwapResult(BaseModel):
    week_key: str
    committed: bool
    pending_approval: bool


class IntentResponse(BaseModel):
    """Outcome of accepting or declining a transfer intent."""

    notification_id: int
    kind: str
    accepted: bool
    committed: bool = False
    pending_approval: bool = False
    message: str = ""
