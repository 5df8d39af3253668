# FILE: services/turn_orchestrator.py
"""
Turn orchestrator (pattern router).

One chat turn runs through these stages, each taking and returning an
immutable TurnState:

    classify -> gate -> pre-call extract -> persist -> call
             -> re-gate -> post-call extract -> persist -> confirm -> sanitize

The gate can end the turn early with a paywall reply. A record is only
acknowledged once the persistence verifier has read it back.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

from configurations.config import DEFAULT_CURRENCY, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from core.intent import Entitlement, Intent
from models.conversation import ChatReply, ChatRequest, TurnContext
from models.records import TargetRecord, TransactionRecord, WriteResult
from services.entitlement import (
    build_paywall_reply,
    is_paid_reply,
    requires_premium,
    resolve_entitlement,
)
from services.financial_summary import load_profile_currency, load_summary
from services.intent_classifier import classify
from services.limit_extractor import LIMIT_CONFIRM_RE, TARGET_CONFIRM_RE, extract_limits
from services.persistence import PersistenceVerifier
from services.prompt_builder import build_instruction
from services.replies import SAVE_FAILED_REPLY, confirmation_lines, has_success_marker
from services.sanitizer import sanitize_reply
from services.target_extractor import extract_target
from services.transaction_extractor import CONFIRMATION_RE, extract_postcall, extract_precall

# -----------------------------
# Logging Setup
# -----------------------------
logger = logging.getLogger("turn_orchestrator")
logger.setLevel(logging.INFO)
if not logger.handlers:
    fh = logging.FileHandler("turn_orchestrator.log")
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh.setFormatter(formatter)
    logger.addHandler(fh)


Record = Union[TransactionRecord, TargetRecord]


@dataclass(frozen=True)
class TurnState:
    """Everything a turn has decided so far. Stages return a new copy."""

    owner_id: str
    context: TurnContext
    entitlement: Entitlement = Entitlement.FREE
    currency: str = DEFAULT_CURRENCY
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    intent: Optional[Intent] = None
    paywalled: bool = False
    reply: Optional[str] = None
    pending: Tuple[Record, ...] = ()
    saved: Tuple[Record, ...] = ()
    results: Tuple[WriteResult, ...] = ()
    precall_saved: bool = False
    save_failed: bool = False
    requires_upgrade: bool = False

    def evolve(self, **changes) -> "TurnState":
        return replace(self, **changes)

    @property
    def confirmed_results(self) -> List[WriteResult]:
        return [r for r in self.results if r.confirmed]

    def to_reply(self) -> ChatReply:
        confirmed = self.confirmed_results
        first = confirmed[0] if confirmed else None
        return ChatReply(
            replyText=self.reply or "",
            requiresUpgrade=self.requires_upgrade,
            createdRecordId=first.id if first else None,
            createdRecordType=first.record_type if first else None,
            createdRecordIds=[r.id for r in confirmed],
        )


# -----------------------------
# Pure stages
# -----------------------------
def classify_stage(state: TurnState) -> TurnState:
    return state.evolve(intent=classify(state.context))


def gate_stage(state: TurnState) -> TurnState:
    if state.entitlement.is_premium:
        return state.evolve(paywalled=False)
    return state.evolve(paywalled=requires_premium(state.intent, state.context))


def precall_extract_stage(state: TurnState, now: datetime) -> TurnState:
    record = extract_precall(state.context, state.currency, now)
    return state.evolve(pending=(record,) if record else ())


def reply_stage(state: TurnState, reply: str) -> TurnState:
    return state.evolve(reply=reply, context=state.context.with_reply(reply))


def regate_stage(state: TurnState) -> TurnState:
    """A free user never sees a paid-shaped reply, whatever the model produced."""
    if state.entitlement.is_premium or not is_paid_reply(state.reply):
        return state
    return state.evolve(requires_upgrade=True)


def postcall_extract_stage(state: TurnState, now: datetime) -> TurnState:
    ctx = state.context
    pending: Tuple[Record, ...] = ()
    if state.entitlement.is_premium:
        limits = extract_limits(ctx, state.currency)
        if limits:
            pending = tuple(limits)
        else:
            target = extract_target(ctx, state.currency, now.date())
            if target:
                pending = (target,)
    if not pending and state.intent is not None and state.intent.records_transaction():
        record = extract_postcall(ctx, state.currency, now)
        if record:
            pending = (record,)
    return state.evolve(pending=pending)


def claims_saved(reply: Optional[str]) -> bool:
    if not reply:
        return False
    return any(p.search(reply) for p in (CONFIRMATION_RE, LIMIT_CONFIRM_RE, TARGET_CONFIRM_RE))


def confirm_stage(state: TurnState) -> TurnState:
    """
    Verified saves are always acknowledged; anything else that sounds like a
    save is replaced with the honest failure message.
    """
    if state.save_failed:
        return state.evolve(reply=SAVE_FAILED_REPLY)
    if state.saved:
        if has_success_marker(state.reply):
            return state
        lines = "\n".join(confirmation_lines(state.saved))
        return state.evolve(reply=f"{state.reply.rstrip()}\n\n{lines}" if state.reply else lines)
    if claims_saved(state.reply):
        return state.evolve(reply=SAVE_FAILED_REPLY)
    return state


def sanitize_stage(state: TurnState) -> TurnState:
    return state.evolve(reply=sanitize_reply(state.reply or ""))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Orchestrator
# -----------------------------
class TurnOrchestrator:
    """
    Runs one chat turn against a datastore and a completion client.
    Completion failures propagate after any record saved this turn is removed.
    """

    def __init__(self, db, completion, verifier: Optional[PersistenceVerifier] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.completion = completion
        self.verifier = verifier or PersistenceVerifier(db)
        self.clock = clock

    async def _persist(self, state: TurnState) -> TurnState:
        """Write every pending record; one failure undoes the whole batch."""
        written: List[WriteResult] = []
        for record in state.pending:
            result = await self.verifier.write(state.owner_id, record)
            written.append(result)
            if not result.confirmed:
                logger.warning(
                    f"[PERSIST] user_id={state.owner_id} type={result.record_type} "
                    f"verified=False error={result.error}"
                )
                for done in written:
                    await self.verifier.discard(state.owner_id, done)
                return state.evolve(pending=(), save_failed=True)
        return state.evolve(
            pending=(),
            saved=state.saved + tuple(state.pending),
            results=state.results + tuple(written),
        )

    async def _rollback(self, state: TurnState) -> None:
        for result in state.confirmed_results:
            await self.verifier.discard(state.owner_id, result)

    async def _paywall(self, state: TurnState) -> ChatReply:
        text = await build_paywall_reply(state.context, self.completion)
        if state.saved:
            text = "\n\n".join(confirmation_lines(state.saved) + [text])
        logger.info(f"[GATE] user_id={state.owner_id} intent={state.intent.value if state.intent else None} paywall")
        return state.evolve(reply=text, requires_upgrade=True).to_reply()

    async def handle_turn(self, request: ChatRequest) -> ChatReply:
        owner_id = request.userId
        now = self.clock()
        state = TurnState(
            owner_id=owner_id,
            context=TurnContext.from_messages(request.messages),
            max_tokens=request.maxTokens,
            temperature=request.temperature,
        )

        entitlement = await resolve_entitlement(self.db, owner_id, request.entitlement)
        currency = await load_profile_currency(self.db, owner_id, request.currency)
        state = classify_stage(state.evolve(entitlement=entitlement, currency=currency))
        logger.info(
            f"[ROUTING] user_id={owner_id} intent={state.intent.value if state.intent else None} "
            f"entitlement={entitlement.value} messages={len(request.messages)} "
            f"last_len={len(state.context.last_user_text)}"
        )

        state = gate_stage(state)
        if state.paywalled:
            return await self._paywall(state)

        # Pre-call: unambiguous add-income / add-expense only
        state = precall_extract_stage(state, now)
        if state.pending:
            state = await self._persist(state)
            if state.save_failed:
                logger.warning(f"[PRECALL] user_id={owner_id} save failed, no model call")
                return state.evolve(reply=SAVE_FAILED_REPLY).to_reply()
            state = state.evolve(precall_saved=True)
            logger.info(f"[PRECALL] user_id={owner_id} saved ids={[r.id for r in state.confirmed_results]}")

        # Entitlement may have changed while we were writing
        entitlement = await resolve_entitlement(self.db, owner_id, request.entitlement)
        if entitlement is not state.entitlement:
            state = gate_stage(state.evolve(entitlement=entitlement))
            if state.paywalled:
                return await self._paywall(state)

        summary = None
        if entitlement.is_premium:
            summary = await load_summary(self.db, owner_id, state.currency, now=now)
        instruction = build_instruction(entitlement, state.currency, summary, state.saved)

        try:
            text = await self.completion.complete(
                state.context.messages,
                instruction,
                max_tokens=state.max_tokens,
                temperature=state.temperature,
            )
        except Exception as e:
            logger.error(f"[COMPLETION] user_id={owner_id} failed: {type(e).__name__}: {e}")
            await self._rollback(state)
            raise
        state = reply_stage(state, text)

        state = regate_stage(state)
        if state.requires_upgrade:
            logger.warning(f"[REGATE] user_id={owner_id} paid-shaped reply for free user discarded")
            return await self._paywall(state)

        if not state.precall_saved:
            state = postcall_extract_stage(state, now)
            if state.pending:
                state = await self._persist(state)
                logger.info(
                    f"[POSTCALL] user_id={owner_id} saved={len(state.saved)} failed={state.save_failed}"
                )

        state = sanitize_stage(confirm_stage(state))
        return state.to_reply()
