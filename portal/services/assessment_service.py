"""Module test: sample, snapshot, grade, record.

sample() and grade() are pure.  The service around them handles the
stateful part:

  start_test   gate check, draw k questions, keep the full snapshot
               (answer keys included) server-side under an opaque token
  submit_test  gate check, consume the snapshot for that token, grade
               against it, append the attempt, and on a pass force the
               module to complete in the same commit

The client only ever sees a token and the questions without their keys.
A token grades once.  If the attempt cannot be saved the snapshot is put
back so the learner can resubmit the same answers.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import random
import secrets
from collections.abc import Mapping, Sequence

from portal.core.config import SETTINGS
from portal.core.errors import AttemptNotFound, GradingInputMalformed, PersistenceUnavailable
from portal.core.metrics import TEST_ATTEMPTS
from portal.models.assessment import (
    AttemptSnapshot,
    Question,
    QuestionResult,
    TestAnswer,
    TestAttempt,
)
from portal.models.principal import Actor
from portal.models.submission import ClientMetadata
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.access_gate import AccessGate, Resource
from portal.services.cache import CacheService, cache_service
from portal.services.persistence import acknowledged, epoch_now, guarded_cache
from portal.services.progress_service import ProgressService
from portal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

_SYSTEM_RANDOM = random.SystemRandom()

DEFAULT_PASS_THRESHOLD = 70.0


# ---------------------------------------------------------------------------
# Sampler & grader
# ---------------------------------------------------------------------------


def sample(
    pool: Sequence[Question], k: int, rng: random.Random | None = None
) -> tuple[Question, ...]:
    """k distinct questions drawn uniformly without replacement.

    No stratification by domain tag: any k-subset is possible.
    """
    if not 0 < k <= len(pool):
        raise ValueError(f"cannot draw {k} questions from a pool of {len(pool)}")
    rng = rng or _SYSTEM_RANDOM
    return tuple(rng.sample(list(pool), k))


def _check_answer(question: Question, raw: object) -> str:
    if question.kind == "true_false":
        if isinstance(raw, bool):
            return "true" if raw else "false"
        if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
            return raw.strip().lower()
        raise GradingInputMalformed(f"question {question.id}: expected true or false")
    if not isinstance(raw, str):
        raise GradingInputMalformed(f"question {question.id}: expected a choice key")
    choice = raw.strip().lower()
    if choice not in question.option_set:
        raise GradingInputMalformed(f"question {question.id}: unknown choice {raw!r}")
    return choice


def grade(
    presented: Sequence[Question],
    submitted: Mapping[str, TestAnswer],
    *,
    user_id: str,
    module_id: str,
    pass_threshold: float = DEFAULT_PASS_THRESHOLD,
) -> TestAttempt:
    """Score a submission against the questions that were presented.

    Scoring is total.  An unanswered question, a malformed answer, or an
    answer for a question outside the snapshot earns zero for that
    question and is logged; it never fails the whole attempt.
    """
    presented_ids = {q.id for q in presented}
    for qid in submitted:
        if qid not in presented_ids:
            logger.warning(
                "Ignoring answer for question outside snapshot user=%s module=%s question=%s",
                user_id,
                module_id,
                qid,
            )

    results: dict[str, QuestionResult] = {}
    earned = 0
    possible = 0
    for question in presented:
        possible += question.points
        chosen: str | None = None
        if question.id in submitted:
            try:
                chosen = _check_answer(question, submitted[question.id])
            except GradingInputMalformed as exc:
                logger.warning(
                    "Malformed answer scored as zero user=%s module=%s: %s",
                    user_id,
                    module_id,
                    exc,
                )
        is_correct = chosen is not None and chosen == question.correct_choice
        awarded = question.points if is_correct else 0
        earned += awarded
        results[question.id] = QuestionResult(
            chosen=chosen,
            correct=question.correct_choice,
            is_correct=is_correct,
            points_awarded=awarded,
            explanation=question.explanation,
        )

    percent = round(100.0 * earned / possible, 2) if possible else 0.0
    return TestAttempt.new(
        user_id=user_id,
        module_id=module_id,
        sampled_question_ids=tuple(q.id for q in presented),
        per_question_result=results,
        total_score_percent=percent,
        passed=percent >= pass_threshold,
    )


# ---------------------------------------------------------------------------
# Snapshot store
# ---------------------------------------------------------------------------


class AttemptSnapshotStore:
    """Presented question sets, keyed by opaque attempt token."""

    def __init__(self, cache: CacheService | None = None, ttl_seconds: int | None = None) -> None:
        self._cache = cache if cache is not None else cache_service
        self._ttl = ttl_seconds if ttl_seconds is not None else SETTINGS.attempt_ttl_seconds

    @staticmethod
    def _key(token: str) -> str:
        return f"attempt:{token}"

    async def issue(
        self, user_id: str, module_id: str, questions: Sequence[Question]
    ) -> AttemptSnapshot:
        snapshot = AttemptSnapshot(
            token=secrets.token_urlsafe(24),
            user_id=user_id,
            module_id=module_id,
            questions=tuple(questions),
            issued_at=epoch_now(),
        )
        await self.save(snapshot)
        return snapshot

    async def save(self, snapshot: AttemptSnapshot) -> None:
        doc = {
            "user_id": snapshot.user_id,
            "module_id": snapshot.module_id,
            "issued_at": snapshot.issued_at,
            "questions": [q.to_snapshot() for q in snapshot.questions],
        }
        async with guarded_cache(
            operation="save_attempt_snapshot",
            user_id=snapshot.user_id,
            module_id=snapshot.module_id,
        ):
            await self._cache.set(self._key(snapshot.token), json.dumps(doc), self._ttl)

    async def take(self, token: str, user_id: str, module_id: str) -> AttemptSnapshot:
        """Consume the snapshot for token.

        A token that belongs to someone else, or to another module, is
        reported as not found and left in place.
        """
        async with guarded_cache(
            operation="take_attempt_snapshot", user_id=user_id, module_id=module_id
        ):
            raw = await self._cache.get(self._key(token))
            if raw is None or not self._owned(raw, user_id, module_id):
                raise AttemptNotFound()
            raw = await self._cache.pop(self._key(token))
        if raw is None:
            # Lost the race to a concurrent submission of the same token
            raise AttemptNotFound()
        doc = json.loads(raw)
        return AttemptSnapshot(
            token=token,
            user_id=doc["user_id"],
            module_id=doc["module_id"],
            questions=tuple(Question.from_snapshot(q) for q in doc["questions"]),
            issued_at=int(doc.get("issued_at", 0)),
        )

    @staticmethod
    def _owned(raw: str, user_id: str, module_id: str) -> bool:
        try:
            doc = json.loads(raw)
        except ValueError:
            return False
        return doc.get("user_id") == user_id and doc.get("module_id") == module_id


attempt_snapshots = AttemptSnapshotStore()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AssessmentService:
    def __init__(
        self,
        stores: Stores,
        snapshots: AttemptSnapshotStore | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._stores = stores
        self._snapshots = snapshots if snapshots is not None else attempt_snapshots
        self._rng = rng
        self._gate = AccessGate(stores)
        self._progress = ProgressService(stores)
        self._submissions = SubmissionService(stores)

    async def start_test(self, actor: Actor, module_id: str) -> AttemptSnapshot:
        module = catalog.get_module(module_id)
        await self._gate.require(actor, Resource.assessment(module_id))
        questions = sample(module.questions, module.test_sample_size, self._rng)
        snapshot = await self._snapshots.issue(actor.user_id, module_id, questions)
        logger.info(
            "Test started user=%s module=%s questions=%s",
            actor.user_id,
            module_id,
            ",".join(q.id for q in questions),
        )
        return snapshot

    async def submit_test(
        self,
        actor: Actor,
        module_id: str,
        token: str,
        answers: Mapping[str, TestAnswer],
        client: ClientMetadata | None = None,
    ) -> TestAttempt:
        module = catalog.get_module(module_id)
        await self._gate.require(actor, Resource.assessment(module_id))
        snapshot = await self._snapshots.take(token, actor.user_id, module_id)

        client = client or ClientMetadata()
        attempt = grade(
            snapshot.questions,
            answers,
            user_id=actor.user_id,
            module_id=module_id,
            pass_threshold=module.pass_threshold_percent,
        )
        attempt = dataclasses.replace(
            attempt,
            submitted_at=epoch_now(),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )

        try:
            async with acknowledged(
                self._stores,
                operation="submit_test",
                user_id=actor.user_id,
                module_id=module_id,
            ):
                await self._submissions.record_test_attempt(attempt, commit=False)
                if attempt.passed and actor.is_student():
                    await self._progress.mark_module_complete(
                        actor.user_id, module_id, commit=False
                    )
        except PersistenceUnavailable:
            await self._restore(snapshot)
            raise

        TEST_ATTEMPTS.labels(result="passed" if attempt.passed else "failed").inc()
        logger.info(
            "Test graded user=%s module=%s score=%.2f passed=%s",
            actor.user_id,
            module_id,
            attempt.total_score_percent,
            attempt.passed,
        )
        return attempt

    async def _restore(self, snapshot: AttemptSnapshot) -> None:
        """Put a consumed snapshot back so the learner can resubmit."""
        try:
            await self._snapshots.save(snapshot)
        except PersistenceUnavailable:
            # Already logged; the caller reports the store failure.
            logger.warning(
                "Attempt snapshot not restored user=%s module=%s",
                snapshot.user_id,
                snapshot.module_id,
            )

    async def recent_attempts(self, actor: Actor, module_id: str) -> list[TestAttempt]:
        catalog.get_module(module_id)
        return await self._submissions.recent_attempts(actor.user_id, module_id)
