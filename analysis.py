"""
The chapter analysis run: per-chapter locking, context loading, the two model calls,
persistence of their results and the chapter status transitions.
"""
import logging
import uuid
from datetime import datetime

from errors import NotFoundError
from models import db, Book, Chapter, ChapterStatus, ChapterSummary, EditingFeedback, GenerationLog
from schemas import ChapterContext

logger = logging.getLogger(__name__)


class AnalysisLock:
    """
    Advisory lock allowing at most one in-flight analysis per chapter.

    Backed by Redis ``SET key value NX EX ttl``; the value is a per-acquisition token so a run
    never releases a lock that expired and was taken over by another run.
    """

    def __init__(self, redis_client, ttl=2000):
        self.redis = redis_client
        self.ttl = ttl
        self._tokens = {}

    @staticmethod
    def key(chapter_id):
        return f"analysis_lock:{chapter_id}"

    def acquire(self, chapter_id):
        token = uuid.uuid4().hex
        was_set = self.redis.set(self.key(chapter_id), token, ex=self.ttl, nx=True)
        if was_set:
            self._tokens[chapter_id] = token
        return bool(was_set)

    def release(self, chapter_id):
        token = self._tokens.pop(chapter_id, None)
        if token is None:
            return
        current = self.redis.get(self.key(chapter_id))
        if isinstance(current, bytes):
            current = current.decode("utf-8")
        if current == token:
            self.redis.delete(self.key(chapter_id))

    def is_locked(self, chapter_id):
        return bool(self.redis.exists(self.key(chapter_id)))


def get_chapter(chapter_id):
    chapter = Chapter.query.get(chapter_id)
    if not chapter:
        raise NotFoundError(f"Chapter {chapter_id} not found")
    return chapter


def update_chapter_status(chapter_id, status, error=None, analyzed_at=None, missing_ok=False):
    """
    Sets a chapter's status and commits immediately so pollers see it.

    Args:
        chapter_id (int): The chapter to update.
        status (ChapterStatus): The new status.
        error (str, optional): Error text to store; cleared when None.
        analyzed_at (datetime, optional): Completion timestamp to stamp.
        missing_ok (bool, optional): Skip the write instead of raising when the chapter is gone.

    Returns:
        Chapter or None: The updated chapter, or None if it was gone and ``missing_ok`` is set.

    Raises:
        NotFoundError: If the chapter no longer exists and ``missing_ok`` is not set.
    """
    chapter = Chapter.query.get(chapter_id)
    if not chapter:
        if missing_ok:
            logger.warning("Chapter %s no longer exists; not setting status %s", chapter_id,
                           ChapterStatus(status).value)
            return None
        raise NotFoundError(f"Chapter {chapter_id} not found")
    chapter.status = ChapterStatus(status).value
    chapter.error = error
    if analyzed_at is not None:
        chapter.analyzed_at = analyzed_at
    db.session.commit()
    logger.info("Chapter %s -> %s", chapter_id, chapter.status)
    return chapter


def load_chapter_context(book_id, chapter_id):
    """
    Builds the narrative context for a chapter's feedback prompt.

    Genre comes from the book's project, the series position from the book and its siblings.
    Previous summaries are taken from the book's other chapters that are COMPLETED and have a
    stored summary, ordered by chapter number; when the analyzed chapter's number is known only
    chapters before it count.

    Raises:
        NotFoundError: If the book or the chapter does not exist.
    """
    book = Book.query.get(book_id)
    if not book:
        raise NotFoundError(f"Book {book_id} not found")
    chapter = get_chapter(chapter_id)

    query = Chapter.query.filter(
        Chapter.book_id == book.id,
        Chapter.id != chapter.id,
        Chapter.status == ChapterStatus.COMPLETED.value,
    )
    if chapter.number is not None:
        query = query.filter(Chapter.number < chapter.number)
    completed = query.order_by(Chapter.number.asc(), Chapter.id.asc()).all()
    previous_summaries = [c.summary.summary for c in completed if c.summary]

    total_books = Book.query.filter_by(project_id=book.project_id).count()
    return ChapterContext(
        genre=book.project.genre if book.project else None,
        book_number=book.number,
        total_books=total_books,
        chapter_number=chapter.number,
        previous_summaries=previous_summaries,
    )


def create_feedback(chapter_id, feedback, usage, degraded=False):
    get_chapter(chapter_id)
    record = EditingFeedback(
        chapter_id=chapter_id,
        type="DEVELOPMENTAL",
        overall_score=feedback.overall_score,
        strengths=list(feedback.strengths),
        weaknesses=list(feedback.weaknesses),
        feedback=feedback.feedback,
        inline_highlights=[h.model_dump() for h in feedback.inline_highlights],
        continuity_notes=feedback.continuity_notes,
        degraded=degraded,
        model=usage.model,
        tokens_used=usage.total_tokens,
        cost_usd=usage.cost_usd,
    )
    db.session.add(record)
    db.session.commit()
    return record


def create_summary(chapter_id, summary):
    """Stores a chapter's summary, replacing the one from any earlier analysis."""
    get_chapter(chapter_id)
    ChapterSummary.query.filter_by(chapter_id=chapter_id).delete()
    record = ChapterSummary(
        chapter_id=chapter_id,
        summary=summary.summary,
        key_points=list(summary.key_points),
        entities=summary.entities.model_dump(),
    )
    db.session.add(record)
    db.session.commit()
    return record


def log_generation(chapter_id, generation_type, model, usage=None, error=None, task_id=None):
    log_entry = GenerationLog(
        chapter_id=chapter_id,
        task_id=task_id,
        generation_type=generation_type,
        model=model,
        status="failed" if error else "succeeded",
        error_message=error,
        input_tokens=usage.input_tokens if usage else 0,
        output_tokens=usage.output_tokens if usage else 0,
        cost_usd=usage.cost_usd if usage else 0.0,
    )
    db.session.add(log_entry)
    db.session.commit()
    return log_entry


def analyze_chapter(chapter_id, chapter_text, book_id, handler, locks, task_id=None):
    """
    Runs the full analysis of one chapter.

    Steps run strictly in order: ANALYZING, context load, feedback call and persist, summary
    call and persist, COMPLETED with ``analyzed_at``. Any error after the lock is taken marks the
    chapter FAILED with the error text; nothing is retried. Feedback persisted before a summary
    failure is kept.

    Args:
        chapter_id (int): The chapter to analyze.
        chapter_text (str): The chapter's raw text.
        book_id (int): The chapter's book.
        handler (OpenAIHandler): Provides ``analyze_developmental`` and ``generate_summary``.
        locks (AnalysisLock): Per-chapter lock store.
        task_id (str, optional): Task identifier recorded on generation logs.

    Returns:
        dict: ``{"status": "success", ...}``, ``{"status": "error", "error": ...}`` or
        ``{"status": "skipped"}`` when another run holds the chapter's lock.
    """
    if not locks.acquire(chapter_id):
        logger.warning("Analysis of chapter %s already in progress; skipping", chapter_id)
        return {"status": "skipped", "chapter_id": chapter_id}

    step, step_model = None, None
    try:
        update_chapter_status(chapter_id, ChapterStatus.ANALYZING)
        context = load_chapter_context(book_id, chapter_id)

        step, step_model = "feedback", handler.feedback_model
        feedback, usage, degraded = handler.analyze_developmental(chapter_text, context)
        feedback_record = create_feedback(chapter_id, feedback, usage, degraded)
        log_generation(chapter_id, "feedback", usage.model, usage=usage, task_id=task_id)

        step, step_model = "summary", handler.summary_model
        summary, summary_usage, _ = handler.generate_summary(
            chapter_text, context.chapter_number or 1, context.genre
        )
        summary_record = create_summary(chapter_id, summary)
        log_generation(chapter_id, "summary", summary_usage.model, usage=summary_usage, task_id=task_id)
        step = None

        update_chapter_status(chapter_id, ChapterStatus.COMPLETED, analyzed_at=datetime.utcnow())
        total_cost = usage.cost_usd + summary_usage.cost_usd
        logger.info("Chapter %s analyzed successfully, total cost $%.4f", chapter_id, total_cost)
        return {
            "status": "success",
            "chapter_id": chapter_id,
            "feedback_id": feedback_record.id,
            "summary_id": summary_record.id,
            "cost_usd": total_cost,
        }
    except Exception as e:
        db.session.rollback()
        message = str(e) or e.__class__.__name__
        logger.exception("Failed to analyze chapter %s", chapter_id)
        # the chapter may have been deleted while the run was in flight
        if step and Chapter.query.get(chapter_id) is not None:
            log_generation(chapter_id, step, step_model, error=message, task_id=task_id)
        update_chapter_status(chapter_id, ChapterStatus.FAILED, error=message, missing_ok=True)
        return {"status": "error", "chapter_id": chapter_id, "error": message}
    finally:
        locks.release(chapter_id)
