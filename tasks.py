import logging
from celery import Celery, Task
from flask import current_app, has_app_context

from analysis import analyze_chapter, update_chapter_status
from errors import AnalysisInProgressError
from models import ChapterStatus

logger = logging.getLogger(__name__)


class ContextTask(Task):
    flask_app = None

    def __call__(self, *args, **kwargs):
        if has_app_context():
            return self.run(*args, **kwargs)
        with self.flask_app.app_context():
            return self.run(*args, **kwargs)


celery_app = Celery(__name__, task_cls=ContextTask)


def init_celery(app):
    """
    Binds the Celery app to a Flask app: broker settings come from the Flask config and every
    task runs inside that app's context.

    Tasks are acknowledged late so a job lost with its worker is redelivered; the per-chapter
    analysis lock turns a duplicate delivery into a skip.
    """
    celery_app.conf.update(
        broker_url=app.config["CELERY_BROKER_URL"],
        result_backend=app.config["CELERY_RESULT_BACKEND"],
        task_always_eager=app.config.get("CELERY_TASK_ALWAYS_EAGER", False),
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
    )
    ContextTask.flask_app = app
    app.extensions["celery"] = celery_app
    return celery_app


@celery_app.task(name="analyze_chapter_task", bind=True)
def analyze_chapter_task(self, chapter_id, chapter_text, book_id):
    """
    Background analysis of one uploaded chapter.

    Args:
        chapter_id (int): The chapter to analyze.
        chapter_text (str): The chapter's raw text.
        book_id (int): The chapter's book.

    Returns:
        dict: The outcome reported by ``analyze_chapter``; this is the job's completion or
        failure result in the result backend.
    """
    return analyze_chapter(
        chapter_id,
        chapter_text,
        book_id,
        handler=current_app.extensions["openai_handler"],
        locks=current_app.extensions["analysis_locks"],
        task_id=self.request.id,
    )


def submit_analysis(chapter):
    """
    Queues an analysis run for a chapter and marks it PROCESSING.

    Args:
        chapter (Chapter): The chapter to analyze.

    Returns:
        str or None: The task id, or None if the job could not be queued (the chapter is then
        FAILED with the reason).

    Raises:
        AnalysisInProgressError: If an analysis of this chapter currently holds its lock.
    """
    locks = current_app.extensions["analysis_locks"]
    if locks.is_locked(chapter.id):
        raise AnalysisInProgressError("Chapter is already being analyzed")

    chapter_id, content, book_id = chapter.id, chapter.content, chapter.book_id
    update_chapter_status(chapter_id, ChapterStatus.PROCESSING)
    try:
        result = analyze_chapter_task.delay(chapter_id, content, book_id)
    except Exception as e:
        logger.exception("Could not queue analysis of chapter %s", chapter_id)
        update_chapter_status(chapter_id, ChapterStatus.FAILED, error=f"Could not queue analysis: {e}")
        return None
    logger.info("Queued analysis of chapter %s as task %s", chapter_id, result.id)
    return result.id
