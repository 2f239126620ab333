from flask import Blueprint, request, jsonify, current_app
from models import Chapter, ChapterStatus, db
from helpers import get_current_user, is_authenticated, get_owned_book, get_owned_chapter, extract_chapter_text, count_words
from analysis import load_chapter_context
from predictions import calculate_predicted_analysis_cost
from tasks import submit_analysis

bp = Blueprint('chapters', __name__)

@bp.route('/api/chapters/upload', methods=["POST"])
@is_authenticated
def upload_chapter():
    """
    Uploads a chapter file and queues its analysis.

    Expects a multipart form with ``file``, ``book_id`` and optionally ``chapter_number``
    (defaults to 1) and ``title`` (defaults to "Chapter N"). The response is sent as soon as the
    chapter row exists and the analysis job is queued; clients poll ``GET /api/chapters/<id>``
    until the status is COMPLETED or FAILED.

    Returns:
        Response: 201 with the chapter. 400 when the file is missing, unsupported or empty, or
        book_id is missing; 404 when the book is not the user's; 413 when the file is too large.
    """
    user = get_current_user()
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "No file uploaded"}), 400

    book_id = request.form.get("book_id")
    if not book_id:
        return jsonify({"error": "book_id is required"}), 400
    try:
        book_id = int(book_id)
        chapter_number = int(request.form.get("chapter_number") or 1)
    except ValueError:
        return jsonify({"error": "book_id and chapter_number must be integers"}), 400

    book = get_owned_book(book_id, user)
    content = extract_chapter_text(upload)
    if not content or not content.strip():
        return jsonify({"error": "File is empty"}), 400

    chapter = Chapter(
        book_id=book.id,
        number=chapter_number,
        title=request.form.get("title") or f"Chapter {chapter_number}",
        content=content,
        word_count=count_words(content),
        status=ChapterStatus.PENDING.value
    )
    db.session.add(chapter)
    db.session.commit()
    current_app.logger.info(f"Uploaded chapter {chapter.id} ({chapter.word_count} words) to book {book.id}")

    task_id = submit_analysis(chapter)
    return jsonify({
        "message": "Chapter uploaded successfully",
        "task_id": task_id,
        "chapter": chapter.to_dict()
    }), 201

@bp.route('/api/chapters/<int:chapter_id>', methods=["GET"])
@is_authenticated
def get_chapter(chapter_id):
    """
    Returns a chapter with its text, all feedback (newest first), its summary, and its book and
    project. This is the endpoint clients poll while an analysis runs.
    """
    chapter = get_owned_chapter(chapter_id, get_current_user())
    data = chapter.to_dict(include_content=True)
    data["editing_feedback"] = [f.to_dict() for f in chapter.editing_feedback]
    data["summary"] = chapter.summary.to_dict() if chapter.summary else None
    book = chapter.book.to_dict()
    book["project"] = chapter.book.project.to_dict()
    data["book"] = book
    return jsonify(data)

@bp.route('/api/chapters/book/<int:book_id>', methods=["GET"])
@is_authenticated
def list_chapters(book_id):
    book = get_owned_book(book_id, get_current_user())
    chapters = Chapter.query.filter_by(book_id=book.id).order_by(Chapter.number.asc()).all()
    result = []
    for chapter in chapters:
        data = chapter.to_dict()
        latest = [f for f in chapter.editing_feedback if f.type == "DEVELOPMENTAL"][:1]
        data["editing_feedback"] = [f.to_dict() for f in latest]
        result.append(data)
    return jsonify(result)

@bp.route('/api/chapters/<int:chapter_id>/analyze', methods=["POST"])
@is_authenticated
def reanalyze_chapter(chapter_id):
    """
    Re-runs the analysis of an existing chapter, e.g. after it FAILED.

    Returns:
        Response: 202 with the chapter and task id, or 409 while an analysis of the chapter is
        still running.
    """
    chapter = get_owned_chapter(chapter_id, get_current_user())
    task_id = submit_analysis(chapter)
    return jsonify({
        "message": "Analysis queued",
        "task_id": task_id,
        "chapter": chapter.to_dict()
    }), 202

@bp.route('/api/chapters/<int:chapter_id>/predict_cost', methods=["GET"])
@is_authenticated
def predict_chapter_cost(chapter_id):
    chapter = get_owned_chapter(chapter_id, get_current_user())
    context = load_chapter_context(chapter.book_id, chapter.id)
    prediction = calculate_predicted_analysis_cost(chapter.content, context, chapter.number)
    return jsonify(prediction)

@bp.route('/api/chapters/<int:chapter_id>', methods=["DELETE"])
@is_authenticated
def delete_chapter(chapter_id):
    chapter = get_owned_chapter(chapter_id, get_current_user())
    db.session.delete(chapter)
    db.session.commit()
    return jsonify({"message": "Chapter deleted successfully"})
