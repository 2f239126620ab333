from flask import Blueprint, request, jsonify
from models import Book, db
from helpers import get_current_user, is_authenticated, get_owned_project, get_owned_book

bp = Blueprint('books', __name__)

@bp.route('/api/books', methods=["POST"])
@is_authenticated
def create_book():
    """
    Creates a book inside one of the current user's projects.

    Returns:
        Response: 201 with the book, 400 if project_id, number or title is missing,
        or 404 if the project does not belong to the user.
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    project_id = data.get("project_id")
    number = data.get("number")
    title = data.get("title")
    if not project_id or not number or not title:
        return jsonify({"error": "project_id, number, and title are required"}), 400
    try:
        number = int(number)
    except (TypeError, ValueError):
        return jsonify({"error": "number must be an integer"}), 400

    project = get_owned_project(project_id, user)
    book = Book(project_id=project.id, number=number, title=title)
    db.session.add(book)
    db.session.commit()
    return jsonify(book.to_dict()), 201

@bp.route('/api/books/project/<int:project_id>', methods=["GET"])
@is_authenticated
def list_books(project_id):
    project = get_owned_project(project_id, get_current_user())
    books = Book.query.filter_by(project_id=project.id).order_by(Book.number.asc()).all()
    return jsonify([book.to_dict(include_chapters=True) for book in books])

@bp.route('/api/books/<int:book_id>', methods=["GET"])
@is_authenticated
def get_book(book_id):
    """
    Returns a book with its project and chapters; each chapter carries its latest feedback.
    """
    book = get_owned_book(book_id, get_current_user())
    data = book.to_dict()
    data["project"] = book.project.to_dict()
    chapters = []
    for chapter in book.chapters:
        chapter_data = chapter.to_dict()
        chapter_data["editing_feedback"] = [f.to_dict() for f in chapter.editing_feedback[:1]]
        chapters.append(chapter_data)
    data["chapters"] = chapters
    return jsonify(data)

@bp.route('/api/books/<int:book_id>', methods=["PUT"])
@is_authenticated
def update_book(book_id):
    book = get_owned_book(book_id, get_current_user())
    data = request.get_json(silent=True) or {}
    if data.get("title"):
        book.title = data["title"]
    if data.get("number"):
        try:
            book.number = int(data["number"])
        except (TypeError, ValueError):
            return jsonify({"error": "number must be an integer"}), 400
    db.session.commit()
    return jsonify(book.to_dict())

@bp.route('/api/books/<int:book_id>', methods=["DELETE"])
@is_authenticated
def delete_book(book_id):
    book = get_owned_book(book_id, get_current_user())
    db.session.delete(book)
    db.session.commit()
    return jsonify({"message": "Book deleted successfully"})
