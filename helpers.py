import io
import logging
import re
from functools import wraps
from flask import request, jsonify
from flask_jwt_extended import decode_token, create_access_token
from docx import Document
from models import User, Project, Book, Chapter
from errors import ValidationError, NotFoundError

PLAIN_TEXT_EXTENSIONS = (".txt", ".md", ".rtf", ".scriv")
DOCX_EXTENSION = ".docx"
DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_password(password) -> bool:
    """
    Checks if the provided password is valid: a string of at least 8 characters.

    Args:
        password (str): The password string to be validated.

    Returns:
        bool: True if the password is valid, False otherwise.
    """
    return isinstance(password, str) and len(password) >= 8


def is_valid_email(email) -> bool:
    return isinstance(email, str) and EMAIL_PATTERN.match(email) is not None


def generate_access_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"email": user.email})


def _request_token():
    auth_header = request.headers.get("Authorization", "")
    if auth_header:
        return auth_header[7:] if auth_header.startswith("Bearer ") else auth_header
    return request.cookies.get("access_token")


def get_current_user():
    """
    Retrieves the current user from the bearer token in the Authorization header, falling back
    to the ``access_token`` cookie.

    Returns:
        User or None: The current user object if found, otherwise None.

    Logs:
        - A warning if the token is decoded but no user ID is found.
        - A warning if the token decoding fails.
    """
    token = _request_token()
    if not token:
        return None
    try:
        decoded_token = decode_token(token)
    except Exception as e:
        logging.warning(f"Failed to decode token: {e}")
        return None
    user_id = decoded_token.get("sub")
    if not user_id:
        logging.warning("Token decoded but no user id found.")
        return None
    return User.query.get(int(user_id))


def is_authenticated(func):
    """
    Decorator rejecting requests without a valid access token with a 401 JSON error.

    Args:
        func (Callable): The view function to be wrapped.

    Returns:
        Callable: The wrapped function.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401
        return func(*args, **kwargs)
    return wrapper


def get_owned_project(project_id, user):
    project = Project.query.get(project_id)
    if not project or project.user_id != user.id:
        raise NotFoundError("Project not found")
    return project


def get_owned_book(book_id, user):
    book = Book.query.get(book_id)
    if not book or book.project.user_id != user.id:
        raise NotFoundError("Book not found")
    return book


def get_owned_chapter(chapter_id, user):
    chapter = Chapter.query.get(chapter_id)
    if not chapter or chapter.book.project.user_id != user.id:
        raise NotFoundError("Chapter not found")
    return chapter


def extract_chapter_text(file_storage):
    """
    Extracts plain text from an uploaded manuscript file.

    ``.txt``, ``.md``, ``.rtf`` and ``.scriv`` files are decoded as UTF-8 text; ``.docx`` files
    are read with python-docx and their paragraphs joined with newlines.

    Args:
        file_storage (werkzeug.datastructures.FileStorage): The uploaded file.

    Returns:
        str: The extracted text.

    Raises:
        ValidationError: If the file type is unsupported or the document cannot be read.
    """
    filename = (file_storage.filename or "").lower()
    mimetype = file_storage.mimetype
    data = file_storage.read()

    if mimetype == "text/plain" or filename.endswith(PLAIN_TEXT_EXTENSIONS):
        return data.decode("utf-8", errors="replace")
    if mimetype == DOCX_MIMETYPE or filename.endswith(DOCX_EXTENSION):
        try:
            document = Document(io.BytesIO(data))
        except Exception as e:
            raise ValidationError(f"Could not read .docx file: {e}")
        return "\n".join(paragraph.text for paragraph in document.paragraphs)
    raise ValidationError("Unsupported file type. Please upload .txt, .docx, .scriv, .rtf, or .md files.")


def count_words(content):
    return len([word for word in content.split() if word])
