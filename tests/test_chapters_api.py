"""Tests for the chapter upload, polling and re-analysis endpoints."""
import io
from unittest.mock import patch

from docx import Document

from app import create_app
from conftest import TEST_CONFIG, VALID_FEEDBACK, VALID_SUMMARY, fenced, make_completion, register
from models import db, Chapter, ChapterStatus


def _upload(client, headers, book_id, data=b"Mara left at dawn. The road was long.", filename="chapter.txt", **form):
    payload = {"file": (io.BytesIO(data), filename), "book_id": str(book_id), **form}
    return client.post("/api/chapters/upload", data=payload, headers=headers, content_type="multipart/form-data")


def test_upload_runs_analysis(client, auth_headers, book, openai_client):
    """With eager tasks the chapter is fully analyzed by the time the upload returns"""
    response = _upload(client, auth_headers, book["id"], chapter_number="3", title="The Road")

    assert response.status_code == 201
    body = response.get_json()
    assert body["task_id"]
    chapter = body["chapter"]
    assert chapter["number"] == 3
    assert chapter["title"] == "The Road"
    assert chapter["word_count"] == 8

    detail = client.get(f"/api/chapters/{chapter['id']}", headers=auth_headers).get_json()
    assert detail["status"] == ChapterStatus.COMPLETED.value
    assert detail["analyzed_at"] is not None
    assert detail["content"] == "Mara left at dawn. The road was long."
    assert detail["editing_feedback"][0]["overallScore"] == 8
    assert detail["summary"]["summary"] == "Mara leaves the village."
    assert detail["book"]["project"]["genre"] == "fantasy"
    assert openai_client.chat.completions.create.call_count == 2


def test_upload_defaults_number_and_title(client, auth_headers, book):
    chapter = _upload(client, auth_headers, book["id"]).get_json()["chapter"]
    assert chapter["number"] == 1
    assert chapter["title"] == "Chapter 1"


def test_whitespace_upload_rejected(client, auth_headers, book, app, openai_client):
    """An upload with no content creates no chapter and starts no analysis"""
    response = _upload(client, auth_headers, book["id"], data=b"   \n\t  ")

    assert response.status_code == 400
    with app.app_context():
        assert Chapter.query.count() == 0
    openai_client.chat.completions.create.assert_not_called()


def test_unsupported_file_type(client, auth_headers, book):
    response = _upload(client, auth_headers, book["id"], data=b"%PDF-1.4", filename="chapter.pdf")
    assert response.status_code == 400
    assert "Unsupported file type" in response.get_json()["error"]


def test_docx_upload(client, auth_headers, book):
    document = Document()
    document.add_paragraph("The storm broke over the harbor.")
    document.add_paragraph("Nobody slept.")
    buffer = io.BytesIO()
    document.save(buffer)

    response = _upload(client, auth_headers, book["id"], data=buffer.getvalue(), filename="chapter.docx")

    assert response.status_code == 201
    chapter_id = response.get_json()["chapter"]["id"]
    detail = client.get(f"/api/chapters/{chapter_id}", headers=auth_headers).get_json()
    assert detail["content"] == "The storm broke over the harbor.\nNobody slept."


def test_markdown_upload(client, auth_headers, book):
    response = _upload(client, auth_headers, book["id"], data="# One\n\nCafé scene.".encode("utf-8"),
                       filename="chapter.md")
    assert response.status_code == 201


def test_upload_requires_file_and_book(client, auth_headers, book):
    no_file = client.post("/api/chapters/upload", data={"book_id": str(book["id"])}, headers=auth_headers,
                          content_type="multipart/form-data")
    assert no_file.status_code == 400

    no_book = client.post("/api/chapters/upload", data={"file": (io.BytesIO(b"text"), "c.txt")},
                          headers=auth_headers, content_type="multipart/form-data")
    assert no_book.status_code == 400

    bad_number = _upload(client, auth_headers, book["id"], chapter_number="three")
    assert bad_number.status_code == 400


def test_upload_requires_auth(client, book):
    assert _upload(client, {}, book["id"]).status_code == 401


def test_upload_to_foreign_book(client, book):
    other = register(client, email="other@example.com")
    assert _upload(client, other, book["id"]).status_code == 404


def test_foreign_chapter_not_visible(client, auth_headers, book):
    chapter_id = _upload(client, auth_headers, book["id"]).get_json()["chapter"]["id"]
    other = register(client, email="other@example.com")
    assert client.get(f"/api/chapters/{chapter_id}", headers=other).status_code == 404
    assert client.delete(f"/api/chapters/{chapter_id}", headers=other).status_code == 404


def test_reanalyze_conflict_while_locked(client, auth_headers, book, app):
    chapter_id = _upload(client, auth_headers, book["id"]).get_json()["chapter"]["id"]
    app.extensions["analysis_locks"].acquire(chapter_id)

    response = client.post(f"/api/chapters/{chapter_id}/analyze", headers=auth_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "Chapter is already being analyzed"


def test_reanalyze_failed_chapter(client, auth_headers, book, openai_client):
    """A FAILED chapter can be analyzed again; the summary is replaced, feedback accumulates"""
    openai_client.chat.completions.create.side_effect = [
        make_completion(fenced(VALID_FEEDBACK)),
        RuntimeError("timeout"),
    ]
    chapter_id = _upload(client, auth_headers, book["id"]).get_json()["chapter"]["id"]
    detail = client.get(f"/api/chapters/{chapter_id}", headers=auth_headers).get_json()
    assert detail["status"] == ChapterStatus.FAILED.value
    assert "timeout" in detail["error"]

    openai_client.chat.completions.create.side_effect = [
        make_completion(fenced(VALID_FEEDBACK)),
        make_completion(fenced(VALID_SUMMARY)),
    ]
    response = client.post(f"/api/chapters/{chapter_id}/analyze", headers=auth_headers)
    assert response.status_code == 202

    detail = client.get(f"/api/chapters/{chapter_id}", headers=auth_headers).get_json()
    assert detail["status"] == ChapterStatus.COMPLETED.value
    assert detail["error"] is None
    assert len(detail["editing_feedback"]) == 2
    assert detail["summary"]["summary"] == "Mara leaves the village."


def test_enqueue_failure_marks_failed(client, auth_headers, book):
    with patch("tasks.analyze_chapter_task") as task:
        task.delay.side_effect = ConnectionError("broker down")
        response = _upload(client, auth_headers, book["id"])

    assert response.status_code == 201
    body = response.get_json()
    assert body["task_id"] is None
    assert body["chapter"]["status"] == ChapterStatus.FAILED.value
    assert "broker down" in body["chapter"]["error"]


def test_list_chapters_by_book(client, auth_headers, book, openai_client):
    openai_client.chat.completions.create.side_effect = None
    openai_client.chat.completions.create.return_value = make_completion(fenced(VALID_SUMMARY))
    _upload(client, auth_headers, book["id"], chapter_number="2")
    _upload(client, auth_headers, book["id"], chapter_number="1")

    chapters = client.get(f"/api/chapters/book/{book['id']}", headers=auth_headers).get_json()

    assert [c["number"] for c in chapters] == [1, 2]
    assert all(len(c["editing_feedback"]) == 1 for c in chapters)


def test_predict_cost(client, auth_headers, book):
    chapter_id = _upload(client, auth_headers, book["id"]).get_json()["chapter"]["id"]
    with patch("predictions.count_tokens", return_value=2000):
        response = client.get(f"/api/chapters/{chapter_id}/predict_cost", headers=auth_headers)

    assert response.status_code == 200
    prediction = response.get_json()
    assert prediction["feedback"]["input_tokens"] == 2000
    assert prediction["total_predicted_cost_usd"] > 0


def test_delete_chapter(client, auth_headers, book, app):
    chapter_id = _upload(client, auth_headers, book["id"]).get_json()["chapter"]["id"]

    response = client.delete(f"/api/chapters/{chapter_id}", headers=auth_headers)

    assert response.status_code == 200
    assert client.get(f"/api/chapters/{chapter_id}", headers=auth_headers).status_code == 404
    with app.app_context():
        assert db.session.get(Chapter, chapter_id) is None


def test_upload_too_large(handler, lock_store):
    app = create_app(dict(TEST_CONFIG, MAX_CONTENT_LENGTH=1024), openai_handler=handler, lock_store=lock_store)
    client = app.test_client()
    try:
        headers = register(client)
        project = client.post("/api/projects", json={"name": "Saga"}, headers=headers).get_json()
        book = client.post("/api/books", json={"project_id": project["id"], "number": 1, "title": "One"},
                           headers=headers).get_json()

        response = _upload(client, headers, book["id"], data=b"word " * 1000)

        assert response.status_code == 413
        assert "File too large" in response.get_json()["error"]
    finally:
        with app.app_context():
            db.session.remove()
            db.drop_all()
