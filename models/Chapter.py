import enum
from datetime import datetime
from . import db


class ChapterStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Chapter(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('book.id'), nullable=False)
    number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    word_count = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), nullable=False, default=ChapterStatus.PENDING.value)
    error = db.Column(db.Text, nullable=True)
    analyzed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    editing_feedback = db.relationship('EditingFeedback', backref='chapter', lazy=True,
                                       cascade="all, delete-orphan",
                                       order_by="EditingFeedback.id.desc()")
    summary = db.relationship('ChapterSummary', backref='chapter', uselist=False,
                              cascade="all, delete-orphan")
    generation_logs = db.relationship('GenerationLog', backref='chapter', lazy=True,
                                      cascade="all, delete-orphan")

    def to_dict(self, include_content=False):
        data = {
            "id": self.id,
            "book_id": self.book_id,
            "number": self.number,
            "title": self.title,
            "word_count": self.word_count,
            "status": self.status,
            "error": self.error,
            "analyzed_at": self.analyzed_at.isoformat() if self.analyzed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_content:
            data["content"] = self.content
        return data

    def __repr__(self):
        return f"<Chapter {self.number} of Book:{self.book_id} - {self.status}>"
