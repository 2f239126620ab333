from datetime import datetime
from sqlalchemy.ext.mutable import MutableDict, MutableList
from sqlalchemy import JSON
from . import db

class ChapterSummary(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    chapter_id = db.Column(db.Integer, db.ForeignKey('chapter.id'), nullable=False, unique=True)
    summary = db.Column(db.Text, nullable=False)
    key_points = db.Column(MutableList.as_mutable(JSON), nullable=False, default=[])
    entities = db.Column(MutableDict.as_mutable(JSON), nullable=False, default={})
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "chapter_id": self.chapter_id,
            "summary": self.summary,
            "keyPoints": list(self.key_points or []),
            "entities": dict(self.entities or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
