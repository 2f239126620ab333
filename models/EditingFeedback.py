from datetime import datetime
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy import JSON
from . import db

class EditingFeedback(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    chapter_id = db.Column(db.Integer, db.ForeignKey('chapter.id'), nullable=False)
    type = db.Column(db.String(30), nullable=False, default="DEVELOPMENTAL")
    overall_score = db.Column(db.Float, nullable=False)
    strengths = db.Column(MutableList.as_mutable(JSON), nullable=False, default=[])
    weaknesses = db.Column(MutableList.as_mutable(JSON), nullable=False, default=[])
    feedback = db.Column(db.Text, nullable=False)
    inline_highlights = db.Column(MutableList.as_mutable(JSON), nullable=False, default=[])
    continuity_notes = db.Column(db.Text, nullable=True)
    degraded = db.Column(db.Boolean, default=False)
    model = db.Column(db.String(100), nullable=True)
    tokens_used = db.Column(db.Integer, default=0)
    cost_usd = db.Column(db.Float, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "chapter_id": self.chapter_id,
            "type": self.type,
            "overallScore": self.overall_score,
            "strengths": list(self.strengths or []),
            "weaknesses": list(self.weaknesses or []),
            "feedback": self.feedback,
            "inlineHighlights": list(self.inline_highlights or []),
            "continuityNotes": self.continuity_notes,
            "degraded": self.degraded,
            "model": self.model,
            "tokens_used": self.tokens_used,
            "cost_usd": self.cost_usd,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
