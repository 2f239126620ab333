from datetime import datetime
from . import db

class Book(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    chapters = db.relationship('Chapter', backref='book', lazy=True, cascade="all, delete-orphan",
                               order_by="Chapter.number")

    def to_dict(self, include_chapters=False):
        data = {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "title": self.title,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_chapters:
            data["chapters"] = [chapter.to_dict() for chapter in self.chapters]
        return data
