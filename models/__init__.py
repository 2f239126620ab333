from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
from .User import User
from .Project import Project
from .Book import Book
from .Chapter import Chapter, ChapterStatus
from .EditingFeedback import EditingFeedback
from .ChapterSummary import ChapterSummary
from .GenerationLog import GenerationLog
