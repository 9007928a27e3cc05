"""Incremental sync and aggregation layer for a classroom management backend.

Fetches attendance, class and gamification collections from a slow remote
script, keeps derived statistics current as data streams in, pages through
fetched history without refetching, and stages marks for one bulk commit.
"""

from src.classroom.aggregate import aggregate
from src.classroom.dispatcher import Dispatcher, RequestDispatcher
from src.classroom.edits import EditBuffer
from src.classroom.loader import StaggeredBatchLoader
from src.classroom.models import AggregateStats, AttendanceRecord, AttendanceStatus
from src.classroom.pagination import PaginationWindow
from src.classroom.results import Result
from src.classroom.session import Session, SessionManager
from src.classroom.store import RecordStore
from src.classroom.views import AttendanceView, ClassesView, LeaderboardView

__all__ = [
    "aggregate",
    "AggregateStats",
    "AttendanceRecord",
    "AttendanceStatus",
    "AttendanceView",
    "ClassesView",
    "Dispatcher",
    "EditBuffer",
    "LeaderboardView",
    "PaginationWindow",
    "RecordStore",
    "RequestDispatcher",
    "Result",
    "Session",
    "SessionManager",
    "StaggeredBatchLoader",
]
