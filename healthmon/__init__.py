"""healthmon — periodic HTTP probing, SQLite history, query API."""

from .db import Database
from .models import Failure, Outcome, ProbeResult, Response, Target
from .prober import ProbeError, Prober
from .query import NotFound, QueryService
from .registry import TargetRegistry
from .scheduler import ProbeScheduler
from .store import ResultStore, StorageError
