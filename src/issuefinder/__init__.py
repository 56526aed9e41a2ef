"""issuefinder: issue tracker with a pure, deterministic filter/sort query engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("issuefinder")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from issuefinder.core import Issue, IssueDB, Milestone
from issuefinder.query import FilterSpec, InvalidQueryError, filter_issues, query, query_ids, sort_issues

__all__ = [
    "FilterSpec",
    "InvalidQueryError",
    "Issue",
    "IssueDB",
    "Milestone",
    "__version__",
    "filter_issues",
    "query",
    "query_ids",
    "sort_issues",
]
