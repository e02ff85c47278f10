"""Client library for LaBB-CAT linguistic annotation servers.

Three client classes cover increasing levels of access:

- :class:`LabbcatView` for read-only queries, searches and exports;
- :class:`LabbcatEdit` to also change annotations, transcripts and media;
- :class:`LabbcatAdmin` to also manage layers, corpora, users and roles.

Security notes:
- Credentials are only ever sent as an HTTP Authorization header.
- Treat server responses as untrusted input.
"""

from labbcat.admin import LabbcatAdmin
from labbcat.config import ClientConfig
from labbcat.edit import LabbcatEdit
from labbcat.errors import RequestCancelledException, ResponseException, StoreException
from labbcat.models import (
    Category,
    Corpus,
    Match,
    MatchId,
    MediaTrack,
    Project,
    Role,
    RolePermission,
    SystemAttribute,
    TaskStatus,
    Upload,
    User,
)
from labbcat.pattern import PatternBuilder
from labbcat.response import Response
from labbcat.view import LabbcatView

__version__ = "0.1.0"

__all__ = [
    "Category",
    "ClientConfig",
    "Corpus",
    "LabbcatAdmin",
    "LabbcatEdit",
    "LabbcatView",
    "Match",
    "MatchId",
    "MediaTrack",
    "PatternBuilder",
    "Project",
    "RequestCancelledException",
    "Response",
    "ResponseException",
    "Role",
    "RolePermission",
    "StoreException",
    "SystemAttribute",
    "TaskStatus",
    "Upload",
    "User",
]
