from __future__ import annotations

import csv
import getpass
import json
import logging
import mimetypes
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from labbcat.client.http import HttpResponse, HttpSession, MultipartRequest, basic_authorization
from labbcat.config import ClientConfig
from labbcat.errors import ResponseException, StoreException
from labbcat.models import (
    Anchor,
    Annotation,
    AnnotatorDescriptor,
    Layer,
    Match,
    MediaFile,
    MediaTrackDefinition,
    SerializationDescriptor,
    TaskStatus,
    User,
)
from labbcat.pattern import PatternBuilder
from labbcat.response import Response

log = logging.getLogger("labbcat.client")

MIN_LABBCAT_VERSION = "20210210.2032"
DEFAULT_REFRESH_SECONDS = 2

Pattern = Union[Mapping[str, Any], PatternBuilder]
PathLike = Union[str, Path]

_JSON = {"Accept": "application/json"}


def fragment_id(transcript_id: str, start: float, end: float) -> str:
    """Name for a transcript fragment, e.g. ``AP511__1.200-3.450``."""

    stem = transcript_id.rsplit(".", 1)[0] if "." in transcript_id else transcript_id
    return f"{stem}__{start:.3f}-{end:.3f}"


class LabbcatView:
    """Read-only access to a LaBB-CAT corpus.

    Every call goes through one :class:`HttpSession`, so authentication
    happens once and the server's session cookie is reused afterwards. The
    envelope of the most recent call is kept in :attr:`response`.

    Long-running operations (search, uploads, layer generation) run on the
    server as tasks identified by a thread id; :meth:`wait_for_task` polls
    them until they finish.
    """

    def __init__(
        self,
        labbcat_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        *,
        session: Optional[HttpSession] = None,
        language: Optional[str] = None,
        batch_mode: bool = True,
        timeout: float = 180.0,
    ):
        if not labbcat_url.endswith("/"):
            labbcat_url += "/"
        self.labbcat_url = labbcat_url
        self.username = username
        self.password = password
        self.batch_mode = batch_mode
        self.session = session or HttpSession(language=language, timeout=timeout)
        if language is not None:
            self.session.language = language
        self.response: Optional[Response] = None
        self.min_labbcat_version = MIN_LABBCAT_VERSION

        self._authorized = False
        self._cancelling = False
        self._post_request: Optional[MultipartRequest] = None
        self._sleep: Callable[[float], None] = time.sleep
        self._clock: Callable[[], float] = time.monotonic

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any):
        if not config.url:
            raise StoreException("No LaBB-CAT URL configured (set LABBCAT_URL).")
        session = HttpSession(
            language=config.language,
            timeout=config.timeout_sec,
            max_upload_bytes=config.max_upload_bytes,
        )
        return cls(config.url, config.username, config.password, session=session, **kwargs)

    # ------------------------------------------------------------------
    # URLs and authorization

    def store_url(self, resource: str) -> str:
        return f"{self.labbcat_url}api/store/{resource}"

    def make_url(self, resource: str) -> str:
        return f"{self.labbcat_url}{resource}"

    def get_required_http_authorization(self) -> Optional[str]:
        """Make sure the session can talk to the server.

        The first call probes the store without credentials. If the server
        answers 401, HTTP Basic authorization is built from the username and
        password and tried once (or, outside batch mode, repeatedly with
        prompted credentials). The server version is checked against
        :data:`MIN_LABBCAT_VERSION`.
        """

        if self._authorized:
            return self.session.authorization

        probe = self.session.get(self.store_url(""), headers=_JSON)
        log.debug("first connection test status: %s", probe.status)
        while probe.status == 401:
            if self.username is None or self.password is None:
                if self.batch_mode or not sys.stdin.isatty():
                    raise StoreException("Username/password required")
                self._prompt_for_credentials()
            self.session.authorization = basic_authorization(self.username, self.password)
            probe = self.session.get(self.store_url(""), headers=_JSON)
            log.debug("authorized connection test status: %s", probe.status)
            if probe.status == 401:
                self.session.authorization = None
                self.username = None
                self.password = None
                if self.batch_mode:
                    raise StoreException("Username/password invalid")

        self.response = Response.from_http(probe)
        self.response.check_for_errors()
        version = self.response.version
        if version is None or version < self.min_labbcat_version:
            raise StoreException(
                f"Server is version {version} but the minimum required version is "
                f"{self.min_labbcat_version}"
            )
        self._authorized = True
        return self.session.authorization

    def _prompt_for_credentials(self) -> None:
        if self.username is None:
            self.username = input("Username: ").strip() or None
            if self.username is None:
                raise StoreException("Cancelled")
        if not self.password:
            self.password = getpass.getpass("Password: ")

    # ------------------------------------------------------------------
    # request plumbing

    def _call(self, send: Callable[[], HttpResponse]) -> Response:
        self.get_required_http_authorization()
        self.response = Response.from_http(send())
        return self.response.check_for_errors()

    def _get(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Response:
        return self._call(lambda: self.session.get(url, params, headers=_JSON))

    def _post(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Response:
        return self._call(lambda: self.session.post(url, params, headers=_JSON))

    def _put(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Response:
        # the servlet container only parses form bodies on POST
        return self._call(lambda: self.session.get(url, params, headers=_JSON, method="PUT"))

    def _delete(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Response:
        return self._call(lambda: self.session.delete(url, params, headers=_JSON))

    def _send_json(self, url: str, obj: Any, *, method: str = "POST") -> Response:
        return self._call(lambda: self.session.send_json(url, obj, method=method, headers=_JSON))

    def _multipart(self, url: str, *, accept: str = "application/json") -> MultipartRequest:
        """Start a multipart request; it can be stopped with :meth:`cancel`."""

        self.get_required_http_authorization()
        self._cancelling = False
        self._post_request = self.session.multipart(url, headers={"Accept": accept})
        return self._post_request

    def _post_multipart(self, request: MultipartRequest) -> Response:
        return self._call(request.post)

    def _store_query(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        log.debug("%s -> %s", name, params)
        response = self._get(self.store_url(name), params)
        return None if response.is_model_null() else response.model

    def _raw(self, url: str, params=None, *, accept: str = "text/plain") -> HttpResponse:
        self.get_required_http_authorization()
        return self.session.get(url, params, headers={"Accept": accept})

    def _check_raw(self, http: HttpResponse) -> HttpResponse:
        """Turn a non-200 binary/CSV response into a ResponseException."""

        if http.status != 200:
            self.response = Response.from_http(http)
            self.response.check_for_errors()
        return http

    # ------------------------------------------------------------------
    # graph store queries

    def get_id(self) -> Optional[str]:
        """The store's id, e.g. its URL."""
        return self._store_query("getId")

    def get_info(self) -> str:
        """HTML document describing the corpus."""

        http = self._raw(self.make_url("doc/"), accept="text/html")
        if http.status != 200:
            raise StoreException(f"Error {http.status} - GET {self.make_url('doc/')}")
        return http.text()

    def get_layer_ids(self) -> Optional[List[str]]:
        return self._store_query("getLayerIds")

    def get_layers(self) -> Optional[List[Layer]]:
        model = self._store_query("getLayers")
        return None if model is None else [Layer.from_json(o) for o in model]

    def get_layer(self, id: str) -> Optional[Layer]:
        model = self._store_query("getLayer", {"id": id})
        return None if model is None else Layer.from_json(model)

    def get_corpus_ids(self) -> Optional[List[str]]:
        return self._store_query("getCorpusIds")

    def get_participant_ids(self) -> Optional[List[str]]:
        return self._store_query("getParticipantIds")

    def get_participant(
        self, id: str, layer_ids: Optional[Sequence[str]] = None
    ) -> Optional[Annotation]:
        """The participant record with the given id, including any requested attribute layers."""

        model = self._store_query("getParticipant", {"id": id, "layerIds": layer_ids})
        return None if model is None else Annotation.from_json(model)

    def count_matching_participant_ids(self, expression: str) -> int:
        """Count participants matching an expression such as ``/Ada.+/.test(id)``."""
        return int(self._store_query("countMatchingParticipantIds", {"expression": expression}))

    def get_matching_participant_ids(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Optional[List[str]]:
        return self._store_query(
            "getMatchingParticipantIds",
            {"expression": expression, "pageLength": page_length, "pageNumber": page_number},
        )

    def get_transcript_ids(self) -> Optional[List[str]]:
        return self._store_query("getTranscriptIds")

    def get_transcript_ids_in_corpus(self, id: str) -> Optional[List[str]]:
        return self._store_query("getTranscriptIdsInCorpus", {"id": id})

    def get_transcript_ids_with_participant(self, id: str) -> Optional[List[str]]:
        return self._store_query("getTranscriptIdsWithParticipant", {"id": id})

    def count_matching_transcript_ids(self, expression: str) -> int:
        return int(self._store_query("countMatchingTranscriptIds", {"expression": expression}))

    def get_matching_transcript_ids(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
        order: Optional[str] = None,
    ) -> Optional[List[str]]:
        return self._store_query(
            "getMatchingTranscriptIds",
            {
                "expression": expression,
                "pageLength": page_length,
                "pageNumber": page_number,
                "order": order,
            },
        )

    def count_matching_annotations(self, expression: str) -> int:
        return int(self._store_query("countMatchingAnnotations", {"expression": expression}))

    def get_matching_annotations(
        self,
        expression: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Optional[List[Annotation]]:
        model = self._store_query(
            "getMatchingAnnotations",
            {"expression": expression, "pageLength": page_length, "pageNumber": page_number},
        )
        return None if model is None else [Annotation.from_json(o) for o in model]

    def count_annotations(self, id: str, layer_id: str) -> int:
        return int(self._store_query("countAnnotations", {"id": id, "layerId": layer_id}))

    def get_annotations(
        self,
        id: str,
        layer_id: str,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Optional[List[Annotation]]:
        model = self._store_query(
            "getAnnotations",
            {"id": id, "layerId": layer_id, "pageLength": page_length, "pageNumber": page_number},
        )
        return None if model is None else [Annotation.from_json(o) for o in model]

    def get_anchors(self, id: str, anchor_ids: Sequence[str]) -> Optional[List[Anchor]]:
        model = self._store_query("getAnchors", {"id": id, "anchorIds": list(anchor_ids)})
        return None if model is None else [Anchor.from_json(o) for o in model]

    def get_media_tracks(self) -> Optional[List[MediaTrackDefinition]]:
        model = self._store_query("getMediaTracks")
        return None if model is None else [MediaTrackDefinition.from_json(o) for o in model]

    def get_available_media(self, id: str) -> Optional[List[MediaFile]]:
        model = self._store_query("getAvailableMedia", {"id": id})
        return None if model is None else [MediaFile.from_json(o) for o in model]

    def get_media(
        self,
        id: str,
        track_suffix: str,
        mime_type: str,
        start_offset: Optional[float] = None,
        end_offset: Optional[float] = None,
    ) -> Optional[str]:
        """URL of the transcript's media, optionally limited to an interval."""

        model = self._store_query(
            "getMedia",
            {
                "id": id,
                "trackSuffix": track_suffix,
                "mimeType": mime_type,
                "startOffset": start_offset,
                "endOffset": end_offset,
            },
        )
        return None if model is None else str(model)

    def get_episode_documents(self, id: str) -> Optional[List[MediaFile]]:
        model = self._store_query("getEpisodeDocuments", {"id": id})
        return None if model is None else [MediaFile.from_json(o) for o in model]

    def get_serializer_descriptors(self) -> Optional[List[SerializationDescriptor]]:
        model = self._store_query("getSerializerDescriptors")
        return None if model is None else [SerializationDescriptor.from_json(o) for o in model]

    def get_deserializer_descriptors(self) -> Optional[List[SerializationDescriptor]]:
        model = self._store_query("getDeserializerDescriptors")
        return None if model is None else [SerializationDescriptor.from_json(o) for o in model]

    def get_annotator_descriptors(self) -> Optional[List[AnnotatorDescriptor]]:
        model = self._store_query("getAnnotatorDescriptors")
        return None if model is None else [AnnotatorDescriptor.from_json(o) for o in model]

    # ------------------------------------------------------------------
    # tasks

    def task_status(self, thread_id: str) -> Optional[TaskStatus]:
        """Current status of a server task."""

        response = self._get(self.make_url("thread"), {"threadId": thread_id})
        return None if response.is_model_null() else TaskStatus.from_json(response.model)

    def wait_for_task(self, thread_id: str, max_seconds: int = 0) -> Optional[TaskStatus]:
        """Poll a task until it stops running.

        The interval between polls is the task's own ``refresh_seconds``
        (2 seconds if the server suggests nothing). Polling also stops when
        :meth:`cancel` is called or, if `max_seconds` is positive, when that
        much time has passed; the last status seen is returned either way.
        Running out of time leaves :meth:`is_cancelling` true.
        """

        self._cancelling = False
        status = self.task_status(thread_id)
        deadline = self._clock() + max_seconds if max_seconds > 0 else None

        while status is not None and status.running and not self._cancelling:
            seconds = status.refresh_seconds if status.refresh_seconds > 0 else DEFAULT_REFRESH_SECONDS
            self._sleep(seconds)
            if deadline is not None and self._clock() > deadline:
                log.debug("gave up waiting for task %s after %ss", thread_id, max_seconds)
                self._cancelling = True
                break
            if not self._cancelling:
                status = self.task_status(thread_id)
        return status

    def cancel_task(self, thread_id: str) -> None:
        """Ask the server to stop a running task."""
        self._get(self.make_url("threads"), {"threadId": thread_id, "command": "cancel"})

    def release_task(self, thread_id: str) -> None:
        """Tell the server the task's results are no longer needed."""
        self._get(self.make_url("threads"), {"threadId": thread_id, "command": "release"})

    def get_tasks(self) -> Optional[Dict[str, TaskStatus]]:
        response = self._get(self.make_url("threads"))
        if response.is_model_null():
            return None
        return {tid: TaskStatus.from_json(s) for tid, s in response.model.items()}

    def cancel(self) -> None:
        """Stop the current long-running client operation.

        Interrupts task polling, fragment downloads and any multipart upload in
        progress. Safe to call from another thread.
        """

        self._cancelling = True
        if self._post_request is not None:
            self._post_request.cancel()

    def is_cancelling(self) -> bool:
        return self._cancelling

    # ------------------------------------------------------------------
    # search

    def search(
        self,
        pattern: Optional[Pattern],
        participant_ids: Optional[Sequence[str]] = None,
        transcript_types: Optional[Sequence[str]] = None,
        main_participant: bool = True,
        aligned: bool = False,
        matches_per_transcript: Optional[int] = None,
        overlap_threshold: Optional[int] = None,
    ) -> str:
        """Start a search; returns the id of the server task running it.

        Use :meth:`get_matches` to collect the results, then
        :meth:`release_task`.
        """

        self._cancelling = False
        if pattern is None:
            raise StoreException("No pattern specified.")
        search_json = str(pattern) if isinstance(pattern, PatternBuilder) else _compact(pattern)
        params: Dict[str, Any] = {
            "command": "search",
            "searchJson": search_json,
            "words_context": 0,
        }
        if main_participant:
            params["only_main_speaker"] = True
        if aligned:
            params["only_aligned"] = True
        params["matches_per_transcript"] = matches_per_transcript
        params["participant_id"] = list(participant_ids) if participant_ids is not None else None
        params["transcript_type"] = list(transcript_types) if transcript_types is not None else None
        params["overlap_threshold"] = overlap_threshold

        response = self._get(self.make_url("search"), params)
        thread_id = (response.model or {}).get("threadId")
        if thread_id is None:
            raise StoreException("Search did not return a task id.")
        return str(thread_id)

    def get_matches(
        self,
        thread_id: str,
        words_context: int = 0,
        page_length: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Optional[List[Match]]:
        """Results of a search task, waiting for it to finish first.

        Returns None if the wait was cancelled.
        """

        self.wait_for_task(thread_id, 0)
        if self._cancelling:
            return None

        response = self._get(
            self.make_url("resultsStream"),
            {
                "threadId": thread_id,
                "words_context": words_context,
                "pageLength": page_length,
                "pageNumber": page_number,
            },
        )
        model = response.model or {}
        return [Match.from_json(m) for m in model.get("matches") or []]

    def search_and_get_matches(
        self,
        pattern: Pattern,
        participant_ids: Optional[Sequence[str]] = None,
        transcript_types: Optional[Sequence[str]] = None,
        main_participant: bool = True,
        aligned: bool = False,
        matches_per_transcript: Optional[int] = None,
        overlap_threshold: Optional[int] = None,
        words_context: int = 0,
        max_matches: Optional[int] = None,
    ) -> Optional[List[Match]]:
        """Search, collect the matches, and release the task on the server."""

        thread_id = self.search(
            pattern,
            participant_ids,
            transcript_types,
            main_participant,
            aligned,
            matches_per_transcript,
            overlap_threshold,
        )
        try:
            if max_matches is None:
                return self.get_matches(thread_id, words_context)
            return self.get_matches(thread_id, words_context, max_matches, 0)
        finally:
            try:
                self.release_task(thread_id)
            except StoreException as e:
                log.warning("could not release task %s: %s", thread_id, e)

    def get_match_annotations(
        self,
        matches: Sequence[Union[str, Match]],
        layer_ids: Sequence[str],
        target_offset: int = 0,
        annotations_per_layer: int = 1,
    ) -> List[List[Optional[Annotation]]]:
        """Annotations on the given layers for each match.

        Each row has ``len(layer_ids) * annotations_per_layer`` entries, with
        None where the match has no such annotation.
        """

        match_ids = [m.match_id if isinstance(m, Match) else m for m in matches]
        with tempfile.TemporaryDirectory(prefix="getMatchAnnotations_") as tmp:
            upload = Path(tmp) / "matches.csv"
            with open(upload, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["MatchId"])
                for match_id in match_ids:
                    writer.writerow([match_id])

            request = (
                self._multipart(self.make_url("api/getMatchAnnotations"))
                .set_parameter("layer", list(layer_ids))
                .set_parameter("targetOffset", target_offset)
                .set_parameter("annotationsPerLayer", annotations_per_layer)
                .set_parameter("csvFieldDelimiter", ",")
                .set_parameter("targetColumn", 0)
                .set_parameter("copyColumns", False)
                .set_parameter("uploadfile", upload)
            )
            response = self._post_multipart(request)

        per_match = len(layer_ids) * annotations_per_layer
        rows: List[List[Optional[Annotation]]] = []
        model = response.model or []
        for m in range(len(match_ids)):
            found = model[m] if m < len(model) else []
            row = []
            for a in range(per_match):
                item = found[a] if a < len(found) else None
                row.append(None if item is None else Annotation.from_json(item))
            rows.append(row)
        return rows

    # ------------------------------------------------------------------
    # fragments and exports

    def get_sound_fragments(
        self,
        transcript_ids: Sequence[Union[str, Match]],
        start_offsets: Optional[Sequence[Optional[float]]] = None,
        end_offsets: Optional[Sequence[Optional[float]]] = None,
        sample_rate: Optional[int] = None,
        dir: Optional[PathLike] = None,
    ) -> List[Optional[Path]]:
        """Download WAV excerpts, one per (transcript, start, end) triple.

        Pass a list of :class:`Match` objects instead of ids to use each
        match's line bounds. Entries the server cannot supply are None.
        """

        params = {} if sample_rate is None else {"sampleRate": sample_rate}
        return self._fragments(
            "soundfragment", "audio/wav", ".wav", transcript_ids, start_offsets, end_offsets, params, dir
        )

    def get_fragments(
        self,
        transcript_ids: Sequence[Union[str, Match]],
        start_offsets: Optional[Sequence[Optional[float]]] = None,
        end_offsets: Optional[Sequence[Optional[float]]] = None,
        layer_ids: Sequence[str] = (),
        mime_type: str = "text/praat-textgrid",
        dir: Optional[PathLike] = None,
    ) -> List[Optional[Path]]:
        """Download transcript fragments serialized in the given format."""

        ext = mimetypes.guess_extension(mime_type) or ".txt"
        params = {"mimeType": mime_type, "layerId": list(layer_ids)}
        return self._fragments(
            "api/serialize/fragment", mime_type, ext, transcript_ids, start_offsets, end_offsets, params, dir
        )

    def _fragments(
        self,
        resource: str,
        accept: str,
        ext: str,
        transcript_ids: Sequence[Union[str, Match]],
        start_offsets: Optional[Sequence[Optional[float]]],
        end_offsets: Optional[Sequence[Optional[float]]],
        extra: Mapping[str, Any],
        dir: Optional[PathLike],
    ) -> List[Optional[Path]]:
        if start_offsets is None and end_offsets is None and all(
            isinstance(t, Match) for t in transcript_ids
        ):
            start_offsets = [m.line for m in transcript_ids]
            end_offsets = [m.line_end for m in transcript_ids]
            transcript_ids = [m.transcript for m in transcript_ids]
        start_offsets = list(start_offsets or [])
        end_offsets = list(end_offsets or [])
        if len(transcript_ids) != len(start_offsets) or len(transcript_ids) != len(end_offsets):
            raise StoreException(
                f"transcriptIds ({len(transcript_ids)}), startOffsets ({len(start_offsets)}), "
                f"and endOffsets ({len(end_offsets)}) must be arrays of equal size."
            )

        out_dir = Path(dir) if dir is not None else Path(tempfile.mkdtemp(prefix=f"{resource.rsplit('/', 1)[-1]}_"))
        out_dir.mkdir(parents=True, exist_ok=True)

        self._cancelling = False
        fragments: List[Optional[Path]] = [None] * len(transcript_ids)
        for i, (tid, start, end) in enumerate(zip(transcript_ids, start_offsets, end_offsets)):
            if self._cancelling:
                break
            if tid is None or start is None or end is None:
                continue
            params = {"id": tid, "start": start, "end": end}
            params.update(extra)
            http = self._raw(self.make_url(resource), params, accept=accept)
            if http.status != 200:
                if http.status != 404:
                    log.error("%s: Error %s for %s %s-%s", resource, http.status, tid, start, end)
                continue
            name = http.suggested_filename() or fragment_id(str(tid), float(start), float(end)) + ext
            fragments[i] = http.save_to(out_dir / name)
        return fragments

    def get_transcript_attributes(
        self,
        transcript_ids: Sequence[str],
        layer_ids: Sequence[str],
        path: Optional[PathLike] = None,
    ) -> Path:
        """Save a CSV of transcript attribute values; returns the file written."""

        self.get_required_http_authorization()
        http = self._check_raw(
            self.session.post(
                self.make_url("api/attributes"),
                {"layer": ["transcript", *layer_ids], "id": list(transcript_ids)},
                headers={"Accept": "text/csv"},
            )
        )
        return http.save_to(path or _temp_file("getTranscriptAttributes_", ".csv"))

    def get_participant_attributes(
        self,
        participant_ids: Sequence[str],
        layer_ids: Sequence[str],
        path: Optional[PathLike] = None,
    ) -> Path:
        """Save a CSV of participant attribute values; returns the file written."""

        self.get_required_http_authorization()
        http = self._check_raw(
            self.session.post(
                self.make_url("participants"),
                {
                    "type": "participant",
                    "content-type": "text/csv",
                    "csvFieldDelimiter": ",",
                    "participantId": list(participant_ids),
                    "layer": list(layer_ids),
                },
                headers={"Accept": "text/csv"},
            )
        )
        return http.save_to(path or _temp_file("getParticipantAttributes_", ".csv"))

    # ------------------------------------------------------------------
    # system

    def get_system_attribute(self, attribute: str) -> Optional[str]:
        """Value of a system attribute, or None if the server doesn't have it."""

        try:
            response = self._get(self.make_url("api/systemattributes/" + quote(attribute, safe="")))
        except ResponseException as e:
            if e.response.http_status == 404:
                return None
            raise
        return None if response.is_model_null() else response.model.get("value")

    def get_user_info(self) -> Optional[User]:
        """The currently logged-in user."""

        response = self._get(self.make_url("api/user"))
        return None if response.is_model_null() else User.from_json(response.model)

    def get_dictionaries(self) -> Optional[Dict[str, List[str]]]:
        """Dictionary ids available for lookup, keyed by layer manager id."""

        response = self._get(self.make_url("dictionaries"))
        if response.is_model_null():
            return None
        return {manager: list(ids) for manager, ids in sorted(response.model.items())}

    def get_dictionary_entries(
        self,
        manager_id: str,
        dictionary_id: str,
        keys: Sequence[str],
        path: Optional[PathLike] = None,
    ) -> Path:
        """Look up keys in a dictionary; saves the CSV of entries and returns its path."""

        with tempfile.TemporaryDirectory(prefix="getDictionaryEntries_") as tmp:
            upload = Path(tmp) / "keys.csv"
            upload.write_text("".join(f"{k}\n" for k in keys), encoding="utf-8")
            request = (
                self._multipart(self.make_url("dictionary"), accept="text/csv")
                .set_parameter("managerId", manager_id)
                .set_parameter("dictionaryId", dictionary_id)
                .set_parameter("uploadfile", upload)
            )
            http = self._check_raw(request.post())
        return http.save_to(path or _temp_file("getDictionaryEntries_", ".csv"))


def _compact(obj: Mapping[str, Any]) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _temp_file(prefix: str, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile(prefix=prefix, suffix=suffix, delete=False) as f:
        return Path(f.name)
