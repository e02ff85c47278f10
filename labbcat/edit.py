from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union
from urllib.parse import quote, urlparse

from labbcat.client.http import HttpSession
from labbcat.errors import ResponseException, StoreException
from labbcat.models import MediaFile, Upload
from labbcat.view import LabbcatView, PathLike

log = logging.getLogger("labbcat.client")

MediaArg = Union[None, PathLike, Sequence[PathLike], Mapping[str, Union[PathLike, Sequence[PathLike]]]]


def _media_by_suffix(media: MediaArg, track_suffix: Optional[str] = None) -> Dict[str, list]:
    """Normalize media arguments to ``{track_suffix: [paths]}``."""

    if media is None:
        return {}
    if isinstance(media, Mapping):
        out: Dict[str, list] = {}
        for suffix, files in media.items():
            files = [files] if isinstance(files, (str, Path)) else list(files)
            out[suffix or ""] = [Path(f) for f in files]
        return out
    files = [media] if isinstance(media, (str, Path)) else list(media)
    return {track_suffix or "": [Path(f) for f in files]} if files else {}


class LabbcatEdit(LabbcatView):
    """Read/write access to a LaBB-CAT corpus.

    Requires a user with the ``edit`` role.
    """

    def edit_url(self, resource: str) -> str:
        return f"{self.labbcat_url}api/edit/store/{resource}"

    def _edit(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        log.debug("%s -> %s", name, params)
        response = self._post(self.edit_url(name), params)
        return None if response.is_model_null() else response.model

    # ------------------------------------------------------------------
    # annotations

    def create_annotation(
        self,
        id: str,
        from_id: str,
        to_id: str,
        layer_id: str,
        label: str,
        confidence: int,
        parent_id: str,
    ) -> Optional[str]:
        """Create an annotation; returns the new annotation's id."""

        model = self._edit(
            "createAnnotation",
            {
                "id": id,
                "fromId": from_id,
                "toId": to_id,
                "layerId": layer_id,
                "label": label,
                "confidence": confidence,
                "parentId": parent_id,
            },
        )
        return None if model is None else str(model)

    def tag_matching_annotations(
        self, expression: str, layer_id: str, label: str, confidence: Optional[int] = None
    ) -> int:
        """Add a tag to every annotation that matches the expression; returns the count."""

        model = self._edit(
            "tagMatchingAnnotations",
            {"expression": expression, "layerId": layer_id, "label": label, "confidence": confidence},
        )
        return int(model or 0)

    def destroy_annotation(self, id: str, annotation_id: str) -> None:
        self._edit("destroyAnnotation", {"id": id, "annotationId": annotation_id})

    def delete_matching_annotations(self, expression: str) -> int:
        return int(self._edit("deleteMatchingAnnotations", {"expression": expression}) or 0)

    # ------------------------------------------------------------------
    # participants, media and documents

    def save_participant(
        self, id: str, label: str, attributes: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """Create or update a participant.

        `attributes` maps participant attribute layer ids (e.g.
        ``participant_gender``) to values. Returns True if anything changed.
        """

        params: Dict[str, Any] = {"id": id, "label": label}
        params.update(attributes or {})
        return bool(self._edit("saveParticipant", params))

    def delete_participant(self, id: str) -> None:
        self._edit("deleteParticipant", {"id": id})

    def delete_transcript(self, id: str) -> None:
        self._edit("deleteTranscript", {"id": id})

    def save_media(self, id: str, media: PathLike, track_suffix: str = "") -> Optional[MediaFile]:
        """Attach a media file to a transcript.

        `media` is a local path or a URL; anything other than a ``file:`` URL
        is downloaded first.
        """

        with tempfile.TemporaryDirectory(prefix="saveMedia_") as tmp:
            path = self._local_file(media, Path(tmp))
            request = (
                self._multipart(self.edit_url("saveMedia"))
                .set_parameter("id", id)
                .set_parameter("trackSuffix", track_suffix)
                .set_parameter("media", path)
            )
            response = self._post_multipart(request)
        return None if response.is_model_null() else MediaFile.from_json(response.model)

    def save_episode_document(self, id: str, document: PathLike) -> Optional[MediaFile]:
        """Add a document to the episode of the given transcript."""

        with tempfile.TemporaryDirectory(prefix="saveEpisodeDocument_") as tmp:
            path = self._local_file(document, Path(tmp))
            request = (
                self._multipart(self.edit_url("saveEpisodeDocument"))
                .set_parameter("id", id)
                .set_parameter("document", path)
            )
            response = self._post_multipart(request)
        return None if response.is_model_null() else MediaFile.from_json(response.model)

    def delete_media(self, id: str, file_name: str) -> None:
        self._edit("deleteMedia", {"id": id, "fileName": file_name})

    def _local_file(self, location: PathLike, tmp: Path) -> Path:
        if isinstance(location, Path):
            return location
        parsed = urlparse(location)
        if parsed.scheme in ("", "file") or len(parsed.scheme) == 1:
            # "C:\..." parses with a one-letter scheme
            return Path(parsed.path if parsed.scheme == "file" else location)

        # a fresh session, so credentials never go to a third-party host
        http = HttpSession(language=self.session.language, timeout=self.session.timeout).get(location)
        if http.status != 200:
            raise StoreException(f"Could not download {location}: HTTP status {http.status}")
        name = http.suggested_filename() or Path(parsed.path).name or "download"
        return http.save_to(tmp / name)

    # ------------------------------------------------------------------
    # transcript upload

    def transcript_upload(
        self,
        transcript: PathLike,
        media: MediaArg = None,
        merge: bool = False,
        track_suffix: Optional[str] = None,
    ) -> Upload:
        """Upload a transcript (and optional media) to start a new upload.

        The returned :class:`Upload` lists the parameters the server needs
        before it will process the transcript; fill them in and pass it to
        :meth:`transcript_upload_parameters`.
        """

        request = self._multipart(self.make_url("api/edit/transcript/upload")).set_parameter(
            "transcript", Path(transcript)
        )
        if merge:
            request.set_parameter("merge", True)
        for suffix, files in _media_by_suffix(media, track_suffix).items():
            request.set_parameter("media" + suffix, files)
        response = self._post_multipart(request)
        return Upload.from_json(response.model or {})

    def transcript_upload_parameters(self, upload: Upload) -> Upload:
        """Send parameter values for an upload; the result lists the processing tasks."""

        params = {p.name: p.value for p in upload.parameters if p.value is not None}
        response = self._put(
            self.make_url("api/edit/transcript/upload/" + quote(str(upload.id), safe="")), params
        )
        result = Upload.from_json(response.model or {})
        if result.id is None:
            result.id = upload.id
        return result

    def transcript_upload_delete(self, upload: Union[Upload, str]) -> None:
        """Cancel an upload that hasn't been processed yet."""

        upload_id = upload.id if isinstance(upload, Upload) else upload
        self._delete(self.make_url("api/edit/transcript/upload/" + quote(str(upload_id), safe="")))

    def new_transcript(
        self,
        transcript: PathLike,
        media: MediaArg = None,
        track_suffix: Optional[str] = None,
        transcript_type: Optional[str] = None,
        corpus: Optional[str] = None,
        episode: Optional[str] = None,
    ) -> Optional[str]:
        """Upload a new transcript; returns the id of the task processing it.

        Servers that predate the upload API are sent the transcript through the
        older ``edit/transcript/new`` form instead.
        None means the server accepted the upload without starting a task.
        """

        transcript = Path(transcript)
        self._cancelling = False
        try:
            upload = self.transcript_upload(transcript, media, False, track_suffix)
        except ResponseException as e:
            if e.response.http_status != 404:
                raise
            log.debug("upload API not found, using edit/transcript/new")
            return self._legacy_transcript(
                transcript,
                todo="new",
                media=media,
                track_suffix=track_suffix,
                transcript_type=transcript_type,
                corpus=corpus,
                episode=episode,
            )

        upload.set_parameter_value("labbcat_transcript_type", transcript_type)
        upload.set_parameter_value("labbcat_corpus", corpus)
        upload.set_parameter_value("labbcat_episode", episode)
        return self._upload_thread_id(self.transcript_upload_parameters(upload), transcript)

    def update_transcript(self, transcript: PathLike, generate: bool = True) -> Optional[str]:
        """Upload a new version of an existing transcript; returns the task id.

        None means the server accepted the upload without starting a task.
        """

        transcript = Path(transcript)
        self._cancelling = False
        try:
            upload = self.transcript_upload(transcript, merge=True)
        except ResponseException as e:
            if e.response.http_status != 404:
                raise
            log.debug("upload API not found, using edit/transcript/new")
            return self._legacy_transcript(transcript, todo="update")

        upload.set_parameter_value("labbcat_generate", generate)
        return self._upload_thread_id(self.transcript_upload_parameters(upload), transcript)

    def _upload_thread_id(self, upload: Upload, transcript: Path) -> Optional[str]:
        if transcript.name in upload.transcripts:
            return str(upload.transcripts[transcript.name])
        for thread_id in upload.transcripts.values():
            return str(thread_id)
        log.debug("upload %s started no task for %s", upload.id, transcript.name)
        return None

    def _legacy_transcript(
        self,
        transcript: Path,
        *,
        todo: str,
        media: MediaArg = None,
        track_suffix: Optional[str] = None,
        transcript_type: Optional[str] = None,
        corpus: Optional[str] = None,
        episode: Optional[str] = None,
    ) -> str:
        request = (
            self._multipart(self.make_url("edit/transcript/new"))
            .set_parameter("todo", todo)
            .set_parameter("auto", True)
            .set_parameter("transcriptType", transcript_type)
            .set_parameter("corpus", corpus)
            .set_parameter("episode", episode)
            .set_parameter("uploadfile1_0", transcript)
        )
        for suffix, files in _media_by_suffix(media, track_suffix).items():
            request.set_parameter(f"uploadmedia{suffix}1", files)
        response = self._post_multipart(request)
        result = (response.model or {}).get("result") or {}
        if transcript.name not in result:
            raise StoreException(f"No task started for {transcript.name}")
        return str(result[transcript.name])

    # ------------------------------------------------------------------
    # dictionaries

    def add_layer_dictionary_entry(self, layer_id: str, key: str, entry: str) -> None:
        """Add an entry to the dictionary that a layer is tagged from."""
        self._post(self.make_url("api/edit/dictionary/add"), {"layerId": layer_id, "key": key, "entry": entry})

    def remove_layer_dictionary_entry(self, layer_id: str, key: str, entry: Optional[str] = None) -> None:
        """Remove one entry for `key`, or all of them if `entry` is None."""
        self._post(self.make_url("api/edit/dictionary/remove"), {"layerId": layer_id, "key": key, "entry": entry})

    def add_dictionary_entry(self, manager_id: str, dictionary_id: str, key: str, entry: str) -> None:
        self._post(
            self.make_url("api/edit/dictionary/add"),
            {"layerManagerId": manager_id, "dictionaryId": dictionary_id, "key": key, "entry": entry},
        )

    def remove_dictionary_entry(
        self, manager_id: str, dictionary_id: str, key: str, entry: Optional[str] = None
    ) -> None:
        self._post(
            self.make_url("api/edit/dictionary/remove"),
            {"layerManagerId": manager_id, "dictionaryId": dictionary_id, "key": key, "entry": entry},
        )

    # ------------------------------------------------------------------
    # annotator extensions

    def annotator_ext(
        self, annotator_id: str, resource: str, parameters: Optional[Sequence[Any]] = None
    ) -> str:
        """Call an annotator's extension web-app resource; returns its text response.

        `parameters` are passed positionally as a comma-separated query string.
        """

        url = self.make_url(f"edit/annotator/ext/{quote(annotator_id, safe='')}/{resource}")
        if parameters:
            url += "?" + ",".join(quote(str(p), safe="") for p in parameters)
        return self._check_raw(self._raw(url)).text()

