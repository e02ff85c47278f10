from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Type, TypeVar, Union
from urllib.parse import quote

from labbcat.edit import LabbcatEdit
from labbcat.errors import StoreException
from labbcat.models import (
    Category,
    Corpus,
    LabbcatModel,
    Layer,
    MediaTrack,
    Project,
    Role,
    RolePermission,
    SystemAttribute,
    User,
)
from labbcat.view import PathLike

log = logging.getLogger("labbcat.client")

M = TypeVar("M", bound=LabbcatModel)


def _key(value: Any) -> str:
    return quote(str(value), safe="")


class LabbcatAdmin(LabbcatEdit):
    """Administration of a LaBB-CAT corpus: layers, corpora, users, roles...

    Requires a user with the ``admin`` role.

    The record-management methods follow one pattern per record type:
    ``create_*`` POSTs a JSON record, ``read_*`` GETs a page of records,
    ``update_*`` PUTs a JSON record, and ``delete_*`` DELETEs by key.
    """

    def admin_url(self, resource: str) -> str:
        return f"{self.labbcat_url}api/admin/store/{resource}"

    # ------------------------------------------------------------------
    # generic record plumbing

    def _create(self, path: str, record: LabbcatModel, model: Type[M]) -> Optional[M]:
        response = self._send_json(self.make_url(path), record.to_json(), method="POST")
        return None if response.is_model_null() else model.from_json(response.model)

    def _read(
        self,
        path: str,
        model: Type[M],
        page_number: Optional[int] = None,
        page_length: Optional[int] = None,
    ) -> Optional[List[M]]:
        response = self._get(
            self.make_url(path), {"pageNumber": page_number, "pageLength": page_length}
        )
        if response.is_model_null():
            return None
        return [model.from_json(o) for o in response.model]

    def _update(self, path: str, record: LabbcatModel, model: Type[M]) -> Optional[M]:
        response = self._send_json(self.make_url(path), record.to_json(), method="PUT")
        return None if response.is_model_null() else model.from_json(response.model)

    def _remove(self, path: str) -> None:
        self._delete(self.make_url(path))

    # ------------------------------------------------------------------
    # layers

    def new_layer(self, layer: Union[Layer, Mapping[str, Any]]) -> Optional[Layer]:
        """Create a new annotation layer."""
        return self._save_layer("newLayer", layer)

    def save_layer(self, layer: Union[Layer, Mapping[str, Any]]) -> Optional[Layer]:
        """Save changes to an existing layer's definition."""
        return self._save_layer("saveLayer", layer)

    def _save_layer(self, name: str, layer: Union[Layer, Mapping[str, Any]]) -> Optional[Layer]:
        body = layer.to_json() if isinstance(layer, Layer) else dict(layer)
        response = self._send_json(self.admin_url(name), body, method="POST")
        return None if response.is_model_null() else Layer.from_json(response.model)

    def delete_layer(self, id: str) -> None:
        self._post(self.admin_url("deleteLayer"), {"id": id})

    def generate_layer(self, layer_id: str) -> str:
        """(Re)generate all annotations on a layer; returns the task id."""

        response = self._post(
            self.make_url("admin/layers/regenerate"), {"layerId": layer_id, "sure": "true"}
        )
        thread_id = (response.model or {}).get("threadId")
        if thread_id is None:
            raise StoreException(f"Layer generation did not return a task id: {layer_id}")
        return str(thread_id)

    # ------------------------------------------------------------------
    # corpora

    def create_corpus(self, corpus: Corpus) -> Optional[Corpus]:
        return self._create("api/admin/corpora", corpus, Corpus)

    def read_corpora(self, page_number=None, page_length=None) -> Optional[List[Corpus]]:
        return self._read("api/admin/corpora", Corpus, page_number, page_length)

    def update_corpus(self, corpus: Corpus) -> Optional[Corpus]:
        return self._update("api/admin/corpora", corpus, Corpus)

    def delete_corpus(self, corpus: Union[Corpus, str]) -> None:
        name = corpus.name if isinstance(corpus, Corpus) else corpus
        self._remove("api/admin/corpora/" + _key(name))

    # ------------------------------------------------------------------
    # projects

    def create_project(self, project: Project) -> Optional[Project]:
        return self._create("api/admin/projects", project, Project)

    def read_projects(self, page_number=None, page_length=None) -> Optional[List[Project]]:
        return self._read("api/admin/projects", Project, page_number, page_length)

    def update_project(self, project: Project) -> Optional[Project]:
        return self._update("api/admin/projects", project, Project)

    def delete_project(self, project: Union[Project, str]) -> None:
        name = project.project if isinstance(project, Project) else project
        self._remove("api/admin/projects/" + _key(name))

    # ------------------------------------------------------------------
    # media tracks

    def create_media_track(self, media_track: MediaTrack) -> Optional[MediaTrack]:
        return self._create("api/admin/mediatracks", media_track, MediaTrack)

    def read_media_tracks(self, page_number=None, page_length=None) -> Optional[List[MediaTrack]]:
        return self._read("api/admin/mediatracks", MediaTrack, page_number, page_length)

    def update_media_track(self, media_track: MediaTrack) -> Optional[MediaTrack]:
        return self._update("api/admin/mediatracks", media_track, MediaTrack)

    def delete_media_track(self, media_track: Union[MediaTrack, str]) -> None:
        suffix = media_track.suffix if isinstance(media_track, MediaTrack) else media_track
        self._remove("api/admin/mediatracks/" + _key(suffix))

    # ------------------------------------------------------------------
    # roles and permissions

    def create_role(self, role: Role) -> Optional[Role]:
        return self._create("api/admin/roles", role, Role)

    def read_roles(self, page_number=None, page_length=None) -> Optional[List[Role]]:
        return self._read("api/admin/roles", Role, page_number, page_length)

    def update_role(self, role: Role) -> Optional[Role]:
        return self._update("api/admin/roles", role, Role)

    def delete_role(self, role: Union[Role, str]) -> None:
        role_id = role.role_id if isinstance(role, Role) else role
        self._remove("api/admin/roles/" + _key(role_id))

    def create_role_permission(self, permission: RolePermission) -> Optional[RolePermission]:
        return self._create("api/admin/roles/permissions", permission, RolePermission)

    def read_role_permissions(
        self, role_id: str, page_number=None, page_length=None
    ) -> Optional[List[RolePermission]]:
        return self._read(
            "api/admin/roles/permissions/" + _key(role_id), RolePermission, page_number, page_length
        )

    def update_role_permission(self, permission: RolePermission) -> Optional[RolePermission]:
        return self._update("api/admin/roles/permissions", permission, RolePermission)

    def delete_role_permission(
        self, permission: Union[RolePermission, str], entity: Optional[str] = None
    ) -> None:
        """Delete a permission, given either the record or its role id and entity."""

        if isinstance(permission, RolePermission):
            role_id, entity = permission.role_id, permission.entity
        else:
            role_id = permission
        if entity is None:
            raise StoreException("entity is required to delete a role permission")
        self._remove(f"api/admin/roles/permissions/{_key(role_id)}/{_key(entity)}")

    # ------------------------------------------------------------------
    # users

    def create_user(self, user: User) -> Optional[User]:
        return self._create("api/admin/users", user, User)

    def read_users(self, page_number=None, page_length=None) -> Optional[List[User]]:
        return self._read("api/admin/users", User, page_number, page_length)

    def update_user(self, user: User) -> Optional[User]:
        return self._update("api/admin/users", user, User)

    def delete_user(self, user: Union[User, str]) -> None:
        name = user.user if isinstance(user, User) else user
        self._remove("api/admin/users/" + _key(name))

    def set_password(self, user: str, password: str, reset_password: bool = False) -> None:
        """Set a user's password; `reset_password` forces a change at next login.

        Security notes:
        - The password travels in the request body only.

        """

        self._send_json(
            self.make_url("api/admin/password"),
            {"user": user, "password": password, "resetPassword": reset_password},
            method="PUT",
        )

    # ------------------------------------------------------------------
    # attribute categories

    def create_category(self, category: Category) -> Optional[Category]:
        return self._create("api/admin/categories", category, Category)

    def read_categories(
        self, class_id: str, page_number=None, page_length=None
    ) -> Optional[List[Category]]:
        """Categories for one class of attributes: ``transcript``, ``speaker`` or ``layer``."""
        return self._read("api/admin/categories/" + _key(class_id), Category, page_number, page_length)

    def update_category(self, category: Category) -> Optional[Category]:
        return self._update("api/admin/categories", category, Category)

    def delete_category(self, category: Union[Category, str], name: Optional[str] = None) -> None:
        if isinstance(category, Category):
            class_id, name = category.class_id, category.category
        else:
            class_id = category
        if name is None:
            raise StoreException("category name is required to delete a category")
        self._remove(f"api/admin/categories/{_key(class_id)}/{_key(name)}")

    # ------------------------------------------------------------------
    # system settings

    def read_system_attributes(self) -> Optional[List[SystemAttribute]]:
        response = self._get(self.make_url("api/admin/systemattributes"))
        if response.is_model_null():
            return None
        return [SystemAttribute.from_json(o) for o in response.model]

    def update_system_attribute(
        self, attribute: Union[SystemAttribute, str], value: Optional[str] = None
    ) -> Optional[SystemAttribute]:
        if not isinstance(attribute, SystemAttribute):
            attribute = SystemAttribute(attribute=attribute, value=value)
        response = self._send_json(
            self.make_url("api/admin/systemattributes"), attribute.to_json(), method="PUT"
        )
        return None if response.is_model_null() else SystemAttribute.from_json(response.model)

    def update_info(self, html: str) -> None:
        """Replace the corpus information document."""

        self.get_required_http_authorization()
        self._check_raw(self.session.send_text(self.make_url("doc/"), html, method="PUT"))

    # ------------------------------------------------------------------
    # lexicons

    def load_lexicon(
        self,
        file: PathLike,
        lexicon: str,
        field_delimiter: str,
        field_names: str,
        quote: str = "",
        comment: str = "",
        skip_first_line: bool = False,
    ) -> None:
        """Upload a lexicon file to the flat-lexicon tagger and wait for it to load.

        The tagger loads the file in the background; its progress is polled
        once a second. Raises StoreException with the tagger's last status if
        loading stops short of 100%.
        """

        ext = self.make_url("edit/annotator/ext/FlatLexiconTagger/")
        request = (
            self._multipart(ext + "loadLexicon", accept="text/plain")
            .set_parameter("lexicon", lexicon)
            .set_parameter("fieldDelimiter", field_delimiter)
            .set_parameter("quote", quote)
            .set_parameter("comment", comment)
            .set_parameter("fieldNames", field_names)
            .set_parameter("skipFirstLine", skip_first_line)
            .set_parameter("file", Path(file))
        )
        self._check_raw(request.post())

        running = True
        status = "Uploading"
        percent = 0
        while running and not self._cancelling:
            self._sleep(1)
            running = self._raw(ext + "getRunning").text().strip().lower() == "true"
            status = self._raw(ext + "getStatus").text().strip()
            percent = int(self._raw(ext + "getPercentComplete").text().strip() or 0)
            log.debug("loadLexicon %s: %s%% %s", lexicon, percent, status)
        if percent < 100:
            raise StoreException(status)

    def delete_lexicon(self, lexicon: str) -> Optional[str]:
        """Delete a flat-lexicon tagger lexicon; returns an error message or None."""

        url = self.make_url("edit/annotator/ext/FlatLexiconTagger/deleteLexicon?" + _key(lexicon))
        text = self._check_raw(self._raw(url)).text().strip()
        return text or None

