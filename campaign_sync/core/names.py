"""
Mapping between a record's internal name and its location on the filesystem.

A name such as `cus:folder_sub_page` is stored as `cus/folder/sub/page.html`:
the namespace becomes a folder and each `_` in the local name becomes a
folder boundary. The substitution is not escaped, so a name with a literal
`_` can't be told apart from one which was nested in folders.
"""
from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "InternalName",
    "format_name",
    "to_filesystem_path",
]

NAMESPACE_SEPARATOR = ":"
FOLDER_SEPARATOR = "_"


class InternalName(BaseModel):
    """
    Two-part identifier of a record: optional namespace plus local name.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str | None = None
    name: str = Field(min_length=1)

    def __str__(self) -> str:
        return format_name(self)

    @property
    def has_namespace(self) -> bool:
        return bool(self.namespace)

    @classmethod
    def parse(cls, text: str) -> InternalName:
        """
        Parse from `namespace:name` form; the namespace is optional.
        """
        text = text.strip()
        if NAMESPACE_SEPARATOR in text:
            namespace, name = text.split(NAMESPACE_SEPARATOR, maxsplit=1)
            return InternalName(namespace=namespace or None, name=name)
        return InternalName(name=text)

    @classmethod
    def from_path(
        cls, path: Path | str, root: Path | str | None = None
    ) -> InternalName:
        """
        Inverse of {obj}`to_filesystem_path`. If `root` is given, the first
        folder below it is taken as the namespace and the remaining
        components are joined with `_`; otherwise `path` is parsed as a
        plain `namespace:name` string.
        """
        if root is None:
            return cls.parse(str(path))

        relative = PurePosixPath(Path(path).relative_to(root).as_posix())
        parts = list(relative.parent.parts) + [relative.stem]

        if len(parts) == 1:
            return InternalName(name=parts[0])

        return InternalName(
            namespace=parts[0], name=FOLDER_SEPARATOR.join(parts[1:])
        )


def format_name(name: InternalName) -> str:
    """
    Get canonical string form, `namespace:name` or `name`.
    """
    if name.has_namespace:
        return f"{name.namespace}{NAMESPACE_SEPARATOR}{name.name}"
    return name.name


def to_filesystem_path(
    name: InternalName, extension: str, root: Path | None = None
) -> Path:
    """
    Map name to a file path, optionally relative to `root`. The extension is
    appended only if the name doesn't already end with it.
    """
    segments = name.name.split(FOLDER_SEPARATOR)

    path = Path(*segments)
    if name.has_namespace:
        path = Path(name.namespace) / path

    if not path.name.endswith(extension):
        path = path.with_name(path.name + extension)

    return root / path if root is not None else path
