"""Read and repack the zip container of an ``.xlsx`` workbook."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
import os
from pathlib import Path
import posixpath
import stat
import tempfile
import zipfile

from lxml import etree

from .errors import ContainerIOError, MalformedTemplateError, WorksheetNotFoundError
from .models import CompressionMode, SheetRef

logger = logging.getLogger(__name__)

ROOT_RELS = "_rels/.rels"
DEFAULT_WORKBOOK_PART = "xl/workbook.xml"
OFFICE_DOCUMENT_REL = "/officeDocument"

_COMPRESSION = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}


def _xml_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
        remove_blank_text=False,
    )


def normalize_sheet_name(name: str) -> str:
    """Normalize a sheet name for case- and whitespace-insensitive lookup."""
    return name.strip().lower()


def sheet_lookup(sheets: list[SheetRef]) -> dict[str, SheetRef]:
    """Build a normalized-name lookup table; later duplicates win."""
    return {normalize_sheet_name(sheet.name): sheet for sheet in sheets}


class WorkbookContainer:
    """In-memory copy of a workbook archive.

    Members are kept as raw bytes in their original order; only worksheet
    parts handed back through :meth:`save_worksheet_tree` are replaced.
    """

    def __init__(
        self,
        source: Path,
        infos: list[zipfile.ZipInfo],
        members: dict[str, bytes],
    ) -> None:
        self.source = source
        self._infos = infos
        self._members = members

    @classmethod
    def open(cls, path: str | Path) -> WorkbookContainer:  # noqa: A003
        """Read every member of the archive at ``path``.

        Raises:
            ContainerIOError: If the file is missing or not a readable zip.
        """
        source = Path(path)
        try:
            with zipfile.ZipFile(source) as archive:
                infos = archive.infolist()
                members = {
                    info.filename: archive.read(info)
                    for info in infos
                    if not info.is_dir()
                }
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise ContainerIOError(
                f"Cannot read workbook archive {source}: {exc}"
            ) from exc
        logger.debug("Read %d members from %s.", len(members), source)
        return cls(source, [info for info in infos if not info.is_dir()], members)

    def names(self) -> list[str]:
        return [info.filename for info in self._infos]

    def read(self, part_name: str) -> bytes:
        try:
            return self._members[part_name]
        except KeyError:
            raise WorksheetNotFoundError(
                f"Part {part_name!r} is missing from {self.source.name}."
            ) from None

    def _parse(self, part_name: str) -> etree._ElementTree:
        data = self.read(part_name)
        try:
            return etree.fromstring(data, _xml_parser()).getroottree()
        except etree.XMLSyntaxError as exc:
            raise MalformedTemplateError(f"Cannot parse {part_name}: {exc}") from exc

    def workbook_part(self) -> str:
        """Return the workbook part name declared by the package relationships."""
        if ROOT_RELS in self._members:
            for rel in self._parse(ROOT_RELS).getroot().iter("{*}Relationship"):
                if rel.get("Type", "").endswith(OFFICE_DOCUMENT_REL):
                    return _resolve_target("", rel.get("Target", ""))
        return DEFAULT_WORKBOOK_PART

    def list_sheets(self) -> list[SheetRef]:
        """Return the workbook sheet table in workbook order.

        Raises:
            MalformedTemplateError: If the workbook part is absent or broken.
        """
        workbook_part = self.workbook_part()
        if workbook_part not in self._members:
            raise MalformedTemplateError(
                f"Workbook part {workbook_part!r} is missing from {self.source.name}."
            )
        workbook = self._parse(workbook_part).getroot()
        targets = self._relationship_targets(workbook_part)
        sheets: list[SheetRef] = []
        for position, sheet in enumerate(workbook.iter("{*}sheet"), start=1):
            rel_id = _relationship_id(sheet)
            part_name = targets.get(rel_id) if rel_id else None
            sheets.append(
                SheetRef(
                    name=sheet.get("name", ""),
                    index=position,
                    part_name=part_name or f"xl/worksheets/sheet{position}.xml",
                )
            )
        return sheets

    def _relationship_targets(self, part_name: str) -> dict[str, str]:
        base_dir, base_name = posixpath.split(part_name)
        rels_part = posixpath.join(base_dir, "_rels", f"{base_name}.rels")
        if rels_part not in self._members:
            return {}
        targets: dict[str, str] = {}
        for rel in self._parse(rels_part).getroot().iter("{*}Relationship"):
            rel_id = rel.get("Id")
            target = rel.get("Target")
            if rel_id and target and rel.get("TargetMode") != "External":
                targets[rel_id] = _resolve_target(base_dir, target)
        return targets

    def load_worksheet_tree(self, sheet: SheetRef) -> etree._ElementTree:
        """Parse the XML part of ``sheet``.

        Raises:
            WorksheetNotFoundError: If the part is absent.
            MalformedTemplateError: If the part is not well-formed XML.
        """
        return self._parse(sheet.part_name)

    def save_worksheet_tree(self, sheet: SheetRef, tree: etree._ElementTree) -> None:
        """Serialize ``tree`` back into the part of ``sheet``."""
        self._members[sheet.part_name] = serialize_tree(tree)

    def write(
        self, destination: Path, *, compression: CompressionMode = "preserve"
    ) -> None:
        """Write the archive to ``destination`` atomically.

        The archive is assembled in a temporary file next to the destination
        and moved into place only once complete.

        Raises:
            ContainerIOError: If the archive cannot be written.
        """
        try:
            with _staged_output(destination) as staging:
                with zipfile.ZipFile(staging, "w") as archive:
                    for info in self._infos:
                        archive.writestr(
                            _output_info(info, compression),
                            self._members[info.filename],
                        )
        except OSError as exc:
            raise ContainerIOError(
                f"Cannot write workbook archive {destination}: {exc}"
            ) from exc


def find_sheet_data(
    tree: etree._ElementTree, sheet: SheetRef
) -> etree._Element | None:
    """Return the ``sheetData`` element of a worksheet tree.

    Returns None for parts that carry no cell grid, such as chartsheets.

    Raises:
        MalformedTemplateError: If a worksheet has no ``sheetData``.
    """
    root = tree.getroot()
    sheet_data = root.find("{*}sheetData")
    if sheet_data is not None:
        return sheet_data
    if etree.QName(root).localname == "worksheet":
        raise MalformedTemplateError(
            f"Worksheet {sheet.name!r} ({sheet.part_name}) has no sheetData element."
        )
    return None


def serialize_tree(tree: etree._ElementTree) -> bytes:
    """Serialize a part without self-closing tags for empty elements."""
    for element in tree.getroot().iter():
        if isinstance(element.tag, str) and element.text is None and len(element) == 0:
            element.text = ""
    return etree.tostring(
        tree,
        xml_declaration=True,
        encoding="UTF-8",
        standalone=tree.docinfo.standalone,
    )


def _resolve_target(base_dir: str, target: str) -> str:
    if target.startswith("/"):
        return target.lstrip("/")
    return posixpath.normpath(posixpath.join(base_dir, target))


def _relationship_id(sheet: etree._Element) -> str | None:
    for name, value in sheet.attrib.items():
        qname = etree.QName(name)
        if qname.namespace and qname.localname == "id":
            return value
    return None


def _output_info(
    info: zipfile.ZipInfo, compression: CompressionMode
) -> zipfile.ZipInfo:
    output = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    output.external_attr = info.external_attr
    output.compress_type = (
        info.compress_type if compression == "preserve" else _COMPRESSION[compression]
    )
    return output


def _output_mode(destination: Path) -> int:
    """Return the permission bits a plainly created destination would get."""
    if destination.exists():
        return stat.S_IMODE(destination.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextmanager
def _staged_output(destination: Path) -> Iterator[Path]:
    """Yield a temporary path that replaces ``destination`` on success."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(
        prefix=f".{destination.stem}-", suffix=".tmp", dir=destination.parent
    )
    os.close(fd)
    staging = Path(name)
    try:
        os.chmod(staging, _output_mode(destination))
        yield staging
        os.replace(staging, destination)
    finally:
        if staging.exists():
            staging.unlink()
