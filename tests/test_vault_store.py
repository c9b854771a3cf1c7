# tests/test_vault_store.py

from __future__ import annotations

import pytest

from tasklink.bulk.conversion import BulkConvertEngine, BulkConvertOptions, ConversionConfig, TaskIdentification
from tasklink.core.errors import DocumentNotFoundError, MutationError
from tasklink.core.models import SourceItem, TaskCreationData
from tasklink.vault.frontmatter import FrontmatterError, render_document, split_frontmatter, update_document
from tasklink.vault.task_index import VaultTaskIndex
from tasklink.vault.task_service import VaultTaskService, safe_filename


def test_split_frontmatter() -> None:
    fm, body = split_frontmatter("---\ntitle: A\ntags: [task]\n---\nbody\n")
    assert fm == {"title": "A", "tags": ["task"]}
    assert body == "body\n"

    assert split_frontmatter("no metadata here") == ({}, "no metadata here")
    assert split_frontmatter("---\n---\nbody") == ({}, "body")

    with pytest.raises(FrontmatterError):
        split_frontmatter("---\n- a\n- b\n---\n")


def test_render_document_keeps_key_order() -> None:
    text = render_document({"b": 1, "a": "ü"}, "body")
    assert text == "---\nb: 1\na: ü\n---\nbody"
    assert render_document({}, "body") == "body"


def test_list_documents_skips_hidden_and_filters(vault, write_note) -> None:
    write_note("Notes/A.md")
    write_note("Queries/Q.base")
    write_note(".obsidian/cache.md")
    write_note("Notes/B.md.tmp")

    assert vault.list_documents() == ["Notes/A.md", "Queries/Q.base"]
    assert vault.list_documents(".md") == ["Notes/A.md"]


def test_get_metadata_returns_copies(vault, write_note) -> None:
    write_note("Notes/A.md", {"tags": ["x"]})

    fm = vault.get_metadata("Notes/A.md")
    fm["tags"].append("y")

    assert vault.get_metadata("Notes/A.md") == {"tags": ["x"]}
    assert vault.get_metadata("Notes/Missing.md") is None
    assert vault.exists("../outside.md") is False


@pytest.mark.asyncio
async def test_mutate_metadata_preserves_body(vault, write_note) -> None:
    write_note("Notes/A.md", {"title": "A"}, "line 1\nline 2\n")

    await vault.mutate_metadata("Notes/A.md", lambda fm: fm.update(status="open"))

    assert vault.get_metadata("Notes/A.md") == {"title": "A", "status": "open"}
    assert await vault.read_text("Notes/A.md") == "---\ntitle: A\nstatus: open\n---\nline 1\nline 2\n"


@pytest.mark.asyncio
async def test_mutate_metadata_errors(vault, write_note) -> None:
    with pytest.raises(DocumentNotFoundError, match="File not found: Notes/Gone.md"):
        await vault.mutate_metadata("Notes/Gone.md", lambda fm: None)

    (vault.root / "Notes").mkdir(exist_ok=True)
    (vault.root / "Notes/Bad.md").write_text("---\n- not\n- a mapping\n---\nbody", "utf-8")
    with pytest.raises(MutationError):
        await vault.mutate_metadata("Notes/Bad.md", lambda fm: None)
    assert (vault.root / "Notes/Bad.md").read_text("utf-8").endswith("body")


@pytest.mark.asyncio
async def test_read_text_missing(vault) -> None:
    with pytest.raises(DocumentNotFoundError):
        await vault.read_text("Nope.md")


def test_make_reference_is_short_unless_ambiguous(vault, write_note) -> None:
    write_note("Notes/Report.md")
    write_note("Queries/Due.base")
    assert vault.make_reference("Notes/Report.md") == "[[Report]]"
    assert vault.make_reference("Queries/Due.base") == "[[Due.base]]"

    write_note("Archive/Report.md")
    assert vault.make_reference("Notes/Report.md") == "[[Notes/Report]]"


def test_task_index_tag_strategy(vault) -> None:
    index = VaultTaskIndex(vault)
    assert index.is_task_record({"tags": ["#task"]})
    assert index.is_task_record({"tags": "task"})
    assert not index.is_task_record({"tags": ["tasks"]})
    assert not index.is_task_record(None)


def test_task_index_property_strategy(vault) -> None:
    index = VaultTaskIndex(vault, TaskIdentification(method="property", property_name="isTask", property_value="true"))
    assert index.is_task_record({"isTask": True})
    assert index.is_task_record({"isTask": "TRUE"})
    assert not index.is_task_record({"isTask": False})
    assert not index.is_task_record({"tags": ["task"]})


@pytest.mark.asyncio
async def test_task_index_reads_link_lists(vault, write_note) -> None:
    write_note("Tasks/T.md", {"tags": ["task"], "status": "open", "projects": "[[Alpha]]"})
    write_note("Notes/N.md", {"projects": ["[[Alpha]]"]})

    tasks = await VaultTaskIndex(vault).get_all_tasks()

    assert len(tasks) == 1
    assert tasks[0].path == "Tasks/T.md"
    assert tasks[0].status == "open"
    assert tasks[0].projects == ["[[Alpha]]"]


def test_safe_filename() -> None:
    assert safe_filename("Fix: login / logout?") == "Fix login logout"
    assert safe_filename("   ") == "Untitled task"


@pytest.mark.asyncio
async def test_task_service_writes_unique_task_notes(vault) -> None:
    service = VaultTaskService(vault, ConversionConfig(), now=lambda: "2024-05-01T10:00:00")
    data = TaskCreationData(title="Write report", projects=["[[Report]]"], due="2024-05-03")

    first = await service.create_task(data)
    second = await service.create_task(data)

    assert first.path == "Tasks/Write report.md"
    assert second.path == "Tasks/Write report 2.md"
    fm = vault.get_metadata(first.path)
    assert fm == {
        "title": "Write report",
        "status": "open",
        "priority": "normal",
        "due": "2024-05-03",
        "projects": ["[[Report]]"],
        "tags": ["task"],
        "dateCreated": "2024-05-01T10:00:00",
        "dateModified": "2024-05-01T10:00:00",
    }


def test_loader_keeps_timestamps_and_yes_no_as_written() -> None:
    fm, _ = split_frontmatter("---\nday: 2024-01-15\nat: 2024-01-15T10:00:00Z\nflag: on\nreal: true\n---\n")
    assert fm == {"day": "2024-01-15", "at": "2024-01-15T10:00:00Z", "flag": "on", "real": True}


def test_update_document_touches_only_changed_keys() -> None:
    text = "---\n# keep\na: 'x'\nb: [1, 2]\nc: yes\n---\nbody"
    fm, _ = split_frontmatter(text)

    assert update_document(text, fm, dict(fm)) == text

    after = dict(fm, b=[1, 2, 3], d="new")
    del after["c"]
    assert update_document(text, fm, after) == "---\n# keep\na: 'x'\nb:\n- 1\n- 2\n- 3\nd: new\n---\nbody"


@pytest.mark.asyncio
async def test_conversion_keeps_untouched_front_matter_lines_on_disk(vault) -> None:
    original = (
        "---\n"
        "# reviewed\n"
        'title: "Quarterly report"\n'
        "dateCreated: 2024-01-15T10:00:00Z\n"
        "enabled: yes\n"
        "status: waiting\n"
        "tags: [idea]\n"
        "---\n"
        "body\n"
    )
    (vault.root / "Notes").mkdir()
    (vault.root / "Notes/A.md").write_text(original, "utf-8")
    engine = BulkConvertEngine(vault, VaultTaskIndex(vault), now=lambda: "2024-05-01T10:00:00")

    result = await engine.convert_notes([SourceItem(path="Notes/A.md")], BulkConvertOptions())

    assert result.converted == 1
    after = (vault.root / "Notes/A.md").read_text("utf-8")
    assert after.startswith(
        "---\n"
        "# reviewed\n"
        'title: "Quarterly report"\n'
        "dateCreated: 2024-01-15T10:00:00Z\n"
        "enabled: yes\n"
        "status: waiting\n"
        "tags:\n- idea\n- task\n"
    )
    assert after.endswith("---\nbody\n")

    fm = vault.get_metadata("Notes/A.md")
    assert fm["dateCreated"] == "2024-01-15T10:00:00Z"
    assert fm["enabled"] == "yes"
    assert fm["priority"] == "normal"
    assert fm["dateModified"] == "2024-05-01T10:00:00"
