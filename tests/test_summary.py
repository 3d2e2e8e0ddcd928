import json

from tagsweep.models import RepositoryOutcome, RunSummary
from tagsweep.utils import render_summary, write_report


def make_summary(dry_run: bool, errors=None) -> RunSummary:
    return RunSummary(
        dry_run=dry_run,
        outcomes=[
            RepositoryOutcome(repository="a", log=["[a] tag to be deleted 1"], count=1),
            RepositoryOutcome(repository="b", log=["[b] tag to be deleted 2"], count=2),
        ],
        errors=errors or [],
    )


def test_render_dry_run_summary():
    text = render_summary(make_summary(dry_run=True))

    assert "Found a total of 3 tag(s) to delete" in text
    assert "none of the above have actually been deleted" in text
    assert "errors occurred" not in text


def test_render_execute_summary_with_errors():
    text = render_summary(
        make_summary(dry_run=False, errors=["Error getting tags for c.", "Error deleting d:1."])
    )

    assert text.startswith("The following errors occurred during processing:")
    assert "\tError getting tags for c.\n\tError deleting d:1." in text
    assert "Deleted a total of 3 tag(s)" in text
    assert "run garbage collection" in text


def test_write_report(tmp_path):
    path = tmp_path / "reports" / "sweep.json"
    write_report(make_summary(dry_run=True, errors=["boom"]), path)

    report = json.loads(path.read_text())
    assert report["total"] == 3
    assert report["dry_run"] is True
    assert report["errors"] == ["boom"]
    assert [outcome["repository"] for outcome in report["outcomes"]] == ["a", "b"]
