from io import StringIO

import pytest
import yaml
from django.core.management import call_command
from django.core.management.base import CommandError

from django_rebac_batch.adapters import reset_adapter, set_adapter
from django_rebac_batch.types import Condition, TupleKey

from tests.conftest import RecordingAdapter


def _tuple_file(tmp_path, data):
    path = tmp_path / "tuples.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


@pytest.fixture
def failing_adapter():
    adapter = RecordingAdapter(fail_on={2})
    set_adapter(adapter)
    yield adapter
    reset_adapter()


def test_apply_tuples_sends_writes_and_deletes(tmp_path, recording_adapter) -> None:
    path = _tuple_file(
        tmp_path,
        {
            "writes": [
                {"user": "user:anne", "relation": "viewer", "object": "document:1"},
                {
                    "user": "user:bob",
                    "relation": "viewer",
                    "object": "document:1",
                    "condition": {"name": "in_office", "context": {"site": "hq"}},
                },
            ],
            "deletes": [{"user": "user:carl", "relation": "viewer", "object": "document:1"}],
        },
    )
    out = StringIO()

    call_command("apply_tuples", path, "--transactional", stdout=out)

    (operation,) = recording_adapter.calls
    assert operation.writes[1] == TupleKey(
        "user:bob", "viewer", "document:1", condition=Condition("in_office", {"site": "hq"})
    )
    assert operation.deletes == [TupleKey("user:carl", "viewer", "document:1")]
    assert "3 operation(s) in 1 chunk(s)" in out.getvalue()
    assert "Tuples applied" in out.getvalue()


def test_apply_tuples_chunk_size_flag(tmp_path, recording_adapter) -> None:
    writes = [{"user": f"user:{i}", "relation": "viewer", "object": "document:1"} for i in range(5)]
    path = _tuple_file(tmp_path, {"writes": writes})

    call_command("apply_tuples", path, "--chunk-size", "2", stdout=StringIO())

    assert [op.total_operations for op in recording_adapter.calls] == [2, 2, 1]


def test_apply_tuples_reports_failures(tmp_path, failing_adapter) -> None:
    writes = [{"user": f"user:{i}", "relation": "viewer", "object": "document:1"} for i in range(4)]
    path = _tuple_file(tmp_path, {"writes": writes})
    out, err = StringIO(), StringIO()

    call_command("apply_tuples", path, "--chunk-size", "2", stdout=out, stderr=err)

    assert "1 succeeded, 1 failed" in out.getvalue()
    assert "boom on call 2" in err.getvalue()
    assert "Tuples applied" not in out.getvalue()


def test_apply_tuples_strict_mode_fails(tmp_path, failing_adapter) -> None:
    writes = [{"user": f"user:{i}", "relation": "viewer", "object": "document:1"} for i in range(4)]
    path = _tuple_file(tmp_path, {"writes": writes})

    with pytest.raises(CommandError, match="Batch failed"):
        call_command("apply_tuples", path, "--chunk-size", "2", "--strict", stdout=StringIO(), stderr=StringIO())


def test_apply_tuples_rejects_oversized_transaction(tmp_path, recording_adapter) -> None:
    writes = [{"user": f"user:{i}", "relation": "viewer", "object": "document:1"} for i in range(101)]
    path = _tuple_file(tmp_path, {"writes": writes})

    with pytest.raises(CommandError):
        call_command("apply_tuples", path, "--transactional", stdout=StringIO())

    assert recording_adapter.calls == []


def test_apply_tuples_missing_file(tmp_path) -> None:
    with pytest.raises(CommandError, match="File not found"):
        call_command("apply_tuples", str(tmp_path / "missing.yaml"))


def test_apply_tuples_invalid_entry(tmp_path, recording_adapter) -> None:
    path = _tuple_file(tmp_path, {"writes": [{"user": "user:1", "relation": "viewer"}]})

    with pytest.raises(CommandError, match="Invalid tuple entry"):
        call_command("apply_tuples", path)


def test_apply_tuples_rejects_empty_fields(tmp_path, recording_adapter) -> None:
    path = _tuple_file(tmp_path, {"deletes": [{"user": "", "relation": "viewer", "object": "document:1"}]})

    with pytest.raises(CommandError, match="Invalid tuple entry"):
        call_command("apply_tuples", path)

    assert recording_adapter.calls == []
