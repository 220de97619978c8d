"""Tests for reading FHIR JSON and NDJSON files."""

import json

import pytest

from transfair.adapters.readers import JsonBundleReader, get_reader
from transfair.adapters.readers.fhir_server_reader import FhirServerReader
from transfair.domain.ports import ReaderError


def _patient(identifier):
    return {"resourceType": "Patient", "id": identifier}


class TestJsonBundleReader:
    """Test the supported file shapes."""

    def test_reads_bundle_entries(self, write_json):
        path = write_json("export.json", {
            "resourceType": "Bundle",
            "type": "collection",
            "entry": [{"resource": _patient("p1")}, {"resource": _patient("p2")}, {"fullUrl": "x"}],
        })

        records = list(JsonBundleReader(path).records())

        assert [r.id for r in records] == ["p1", "p2"]

    def test_reads_array_and_single_resource(self, write_json):
        array = write_json("array.json", [_patient("p1"), _patient("p2")])
        single = write_json("single.json", _patient("p3"))

        assert [r.id for r in JsonBundleReader(array).records()] == ["p1", "p2"]
        assert [r.id for r in JsonBundleReader(single).records()] == ["p3"]

    def test_reads_ndjson(self, tmp_path):
        path = tmp_path / "export.ndjson"
        path.write_text("\n".join(json.dumps(_patient(f"p{i}")) for i in range(3)) + "\n\n", encoding="utf-8")

        assert [r.id for r in JsonBundleReader(str(path)).records()] == ["p0", "p1", "p2"]

    def test_reads_directory_in_name_order(self, write_json, tmp_path):
        write_json("in/b.json", _patient("second"))
        write_json("in/a.json", _patient("first"))
        (tmp_path / "in" / "notes.txt").write_text("ignored", encoding="utf-8")

        records = list(JsonBundleReader(str(tmp_path / "in")).records())

        assert [r.id for r in records] == ["first", "second"]

    def test_batches(self, write_json):
        """Test that batches have at most batch_size records."""
        path = write_json("array.json", [_patient(f"p{i}") for i in range(5)])

        batches = list(JsonBundleReader(path, batch_size=2).batches())

        assert [len(batch) for batch in batches] == [2, 2, 1]

    def test_resource_type_filter(self, write_json):
        path = write_json("mixed.json", [_patient("p1"), {"resourceType": "Encounter", "id": "e1"}])

        records = list(JsonBundleReader(path, resource_types=["Encounter"]).records())

        assert [r.kind for r in records] == ["Encounter"]

    def test_missing_source(self, tmp_path):
        with pytest.raises(ReaderError, match="Input not found"):
            JsonBundleReader(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ReaderError, match="Invalid JSON"):
            list(JsonBundleReader(str(path)).records())

    def test_invalid_record_location_reported(self, write_json):
        """Test that a record without resourceType reports its location."""
        path = write_json("array.json", [_patient("p1"), {"id": "x"}])

        with pytest.raises(ReaderError) as exc_info:
            list(JsonBundleReader(path).records())

        assert exc_info.value.details["location"].endswith("[1]")

    def test_invalid_batch_size(self, write_json):
        with pytest.raises(ValueError):
            JsonBundleReader(write_json("a.json", []), batch_size=0)


class TestGetReader:
    """Test reader selection."""

    def test_url_selects_fhir_reader(self):
        reader = get_reader("http://localhost:8080/fhir", batch_size=10)

        assert isinstance(reader, FhirServerReader)
        assert reader.batch_size == 10

    def test_file_selects_json_reader(self, write_json):
        assert isinstance(get_reader(write_json("a.json", [])), JsonBundleReader)

    def test_unsupported_source(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("a,b", encoding="utf-8")

        with pytest.raises(ReaderError, match="No reader available"):
            get_reader(str(path))
