"""End-to-end tests of run_transfer with file sources and in-process writers."""

import json
from unittest.mock import Mock

import pytest

from transfair.domain import profiles as p
from transfair.domain.guardrails import CircuitBreakerConfig, CircuitBreakerOpenError
from transfair.domain.ports import ConceptMapLoadError, Result, WriterPort
from transfair.infrastructure.config_manager import ConfigManager, IdMappingConfig
from transfair.main import create_relabeler, run_transfer


def _bundle(*resources):
    return {"resourceType": "Bundle", "type": "collection", "entry": [{"resource": r} for r in resources]}


@pytest.fixture
def biobank_export(write_json, bbmri_patient, bbmri_specimen, bbmri_cause_of_death):
    return write_json("export.json", _bundle(
        bbmri_patient().to_fhir(),
        bbmri_specimen().to_fhir(),
        bbmri_cause_of_death().to_fhir(),
        {"resourceType": "Encounter", "id": "e1", "status": "finished"},
    ))


@pytest.fixture
def sample_type_table(tmp_path):
    path = tmp_path / "sample_type.csv"
    path.write_text("source_code,target_code\nwhole-blood,420135007\n", encoding="utf-8")
    return str(path)


def _config(direction, source, writer_kind, target, **extra):
    data = {
        "direction": direction,
        "reader": {"source": source, "batch_size": 10},
        "writer": {"kind": writer_kind, "target": target},
    }
    data.update(extra)
    return ConfigManager(data).get_transfer_config()


class TestRunTransfer:
    """Test complete runs."""

    def test_biobank_to_core_into_files(self, tmp_path, biobank_export, sample_type_table):
        config = _config(
            "bbmri2mii", biobank_export, "file", str(tmp_path / "out"),
            concept_maps={"sample_type": sample_type_table},
        )

        summary = run_transfer(config)

        assert summary.batches_written == 1
        assert summary.records_written == 4
        assert summary.routing.received == 4
        assert summary.routing.unmappable == 1
        assert not summary.has_failures

        bundle = json.loads((tmp_path / "out" / "bundle_1.json").read_text(encoding="utf-8"))
        kinds = [entry["resource"]["resourceType"] for entry in bundle["entry"]]
        assert kinds == ["Patient", "Condition", "Specimen", "Condition"]
        for entry in bundle["entry"]:
            assert not any("bbmri.de" in url for url in entry["resource"]["meta"]["profile"])

    def test_copy_into_duckdb(self, tmp_path, biobank_export):
        target = str(tmp_path / "copy.duckdb")

        summary = run_transfer(_config("copy", biobank_export, "duckdb", target))

        assert summary.records_written == 4
        assert summary.routing.unmappable == 0

    def test_biobank_to_catalog(self, tmp_path, write_json, bbmri_patient, bbmri_specimen, body_weight):
        source = write_json("catalog-input.ndjson.json", [
            body_weight().to_fhir(), bbmri_patient().to_fhir(), bbmri_specimen().to_fhir(),
        ])

        summary = run_transfer(_config("bbmri2beacon", source, "catalog", str(tmp_path / "catalog")))

        assert summary.records_written == 3
        individuals = json.loads((tmp_path / "catalog" / "individuals.json").read_text(encoding="utf-8"))
        assert individuals[0]["id"] == "p1"
        assert individuals[0]["measures"][0]["assayCode"]["label"] == "Weight"

    def test_empty_batches_skipped(self, tmp_path, write_json, body_weight):
        """Test that a batch with no output writes no bundle."""
        source = write_json("observations.json", [body_weight().to_fhir()])
        writer = Mock(spec=WriterPort)

        summary = run_transfer(_config("mii2bbmri", source, "file", str(tmp_path)), writer=writer)

        assert summary.batches_empty == 1
        assert summary.routing.unrepresentable == 1
        writer.write.assert_not_called()

    def test_failed_batch_counted_and_run_continues(self, tmp_path, write_json, bbmri_patient):
        source = write_json("patients.json", [bbmri_patient(id=f"p{i}").to_fhir() for i in range(3)])
        writer = Mock(spec=WriterPort)
        writer.write.side_effect = [Result.failure_result("HTTP 503"), Result.success_result(1), Result.success_result(1)]
        config = ConfigManager({
            "direction": "bbmri2mii",
            "reader": {"source": source, "batch_size": 1},
            "writer": {"kind": "file", "target": str(tmp_path)},
        }).get_transfer_config()

        summary = run_transfer(config, writer=writer)

        assert summary.batches_failed == 1
        assert summary.batches_written == 2
        assert summary.records_written == 2
        assert len(summary.failed_bundles) == 1
        assert summary.has_failures
        writer.close.assert_called_once()

    def test_circuit_breaker_aborts_run(self, tmp_path, write_json, bbmri_patient):
        source = write_json("patients.json", [bbmri_patient(id=f"p{i}").to_fhir() for i in range(5)])
        writer = Mock(spec=WriterPort)
        writer.write.return_value = Result.failure_result("HTTP 503")
        config = ConfigManager({
            "direction": "bbmri2mii",
            "reader": {"source": source, "batch_size": 1},
            "writer": {"kind": "file", "target": str(tmp_path)},
        }).get_transfer_config()

        with pytest.raises(CircuitBreakerOpenError):
            run_transfer(
                config,
                circuit_breaker_config=CircuitBreakerConfig(min_batches_before_check=2),
                writer=writer,
            )

        assert writer.write.call_count == 2

    def test_record_without_id_does_not_abort_run(self, tmp_path, write_json, bbmri_patient):
        source = write_json("patients.json", [bbmri_patient(id=None).to_fhir(), bbmri_patient(id="p2").to_fhir()])
        config = ConfigManager({
            "direction": "bbmri2mii",
            "reader": {"source": source, "batch_size": 1},
            "writer": {"kind": "file", "target": str(tmp_path / "out")},
        }).get_transfer_config()

        summary = run_transfer(config)

        assert summary.batches_empty == 1
        assert summary.batches_written == 1
        assert summary.routing.unrepresentable == 1
        bundle = json.loads((tmp_path / "out" / "bundle_1.json").read_text(encoding="utf-8"))
        assert bundle["entry"][0]["fullUrl"] == "Patient/p2"

    def test_unmapped_ids_dropped(self, tmp_path, write_json, bbmri_patient):
        ids = tmp_path / "ids.csv"
        ids.write_text("bbmri,mii\np1,PSN-1\n", encoding="utf-8")
        source = write_json("patients.json", [bbmri_patient(id="p1").to_fhir(), bbmri_patient(id="p2").to_fhir()])
        config = _config(
            "bbmri2mii", source, "file", str(tmp_path / "out"),
            id_mapping={"mode": "csvmapping", "file": str(ids)},
        )

        summary = run_transfer(config)

        assert summary.records_written == 1
        assert summary.records_unrelabelled == 1
        bundle = json.loads((tmp_path / "out" / "bundle_1.json").read_text(encoding="utf-8"))
        assert bundle["entry"][0]["fullUrl"] == "Patient/PSN-1"
        assert bundle["entry"][0]["resource"]["meta"]["profile"] == [p.MII_PATIENT]

    def test_bad_translation_table_aborts_before_reading(self, tmp_path, biobank_export):
        table = tmp_path / "dx.csv"
        table.write_text("from,to\n", encoding="utf-8")
        config = _config("bbmri2mii", biobank_export, "file", str(tmp_path), concept_maps={"diagnosis": str(table)})
        writer = Mock(spec=WriterPort)

        with pytest.raises(ConceptMapLoadError):
            run_transfer(config, writer=writer)

        writer.write.assert_not_called()


class TestCreateRelabeler:
    def test_none_mode(self):
        assert create_relabeler(IdMappingConfig(mode="none")) is None

    def test_identity_mode(self):
        relabeler = create_relabeler(IdMappingConfig(mode="identity", source_domain="a", target_domain="b"))

        assert relabeler.source_domain == "a"
        assert relabeler.target_domain == "b"
