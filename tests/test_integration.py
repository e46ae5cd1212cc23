"""Integration tests: ingest → sequence → expand → join → format, and the job runner."""

import pytest

from contact_join.config import FormatPolicy, MissPolicy
from contact_join.errors import CapacityError, ConfigurationError, DataFormatError, JoinMissError
from contact_join.formatter import collect_row_batches
from contact_join.ingest import ingest_contacts, ingest_devices
from contact_join.job import join_contacts, run_job

from conftest import make_config


class RecordingSink:
    """Sink stand-in that collects what it is asked to write."""

    def __init__(self):
        self.writes = []

    def write(self, mutations_df):
        self.writes.append(collect_row_batches(mutations_df))


def _join(spark, data_dir, **overrides):
    config = make_config(data_dir, **overrides)
    devices = ingest_devices(spark, config.device_path)
    contacts = ingest_contacts(spark, config.contact_path)
    return join_contacts(devices, contacts, config)


# ---------------------------------------------------------------------------
# TestScenario: one device, two contacts
# ---------------------------------------------------------------------------


@pytest.mark.integration
class TestScenario:
    def test_two_joined_records(self, spark, scenario_data_dir):
        output = _join(spark, scenario_data_dir)
        keys = sorted(r.row_key for r in output.joined.collect())
        assert keys == ["phoneA_1", "phoneA_2"]

    def test_eight_mutations_with_expected_values(self, spark, scenario_data_dir):
        output = _join(spark, scenario_data_dir)
        batches = collect_row_batches(output.mutations)
        assert output.stats.mutation_count == 8
        assert {k: {m.column: m.value for m in v} for k, v in batches.items()} == {
            b"phoneA_1": {
                "lastname": b"Doe",
                "firstname": b"Jane",
                "contact": b"555-1",
                "nickname": b"Janey",
            },
            b"phoneA_2": {
                "lastname": b"Ng",
                "firstname": b"Tom",
                "contact": b"555-2",
                "nickname": b"Tommy",
            },
        }
        assert {m.column_family for v in batches.values() for m in v} == {"contacts"}

    def test_stats(self, spark, scenario_data_dir):
        stats = _join(spark, scenario_data_dir).stats
        assert stats.device_count == 1
        assert stats.contact_count == 2
        assert stats.candidate_count == 2
        assert stats.joined_count == 2
        assert stats.miss_count == 0
        assert stats.reject_count == 0


# ---------------------------------------------------------------------------
# TestJoinContacts: larger fixtures and policies
# ---------------------------------------------------------------------------


@pytest.mark.integration
class TestJoinContacts:
    def test_join_completeness(self, spark, sample_data_dir):
        output = _join(spark, sample_data_dir, max_contacts=3)
        # 4 devices x 3 contacts
        assert output.stats.joined_count == 12
        assert output.stats.mutation_count == 48

    def test_capacity_larger_than_contacts_drops_misses(self, spark, sample_data_dir):
        output = _join(spark, sample_data_dir, max_contacts=5)
        assert output.stats.candidate_count == 20
        assert output.stats.miss_count == 8
        assert output.stats.joined_count == 12

    def test_capacity_larger_than_contacts_fail_policy(self, spark, sample_data_dir):
        with pytest.raises(JoinMissError):
            _join(spark, sample_data_dir, max_contacts=5, miss_policy=MissPolicy.FAIL)

    def test_keep_policy_routes_misses_to_rejects(self, spark, sample_data_dir):
        output = _join(spark, sample_data_dir, max_contacts=4, miss_policy=MissPolicy.KEEP)
        assert output.stats.joined_count == 16
        assert output.stats.reject_count == 4
        assert output.stats.mutation_count == 48
        reasons = {r.reject_reason for r in output.rejects.collect()}
        assert reasons == {"missing contact"}

    def test_capacity_violation(self, spark, sample_data_dir):
        with pytest.raises(CapacityError):
            _join(spark, sample_data_dir, max_contacts=2)

    def test_malformed_contact_skipped(self, spark, malformed_data_dir):
        output = _join(spark, malformed_data_dir, max_contacts=3)
        assert output.stats.reject_count == 2
        assert sorted(r.row_key for r in output.rejects.collect()) == ["phoneA_2", "phoneB_2"]
        row_keys = {r.row_key for r in output.mutations.collect()}
        assert row_keys == {"phoneA_1", "phoneA_3", "phoneB_1", "phoneB_3"}
        assert output.stats.mutation_count == 16

    def test_malformed_contact_fail_policy(self, spark, malformed_data_dir):
        with pytest.raises(DataFormatError) as exc_info:
            _join(spark, malformed_data_dir, max_contacts=3, format_policy=FormatPolicy.FAIL)
        assert exc_info.value.reject_count == 2

    def test_duplicate_devices_joined_once(self, spark, duplicate_device_data_dir):
        output = _join(spark, duplicate_device_data_dir)
        assert output.stats.device_count == 2
        assert output.stats.duplicate_device_count == 2
        assert output.stats.joined_count == 4
        assert output.stats.mutation_count == 16
        keys = sorted(r.row_key for r in output.joined.collect())
        assert keys == ["phoneA_1", "phoneA_2", "phoneB_1", "phoneB_2"]

    def test_deterministic(self, spark, sample_data_dir):
        first = _join(spark, sample_data_dir, max_contacts=3).mutations
        second = _join(spark, sample_data_dir, max_contacts=3).mutations
        assert first.exceptAll(second).count() == 0
        assert second.exceptAll(first).count() == 0


# ---------------------------------------------------------------------------
# TestRunJob
# ---------------------------------------------------------------------------


@pytest.mark.integration
class TestRunJob:
    def test_writes_mutations(self, spark, scenario_data_dir):
        sink = RecordingSink()
        stats = run_job(spark, make_config(scenario_data_dir), sink)
        assert stats.mutation_count == 8
        assert len(sink.writes) == 1
        assert set(sink.writes[0]) == {b"phoneA_1", b"phoneA_2"}

    def test_capacity_violation_writes_nothing(self, spark, sample_data_dir):
        sink = RecordingSink()
        with pytest.raises(CapacityError):
            run_job(spark, make_config(sample_data_dir, max_contacts=2), sink)
        assert sink.writes == []

    def test_format_failure_writes_nothing(self, spark, malformed_data_dir):
        sink = RecordingSink()
        config = make_config(malformed_data_dir, max_contacts=3, format_policy=FormatPolicy.FAIL)
        with pytest.raises(DataFormatError):
            run_job(spark, config, sink)
        assert sink.writes == []

    def test_missing_input_writes_nothing(self, spark, tmp_path):
        sink = RecordingSink()
        with pytest.raises(ConfigurationError):
            run_job(spark, make_config(tmp_path), sink)
        assert sink.writes == []

    def test_duplicate_devices_pass_checks_and_write(self, spark, duplicate_device_data_dir):
        sink = RecordingSink()
        stats = run_job(spark, make_config(duplicate_device_data_dir), sink)
        assert stats.duplicate_device_count == 2
        assert len(sink.writes) == 1
        batches = sink.writes[0]
        assert set(batches) == {b"phoneA_1", b"phoneA_2", b"phoneB_1", b"phoneB_2"}
        assert all(len(cells) == 4 for cells in batches.values())
