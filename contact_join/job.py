"""Job composition: contacts and devices in, mutation cells out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pyspark.sql import DataFrame, SparkSession

from contact_join.config import JobConfig
from contact_join.data_quality import (
    QualityCheckResult,
    check_contact_quality,
    check_join_quality,
    check_mutation_quality,
    run_checks,
)
from contact_join.errors import ContactJoinError
from contact_join.expand import expand_devices
from contact_join.formatter import FIELD_COUNT, format_records
from contact_join.ingest import ingest_contacts, ingest_devices
from contact_join.join import broadcast_join
from contact_join.sequence import assign_sequence_keys, build_contact_map
from contact_join.sink import MutationSink

logger = logging.getLogger(__name__)


@dataclass
class JoinStats:
    device_count: int = 0
    contact_count: int = 0
    candidate_count: int = 0
    joined_count: int = 0
    duplicate_device_count: int = 0
    miss_count: int = 0
    reject_count: int = 0
    mutation_count: int = 0


@dataclass
class JoinOutput:
    """Everything the join produced, before anything is written."""

    keyed_contacts: DataFrame
    joined: DataFrame
    mutations: DataFrame
    rejects: DataFrame
    stats: JoinStats
    checks: list[QualityCheckResult] = field(default_factory=list)


def join_contacts(devices_df: DataFrame, contacts_df: DataFrame, config: JobConfig) -> JoinOutput:
    """Run the join pipeline on already-ingested devices and contacts.

    Build phase: key the contacts and freeze them into a ContactMap.
    Probe phase: expand every device over 1..max_contacts, broadcast-join
    against the map, and format each joined record into four mutations.
    """
    # Build phase: nothing below may start until the map is complete.
    keyed = assign_sequence_keys(contacts_df, config.max_contacts).cache()
    contact_map = build_contact_map(keyed)
    logger.info("Contact map frozen with %d entries", len(contact_map))

    # A device listed twice would write the same cells twice.
    device_records = devices_df.count()
    unique_devices = devices_df.dropDuplicates(["device"])
    device_count = unique_devices.count()
    duplicate_count = device_records - device_count
    if duplicate_count:
        logger.warning(
            "Dropped %d duplicate device records (%d distinct devices)",
            duplicate_count,
            device_count,
        )

    # Probe phase
    candidates = expand_devices(unique_devices, config.max_contacts)
    join_result = broadcast_join(candidates, contact_map, config.miss_policy)
    joined = join_result.joined.cache()

    formatted = format_records(
        joined,
        delimiter=config.delimiter,
        format_policy=config.format_policy,
        column_family=config.column_family,
    )

    stats = JoinStats(
        device_count=device_count,
        contact_count=len(contact_map),
        candidate_count=device_count * config.max_contacts,
        joined_count=joined.count(),
        duplicate_device_count=duplicate_count,
        miss_count=join_result.miss_count,
        reject_count=formatted.reject_count,
    )
    stats.mutation_count = formatted.mutations.count()

    return JoinOutput(
        keyed_contacts=keyed,
        joined=joined,
        mutations=formatted.mutations,
        rejects=formatted.rejects,
        stats=stats,
    )


def check_output(output: JoinOutput, config: JobConfig) -> bool:
    """Run every stage's quality checks and remember the results on `output`."""
    output.checks = (
        check_contact_quality(output.keyed_contacts, config.max_contacts)
        + check_join_quality(
            output.joined,
            output.stats.device_count,
            output.stats.contact_count,
            config.miss_policy,
        )
        + check_mutation_quality(output.mutations)
    )
    return run_checks(output.checks)


def run_job(spark: SparkSession, config: JobConfig, sink: MutationSink) -> JoinStats:
    """Read both sources, join, check, and hand the mutations to `sink`.

    Every fatal condition (configuration, capacity, policy failures, and
    failed quality checks when `fail_on_quality` is set) is raised before
    the sink sees a single mutation.
    """
    logger.info("Reading devices from %s", config.device_path)
    devices = ingest_devices(spark, config.device_path)
    logger.info("Reading contacts from %s", config.contact_path)
    contacts = ingest_contacts(spark, config.contact_path)

    output = join_contacts(devices, contacts, config)

    if not check_output(output, config) and config.fail_on_quality:
        failed = ", ".join(c.name for c in output.checks if not c.passed)
        raise ContactJoinError(f"quality checks failed: {failed}")

    sink.write(output.mutations)
    logger.info(
        "Wrote %d mutations for %d rows (%d duplicate devices, %d misses, %d rejects)",
        output.stats.mutation_count,
        output.stats.mutation_count // FIELD_COUNT,
        output.stats.duplicate_device_count,
        output.stats.miss_count,
        output.stats.reject_count,
    )
    return output.stats
