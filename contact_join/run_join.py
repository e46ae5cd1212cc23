"""Run the contact join locally on a sample directory and display results (no writes)."""

import sys
from pathlib import Path

from pyspark.sql import functions as F

from contact_join.config import load_config
from contact_join.ingest import ingest_contacts, ingest_devices
from contact_join.job import check_output, join_contacts
from contact_join.logging_utils import configure_logging
from contact_join.spark_session import get_spark


def main(data_dir: str, max_contacts: int | None = None) -> None:
    configure_logging()
    config = load_config(
        overrides={
            "output": str(Path(data_dir) / "cells"),
            "device_path": str(Path(data_dir) / "A_*.dat"),
            "contact_path": str(Path(data_dir) / "B.csv"),
            "max_contacts": max_contacts,
        }
    )
    spark = get_spark()

    print("=" * 60)
    print(f"Running contact join on: {data_dir} (N={config.max_contacts})")
    print("=" * 60)

    devices = ingest_devices(spark, config.device_path)
    contacts = ingest_contacts(spark, config.contact_path)

    output = join_contacts(devices, contacts, config)
    stats = output.stats

    print(f"\n  Devices:     {stats.device_count:>10,}")
    print(f"  Contacts:    {stats.contact_count:>10,}")
    print(f"  Candidates:  {stats.candidate_count:>10,}")
    print(f"  Joined:      {stats.joined_count:>10,}")
    print(f"  Misses:      {stats.miss_count:>10,}")
    print(f"  Rejects:     {stats.reject_count:>10,}")
    print(f"  Mutations:   {stats.mutation_count:>10,}")

    print("\n--- Sequence keys ---")
    output.keyed_contacts.orderBy("sequence_key").show(5, truncate=False)

    print("--- Mutations per column ---")
    output.mutations.groupBy("column").count().show()

    print("--- Sample mutations ---")
    output.mutations.withColumn("value", F.col("value").cast("string")).show(
        8, truncate=False
    )

    if stats.reject_count:
        print("--- Rejected records ---")
        output.rejects.show(10, truncate=False)

    print("--- Quality checks ---")
    passed = check_output(output, config)
    for check in output.checks:
        print(f"  {check}")

    print("\n" + "=" * 60)
    print("Smoke test passed!" if passed else "Smoke test FAILED")
    print("=" * 60)

    spark.stop()


if __name__ == "__main__":
    data_dir = sys.argv[1] if len(sys.argv) > 1 else "./data_sample"
    max_contacts = int(sys.argv[2]) if len(sys.argv) > 2 else None
    main(data_dir, max_contacts)
