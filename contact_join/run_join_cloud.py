"""Cloud entrypoint: join device and contact files and upsert the cells into the store."""

from __future__ import annotations

import argparse
import logging
import sys

from contact_join.config import FormatPolicy, JobConfig, MissPolicy, load_config
from contact_join.errors import ConfigurationError, ContactJoinError
from contact_join.job import run_job
from contact_join.logging_utils import LOG_LEVELS, configure_logging
from contact_join.sink import DeltaMutationSink
from contact_join.spark_session import get_spark

logger = logging.getLogger("contact_join.run_join_cloud")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Join device and contact files and write merged contacts to the cell table"
    )
    parser.add_argument("--output", required=True, help="Path of the cell table to write to")
    parser.add_argument("--config", default=None, help="Path to job config YAML")
    parser.add_argument("--device-path", default=None, help="Glob of device files")
    parser.add_argument("--contact-path", default=None, help="Path/glob of the contact file")
    parser.add_argument("--max-contacts", type=int, default=None, help="Contact capacity N")
    parser.add_argument("--miss-policy", choices=[p.value for p in MissPolicy], default=None)
    parser.add_argument("--format-policy", choices=[p.value for p in FormatPolicy], default=None)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="INFO")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> JobConfig:
    return load_config(
        args.config,
        overrides={
            "output": args.output,
            "device_path": args.device_path,
            "contact_path": args.contact_path,
            "max_contacts": args.max_contacts,
            "miss_policy": args.miss_policy,
            "format_policy": args.format_policy,
        },
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2

    store = config.store
    table_path = f"{config.output.rstrip('/')}/{store.table}"
    logger.info(
        "Target store project=%s instance=%s table=%s",
        store.project_id,
        store.instance_id,
        table_path,
    )

    spark = get_spark(with_delta=True)
    try:
        stats = run_job(spark, config, DeltaMutationSink(spark, table_path))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except ContactJoinError as exc:
        logger.error("Job failed before writing: %s", exc)
        return 1

    logger.info(
        "Join complete: devices=%d contacts=%d joined=%d mutations=%d",
        stats.device_count,
        stats.contact_count,
        stats.joined_count,
        stats.mutation_count,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
