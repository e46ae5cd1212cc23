"""SparkSession factory: auto-detects Databricks runtime vs local development."""

import os

from pyspark.sql import SparkSession


def _is_databricks() -> bool:
    """Detect if running inside a Databricks cluster."""
    return "DATABRICKS_RUNTIME_VERSION" in os.environ


def get_spark(
    app_name: str = "contact-join",
    local: bool | None = None,
    with_delta: bool = False,
) -> SparkSession:
    """Create a SparkSession configured for local or cluster mode.

    Args:
        app_name: Spark application name.
        local: Force local mode. If None, auto-detect (local unless on Databricks).
        with_delta: In local mode, pull the Delta Lake jars so the cell table
            sink can write. Clusters are expected to ship Delta already.
    """
    if local is None:
        local = not _is_databricks()

    builder = SparkSession.builder.appName(app_name)

    if local:
        builder = (
            builder.master("local[*]")
            .config("spark.driver.memory", "4g")
            .config("spark.sql.shuffle.partitions", "8")
        )
        if with_delta:
            from delta import configure_spark_with_delta_pip

            builder = builder.config(
                "spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension"
            ).config(
                "spark.sql.catalog.spark_catalog",
                "org.apache.spark.sql.delta.catalog.DeltaCatalog",
            )
            builder = configure_spark_with_delta_pip(builder)
    else:
        # Databricks / cluster mode: Delta extensions (also set on the job cluster).
        builder = builder.config(
            "spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension"
        ).config(
            "spark.sql.catalog.spark_catalog",
            "org.apache.spark.sql.delta.catalog.DeltaCatalog",
        )

    return builder.getOrCreate()
