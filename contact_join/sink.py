"""Mutation sinks: where formatted cells end up.

The wide-column store is an external collaborator. Anything with a
`write(mutations_df)` method can stand in for it; the shipped sink keeps
one Delta row per cell, keyed by (row_key, column_family, column), so a
rerun overwrites cells the way a wide-column put does.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pyspark.sql import DataFrame, SparkSession

logger = logging.getLogger(__name__)

CELL_KEY = ["row_key", "column_family", "column"]


class MutationSink(Protocol):
    def write(self, mutations_df: DataFrame) -> None:
        ...


class DeltaMutationSink:
    """Upsert mutation cells into a Delta table at `table_path`."""

    def __init__(self, spark: SparkSession, table_path: str):
        self.spark = spark
        self.table_path = table_path

    def write(self, mutations_df: DataFrame) -> None:
        from delta.tables import DeltaTable

        # MERGE rejects a source with more than one row per target cell.
        df = mutations_df.select(*CELL_KEY, "value").dropDuplicates(CELL_KEY)

        if not DeltaTable.isDeltaTable(self.spark, self.table_path):
            logger.info("Creating cell table at %s", self.table_path)
            df.write.format("delta").mode("overwrite").save(self.table_path)
            return

        target = DeltaTable.forPath(self.spark, self.table_path)
        condition = " AND ".join(f"target.`{k}` = source.`{k}`" for k in CELL_KEY)
        (
            target.alias("target")
            .merge(df.alias("source"), condition)
            .whenMatchedUpdateAll()
            .whenNotMatchedInsertAll()
            .execute()
        )
        logger.info("Merged mutations into %s", self.table_path)

    def read(self) -> DataFrame:
        """Read the cell table back."""
        return self.spark.read.format("delta").load(self.table_path)
