"""Sequence keys for contacts and the read-only contact map used as the join's build side."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.sql.types import IntegerType, StringType, StructField, StructType

from contact_join.errors import CapacityError, ConfigurationError, ContactJoinError

logger = logging.getLogger(__name__)

CONTACT_MAP_SCHEMA = StructType(
    [
        StructField("sequence_key", IntegerType(), False),
        StructField("raw", StringType(), True),
    ]
)


def assign_sequence_keys(contacts_df: DataFrame, max_contacts: int) -> DataFrame:
    """Key each contact line by its 1-based position in the ordered input.

    Expects the output of `ingest_contacts` (`value`, `_line_number`). The key
    is derived from the line position, never from a running counter, so
    parallel evaluation and task retries produce the same keys.

    Raises CapacityError if there are more than `max_contacts` lines.
    """
    if max_contacts <= 0:
        raise ConfigurationError(f"max_contacts must be positive, got {max_contacts}")

    keyed = contacts_df.select(
        (F.col("_line_number") + 1).cast("int").alias("sequence_key"),
        F.col("value").alias("raw"),
    )

    count = keyed.count()
    if count > max_contacts:
        raise CapacityError(count, max_contacts)

    empty = keyed.filter(F.col("raw").isNull() | (F.trim("raw") == "")).collect()
    for row in empty:
        logger.warning("Empty contact at sequence key %d", row["sequence_key"])

    logger.info("Assigned sequence keys 1..%d (capacity %d)", count, max_contacts)
    return keyed


class ContactMap(Mapping):
    """Frozen sequence_key -> raw contact mapping.

    Built once on the driver; once it exists the build phase is over and
    every probe sees the complete map.
    """

    def __init__(self, entries: Mapping[int, str | None]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, key: int) -> str | None:
        return self._entries[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: int) -> str | None:
        """Point lookup; None when the key is absent."""
        return self._entries.get(key)

    def to_dataframe(self, spark: SparkSession) -> DataFrame:
        """Materialize the map as a small DataFrame suitable for broadcasting."""
        rows = sorted(self._entries.items())
        return spark.createDataFrame(rows, schema=CONTACT_MAP_SCHEMA)


def build_contact_map(keyed_df: DataFrame) -> ContactMap:
    """Collect keyed contacts to the driver and freeze them."""
    entries: dict[int, str | None] = {}
    for row in keyed_df.select("sequence_key", "raw").collect():
        key = row["sequence_key"]
        if key in entries:
            raise ContactJoinError(f"duplicate sequence key {key}")
        entries[key] = row["raw"]
    return ContactMap(entries)
