"""Record formatting: turn joined contact strings into per-column mutations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from contact_join.config import CONTACT_COLUMNS, FormatPolicy
from contact_join.errors import DataFormatError

logger = logging.getLogger(__name__)

FIELD_COUNT = len(CONTACT_COLUMNS)

_REJECT_SAMPLE_SIZE = 5


@dataclass(frozen=True)
class Mutation:
    """A single cell write: one column of one row."""

    row_key: bytes
    column_family: str
    column: str
    value: bytes


@dataclass
class FormatResult:
    """Mutations for well-formed records, and the records that were rejected."""

    mutations: DataFrame
    rejects: DataFrame
    reject_count: int


def format_record(row_key: str, contact_raw: str | None, delimiter: str = ",",
                  column_family: str = "contacts") -> list[Mutation]:
    """Split one contact string and return its four mutations.

    Raises DataFormatError without emitting anything if the contact is
    missing or does not have exactly four fields.
    """
    if contact_raw is None:
        raise DataFormatError(row_key, None)
    fields = contact_raw.split(delimiter)
    if len(fields) != FIELD_COUNT:
        raise DataFormatError(row_key, len(fields))
    key = row_key.encode("utf-8")
    return [
        Mutation(key, column_family, column, value.encode("utf-8"))
        for column, value in zip(CONTACT_COLUMNS, fields)
    ]


def split_contact_fields(joined_df: DataFrame, delimiter: str = ",") -> DataFrame:
    """Add a `fields` array column holding `contact_raw` split on the literal delimiter."""
    pattern = re.escape(delimiter)
    return joined_df.withColumn("fields", F.split(F.col("contact_raw"), pattern, -1))


def validate_field_count(split_df: DataFrame) -> tuple[DataFrame, DataFrame]:
    """Partition split records into (valid, rejects) on the four-field rule.

    Rejects keep `row_key` and `contact_raw` and gain `field_count` and
    `reject_reason`.
    """
    field_count = F.when(F.col("fields").isNull(), F.lit(None).cast("int")).otherwise(
        F.size("fields")
    )
    checked = split_df.withColumn("field_count", field_count)

    valid = checked.filter(F.col("field_count") == FIELD_COUNT).drop("field_count")
    rejects = checked.filter(
        F.col("field_count").isNull() | (F.col("field_count") != FIELD_COUNT)
    ).select(
        "row_key",
        "contact_raw",
        "field_count",
        F.when(F.col("field_count").isNull(), F.lit("missing contact"))
        .otherwise(
            F.concat(
                F.lit(f"expected {FIELD_COUNT} fields, got "),
                F.col("field_count").cast("string"),
            )
        )
        .alias("reject_reason"),
    )
    return valid, rejects


def build_mutations(valid_df: DataFrame, column_family: str = "contacts") -> DataFrame:
    """Explode each valid record into one row per contact column.

    Output schema: row_key (string), column_family (string), column (string),
    value (binary). Every row key gets exactly four mutations.
    """
    cells = F.array(
        *[
            F.struct(F.lit(column).alias("column"), F.col("fields")[i].alias("value"))
            for i, column in enumerate(CONTACT_COLUMNS)
        ]
    )
    return valid_df.select("row_key", F.explode(cells).alias("cell")).select(
        "row_key",
        F.lit(column_family).alias("column_family"),
        F.col("cell.column").alias("column"),
        F.col("cell.value").cast("binary").alias("value"),
    )


def format_records(
    joined_df: DataFrame,
    delimiter: str = ",",
    format_policy: FormatPolicy = FormatPolicy.SKIP,
    column_family: str = "contacts",
) -> FormatResult:
    """Validate joined records and build their mutations.

    Malformed records never contribute partial mutations. Under SKIP they
    are counted, logged and returned as rejects; under FAIL the first one
    raises DataFormatError.
    """
    valid, rejects = validate_field_count(split_contact_fields(joined_df, delimiter))
    reject_count = rejects.count()

    if reject_count:
        sample = rejects.limit(_REJECT_SAMPLE_SIZE).collect()
        if format_policy == FormatPolicy.FAIL:
            first = sample[0]
            raise DataFormatError(first["row_key"], first["field_count"], reject_count)
        logger.warning(
            "Skipping %d malformed contact records, e.g. %s",
            reject_count,
            ", ".join(f"{r['row_key']} ({r['reject_reason']})" for r in sample),
        )

    return FormatResult(
        mutations=build_mutations(valid, column_family),
        rejects=rejects,
        reject_count=reject_count,
    )


def collect_row_batches(mutations_df: DataFrame) -> dict[bytes, list[Mutation]]:
    """Collect a mutation DataFrame to the driver, grouped into one write group per row."""
    batches: dict[bytes, list[Mutation]] = {}
    for row in mutations_df.collect():
        key = row["row_key"].encode("utf-8")
        batches.setdefault(key, []).append(
            Mutation(key, row["column_family"], row["column"], bytes(row["value"]))
        )
    return batches
