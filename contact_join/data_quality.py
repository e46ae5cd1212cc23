"""Data quality checks for each pipeline stage."""

import logging
from dataclasses import dataclass

from pyspark.sql import DataFrame, functions as F

from contact_join.config import CONTACT_COLUMNS, MissPolicy

logger = logging.getLogger(__name__)


@dataclass
class QualityCheckResult:
    """Result of a single quality check."""

    name: str
    passed: bool
    details: str = ""

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {self.name}: {self.details}"


def run_checks(results: list[QualityCheckResult]) -> bool:
    """Log all check results and return True if all passed."""
    all_passed = True
    for r in results:
        if r.passed:
            logger.info("%s", r)
        else:
            logger.warning("%s", r)
            all_passed = False
    return all_passed


def check_contact_quality(keyed_df: DataFrame, max_contacts: int) -> list[QualityCheckResult]:
    """Run quality checks on the keyed contacts."""
    results = []

    stats = keyed_df.agg(
        F.count("*").alias("total"),
        F.countDistinct("sequence_key").alias("distinct"),
        F.min("sequence_key").alias("min_key"),
        F.max("sequence_key").alias("max_key"),
    ).collect()[0]
    total = stats["total"]

    results.append(QualityCheckResult(
        "contacts_row_count_positive",
        total > 0,
        f"{total} rows",
    ))

    results.append(QualityCheckResult(
        "contacts_within_capacity",
        total <= max_contacts,
        f"{total} rows, capacity {max_contacts}",
    ))

    # Keys must be exactly 1..total: distinct, starting at 1, no gaps.
    bijective = total == 0 or (
        stats["distinct"] == total and stats["min_key"] == 1 and stats["max_key"] == total
    )
    results.append(QualityCheckResult(
        "contacts_keys_contiguous",
        bijective,
        f"distinct={stats['distinct']}, min={stats['min_key']}, max={stats['max_key']}",
    ))

    return results


def check_join_quality(
    joined_df: DataFrame,
    device_count: int,
    contact_count: int,
    miss_policy: MissPolicy = MissPolicy.DROP,
) -> list[QualityCheckResult]:
    """Run quality checks on the joined records."""
    results = []

    joined = joined_df.count()
    matched = joined_df.filter(F.col("contact_raw").isNotNull()).count()
    expected = device_count * contact_count
    results.append(QualityCheckResult(
        "join_complete",
        matched == expected,
        f"matched={matched}, expected={device_count} devices x {contact_count} contacts",
    ))

    if miss_policy == MissPolicy.DROP:
        results.append(QualityCheckResult(
            "join_no_null_contacts",
            joined == matched,
            f"{joined - matched} joined rows without a contact",
        ))

    distinct = joined_df.select("row_key").distinct().count()
    results.append(QualityCheckResult(
        "join_unique_row_keys",
        distinct == joined,
        f"total={joined}, distinct={distinct}",
    ))

    return results


def check_mutation_quality(mutations_df: DataFrame) -> list[QualityCheckResult]:
    """Run quality checks on the mutation cells."""
    results = []

    per_row = mutations_df.groupBy("row_key").count()
    bad_rows = per_row.filter(F.col("count") != len(CONTACT_COLUMNS)).count()
    results.append(QualityCheckResult(
        "mutations_four_per_row",
        bad_rows == 0,
        f"{bad_rows} rows without exactly {len(CONTACT_COLUMNS)} mutations",
    ))

    columns = {r.column for r in mutations_df.select("column").distinct().collect()}
    results.append(QualityCheckResult(
        "mutations_known_columns",
        columns.issubset(set(CONTACT_COLUMNS)),
        f"columns: {sorted(columns)}",
    ))

    families = {
        r.column_family for r in mutations_df.select("column_family").distinct().collect()
    }
    results.append(QualityCheckResult(
        "mutations_single_column_family",
        len(families) <= 1,
        f"column families: {sorted(families)}",
    ))

    return results
