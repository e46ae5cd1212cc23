"""Broadcast join of device candidates against the frozen contact map."""

import logging
from dataclasses import dataclass

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

from contact_join.config import MissPolicy
from contact_join.errors import JoinMissError
from contact_join.sequence import ContactMap

logger = logging.getLogger(__name__)

_MISS_SAMPLE_SIZE = 5


@dataclass
class JoinResult:
    """Joined records plus the number of candidates that found no contact."""

    joined: DataFrame
    miss_count: int


def build_row_key(device_col: str = "device", key_col: str = "sequence_key") -> Column:
    """Row key column: '<device>_<sequence_key>'."""
    return F.concat_ws("_", F.col(device_col), F.col(key_col).cast("string"))


def broadcast_join(
    candidates_df: DataFrame,
    contact_map: ContactMap,
    miss_policy: MissPolicy = MissPolicy.DROP,
) -> JoinResult:
    """Look up every candidate's sequence key in the contact map.

    `contact_map` is already complete when this is called; it is shipped to
    every executor with an explicit broadcast hint so the device side is
    never shuffled.

    Returns one row per candidate with `row_key`, `device`, `sequence_key`
    and `contact_raw`. Candidates without a contact are dropped, kept with a
    null `contact_raw`, or fail the job, depending on `miss_policy`.
    """
    spark = candidates_df.sparkSession
    contacts = F.broadcast(contact_map.to_dataframe(spark))

    how = "inner" if miss_policy == MissPolicy.DROP else "left"
    joined = candidates_df.join(contacts, on="sequence_key", how=how).select(
        build_row_key().alias("row_key"),
        "device",
        "sequence_key",
        F.col("raw").alias("contact_raw"),
    )

    missing_keys = candidates_df.join(contacts, on="sequence_key", how="left_anti")
    miss_count = missing_keys.count()

    if miss_count:
        if miss_policy == MissPolicy.FAIL:
            sample = [
                r["row_key"]
                for r in missing_keys.select(build_row_key().alias("row_key"))
                .limit(_MISS_SAMPLE_SIZE)
                .collect()
            ]
            raise JoinMissError(miss_count, sample)
        logger.warning(
            "%d device candidates had no contact (policy=%s)",
            miss_count,
            miss_policy.value,
        )

    return JoinResult(joined=joined, miss_count=miss_count)
