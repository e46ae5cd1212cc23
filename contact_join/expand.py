"""Device expansion: pair each device with every candidate sequence key."""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from contact_join.errors import ConfigurationError


def expand_devices(devices_df: DataFrame, max_contacts: int) -> DataFrame:
    """Emit one (sequence_key, device) row per key in 1..max_contacts for every device.

    The device value is carried through untouched.
    """
    if max_contacts <= 0:
        raise ConfigurationError(f"max_contacts must be positive, got {max_contacts}")

    return devices_df.select(
        F.explode(F.sequence(F.lit(1), F.lit(max_contacts))).alias("sequence_key"),
        F.col("device"),
    )
