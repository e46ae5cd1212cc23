"""Line ingestion: read raw text files matching a path/glob into Spark DataFrames."""

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.sql.window import Window

from contact_join.errors import ConfigurationError


def _read_text(spark: SparkSession, pattern: str, wholetext: bool = False) -> DataFrame:
    """Read text files, turning a path that matches nothing into a ConfigurationError."""
    try:
        return spark.read.text(pattern, wholetext=wholetext)
    except AnalysisException as exc:
        raise ConfigurationError(f"no input files match {pattern!r}") from exc


def read_lines(spark: SparkSession, pattern: str) -> DataFrame:
    """Read every line of the matching files, one row per line, in no particular order."""
    return _read_text(spark, pattern).withColumn("_source_file", F.input_file_name())


def read_ordered_lines(spark: SparkSession, pattern: str) -> DataFrame:
    """Read lines together with their position in the globally ordered input.

    Files are ordered by path and lines by their offset inside the file, so
    `_line_number` (0-based) is the same on every run and every retry. Each
    file is loaded whole, which is only acceptable for bounded sources.
    """
    files = _read_text(spark, pattern, wholetext=True).withColumn(
        "_source_file", F.input_file_name()
    )
    lines = files.filter(F.col("value") != "").select(
        "_source_file",
        F.posexplode(
            F.split(F.regexp_replace("value", r"\r?\n\z", ""), r"\r?\n")
        ).alias("_line_in_file", "value"),
    )
    window = Window.orderBy("_source_file", "_line_in_file")
    return lines.select(
        "value",
        "_source_file",
        (F.row_number().over(window) - 1).alias("_line_number"),
    )


def ingest_devices(spark: SparkSession, pattern: str) -> DataFrame:
    """Ingest device files: one device identifier per non-empty line."""
    df = read_lines(spark, pattern)
    return df.filter(F.col("value") != "").select(
        F.col("value").alias("device"), "_source_file"
    )


def ingest_contacts(spark: SparkSession, pattern: str) -> DataFrame:
    """Ingest the bounded contact file(s), keeping each line's global position."""
    return read_ordered_lines(spark, pattern)
