"""Shared fixtures for the test suite."""

import sys
from pathlib import Path

import pytest
from delta import configure_spark_with_delta_pip
from pyspark.sql import SparkSession

from contact_join.config import JobConfig


@pytest.fixture(scope="session")
def spark():
    """Session-scoped SparkSession for tests, with Delta wired in for the sink."""
    builder = (
        SparkSession.builder.appName("contact-join-tests")
        .master("local[1]")
        .config("spark.driver.memory", "1g")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.ui.enabled", "false")
        .config("spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension")
        .config(
            "spark.sql.catalog.spark_catalog",
            "org.apache.spark.sql.delta.catalog.DeltaCatalog",
        )
    )
    session = configure_spark_with_delta_pip(builder).getOrCreate()
    yield session
    session.stop()


def write_lines(path: Path, lines: list[str]) -> None:
    """Write a plain text file, one entry per line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(line + "\n" for line in lines))


def make_config(data_dir, **overrides) -> JobConfig:
    """JobConfig pointing at a fixture directory laid out like the real stage bucket."""
    values = {
        "output": str(Path(data_dir) / "cells"),
        "device_path": str(Path(data_dir) / "A_*.dat"),
        "contact_path": str(Path(data_dir) / "B.csv"),
        "max_contacts": 2,
    }
    values.update(overrides)
    return JobConfig(**values)


@pytest.fixture()
def scenario_data_dir(tmp_path):
    """One device, two contacts, N=2: the smallest complete join."""
    write_lines(tmp_path / "A_000.dat", ["phoneA"])
    write_lines(tmp_path / "B.csv", ["Doe,Jane,555-1,Janey", "Ng,Tom,555-2,Tommy"])
    return tmp_path


@pytest.fixture()
def sample_data_dir(tmp_path):
    """Several device files and three contacts.

    Devices:
      A_000.dat: phoneA, phoneB
      A_001.dat: phoneC, (blank line), tablet-01
    Contacts (B.csv), in order:
      1 Doe,Jane,555-1234,Janey
      2 Ng,Tom,555-2,Tommy
      3 Lopez,Edward,555-3,Ed
    """
    write_lines(tmp_path / "A_000.dat", ["phoneA", "phoneB"])
    write_lines(tmp_path / "A_001.dat", ["phoneC", "", "tablet-01"])
    write_lines(
        tmp_path / "B.csv",
        ["Doe,Jane,555-1234,Janey", "Ng,Tom,555-2,Tommy", "Lopez,Edward,555-3,Ed"],
    )
    return tmp_path


@pytest.fixture()
def duplicate_device_data_dir(tmp_path):
    """phoneA listed in two device files and twice in the second, two contacts."""
    write_lines(tmp_path / "A_000.dat", ["phoneA", "phoneB"])
    write_lines(tmp_path / "A_001.dat", ["phoneA", "phoneA"])
    write_lines(tmp_path / "B.csv", ["Doe,Jane,555-1,Janey", "Ng,Tom,555-2,Tommy"])
    return tmp_path


@pytest.fixture()
def malformed_data_dir(tmp_path):
    """Two devices and three contacts, the second one has only three fields."""
    write_lines(tmp_path / "A_000.dat", ["phoneA", "phoneB"])
    write_lines(
        tmp_path / "B.csv",
        ["Doe,Jane,555-1,Janey", "Ng,Tom,555-2", "Lopez,Edward,555-3,Ed"],
    )
    return tmp_path


# ---------------------------------------------------------------------------
# E2E data
# ---------------------------------------------------------------------------

_PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture(scope="module")
def e2e_data_dir(tmp_path_factory):
    """Generate a small device/contact dataset with the sample-data generator."""
    sys.path.insert(0, str(_PROJECT_ROOT))
    from generate_sample_data import generate_dataset

    out = tmp_path_factory.mktemp("e2e_generated")
    generate_dataset(str(out), num_devices=200, num_contacts=300, seed=42)
    return str(out)
