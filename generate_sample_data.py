#!/usr/bin/env python3
"""Generate a data_sample/ directory for local development.

data_sample/A_000.dat .. A_<n>.dat - one device identifier per line
data_sample/B.csv                  - lastname,firstname,contact,nickname

The directory is gitignored.

Usage:
    uv run python generate_sample_data.py [--devices 1000] [--contacts 300]
"""

import argparse
import os
import random
import shutil

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
_SAMPLE_DIR = os.path.join(_PROJECT_ROOT, "data_sample")

_LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller",
    "Davis", "Lopez", "Wilson", "Taylor", "Lee", "Ng", "Doe", "Adams",
]
_FIRST_NAMES = [
    "James", "Mary", "Robert", "Patricia", "John", "Jennifer", "Michael",
    "Linda", "David", "Elizabeth", "Tom", "Jane", "Grace", "Edward", "Carol",
]
_AREA_CODES = ["212", "312", "415", "512", "617", "713", "818", "917"]


def generate_dataset(out_dir: str, num_devices: int, num_contacts: int,
                     num_device_files: int = 4, seed: int = 42) -> None:
    """Write device files and a single contact file into `out_dir`."""
    rng = random.Random(seed)
    os.makedirs(out_dir, exist_ok=True)

    per_file = max(1, num_devices // num_device_files)
    device_id = 0
    for file_no in range(num_device_files):
        path = os.path.join(out_dir, f"A_{file_no:03d}.dat")
        count = per_file if file_no < num_device_files - 1 else num_devices - device_id
        with open(path, "w") as f:
            for _ in range(max(count, 0)):
                f.write(f"device{device_id:08d}\n")
                device_id += 1

    with open(os.path.join(out_dir, "B.csv"), "w") as f:
        for _ in range(num_contacts):
            last = rng.choice(_LAST_NAMES)
            first = rng.choice(_FIRST_NAMES)
            phone = f"{rng.choice(_AREA_CODES)}-555-{rng.randint(0, 9999):04d}"
            nickname = first[: rng.randint(2, len(first))]
            f.write(f"{last},{first},{phone},{nickname}\n")


def main():
    parser = argparse.ArgumentParser(description="Generate local sample data")
    parser.add_argument("--devices", type=int, default=1000)
    parser.add_argument("--contacts", type=int, default=300)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if os.path.isdir(_SAMPLE_DIR):
        shutil.rmtree(_SAMPLE_DIR)

    print("Generating data_sample/ ...")
    generate_dataset(_SAMPLE_DIR, args.devices, args.contacts, seed=args.seed)
    print(f"Wrote {args.devices} devices and {args.contacts} contacts to {_SAMPLE_DIR}")


if __name__ == "__main__":
    main()
