"""
Command line entry point.

Usage:
    pycuboid [--device-type gpu] [--seed 42] [--sample-size 100]
    python -m pycuboid --list-devices
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from collections.abc import Sequence

from pycuboid.config import DEFAULT_SAMPLE_SIZE, RunConfig
from pycuboid.core.device import DeviceClass, DeviceSelector
from pycuboid.core.pipeline import run_benchmark
from pycuboid.exceptions import BuildError, PyCuboidError

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

DEVICE_CHOICES = ("gpu", "cpu", "accelerator", "all")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pycuboid",
        description=(
            "Calculate the surface area of 75 million cuboids with OpenCL and "
            "sequentially, then compare the two."
        ),
    )
    parser.add_argument(
        "--device-type",
        choices=DEVICE_CHOICES,
        default="gpu",
        help="class of OpenCL device to run on (default: %(default)s)",
    )
    parser.add_argument("--seed", type=int, default=None, help="seed for the random inputs")
    parser.add_argument(
        "--sample-size",
        type=int,
        default=DEFAULT_SAMPLE_SIZE,
        help="number of leading results to print (default: %(default)s)",
    )
    parser.add_argument(
        "--build-options",
        default="",
        help="options passed to the OpenCL compiler, e.g. '-cl-fast-relaxed-math'",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="list every OpenCL device and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def _list_devices() -> int:
    for device in DeviceSelector().enumerate_devices():
        print(
            f"{device.platform_name}: {device.name} "
            f"[{device.device_class.name}, {device.compute_units} compute units, "
            f"{device.global_memory_mb:.0f} MB]"
        )
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the benchmark and print the report.

    Returns:
        Process exit code: 0 on success, 1 on any pipeline failure.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.list_devices:
            return _list_devices()

        config = RunConfig(
            device_class=DeviceClass.from_name(args.device_type),
            seed=args.seed,
            sample_size=args.sample_size,
            build_options=shlex.split(args.build_options),
        )
        device = DeviceSelector().select(config.device_class)
        print(device.describe())

        result = run_benchmark(config, device=device)
        print()
        print(result.report.render())
        print()
        result.report.raise_for_mismatch()

    except BuildError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(e.log, file=sys.stderr)
        return EXIT_FAILURE
    except PyCuboidError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
