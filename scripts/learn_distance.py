"""Wrapper script to learn an NCA distance transform."""

from __future__ import annotations

import sys

from nca_metric import cli


def main() -> None:
    cli.main(args=["learn", *sys.argv[1:]], prog_name="learn_distance")


if __name__ == "__main__":
    main()
