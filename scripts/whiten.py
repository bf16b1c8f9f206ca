"""Entry point for PCA whitening a dataset."""

from __future__ import annotations

import sys

from nca_metric import cli


def main() -> None:
    cli.main(args=["whiten", *sys.argv[1:]], prog_name="whiten")


if __name__ == "__main__":
    main()
