"""Allow `python -m satsuki.cli`."""

from . import main

main()
