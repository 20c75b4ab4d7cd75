#!/usr/bin/python3

from xdeploy.cli import verify as cli

if __name__ == "__main__":
    cli()
