#!/usr/bin/python3

from xdeploy.cli import list_flows as cli

if __name__ == "__main__":
    cli()
