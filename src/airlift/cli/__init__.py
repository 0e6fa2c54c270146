"""
airlift.cli — CLI entry point.

Commands:
  airlift init [-m manifest.yaml]        — Validate a manifest
  airlift build [-m ...] [-o ...]        — Build a bundle
  airlift unpack <bundle> [-C dir]       — Extract a bundle
  airlift push <bundle|dir> [flags]      — Push bundle contents
  airlift analyze <chart.tgz>...         — List images used by charts
"""

import click

from airlift.cli.init_cmd import init_cmd
from airlift.cli.build_cmd import build_cmd
from airlift.cli.unpack_cmd import unpack_cmd
from airlift.cli.push_cmd import push_cmd
from airlift.cli.analyze_cmd import analyze_cmd


@click.group()
@click.version_option(package_name="airlift")
def main():
    """airlift — Air-gapped bundles of images and Helm charts."""
    pass


main.add_command(init_cmd, "init")
main.add_command(build_cmd, "build")
main.add_command(unpack_cmd, "unpack")
main.add_command(push_cmd, "push")
main.add_command(analyze_cmd, "analyze")
