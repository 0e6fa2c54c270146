"""
airlift.push.engine — External container engine (docker CLI).

Used as the second push tier:

    docker load -i <archive>      → "Loaded image: nginx:1.25"
                                    or "Loaded image ID: sha256:..."
    docker tag <loaded> <target>
    docker push <target>
"""

from __future__ import annotations

import shutil

from airlift.core.errors import EngineError
from airlift.push.runner import CommandRunner


LOADED_IMAGE_PREFIX = "Loaded image:"
LOADED_IMAGE_ID_PREFIX = "Loaded image ID:"


class ContainerEngine:
    """docker (or a compatible CLI such as podman) behind a CommandRunner."""

    def __init__(self, binary: str = "docker",
                 runner: CommandRunner | None = None):
        self.binary = binary
        self._runner = runner or CommandRunner()

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def load(self, archive_path: str) -> str:
        """Load an image archive; returns the loaded name or image ID."""
        result = self._runner.run([self.binary, "load", "-i", str(archive_path)])
        if not result.success:
            raise EngineError(f"{self.binary} load failed: {result.output}")
        loaded = parse_load_output(result.stdout)
        if not loaded:
            raise EngineError(
                f"Could not determine loaded image from output: {result.stdout.strip()}"
            )
        return loaded

    def tag(self, source: str, target: str) -> None:
        result = self._runner.run([self.binary, "tag", source, target])
        if not result.success:
            raise EngineError(
                f"{self.binary} tag {source} {target} failed: {result.output}"
            )

    def push(self, target: str) -> None:
        result = self._runner.run([self.binary, "push", target])
        if not result.success:
            raise EngineError(f"{self.binary} push {target} failed: {result.output}")

    def login(self, registry: str, username: str, password: str) -> None:
        """Log in with the password on stdin (never on the command line)."""
        result = self._runner.run(
            [self.binary, "login", registry, "-u", username, "--password-stdin"],
            input=password,
        )
        if not result.success:
            raise EngineError(f"{self.binary} login {registry} failed: {result.output}")


def parse_load_output(output: str) -> str:
    """Extract the loaded image name (or ID) from `docker load` output.

    >>> parse_load_output("Loaded image: nginx:1.25\\n")
    'nginx:1.25'
    >>> parse_load_output("Loaded image ID: sha256:abc\\n")
    'sha256:abc'
    """
    image_id = ""
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(LOADED_IMAGE_ID_PREFIX):
            image_id = image_id or line[len(LOADED_IMAGE_ID_PREFIX):].strip()
        elif line.startswith(LOADED_IMAGE_PREFIX):
            return line[len(LOADED_IMAGE_PREFIX):].strip()
    return image_id
