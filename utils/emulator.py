"""
Emulator lifecycle control through the docker CLI.

Each scenario point starts from a freshly started emulator container so no
data can leak from one point into the next.
"""

import logging
import socket
import subprocess
import time
from typing import List

from config import EmulatorConfig
from core.errors import SetupError


class EmulatorController:
    """Stops, starts and waits for a local Cloud Spanner emulator container."""

    def __init__(self, config: EmulatorConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    def remove_command(self) -> List[str]:
        return [self.config.docker_binary, "rm", "-f", self.config.container_name]

    def run_command(self) -> List[str]:
        return [
            self.config.docker_binary, "run", "-d", "--rm",
            "-p", f"{self.config.grpc_port}:9010",
            "-p", f"{self.config.rest_port}:9020",
            "--name", self.config.container_name,
            self.config.image,
        ]

    def stop(self) -> None:
        """Best-effort removal; a missing container is not an error."""
        try:
            result = subprocess.run(
                self.remove_command(),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise SetupError(f"docker binary not found: {self.config.docker_binary}") from e
        if result.returncode != 0:
            self.logger.debug(
                f"docker rm {self.config.container_name} exited {result.returncode}: "
                f"{(result.stderr or '').strip() or '<no stderr>'}"
            )

    def start(self) -> None:
        self.logger.info(f"Starting emulator {self.config.image} as {self.config.container_name}")
        try:
            subprocess.run(
                self.run_command(),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise SetupError(f"docker binary not found: {self.config.docker_binary}") from e
        except subprocess.CalledProcessError as e:
            raise SetupError(
                f"failed to start emulator container: {(e.stderr or '').strip() or e}"
            ) from e

    def wait_until_ready(self) -> None:
        """Fixed settling delay, then poll the gRPC port until it accepts connections."""
        time.sleep(self.config.startup_delay)
        deadline = time.monotonic() + self.config.readiness_timeout
        while True:
            try:
                with socket.create_connection((self.config.host, self.config.grpc_port), timeout=1.0):
                    self.logger.debug(f"Emulator accepting connections on {self.config.endpoint}")
                    return
            except OSError as e:
                if time.monotonic() >= deadline:
                    raise SetupError(
                        f"emulator not reachable on {self.config.endpoint} "
                        f"after {self.config.readiness_timeout}s: {e}"
                    ) from e
                time.sleep(0.25)

    def restart(self) -> None:
        self.stop()
        self.start()
        self.wait_until_ready()
