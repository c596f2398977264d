"""
Server settings, read from the environment after loading a `.env` file.

    BPGRAPH_PROJECT_DIR   project root holding blueprints/ and scripts/  (default: cwd)
    BPGRAPH_HELPER_MODE   "import" | "inline"                           (default: import)
    BPGRAPH_HOST          bind address                                  (default: 127.0.0.1)
    BPGRAPH_PORT          bind port                                     (default: 3001)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class ServerSettings:
    project_dir: Path
    helper_mode: str = "import"
    host: str = "127.0.0.1"
    port: int = 3001

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "ServerSettings":
        if load_dotenv(env_file):
            logger.debug(f"loaded environment from {env_file or '.env'}")

        port = os.environ.get("BPGRAPH_PORT", "3001")
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"BPGRAPH_PORT must be an integer, got {port!r}") from None

        return cls(
            project_dir=Path(os.environ.get("BPGRAPH_PROJECT_DIR", ".")).expanduser(),
            helper_mode=os.environ.get("BPGRAPH_HELPER_MODE", "import"),
            host=os.environ.get("BPGRAPH_HOST", "127.0.0.1"),
            port=port_number,
        )
