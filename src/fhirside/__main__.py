"""Run the FhirSide server: ``python -m fhirside [--config fhirside.yaml]``."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

import structlog
import uvicorn

from fhirside.api import create_app
from fhirside.core.config import load_config
from fhirside.core.observability import configure_logging
from fhirside.facade import FhirSide

logger = structlog.get_logger()


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="fhirside", description="FhirSide FHIR sandbox server")
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--host", default=None, help="Override server.host")
    parser.add_argument("--port", type=int, default=None, help="Override server.port")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.log_level, config.log_format)

    host = args.host or config.server.host
    port = args.port or config.server.port

    logger.info("fhirside_starting", host=host, port=port, environment=config.environment)
    uvicorn.run(
        create_app(FhirSide(config)),
        host=host,
        port=port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
