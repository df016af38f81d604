"""sourcewatch Kubernetes Operator.

Main entry point for the operator that watches Flux GitRepository
artifacts and converges ApplicationDeployment resources, using the Kopf
framework.

Usage:
    # Run in development mode (standalone, verbose)
    python -m sourcewatch.k8s_operator.main --dev --verbose

    # Run against a single namespace
    python -m sourcewatch.k8s_operator.main --namespace=flux-system

    # Run with peering for multi-instance deployment
    python -m sourcewatch.k8s_operator.main --peering=sourcewatch
"""

import argparse
import logging
import sys
from typing import NoReturn

import kopf

from sourcewatch.config.settings import get_settings

# Import handlers to register their decorators
# This must happen before kopf.run() is called
from sourcewatch.k8s_operator import handlers  # noqa: F401
from sourcewatch.observability._logging import configure_logging, get_logger


logger = get_logger(__name__)


def main(
    namespace: str | None = None,
    peering_name: str | None = None,
    liveness_port: int | None = None,
    priority: int = 0,
    dev_mode: bool = False,
) -> NoReturn:
    """Main entry point for the sourcewatch operator.

    Configures and runs the Kopf-based operator with all registered
    handlers. Blocks until the operator is stopped.

    Args:
        namespace: Namespace to watch. If None, watches all namespaces.
        peering_name: Peering name for multi-instance coordination.
                     If None, uses the value from settings.
        liveness_port: Port for the liveness probe. If None, uses settings.
        priority: Operator priority for peering (higher = more preferred).
        dev_mode: If True, runs standalone without peering.

    Raises:
        SystemExit: Never returns normally
    """
    settings = get_settings()
    configure_logging()

    namespace = namespace or settings.kubernetes.namespace
    peering_name = peering_name or settings.kubernetes.peering_id
    liveness_port = liveness_port or settings.observability.liveness_port
    standalone = dev_mode or not peering_name

    logger.info(
        "operator_starting",
        version=settings.app_version,
        namespace=namespace or "all",
        peering=peering_name if not standalone else None,
        liveness_port=liveness_port,
        dev_mode=dev_mode,
        debug=settings.debug,
    )

    kopf_settings = kopf.OperatorSettings()
    kopf_settings.posting.level = logging.DEBUG if settings.debug else logging.INFO
    kopf_settings.watching.server_timeout = settings.kubernetes.api_timeout
    kopf_settings.watching.client_timeout = settings.kubernetes.api_timeout + 10

    try:
        kopf.run(
            settings=kopf_settings,
            standalone=standalone,
            priority=priority,
            peering_name=None if standalone else peering_name,
            liveness_endpoint=f"http://0.0.0.0:{liveness_port}/healthz",
            clusterwide=namespace is None,
            namespaces=[namespace] if namespace else (),
        )
    except KeyboardInterrupt:
        logger.info("operator_stopped_by_user")
        sys.exit(0)
    except Exception as error:
        logger.exception(
            "operator_crashed",
            error=str(error),
            error_type=type(error).__name__,
        )
        raise

    sys.exit(0)


def cli() -> NoReturn:
    """CLI entry point for the sourcewatch-operator command."""
    parser = argparse.ArgumentParser(
        description="sourcewatch - Flux artifacts to ApplicationDeployments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch all namespaces
  sourcewatch-operator

  # Watch one namespace, standalone with debug logs
  sourcewatch-operator --namespace flux-system --dev --verbose

Environment Variables:
  SOURCEWATCH_FETCH_RETRIES             - Artifact download retries
  SOURCEWATCH_FETCH_MAX_DOWNLOAD_SIZE   - Download limit in bytes (-1 = unlimited)
  SOURCEWATCH_FETCH_MAX_UNTAR_SIZE      - Extraction limit in bytes (-1 = unlimited)
  SOURCE_CONTROLLER_LOCALHOST           - Override the artifact URL host
  SOURCEWATCH_TARGET_NAME               - Name of the synthesized resource
  SOURCEWATCH_TARGET_NAMESPACE          - Namespace of the synthesized resource
        """,
    )

    parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="Namespace to watch (default: all namespaces)",
    )
    parser.add_argument(
        "--peering",
        type=str,
        default=None,
        help="Peering name for multi-instance coordination",
    )
    parser.add_argument(
        "--priority",
        type=int,
        default=0,
        help="Operator priority for peering (higher = preferred)",
    )
    parser.add_argument(
        "--liveness-port",
        type=int,
        default=None,
        help="Port for the liveness probe",
    )
    parser.add_argument(
        "--http-retry",
        type=int,
        default=None,
        help="Retries for transient artifact download failures",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run standalone, without peering",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    settings = get_settings()
    if args.verbose:
        settings.debug = True
    if args.http_retry is not None:
        settings.fetch.retries = args.http_retry

    main(
        namespace=args.namespace,
        peering_name=args.peering,
        liveness_port=args.liveness_port,
        priority=args.priority,
        dev_mode=args.dev,
    )


if __name__ == "__main__":
    cli()
