"""AWS Lambda handler for PulseChart.

Runs as a scheduled Lambda function (via EventBridge) to capture one
snapshot pass over the roster. Provider secrets may live in SSM Parameter
Store instead of plain environment variables.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import boto3

from .adapter_factory import PROVIDER_PLATFORMS, create_adapters
from .config import AppSettings, load_settings
from .orchestrator import IngestionOrchestrator
from .roster import Roster, load_roster
from .store import JsonFileSnapshotStore

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# SSM parameter names (optional)
APIFY_TOKEN_PARAM = os.environ.get("APIFY_TOKEN_PARAM")
SPOTIFY_SECRET_PARAM = os.environ.get("SPOTIFY_SECRET_PARAM")

# The deployment package is read-only; /tmp is the only writable path
LAMBDA_SNAPSHOT_FILE = "/tmp/pulsechart_snapshots.json"


class SSMSecrets:
    """Reads SecureString parameters from AWS SSM Parameter Store."""

    def __init__(self, client=None):
        self.ssm = client or boto3.client("ssm")

    def get(self, param_name: str) -> Optional[str]:
        """Retrieve a decrypted parameter value, or None if it does not exist."""
        try:
            response = self.ssm.get_parameter(Name=param_name, WithDecryption=True)
            logger.info(f"Retrieved {param_name} from SSM")
            return response["Parameter"]["Value"]
        except self.ssm.exceptions.ParameterNotFound:
            logger.warning(f"No parameter found in SSM at {param_name}")
            return None


def get_settings_from_env(secrets: Optional[SSMSecrets] = None) -> AppSettings:
    """Load settings, filling provider secrets from SSM when configured.

    The snapshot file falls back to /tmp unless STORE_SNAPSHOT_FILE is set.
    """
    settings = load_settings()
    if "STORE_SNAPSHOT_FILE" not in os.environ:
        settings.storage.snapshot_file = LAMBDA_SNAPSHOT_FILE

    apify_param = os.environ.get("APIFY_TOKEN_PARAM", APIFY_TOKEN_PARAM)
    spotify_param = os.environ.get("SPOTIFY_SECRET_PARAM", SPOTIFY_SECRET_PARAM)
    if not (apify_param or spotify_param):
        return settings

    secrets = secrets or SSMSecrets()
    if apify_param and not settings.apify.api_token:
        settings.apify.api_token = secrets.get(apify_param)
    if spotify_param and not settings.spotify.client_secret:
        settings.spotify.client_secret = secrets.get(spotify_param)
    return settings


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler function.

    Triggered by EventBridge schedule. The event may carry an inline
    "roster" ({"artists": [...]}) and "force": true; otherwise the roster
    file from settings is used.
    """
    logger.info("PulseChart Lambda invoked")
    logger.info(f"Event: {json.dumps(event)}")

    try:
        settings = get_settings_from_env()

        adapters = create_adapters(settings)
        if not adapters:
            return {
                "statusCode": 200,
                "body": json.dumps({"message": "No providers configured, skipped"}),
            }

        if event.get("roster"):
            roster = Roster.model_validate(event["roster"])
        else:
            roster = load_roster(Path(settings.storage.roster_file))

        store = JsonFileSnapshotStore(Path(settings.storage.snapshot_file))
        orchestrator = IngestionOrchestrator(adapters, settings.ingestion, store=store)
        summary = orchestrator.ingest_many(
            roster.to_ingestion_map(PROVIDER_PLATFORMS),
            force=bool(event.get("force")),
        )
        cutoff = datetime.now(timezone.utc) - timedelta(days=settings.storage.retention_days)
        pruned = store.prune(cutoff)

        result = {
            "statusCode": 200,
            "body": json.dumps({
                "message": "Ingestion pass complete",
                **summary.as_dict(),
                "pruned": pruned,
                "failed_artists": sorted(summary.failed),
            }),
        }
        logger.info(f"Result: {result}")
        return result

    except Exception as e:
        logger.error(f"Lambda execution failed: {e}", exc_info=True)
        return {
            "statusCode": 500,
            "body": json.dumps({"error": str(e)}),
        }


# For local testing
if __name__ == "__main__":
    result = handler({}, None)
    print(json.dumps(result, indent=2))
