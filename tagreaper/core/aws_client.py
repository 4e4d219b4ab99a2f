"""
AWS Client Module
=================

Provides a thread-safe wrapper around boto3 for managing AWS connections
with built-in retry configuration and credential validation.

Listers and cleaners share one ``AWSClient`` per run. Service clients are
created lazily and cached; creation is serialized with a lock because
boto3 sessions are not safe to use from several threads at once, while the
resulting clients are.

Classes
-------
AWSClient
    Main client class for AWS operations.

Example
-------
>>> from tagreaper.core.aws_client import AWSClient
>>>
>>> client = AWSClient(region="us-west-2", profile="ci")
>>> client.validate_credentials()
True
>>> ecs = client.get_ecs_client()

Notes
-----
Retry and backoff for throttled calls are delegated to botocore's adaptive
retry mode; the reaper itself never retries an API call.

See Also
--------
boto3 : AWS SDK for Python
botocore : Low-level AWS client library
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from tagreaper.core.exceptions import (
    AWSClientError,
    CredentialsError,
    RegionError,
    ServiceError,
)

logger = logging.getLogger(__name__)


def error_code(error: ClientError) -> str:
    """Extract the AWS error code from a botocore ClientError."""
    return error.response.get("Error", {}).get("Code", "Unknown")


class AWSClient:
    """
    Thread-safe AWS client wrapper with retry logic and credential management.

    Parameters
    ----------
    region : str, default="us-west-2"
        AWS region to connect to.
    profile : str, optional
        AWS profile name from ~/.aws/credentials.
    max_retries : int, default=5
        Maximum number of attempts for failed API calls.
    timeout : int, default=30
        Connect and read timeout in seconds.

    Attributes
    ----------
    region : str
        The configured AWS region.
    profile : str or None
        The configured AWS profile name.
    max_retries : int
        Maximum retry attempts for API calls.
    timeout : int
        Request timeout in seconds.

    Raises
    ------
    CredentialsError
        If AWS credentials are not found or invalid.
    RegionError
        If the specified region is invalid.
    ServiceError
        If unable to create a service client.
    """

    # Services used by the listers and cleaners
    SUPPORTED_SERVICES = {
        "ec2": "Amazon EC2",
        "ecs": "Amazon Elastic Container Service",
        "logs": "Amazon CloudWatch Logs",
        "iam": "AWS Identity and Access Management",
        "sts": "AWS Security Token Service",
    }

    def __init__(
        self,
        region: str = "us-west-2",
        profile: Optional[str] = None,
        max_retries: int = 5,
        timeout: int = 30,
    ) -> None:
        self.region = region
        self.profile = profile
        self.max_retries = max_retries
        self.timeout = timeout

        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._config = self._create_config()

        logger.debug(f"Initialized AWSClient (region={region}, profile={profile})")

    def _create_config(self) -> Config:
        """Create botocore configuration with adaptive retries and timeouts."""
        return Config(
            retries={
                "max_attempts": self.max_retries,
                "mode": "adaptive",
            },
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
        )

    @property
    def session(self) -> boto3.Session:
        """
        Get or create the boto3 session (lazy initialization).

        Raises
        ------
        CredentialsError
            If the profile is not found.
        RegionError
            If the region is invalid.
        """
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> boto3.Session:
        try:
            session_kwargs = {"region_name": self.region}
            if self.profile:
                session_kwargs["profile_name"] = self.profile

            session = boto3.Session(**session_kwargs)
            logger.debug(f"Created boto3 session for region {self.region}")
            return session

        except ProfileNotFound:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={
                    "profile": self.profile,
                    "hint": "Check ~/.aws/credentials for available profiles",
                },
            )
        except NoRegionError:
            raise RegionError(
                f"Invalid or missing region: {self.region}",
                region=self.region,
            )
        except Exception as e:
            logger.exception("Failed to create AWS session")
            raise AWSClientError(
                f"Failed to create AWS session: {e}",
                region=self.region,
            )

    def _get_client(self, service_name: str) -> Any:
        """
        Get or create a cached boto3 client for ``service_name``.

        Raises
        ------
        CredentialsError
            If credentials are not found.
        ServiceError
            If unable to create the client.
        """
        with self._lock:
            if service_name in self._clients:
                return self._clients[service_name]

            try:
                client = self.session.client(service_name, config=self._config)
            except NoCredentialsError:
                raise CredentialsError(
                    "AWS credentials not found",
                    details={
                        "hint": (
                            "Configure credentials using 'aws configure' or set "
                            "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables"
                        ),
                    },
                )
            except AWSClientError:
                raise
            except Exception as e:
                logger.exception(f"Failed to create {service_name} client")
                raise ServiceError(
                    f"Failed to create {service_name} client: {e}",
                    service=service_name,
                    region=self.region,
                )

            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client for {self.region}")
            return client

    # =========================================================================
    # Service Client Accessors
    # =========================================================================

    def get_ec2_client(self) -> Any:
        """Get the EC2 client (instances, VPC networking, NAT gateways, EIPs)."""
        return self._get_client("ec2")

    def get_ecs_client(self) -> Any:
        """Get the ECS client."""
        return self._get_client("ecs")

    def get_logs_client(self) -> Any:
        """Get the CloudWatch Logs client."""
        return self._get_client("logs")

    def get_iam_client(self) -> Any:
        """Get the IAM client. IAM is global; the region is only used for signing."""
        return self._get_client("iam")

    # =========================================================================
    # Credential and Account Operations
    # =========================================================================

    def validate_credentials(self) -> bool:
        """
        Validate AWS credentials by calling STS GetCallerIdentity.

        Returns
        -------
        bool
            True if credentials are valid.

        Raises
        ------
        CredentialsError
            If credentials are invalid, expired, or missing.
        """
        try:
            identity = self._get_client("sts").get_caller_identity()
            logger.info(f"Credentials validated for {identity['Arn']}")
            return True

        except ClientError as e:
            code = error_code(e)
            if code in ("InvalidClientTokenId", "SignatureDoesNotMatch", "ExpiredToken"):
                raise CredentialsError(
                    "Invalid AWS credentials",
                    details={
                        "error_code": code,
                        "hint": "Check your access key and secret key",
                    },
                )
            raise CredentialsError(f"Failed to validate credentials: {e}")

        except AWSClientError:
            raise

        except Exception as e:
            logger.exception("Credential validation failed")
            raise CredentialsError(f"Failed to validate credentials: {e}")

    def get_account_id(self) -> str:
        """
        Get the 12-digit AWS account ID for the current credentials.

        Raises
        ------
        AWSClientError
            If unable to retrieve the account ID.
        """
        try:
            return self._get_client("sts").get_caller_identity()["Account"]
        except AWSClientError:
            raise
        except Exception as e:
            logger.exception("Failed to get account ID")
            raise AWSClientError(f"Failed to get account ID: {e}")

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    def __enter__(self) -> AWSClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        with self._lock:
            self._clients.clear()
            self._session = None

    def __repr__(self) -> str:
        return (
            f"AWSClient(region='{self.region}', "
            f"profile={self.profile!r}, "
            f"max_retries={self.max_retries})"
        )
