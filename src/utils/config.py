"""
GH Archive Importer - Configuration Management
Handles environment configuration with AWS SSM Parameter Store for production
and python-dotenv for local development.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()


class ConfigurationError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""
    pass


class Config:
    """
    Configuration manager with dual-mode operation:
    - Local: Reads from .env file via python-dotenv
    - Production: Reads from AWS SSM Parameter Store
    """

    def __init__(self):
        self.environment = os.getenv('ENVIRONMENT', 'local')
        self._ssm_client = None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Fetch configuration value from SSM (production) or environment (local).

        Args:
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if self.environment == 'production':
            return self._get_from_ssm(key, default)
        return os.getenv(key, default)

    def _get_from_ssm(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Fetch configuration from AWS SSM Parameter Store.

        Raises:
            ConfigurationError: If parameter not found and no default provided,
                               or if AWS credentials/permissions are invalid
        """
        ssm_prefix = os.getenv('AWS_SSM_PREFIX', '/gharchive-importer')
        parameter_name = f"{ssm_prefix}/{key}"

        if self._ssm_client is None:
            import boto3
            self._ssm_client = boto3.client(
                'ssm',
                region_name=os.getenv('AWS_REGION', 'us-east-1')
            )

        try:
            response = self._ssm_client.get_parameter(
                Name=parameter_name,
                WithDecryption=True
            )
            return response['Parameter']['Value']

        except self._ssm_client.exceptions.ParameterNotFound:
            if default is not None:
                return default
            raise ConfigurationError(
                f"Required parameter '{key}' not found in SSM at path '{parameter_name}'. "
                f"Please create the parameter or provide a default value."
            )

        except Exception as e:
            error_type = type(e).__name__
            if default is not None:
                logging.warning(
                    f"Failed to fetch SSM parameter '{key}': {error_type}: {e}. "
                    f"Using default value."
                )
                return default
            raise ConfigurationError(
                f"Failed to fetch parameter '{key}' from SSM: {error_type}: {e}. "
                f"Check AWS credentials, IAM permissions, and network connectivity."
            )

    def get_int(self, key: str, default: int) -> int:
        """
        Get configuration value as integer.

        Falls back to the default (with a warning) when the value cannot be
        converted.
        """
        value = self.get(key, str(default))
        try:
            return int(value)
        except (ValueError, TypeError) as e:
            logging.warning(
                f"Invalid integer for config key '{key}': '{value}'. "
                f"Using default={default}. Error: {e}"
            )
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        """Get configuration value as boolean."""
        value = self.get(key, str(default))
        if value is None:
            return default
        return value.lower() in ('true', '1', 'yes', 'on')


# Global configuration instance
config = Config()


# Database configuration
DATABASE_URL = config.get('DATABASE_URL', '')
DB_DRIVER = config.get('DB_DRIVER', 'mysql+pymysql')
DB_HOST = config.get('DB_HOST', 'localhost')
DB_PORT = config.get_int('DB_PORT', 3306)
DB_NAME = config.get('DB_NAME', 'gharchive_dev')
DB_USER = config.get('DB_USER', 'root')
DB_PASSWORD = config.get('DB_PASSWORD', '')

# GH Archive source
GHARCHIVE_BASE_URL = config.get('GHARCHIVE_BASE_URL', 'https://data.gharchive.org')
HTTP_TIMEOUT_SECONDS = config.get_int('HTTP_TIMEOUT_SECONDS', 60)
MAX_RETRY_ATTEMPTS = config.get_int('MAX_RETRY_ATTEMPTS', 3)
RETRY_BACKOFF_MULTIPLIER = config.get_int('RETRY_BACKOFF_MULTIPLIER', 2)
ARCHIVE_STREAM_DECOMPRESS = config.get_bool('ARCHIVE_STREAM_DECOMPRESS', False)

# Import settings
IMPORT_BATCH_SIZE = config.get_int('IMPORT_BATCH_SIZE', 100)
FETCH_FAILURE_POLICY = config.get('FETCH_FAILURE_POLICY', 'abort')  # abort | skip
UPSERT_POLICY = config.get('UPSERT_POLICY', 'ignore')  # ignore | update

# Logging configuration
LOG_LEVEL = config.get('LOG_LEVEL', 'INFO')

# Database connection pool settings
DB_POOL_SIZE = 5
DB_POOL_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 3600  # Recycle connections after 1 hour
DB_POOL_PRE_PING = True  # Health check connections before use
