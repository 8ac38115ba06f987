"""Runtime configuration for the failover Lambda.

Provides a typed, immutable view of the environment variables set on the
function. Read once per invocation by the handler and passed down; no module
reads os.environ on its own.
"""

import os
from dataclasses import dataclass


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    monitor_table: str
    region: str
    cloudflare_zone_id: str
    cloudflare_api_token: str
    cloudflare_api_key: str
    cloudflare_email: str
    webhook_url: str
    notify_topic_arn: str
    probe_query_name: str
    probe_timeout: float
    http_timeout: float
    log_level: str


def _float(environ, key: str, default: str) -> float:
    raw = environ.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f'{key} must be a number, got {raw!r}')
    if value <= 0:
        raise ConfigError(f'{key} must be positive, got {raw!r}')
    return value


def load_settings(environ=None) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Raises:
        ConfigError: If the Cloudflare zone or credentials are missing, or a
                     timeout is not a positive number.
    """
    env = os.environ if environ is None else environ

    zone_id = env.get('CLOUDFLARE_ZONE_ID', '').strip()
    token = env.get('CLOUDFLARE_API_TOKEN', '').strip()
    api_key = env.get('CLOUDFLARE_API_KEY', '').strip()
    email = env.get('CLOUDFLARE_EMAIL', '').strip()

    if not zone_id:
        raise ConfigError('CLOUDFLARE_ZONE_ID is required')
    if not token and not (api_key and email):
        raise ConfigError('set CLOUDFLARE_API_TOKEN, or both CLOUDFLARE_API_KEY and CLOUDFLARE_EMAIL')

    return Settings(
        monitor_table=env.get('MONITOR_TABLE', 'DA_MONITOR_DNS'),
        region=env.get('AWS_REGION', 'ap-northeast-1'),
        cloudflare_zone_id=zone_id,
        cloudflare_api_token=token,
        cloudflare_api_key=api_key,
        cloudflare_email=email,
        webhook_url=env.get('WEBHOOK', '').strip(),
        notify_topic_arn=env.get('NOTIFY_TOPIC_ARN', '').strip(),
        probe_query_name=env.get('PROBE_QUERY_NAME', 'example.com'),
        probe_timeout=_float(env, 'PROBE_TIMEOUT', '5'),
        http_timeout=_float(env, 'HTTP_TIMEOUT', '10'),
        log_level=env.get('LOG_LEVEL', 'INFO').upper(),
    )
