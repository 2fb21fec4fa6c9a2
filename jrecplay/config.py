#!/usr/bin/env python3
"""
jrecplay Configuration

Settings come from a YAML file (the `replay:` section), then JRECPLAY_*
environment variables override individual fields. String values written as
${VAR} in the YAML file are expanded from the environment.

Example jrecplay.yaml:

    replay:
      source: http
      gateway_url: https://gateway.example.com:7171
      token: ${JRECPLAY_TOKEN}
      renderer_ready_timeout_seconds: 10
      speed: 1.5
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


SOURCES = ('http', 'local', 's3')

DEFAULT_CONFIG_PATHS = [
    Path("jrecplay.yaml"),
    Path("config/jrecplay.yaml"),
    Path.home() / ".jrecplay" / "config.yaml",
]

# Environment variable -> config field
ENV_OVERRIDES = {
    'JRECPLAY_SOURCE': 'source',
    'JRECPLAY_GATEWAY_URL': 'gateway_url',
    'JRECPLAY_TOKEN': 'token',
    'JRECPLAY_RECORDINGS_PATH': 'recordings_path',
    'JRECPLAY_S3_BUCKET': 's3_bucket',
    'JRECPLAY_S3_PREFIX': 's3_prefix',
    'AWS_REGION': 's3_region',
    'JRECPLAY_S3_ENDPOINT': 's3_endpoint',
    'JRECPLAY_LOG_LEVEL': 'log_level',
}


@dataclass
class ReplayConfig:
    """Playback configuration"""
    # Where recordings come from: http, local or s3
    source: str = "http"

    # Gateway pull endpoint
    gateway_url: str = "http://localhost:7171"
    token: Optional[str] = None

    # Local recordings directory (one sub-directory per session)
    recordings_path: str = "/var/lib/jrecplay/recordings"

    # S3 storage
    s3_bucket: Optional[str] = None
    s3_prefix: str = "recordings/"
    s3_region: str = "us-east-1"
    s3_endpoint: Optional[str] = None

    # Timeouts
    request_timeout_seconds: float = 30.0
    renderer_ready_timeout_seconds: float = 10.0

    # Terminal playback
    speed: float = 1.0
    show_input: bool = True

    # Video playback
    video_command: List[str] = field(default_factory=lambda: ["mpv", "--really-quiet"])

    log_level: str = "INFO"

    def __post_init__(self):
        if self.source not in SOURCES:
            raise ValueError(f"Unknown recording source: {self.source} (expected one of {', '.join(SOURCES)})")
        if isinstance(self.video_command, str):
            self.video_command = self.video_command.split()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReplayConfig':
        """Create config from dictionary, expanding env vars"""
        expanded = {}
        for key, value in data.items():
            if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
                env_var = value[2:-1]
                expanded[key] = os.environ.get(env_var, '')
            else:
                expanded[key] = value

        # Filter to known fields
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in expanded.items() if k in known_fields}

        return cls(**filtered)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ReplayConfig':
        """Load config from YAML file"""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get('replay', data))

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> 'ReplayConfig':
        """Override fields from JRECPLAY_* environment variables"""
        environ = os.environ if environ is None else environ
        for env_var, name in ENV_OVERRIDES.items():
            value = environ.get(env_var)
            if value:
                setattr(self, name, value)
        if self.source not in SOURCES:
            raise ValueError(f"Unknown recording source: {self.source}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if data.get('token'):
            data['token'] = '***'
        return data


def find_config_file() -> Optional[Path]:
    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return path
    return None


def load_config(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> ReplayConfig:
    """
    Load configuration.

    Args:
        config_path: YAML file to read; default locations are tried when omitted
        environ: Environment mapping for overrides (defaults to os.environ)

    Returns:
        ReplayConfig with file values and environment overrides applied
    """
    if config_path is not None:
        if not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config = ReplayConfig.from_yaml(config_path)
    else:
        default_path = find_config_file()
        config = ReplayConfig.from_yaml(str(default_path)) if default_path else ReplayConfig()

    return config.apply_env(environ)
