#!/usr/bin/env python3
"""
jrecplay Artifact Sources
Fetch recording metadata and artifacts from the gateway, a local recordings
directory, or S3.

Every backend serves the same layout, one directory (or prefix) per session:

    <session_id>/recording.json
    <session_id>/recording-0.webm
    <session_id>/recording-1.webm
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote, urlencode

import aiohttp
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import ReplayConfig
from .errors import FetchError
from .manifest import MANIFEST_NAME, RecordingDescriptor

logger = logging.getLogger('jrecplay.replay.sources')


class ArtifactSource(ABC):
    """Abstract base class for recording sources"""

    def __init__(self, session_id: str):
        self.session_id = session_id

    @abstractmethod
    async def fetch_artifact(self, file_name: str) -> bytes:
        """Fetch a named artifact of the session"""
        pass

    @abstractmethod
    def locate(self, file_name: str) -> str:
        """Location of an artifact that an external player can open (URL or path)"""
        pass

    async def fetch_descriptor(self) -> RecordingDescriptor:
        """Fetch and parse the session's recording.json"""
        content = await self.fetch_artifact(MANIFEST_NAME)
        try:
            descriptor = RecordingDescriptor.from_json(content.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise FetchError(f"Invalid recording metadata for session {self.session_id}: {e}",
                             location=self.locate(MANIFEST_NAME)) from e

        logger.debug(f"Session {self.session_id}: {len(descriptor.files)} artifact(s)")
        return descriptor


class HttpArtifactSource(ArtifactSource):
    """
    Gateway pull endpoint.

    GET {gateway_url}/jet/jrec/pull/{session_id}/{file_name}?token=...
    """

    PULL_PATH = "/jet/jrec/pull"

    def __init__(
        self,
        gateway_url: str,
        session_id: str,
        token: Optional[str] = None,
        timeout: float = 30.0
    ):
        super().__init__(session_id)
        self.gateway_url = gateway_url.rstrip('/')
        self.token = token
        self.timeout = timeout

    def _url(self, file_name: str) -> str:
        return f"{self.gateway_url}{self.PULL_PATH}/{quote(self.session_id, safe='')}/{quote(file_name, safe='')}"

    def locate(self, file_name: str) -> str:
        url = self._url(file_name)
        if self.token:
            url = f"{url}?{urlencode({'token': self.token})}"
        return url

    async def fetch_artifact(self, file_name: str) -> bytes:
        url = self._url(file_name)
        params = {'token': self.token} if self.token else None

        logger.debug(f"GET {url}")
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status == 401 or response.status == 403:
                        raise FetchError(f"Access denied for {file_name}: HTTP {response.status}",
                                         location=url, status_code=response.status)
                    elif response.status == 404:
                        raise FetchError(f"Artifact not found: {file_name}",
                                         location=url, status_code=response.status)
                    elif response.status != 200:
                        raise FetchError(f"Gateway error for {file_name}: HTTP {response.status}",
                                         location=url, status_code=response.status)

                    return await response.read()

        except aiohttp.ClientError as e:
            raise FetchError(f"Connection error fetching {file_name}: {e}", location=url) from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timed out fetching {file_name} after {self.timeout}s", location=url) from e


class LocalArtifactSource(ArtifactSource):
    """Local recordings directory"""

    def __init__(self, base_path: str, session_id: str):
        super().__init__(session_id)
        self.base_path = Path(base_path)
        self.session_path = self.base_path / session_id

    def _get_file_path(self, file_name: str) -> Path:
        if Path(file_name).name != file_name or file_name in ('.', '..'):
            raise FetchError(f"Invalid artifact name: {file_name!r}", location=file_name)
        return self.session_path / file_name

    def locate(self, file_name: str) -> str:
        return str(self._get_file_path(file_name))

    async def fetch_artifact(self, file_name: str) -> bytes:
        file_path = self._get_file_path(file_name)
        if not file_path.exists():
            raise FetchError(f"Recording file missing: {file_path}", location=str(file_path))

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, file_path.read_bytes)
        except OSError as e:
            raise FetchError(f"Cannot read {file_path}: {e}", location=str(file_path)) from e


class S3ArtifactSource(ArtifactSource):
    """S3 recordings bucket"""

    def __init__(
        self,
        bucket: str,
        session_id: str,
        prefix: str = "recordings/",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        client: Optional[Any] = None,
        url_expiry_seconds: int = 3600
    ):
        super().__init__(session_id)
        self.bucket = bucket
        self.prefix = prefix.rstrip('/') + '/' if prefix else ''
        self.url_expiry_seconds = url_expiry_seconds

        if client is None:
            client_kwargs = {'region_name': region}
            if endpoint_url:
                client_kwargs['endpoint_url'] = endpoint_url
            client = boto3.client('s3', **client_kwargs)
        self.s3 = client

    def _get_s3_key(self, file_name: str) -> str:
        return f"{self.prefix}{self.session_id}/{file_name}"

    def locate(self, file_name: str) -> str:
        key = self._get_s3_key(file_name)
        try:
            return self.s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=self.url_expiry_seconds
            )
        except (ClientError, BotoCoreError) as e:
            raise FetchError(f"Cannot sign s3://{self.bucket}/{key}: {e}",
                             location=f"s3://{self.bucket}/{key}") from e

    def _get_object(self, key: str) -> bytes:
        response = self.s3.get_object(Bucket=self.bucket, Key=key)
        return response['Body'].read()

    async def fetch_artifact(self, file_name: str) -> bytes:
        key = self._get_s3_key(file_name)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._get_object, key)
        except (ClientError, BotoCoreError) as e:
            raise FetchError(f"Cannot fetch s3://{self.bucket}/{key}: {e}",
                             location=f"s3://{self.bucket}/{key}") from e


def get_source(session_id: str, config: ReplayConfig) -> ArtifactSource:
    """Build the configured recording source for a session"""
    if config.source == 's3':
        if not config.s3_bucket:
            raise ValueError("s3_bucket is required for the s3 source")
        return S3ArtifactSource(
            bucket=config.s3_bucket,
            session_id=session_id,
            prefix=config.s3_prefix,
            region=config.s3_region,
            endpoint_url=config.s3_endpoint
        )
    elif config.source == 'local':
        return LocalArtifactSource(config.recordings_path, session_id)
    else:
        return HttpArtifactSource(
            gateway_url=config.gateway_url,
            session_id=session_id,
            token=config.token,
            timeout=config.request_timeout_seconds
        )
