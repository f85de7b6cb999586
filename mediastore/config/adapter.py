"""
Adapter configuration resolution.

The host hands us explicit values (from its config file or Settings) and
a snapshot of the environment. `resolve_adapter_config` merges the two,
environment first, and returns an immutable AdapterConfig. It never reads
os.environ itself, so precedence can be tested with plain dicts.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..core.errors import ConfigError
from ..core.models import CannedACL
from ..core.paths import normalize_key, strip_trailing_slash
from ..core.variants import DEFAULT_IMAGE_SIZES

DEFAULT_REGION = "us-east-1"
DEFAULT_CACHE_MAX_AGE = 30 * 24 * 60 * 60

ENV_REGION = "AWS_DEFAULT_REGION"
ENV_BUCKET = "GHOST_STORAGE_ADAPTER_S3_PATH_BUCKET"
ENV_ASSET_HOST = "GHOST_STORAGE_ADAPTER_S3_ASSET_HOST"
ENV_PATH_PREFIX = "GHOST_STORAGE_ADAPTER_S3_PATH_PREFIX"
ENV_ENDPOINT = "GHOST_STORAGE_ADAPTER_S3_ENDPOINT"
ENV_FORCE_PATH_STYLE = "GHOST_STORAGE_ADAPTER_S3_FORCE_PATH_STYLE"
ENV_ACL = "GHOST_STORAGE_ADAPTER_S3_ACL"

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def default_asset_host(bucket: str, region: str, force_path_style: bool) -> str:
    """
    Public base URL of the bucket on AWS S3.

    The region segment is omitted for us-east-1, which is served from the
    global endpoint.
    """
    store_host = "s3.amazonaws.com" if region == DEFAULT_REGION else f"s3.{region}.amazonaws.com"
    if force_path_style:
        return f"https://{store_host}/{bucket}"
    return f"https://{bucket}.{store_host}"


def normalize_prefix(prefix: str) -> str:
    return strip_trailing_slash(normalize_key(prefix or ""))


@dataclass(frozen=True)
class AdapterConfig:
    """
    Resolved, immutable adapter configuration.

    `asset_host` is derived from bucket, region and addressing style when
    not supplied, and is fixed for the adapter's lifetime.
    """
    bucket: str
    region: str = DEFAULT_REGION
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = field(default=None, repr=False)
    asset_host: Optional[str] = None
    path_prefix: str = ""
    endpoint: Optional[str] = None
    force_path_style: bool = False
    acl: CannedACL = CannedACL.PUBLIC_READ
    image_sizes: tuple[int, ...] = DEFAULT_IMAGE_SIZES
    cache_max_age: int = DEFAULT_CACHE_MAX_AGE

    def __post_init__(self) -> None:
        if not self.bucket or not self.bucket.strip():
            raise ConfigError("S3 bucket not specified")

        if not isinstance(self.acl, CannedACL):
            try:
                object.__setattr__(self, "acl", CannedACL(self.acl))
            except ValueError as e:
                raise ConfigError(f"Unknown ACL: {self.acl!r}", cause=e) from e

        if any(width <= 0 for width in self.image_sizes):
            raise ConfigError(f"Image sizes must be positive: {self.image_sizes!r}")
        object.__setattr__(self, "image_sizes", tuple(self.image_sizes))

        object.__setattr__(self, "region", self.region or DEFAULT_REGION)
        object.__setattr__(self, "path_prefix", normalize_prefix(self.path_prefix))
        object.__setattr__(self, "endpoint", self.endpoint or None)

        host = self.asset_host or default_asset_host(self.bucket, self.region, self.force_path_style)
        object.__setattr__(self, "asset_host", strip_trailing_slash(host))

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    @property
    def cache_control(self) -> str:
        return f"max-age={self.cache_max_age}"


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def resolve_adapter_config(
    explicit: Mapping[str, Any],
    environ: Mapping[str, str],
) -> AdapterConfig:
    """
    Merge explicit values with environment overrides.

    Environment variables win for region, bucket, asset host, path prefix,
    endpoint, force-path-style and ACL. Empty environment values count as
    unset. Credentials are only ever taken from `explicit`; without them
    the store client falls back to the provider chain.
    """

    def pick(env_name: str, name: str, default: Any = None) -> Any:
        value = environ.get(env_name)
        if value is not None and value.strip():
            return value.strip()
        value = explicit.get(name)
        return default if value is None or value == "" else value

    return AdapterConfig(
        bucket=pick(ENV_BUCKET, "bucket", ""),
        region=pick(ENV_REGION, "region", DEFAULT_REGION),
        access_key_id=explicit.get("access_key_id") or None,
        secret_access_key=explicit.get("secret_access_key") or None,
        asset_host=pick(ENV_ASSET_HOST, "asset_host"),
        path_prefix=pick(ENV_PATH_PREFIX, "path_prefix", ""),
        endpoint=pick(ENV_ENDPOINT, "endpoint"),
        force_path_style=parse_bool(pick(ENV_FORCE_PATH_STYLE, "force_path_style", False)),
        acl=pick(ENV_ACL, "acl", CannedACL.PUBLIC_READ.value),
        image_sizes=tuple(explicit.get("image_sizes") or DEFAULT_IMAGE_SIZES),
        cache_max_age=int(explicit.get("cache_max_age") or DEFAULT_CACHE_MAX_AGE),
    )
