"""
Request builder.

Converts typed operation requests into the verb, parameter map, headers and
body consumed by the transport executor, and resolves the target URL.
"""

import logging
import os
from typing import Optional, Tuple

from s3engine.config import ClientConfig, Defaults, Headers
from s3engine.credentials import CredentialsSnapshot
from s3engine.exceptions import ConfigurationError
from s3engine.mime import mime_type_from_extension
from s3engine.models import (
    BucketAddressing,
    GetObjectRequest,
    HttpVerb,
    PutObjectRequest,
    S3QueryParameter,
    S3Request,
)
from s3engine.util import formatted_current_timestamp, url_encode, validate_v2_bucket

logger = logging.getLogger("s3engine.marshalling")

P = S3QueryParameter


def _query_string(pairs) -> str:
    return "&".join(f"{name}={value}" for name, value in pairs)


def convert_get_object(request: GetObjectRequest) -> None:
    """Fill the parameter map of a GetObject request."""
    parameters = request.parameters
    parameters[P.VERB] = HttpVerb.GET.value
    parameters[P.ACTION] = request.action
    if request.key:
        parameters[P.KEY] = request.key

    pairs = []
    if request.version_id:
        pairs.append(("versionId", request.version_id))
    pairs.extend(request.response_header_overrides.to_query_pairs())
    if pairs:
        parameters[P.QUERY] = "?" + _query_string(pairs)
        parameters[P.QUERY_TO_SIGN] = parameters[P.QUERY]

    if request.byte_range is not None:
        first, last = request.byte_range
        parameters[P.RANGE] = f"bytes={first}-{last}"
        request.headers[Headers.RANGE] = parameters[P.RANGE]

    if request.verify_checksum:
        parameters[P.VERIFY_CHECKSUM] = "true"

    parameters[P.REQUEST_TIMEOUT] = str(request.timeout)
    request.destination_bucket = request.bucket_name


def convert_put_object(request: PutObjectRequest) -> None:
    """Fill the parameter map of a PutObject request."""
    if request.data is not None and request.content_body is not None:
        raise ConfigurationError("Please specify one of either data or content_body to upload")

    parameters = request.parameters
    parameters[P.VERB] = HttpVerb.PUT.value
    parameters[P.ACTION] = request.action
    if request.key:
        parameters[P.KEY] = request.key

    if request.content_type:
        parameters[P.CONTENT_TYPE] = request.content_type
    elif os.path.splitext(request.key or "")[1]:
        # Unknown extensions map to application/octet-stream
        parameters[P.CONTENT_TYPE] = mime_type_from_extension(request.key)

    body = None
    if request.data is not None:
        body = request.data
        parameters.setdefault(P.CONTENT_TYPE, Defaults.BINARY_CONTENT_TYPE)

    if request.content_body is not None:
        parameters[P.CONTENT_BODY] = request.content_body
        body = request.content_body.encode("utf-8")
        parameters.setdefault(P.CONTENT_TYPE, Defaults.FORM_CONTENT_TYPE)

    if body is not None:
        if request.position < 0 or request.position > len(body):
            raise ConfigurationError(f"Position {request.position} is outside the request body")
        parameters[P.CONTENT_LENGTH] = str(len(body) - request.position)

    parameters[P.REQUEST_TIMEOUT] = str(request.timeout)
    request.headers[Headers.AMZ_STORAGE_CLASS] = request.storage_class.value
    for name, value in request.metadata.items():
        if not name.lower().startswith(Headers.AMZ_META_PREFIX):
            name = Headers.AMZ_META_PREFIX + name
        request.headers[name] = value

    request.destination_bucket = request.bucket_name


def request_body(request: S3Request) -> Optional[bytes]:
    """The full outbound body, or None for requests without one."""
    text = request.parameters.get(P.CONTENT_BODY)
    if text is not None:
        return text.encode("utf-8")
    return request.data


def add_s3_query_parameters(
    request: S3Request,
    config: ClientConfig,
    credentials: Optional[CredentialsSnapshot],
) -> None:
    """
    Stamp the date header, compute the canonical resource and addressing,
    and attach the session token when the credentials carry one.
    """
    parameters = request.parameters
    request.headers[Headers.AMZ_DATE] = formatted_current_timestamp()

    canonical_resource = "/"
    bucket = request.destination_bucket
    if bucket:
        parameters[P.DESTINATION_BUCKET] = bucket
        if not config.force_path_style and validate_v2_bucket(bucket):
            parameters[P.BUCKET_VERSION] = BucketAddressing.VIRTUAL_HOSTED.value
        else:
            parameters[P.BUCKET_VERSION] = BucketAddressing.PATH.value
        canonical_resource += bucket
        if not bucket.endswith("/"):
            canonical_resource += "/"
    else:
        parameters[P.BUCKET_VERSION] = BucketAddressing.VIRTUAL_HOSTED.value

    if P.KEY in parameters:
        canonical_resource += parameters[P.KEY]
    parameters[P.CANONICALIZED_RESOURCE] = canonical_resource

    # An explicit Content-Type header wins over the inferred one
    for name, value in request.headers.items():
        if name.lower() == "content-type" and value:
            parameters[P.CONTENT_TYPE] = value

    if credentials is not None and credentials.has_session_token:
        request.headers[Headers.AMZ_SECURITY_TOKEN] = credentials.session_token


def resolve_endpoint(config: ClientConfig) -> Tuple[str, str]:
    """Split the configured service URL into (scheme, host)."""
    service_url = (config.service_url or "").strip()
    if not service_url:
        raise ConfigurationError("The service URL is either null or empty")

    if "://" in service_url:
        scheme, host = service_url.split("://", 1)
        scheme = scheme.lower()
        if scheme not in ("http", "https"):
            raise ConfigurationError(f"Unsupported service URL scheme: {scheme}")
    else:
        scheme, host = config.protocol.scheme, service_url

    host = host.rstrip("/")
    if not host:
        raise ConfigurationError("The service URL has no host")
    return scheme, host


def add_url_to_parameters(
    request: S3Request,
    config: ClientConfig,
    scheme: Optional[str] = None,
) -> None:
    """
    Assemble the target URL. A URL already present, for example one taken
    from a redirect, is left untouched.
    """
    parameters = request.parameters
    if parameters.get(P.URL):
        return

    default_scheme, host = resolve_endpoint(config)
    scheme = scheme or default_scheme

    if parameters[P.BUCKET_VERSION] == BucketAddressing.PATH.value:
        url = host + parameters[P.CANONICALIZED_RESOURCE]
    elif P.DESTINATION_BUCKET in parameters:
        url = f"{parameters[P.DESTINATION_BUCKET]}.{host}/{parameters.get(P.KEY, '')}"
    else:
        url = host + "/"

    url = url_encode(f"{scheme}://{url}", path=True)
    url += parameters.get(P.QUERY, "")
    parameters[P.URL] = url
    logger.debug(f"Resolved URL for {parameters.get(P.ACTION)}: {url}")
