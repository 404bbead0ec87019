"""
Presigned URL generation.
"""

import logging
from typing import Optional

from s3engine.config import ClientConfig
from s3engine.credentials import CredentialsSnapshot
from s3engine.exceptions import ConfigurationError
from s3engine.marshalling import add_s3_query_parameters, add_url_to_parameters
from s3engine.models import GetPreSignedUrlRequest, HttpVerb, S3QueryParameter
from s3engine.signer import build_signing_string, hmac_sign
from s3engine.util import epoch_seconds, url_encode

logger = logging.getLogger("s3engine.presigner")

P = S3QueryParameter


def presign(
    request: GetPreSignedUrlRequest,
    config: ClientConfig,
    credentials: Optional[CredentialsSnapshot],
) -> str:
    """
    Build a signed URL that authorizes ``request`` until it expires.

    Args:
        request: The operation to authorize
        config: Client configuration supplying the endpoint
        credentials: Snapshot used to sign. Temporary credentials are refused.

    Returns:
        The presigned URL

    Raises:
        ConfigurationError: If the arguments cannot produce a signed URL
    """
    if credentials is None:
        raise ConfigurationError("Credentials are required to presign a URL")
    if credentials.has_session_token:
        raise ConfigurationError("Cannot get presigned url with temporary credentials")
    if not request.bucket_name:
        raise ConfigurationError("The bucket_name specified is null or empty")
    if request.expires is None:
        raise ConfigurationError("The expires specified is null")
    if request.http_verb is None:
        raise ConfigurationError("An http verb must be specified")

    verb = HttpVerb(request.http_verb)
    parameters = request.parameters
    # A request presigned before keeps its old URL and signed query otherwise
    parameters.pop(P.URL, None)
    parameters.pop(P.QUERY_TO_SIGN, None)
    parameters[P.VERB] = verb.value
    parameters[P.ACTION] = request.action

    query = [f"?AWSAccessKeyId={credentials.access_key}"]
    if request.key:
        parameters[P.KEY] = request.key
    elif verb is HttpVerb.HEAD:
        query.append("&max-keys=0")

    if request.content_type:
        parameters[P.CONTENT_TYPE] = request.content_type

    expires = str(epoch_seconds(request.expires))
    parameters[P.EXPIRES] = expires
    query.append(f"&Expires={expires}")

    to_sign = []
    if request.key and request.version_id and verb in (HttpVerb.GET, HttpVerb.HEAD):
        to_sign.append(f"versionId={request.version_id}")
    to_sign.extend(f"{name}={value}" for name, value in request.response_header_overrides.to_query_pairs())

    if to_sign:
        query_to_sign = "&".join(to_sign)
        parameters[P.QUERY_TO_SIGN] = "?" + query_to_sign
        query.append("&" + query_to_sign)

    parameters[P.QUERY] = "".join(query)
    request.destination_bucket = request.bucket_name
    add_s3_query_parameters(request, config, credentials)
    add_url_to_parameters(request, config, scheme=request.protocol.scheme)

    signature = hmac_sign(build_signing_string(parameters, request.headers), credentials)
    parameters[P.AUTHORIZATION] = signature

    url = f"{parameters[P.URL]}&Signature={url_encode(signature)}"
    parameters[P.URL] = url
    logger.debug(f"Presigned {verb.value} URL for {request.bucket_name}/{request.key or ''}")
    return url
