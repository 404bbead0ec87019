"""
Request signing.

Builds the canonical string-to-sign from a converted request and signs it
with HMAC-SHA1.
"""

import base64
import hashlib
import hmac
from typing import Mapping

from s3engine.config import Headers
from s3engine.credentials import CredentialsSnapshot
from s3engine.models import S3QueryParameter
from s3engine.util import url_encode


def canonicalize_headers(headers: Mapping[str, str]) -> str:
    """Emit the ``x-amz-*`` headers as sorted ``name:value`` lines."""
    amz_headers = {}
    for name, value in headers.items():
        lowered = name.lower()
        if lowered.startswith(Headers.AMZ_PREFIX):
            amz_headers[lowered] = value

    return "".join(f"{name}:{amz_headers[name]}\n" for name in sorted(amz_headers))


def build_signing_string(
    parameters: Mapping[S3QueryParameter, str],
    headers: Mapping[str, str],
) -> str:
    """
    Build the string-to-sign for a converted request.

    Layout::

        VERB\\n
        content-md5 (always empty)\\n
        content-type\\n
        expires, or empty when x-amz-date carries the date\\n
        canonicalized x-amz- headers (omitted when expires is set)
        url-encoded canonical resource + query to sign
    """
    parts = [parameters[S3QueryParameter.VERB], "\n", "\n"]
    parts.append(parameters.get(S3QueryParameter.CONTENT_TYPE) or "")
    parts.append("\n")

    expires = parameters.get(S3QueryParameter.EXPIRES)
    if expires:
        parts.append(expires)
        parts.append("\n")
    else:
        parts.append("\n")
        parts.append(canonicalize_headers(headers))

    parts.append(url_encode(parameters.get(S3QueryParameter.CANONICALIZED_RESOURCE, "/"), path=True))
    parts.append(parameters.get(S3QueryParameter.QUERY_TO_SIGN) or "")
    return "".join(parts)


def hmac_sign(data: str, credentials: CredentialsSnapshot) -> str:
    """Sign ``data`` with the snapshot's secret and return it base64-encoded."""
    digest = hmac.new(credentials.secret_bytes(), data.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(access_key: str, signature: str) -> str:
    return f"AWS {access_key}:{signature}"
