"""Translation between the pod schema and the cluster's Pod object."""

from podrecon.translator.containers import ENV_SOURCE_CODECS, HANDLER_CODECS
from podrecon.translator.pod import canonical_json, expand, flatten
from podrecon.translator.server_fields import flatten_live, strip_server_fields
from podrecon.translator.volumes import PROJECTION_CODECS, VOLUME_SOURCE_CODECS

__all__ = [
    "ENV_SOURCE_CODECS",
    "HANDLER_CODECS",
    "PROJECTION_CODECS",
    "VOLUME_SOURCE_CODECS",
    "canonical_json",
    "expand",
    "flatten",
    "flatten_live",
    "strip_server_fields",
]
